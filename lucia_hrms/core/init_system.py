import logging
from sqlalchemy.orm import Session

from lucia_hrms.database import SessionLocal
from lucia_hrms.models.branch import Branch
from lucia_hrms.models.employee import Employee
from lucia_hrms.models.team import Team
from lucia_hrms.models.user import User, UserRole
from lucia_hrms.services import auth as auth_service

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "ChangeMe123!"


def _create_user(db: Session, email: str, first_name: str, last_name: str, role: UserRole) -> User:
    user = User(
        email=email,
        hashed_password=auth_service.get_password_hash(DEMO_PASSWORD),
        first_name=first_name,
        last_name=last_name,
        role=role,
        is_active=True,
    )
    db.add(user)
    db.flush()
    return user


def seed_demo_data(db: Session) -> bool:
    """
    Create a demo branch, team and one user per approval tier.
    Does nothing (returns False) once any user exists.
    """
    if db.query(User).count() > 0:
        logger.info("System initialization check: users found, skipping demo seed.")
        return False

    admin = _create_user(db, "admin@lucia.example", "Super", "Admin", UserRole.SUPER_ADMIN)
    manager = _create_user(db, "manager@lucia.example", "Branch", "Manager", UserRole.BRANCH_MANAGER)
    leader = _create_user(db, "leader@lucia.example", "Team", "Leader", UserRole.TEAM_LEADER)
    employee_user = _create_user(db, "employee@lucia.example", "Demo", "Employee", UserRole.EMPLOYEE)

    branch = Branch(name="Head Office", code="HO", manager_user_id=manager.id)
    db.add(branch)
    db.flush()
    team = Team(name="Engineering", branch_id=branch.id, leader_user_id=leader.id)
    db.add(team)
    db.flush()

    for code, user, team_id in (
        ("EMP-0001", manager, None),
        ("EMP-0002", leader, team.id),
        ("EMP-0003", employee_user, team.id),
    ):
        db.add(Employee(user_id=user.id, employee_code=code, branch_id=branch.id, team_id=team_id))

    db.commit()
    logger.info(f"Seeded demo data; sign in as {admin.email} (password set from code, change immediately)")
    return True


def init_system_data():
    """Seed demo data on an empty database when SEED_DEMO_DATA is enabled."""
    db = SessionLocal()
    try:
        seed_demo_data(db)
    except Exception:
        db.rollback()
        logger.error("Error during system initialization", exc_info=True)
        raise
    finally:
        db.close()
