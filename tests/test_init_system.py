from lucia_hrms.core.init_system import DEMO_PASSWORD, seed_demo_data
from lucia_hrms.models import Branch, Employee, Team, User, UserRole
from lucia_hrms.services import auth as auth_service


def test_seed_creates_one_user_per_tier(db_session):
    assert seed_demo_data(db_session) is True

    roles = {u.role for u in db_session.query(User).all()}
    assert roles == {UserRole.SUPER_ADMIN, UserRole.BRANCH_MANAGER, UserRole.TEAM_LEADER, UserRole.EMPLOYEE}

    branch = db_session.query(Branch).one()
    team = db_session.query(Team).one()
    assert team.branch_id == branch.id
    manager = db_session.get(User, branch.manager_user_id)
    assert manager.role == UserRole.BRANCH_MANAGER

    employee_user = db_session.query(User).filter(User.role == UserRole.EMPLOYEE).one()
    assert employee_user.employee_profile.team_id == team.id
    assert auth_service.verify_password(DEMO_PASSWORD, employee_user.hashed_password)
    # The super admin is not an employee
    assert db_session.query(Employee).count() == 3


def test_seed_skips_populated_database(db_session, make_user):
    make_user()
    assert seed_demo_data(db_session) is False
    assert db_session.query(User).count() == 1
