import pytest
import os
from datetime import date
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ["LOGIN_RATE_LIMIT_PER_MINUTE"] = "1000"

from lucia_hrms.database import Base, get_db
from lucia_hrms.main import app
from lucia_hrms.models import Branch, Employee, LeaveBalance, LeaveType, Team, User, UserRole
from lucia_hrms.services import auth as auth_service
from lucia_hrms.services.approval_policy import resolve_actor
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "Password123!"
THIS_YEAR = date.today().year


@pytest.fixture(scope="function")
def db_session():
    """Fresh schema per test; services commit, so there is no outer transaction to roll back."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def make_user(db_session):
    """Factory: user plus optional employee record."""
    counter = {"n": 0}

    def _make_user(role=UserRole.EMPLOYEE, first_name="Test", last_name=None, branch=None, team=None, with_employee=True):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=f"{role.value.lower()}{n}@lucia.example",
            hashed_password=auth_service.get_password_hash(PASSWORD),
            first_name=first_name,
            last_name=last_name or f"User{n}",
            role=role,
            is_active=True,
        )
        db_session.add(user)
        db_session.flush()
        if with_employee:
            db_session.add(Employee(
                user_id=user.id,
                employee_code=f"EMP-{n:04d}",
                branch_id=branch.id if branch else None,
                team_id=team.id if team else None,
            ))
        db_session.commit()
        db_session.refresh(user)
        return user
    return _make_user


@pytest.fixture(scope="function")
def org(db_session, make_user):
    """
    A small organisation: one branch with a manager, one team with a leader,
    a second branch, two employees and a super admin.
    """
    manager = make_user(UserRole.BRANCH_MANAGER, first_name="Maya")
    leader = make_user(UserRole.TEAM_LEADER, first_name="Liam")
    other_manager = make_user(UserRole.BRANCH_MANAGER, first_name="Omar")

    branch = Branch(name="Head Office", code="HO", manager_user_id=manager.id)
    other_branch = Branch(name="Harbour", code="HB", manager_user_id=other_manager.id)
    db_session.add_all([branch, other_branch])
    db_session.flush()
    team = Team(name="Engineering", branch_id=branch.id, leader_user_id=leader.id)
    db_session.add(team)
    db_session.commit()

    # Managers and leader belong to the branch they run
    manager.employee_profile.branch_id = branch.id
    leader.employee_profile.branch_id = branch.id
    leader.employee_profile.team_id = team.id
    other_manager.employee_profile.branch_id = other_branch.id
    db_session.commit()

    employee = make_user(UserRole.EMPLOYEE, first_name="Asha", last_name="Rao", branch=branch, team=team)
    outsider = make_user(UserRole.EMPLOYEE, first_name="Ben", last_name="Stone", branch=other_branch)
    admin = make_user(UserRole.SUPER_ADMIN, first_name="Sara", with_employee=False)

    return {
        "branch": branch,
        "other_branch": other_branch,
        "team": team,
        "manager": manager,
        "leader": leader,
        "other_manager": other_manager,
        "employee": employee,
        "outsider": outsider,
        "admin": admin,
    }


@pytest.fixture(scope="function")
def actor_for(db_session):
    def _actor_for(user):
        return resolve_actor(db_session, user)
    return _actor_for


@pytest.fixture(scope="function")
def set_balance(db_session):
    """Create or overwrite a balance row for an employee user."""
    def _set_balance(user, leave_type=LeaveType.CASUAL, total_allowed=5.0, used=0.0, pending=0.0, year=THIS_YEAR):
        balance = db_session.query(LeaveBalance).filter(
            LeaveBalance.employee_id == user.employee_id,
            LeaveBalance.year == year,
            LeaveBalance.leave_type == leave_type,
        ).first()
        if balance is None:
            balance = LeaveBalance(employee_id=user.employee_id, leave_type=leave_type, year=year)
            db_session.add(balance)
        balance.total_allowed = total_allowed
        balance.carried_forward = 0.0
        balance.used = used
        balance.pending = pending
        db_session.commit()
        return balance
    return _set_balance


@pytest.fixture(scope="function")
def get_token():
    """Helper fixture to create access tokens."""
    def _get_token(user):
        return auth_service.create_access_token(data={
            "sub": user.email,
            "user_id": user.id,
            "role": user.role.value,
            "type": "access",
        })
    return _get_token


@pytest.fixture(scope="function")
def auth_headers(get_token):
    def _auth_headers(user):
        return {"Authorization": f"Bearer {get_token(user)}"}
    return _auth_headers


@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
