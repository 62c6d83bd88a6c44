"""
User Model with role-based access.
Branch and team scope is resolved through Branch and Team ownership columns.
"""
from sqlalchemy import Column, Integer, String, Enum, DateTime, Boolean
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from lucia_hrms.database import Base


class UserRole(str, enum.Enum):
    """
    User roles, broadest scope first.

    - SUPER_ADMIN / ADMIN: organisation-wide access, final leave approval
    - HR_MANAGER: organisation-wide HR access, final leave approval
    - BRANCH_ADMIN / BRANCH_MANAGER: employees of the branches they run
    - TEAM_LEADER: members of the teams they lead
    - EMPLOYEE: self-service access
    """
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    HR_MANAGER = "HR_MANAGER"
    BRANCH_ADMIN = "BRANCH_ADMIN"
    BRANCH_MANAGER = "BRANCH_MANAGER"
    TEAM_LEADER = "TEAM_LEADER"
    EMPLOYEE = "EMPLOYEE"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=True)

    role = Column(Enum(UserRole), default=UserRole.EMPLOYEE, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    employee_profile = relationship("Employee", back_populates="user", uselist=False)
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"

    @property
    def employee_id(self):
        return self.employee_profile.id if self.employee_profile else None

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)
