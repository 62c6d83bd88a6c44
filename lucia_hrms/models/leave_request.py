from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Date, Enum, ForeignKey, DateTime, Text
from sqlalchemy.orm import relationship
from lucia_hrms.database import Base
import enum


def _utcnow():
    return datetime.now(timezone.utc)


class LeaveType(str, enum.Enum):
    CASUAL = "CASUAL"
    SICK = "SICK"
    ANNUAL = "ANNUAL"
    MATERNITY = "MATERNITY"
    PATERNITY = "PATERNITY"
    EMERGENCY = "EMERGENCY"


class LeavePriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class LeaveStatus(str, enum.Enum):
    PENDING = "PENDING"
    PRIMARY_APPROVED = "PRIMARY_APPROVED"
    PRIMARY_REJECTED = "PRIMARY_REJECTED"
    FINAL_APPROVED = "FINAL_APPROVED"
    FINAL_REJECTED = "FINAL_REJECTED"


# Requests in these states hold days on the calendar
ACTIVE_STATUSES = (LeaveStatus.PENDING, LeaveStatus.PRIMARY_APPROVED, LeaveStatus.FINAL_APPROVED)

TERMINAL_STATUSES = (LeaveStatus.PRIMARY_REJECTED, LeaveStatus.FINAL_APPROVED, LeaveStatus.FINAL_REJECTED)


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type = Column(Enum(LeaveType), nullable=False, index=True)
    priority = Column(Enum(LeavePriority), default=LeavePriority.MEDIUM, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_days = Column(Integer, nullable=False)
    reason = Column(Text, nullable=False)
    attachment_url = Column(String, nullable=True)
    status = Column(Enum(LeaveStatus), default=LeaveStatus.PENDING, nullable=False, index=True)

    # First-tier decision
    primary_approver_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    primary_comment = Column(Text, nullable=True)
    primary_decided_at = Column(DateTime(timezone=True), nullable=True)

    # Organisation-level decision
    final_approver_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    final_comment = Column(Text, nullable=True)
    final_decided_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    employee = relationship("Employee", back_populates="leave_requests")
    primary_approver = relationship("User", foreign_keys=[primary_approver_id])
    final_approver = relationship("User", foreign_keys=[final_approver_id])

    @property
    def balance_year(self) -> int:
        return self.start_date.year

    @property
    def requester_name(self) -> str:
        return self.employee.user.full_name if self.employee else ""

    @property
    def requester_email(self) -> str:
        return self.employee.user.email if self.employee else ""

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
