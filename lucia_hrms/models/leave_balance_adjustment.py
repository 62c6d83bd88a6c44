from sqlalchemy import Column, Integer, Float, String, Enum, ForeignKey, DateTime
from sqlalchemy.sql import func
from lucia_hrms.database import Base
from lucia_hrms.models.leave_request import LeaveType
import enum


class AdjustmentType(str, enum.Enum):
    ADD = "ADD"
    DEDUCT = "DEDUCT"
    SET = "SET"
    CARRY_FORWARD = "CARRY_FORWARD"


class LeaveBalanceAdjustment(Base):
    """Append-only ledger of balance changes."""
    __tablename__ = "leave_balance_adjustments"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type = Column(Enum(LeaveType), nullable=False)
    year = Column(Integer, nullable=False)
    adjustment_type = Column(Enum(AdjustmentType), nullable=False)
    days = Column(Float, nullable=False)
    reason = Column(String, nullable=False)
    adjusted_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
