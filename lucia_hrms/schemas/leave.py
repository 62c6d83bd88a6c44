from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from typing import Literal, Optional

from lucia_hrms.models.leave_request import LeavePriority, LeaveStatus, LeaveType
from lucia_hrms.models.leave_balance_adjustment import AdjustmentType


class LeaveRequestCreate(BaseModel):
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str = Field(..., max_length=2000)
    priority: LeavePriority = LeavePriority.MEDIUM
    attachment_url: Optional[str] = Field(None, max_length=500)


class LeaveRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    requester_name: str
    requester_email: str
    leave_type: LeaveType
    priority: LeavePriority
    start_date: date
    end_date: date
    total_days: int
    reason: str
    attachment_url: Optional[str] = None
    status: LeaveStatus
    is_terminal: bool = False

    primary_approver_id: Optional[int] = None
    primary_comment: Optional[str] = None
    primary_decided_at: Optional[datetime] = None
    final_approver_id: Optional[int] = None
    final_comment: Optional[str] = None
    final_decided_at: Optional[datetime] = None

    created_at: datetime
    updated_at: Optional[datetime] = None


class LeaveDecision(BaseModel):
    """Primary or final decision on a leave request."""
    leave_request_id: int
    action: Literal["approve", "reject"]
    comment: Optional[str] = Field(None, max_length=2000)


class LeaveRequestFilter(BaseModel):
    status: Optional[LeaveStatus] = None
    priority: Optional[LeavePriority] = None
    leave_type: Optional[LeaveType] = None
    branch_id: Optional[int] = None
    employee_id: Optional[int] = None
    year: Optional[int] = Field(None, ge=1, le=9998)
    search: Optional[str] = None
    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)


class LeaveBalanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    leave_type: LeaveType
    year: int
    total_allowed: float
    carried_forward: float
    used: float
    pending: float
    available: float


class BalanceAdjustmentCreate(BaseModel):
    employee_id: int
    year: int = Field(..., ge=2000, le=2100)
    leave_type: LeaveType
    adjustment_type: AdjustmentType
    days: float = Field(..., ge=0)
    reason: str = Field(..., min_length=1, max_length=500)
