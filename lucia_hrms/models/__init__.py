# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    user, branch, team, employee,
    leave_request, leave_balance, leave_balance_adjustment,
    audit_log, notification
)

# Explicit class exports for cleaner imports
from .user import User, UserRole
from .branch import Branch
from .team import Team
from .employee import Employee
from .leave_request import LeaveRequest, LeaveStatus, LeaveType, LeavePriority
from .leave_balance import LeaveBalance
from .leave_balance_adjustment import LeaveBalanceAdjustment, AdjustmentType
from .audit_log import AuditLog
from .notification import Notification

__all__ = [
    "User",
    "UserRole",
    "Branch",
    "Team",
    "Employee",
    "LeaveRequest",
    "LeaveStatus",
    "LeaveType",
    "LeavePriority",
    "LeaveBalance",
    "LeaveBalanceAdjustment",
    "AdjustmentType",
    "AuditLog",
    "Notification",
]
