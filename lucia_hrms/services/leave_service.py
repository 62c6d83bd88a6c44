"""
Leave Service Layer

Business logic for the two-tier leave approval workflow:

    PENDING --primary approve--> PRIMARY_APPROVED --final approve--> FINAL_APPROVED
    PENDING --primary reject---> PRIMARY_REJECTED
    PRIMARY_APPROVED --final reject--> FINAL_REJECTED

Architecture:
- Router -> LeaveService (this module) -> Models
- Authorisation is delegated to an injected ApprovalPolicy
- Every status change is a conditional UPDATE on the expected current status,
  committed in the same transaction as the balance counters it moves
"""
import logging
from datetime import date, datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import case, or_
from sqlalchemy.orm import Query, Session

from lucia_hrms.core.config import settings
from lucia_hrms.core.exceptions import (
    AccessDeniedError,
    DatabaseError,
    InsufficientBalanceError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
)
from lucia_hrms.models.employee import Employee
from lucia_hrms.models.leave_balance import LeaveBalance
from lucia_hrms.models.leave_balance_adjustment import AdjustmentType, LeaveBalanceAdjustment
from lucia_hrms.models.leave_request import (
    ACTIVE_STATUSES,
    LeavePriority,
    LeaveRequest,
    LeaveStatus,
    LeaveType,
)
from lucia_hrms.models.user import User
from lucia_hrms.schemas.leave import (
    BalanceAdjustmentCreate,
    LeaveDecision,
    LeaveRequestCreate,
    LeaveRequestFilter,
)
from lucia_hrms.services.approval_policy import Actor, ApprovalPolicy, default_policy
from lucia_hrms.services.audit import AuditService
from lucia_hrms.services.base import BaseService, transactional
from lucia_hrms.services.notification import NotificationService

logger = logging.getLogger(__name__)

# URGENT first in approval queues
_PRIORITY_ORDER = case(
    (LeaveRequest.priority == LeavePriority.URGENT, 0),
    (LeaveRequest.priority == LeavePriority.HIGH, 1),
    (LeaveRequest.priority == LeavePriority.MEDIUM, 2),
    else_=3,
)


def calculate_total_days(start_date: date, end_date: date) -> int:
    """Inclusive calendar-day count. Non-positive when end precedes start."""
    return (end_date - start_date).days + 1


def _contains_pattern(term: str) -> str:
    """LIKE pattern matching `term` literally; use with escape="\\"."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _snapshot(leave: LeaveRequest) -> dict:
    return {
        "status": leave.status,
        "primary_approver_id": leave.primary_approver_id,
        "final_approver_id": leave.final_approver_id,
    }


class LeaveService(BaseService):
    def __init__(self, db: Session, policy: ApprovalPolicy = default_policy):
        super().__init__(db)
        self.policy = policy
        self.audit = AuditService(db)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def _employee_of(self, actor: Actor, lock: bool = False) -> Employee:
        if actor.employee_id is None:
            raise NotFoundError("Employee record not found")
        query = self.db.query(Employee).filter(Employee.id == actor.employee_id)
        if lock:
            query = query.with_for_update()
        employee = query.first()
        if employee is None:
            raise NotFoundError("Employee record not found")
        return employee

    def _get_employee(self, employee_id: int) -> Employee:
        employee = self.db.get(Employee, employee_id)
        if employee is None:
            raise NotFoundError("Employee not found")
        return employee

    def _get_request(self, request_id: int) -> LeaveRequest:
        leave = self.db.get(LeaveRequest, request_id)
        if leave is None:
            raise NotFoundError("Leave request not found")
        return leave

    def _scoped_requests(self, actor: Actor) -> Query:
        query = (
            self.db.query(LeaveRequest)
            .join(Employee, LeaveRequest.employee_id == Employee.id)
            .join(User, Employee.user_id == User.id)
        )
        return self.policy.scope_query(actor, query)

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------
    def ensure_balances(self, employee_id: int, year: int) -> List[LeaveBalance]:
        """Create any missing default balance rows for the year (flushed, not committed)."""
        existing = {
            b.leave_type for b in self.db.query(LeaveBalance).filter(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.year == year,
            )
        }
        created = 0
        for type_name, allowance in settings.default_leave_allowances.items():
            leave_type = LeaveType(type_name)
            if leave_type in existing:
                continue
            self.db.add(LeaveBalance(
                employee_id=employee_id,
                leave_type=leave_type,
                year=year,
                total_allowed=allowance,
                carried_forward=0.0,
                used=0.0,
                pending=0.0,
            ))
            created += 1
        if created:
            self.db.flush()
            logger.info(f"Seeded {created} default leave balances for employee {employee_id} ({year})")

        return (
            self.db.query(LeaveBalance)
            .filter(LeaveBalance.employee_id == employee_id, LeaveBalance.year == year)
            .order_by(LeaveBalance.leave_type)
            .all()
        )

    def _balance_query(self, employee_id: int, year: int, leave_type: LeaveType) -> Query:
        return self.db.query(LeaveBalance).filter(
            LeaveBalance.employee_id == employee_id,
            LeaveBalance.year == year,
            LeaveBalance.leave_type == leave_type,
        )

    def _move_balance(self, leave: LeaveRequest, pending_delta: float, used_delta: float = 0.0):
        values = {LeaveBalance.pending: LeaveBalance.pending + pending_delta}
        if used_delta:
            values[LeaveBalance.used] = LeaveBalance.used + used_delta
        updated = self._balance_query(
            leave.employee_id, leave.balance_year, leave.leave_type
        ).update(values, synchronize_session=False)
        if updated != 1:
            logger.error(f"Leave balance missing for request {leave.id} ({leave.leave_type.value}, {leave.balance_year})")
            raise DatabaseError("Leave balance record is missing for this request.")

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    @transactional
    def submit_request(self, actor: Actor, payload: LeaveRequestCreate) -> LeaveRequest:
        # Row lock serialises submissions per employee; the overlap check relies on it
        employee = self._employee_of(actor, lock=True)

        reason = (payload.reason or "").strip()
        if not reason:
            raise InvalidInputError("Missing required fields: leave_type, start_date, end_date, reason")

        total_days = calculate_total_days(payload.start_date, payload.end_date)
        if total_days <= 0:
            raise InvalidInputError("End date must be on or after start date")

        overlapping = self.db.query(LeaveRequest.id).filter(
            LeaveRequest.employee_id == employee.id,
            LeaveRequest.status.in_(ACTIVE_STATUSES),
            LeaveRequest.start_date <= payload.end_date,
            LeaveRequest.end_date >= payload.start_date,
        ).first()
        if overlapping:
            raise InvalidInputError(
                "You have overlapping leave requests for the selected dates",
                details={"conflicting_request_id": overlapping.id},
            )

        year = payload.start_date.year
        self.ensure_balances(employee.id, year)
        balance = self._balance_query(employee.id, year, payload.leave_type).first()
        if balance is None:
            raise InsufficientBalanceError(
                f"No {payload.leave_type.value} leave balance for {year}",
                details={"requested": total_days, "available": 0},
            )
        if total_days > balance.available:
            raise InsufficientBalanceError(
                f"Insufficient balance. Requested: {total_days}, Available: {balance.available:g}",
                details={"requested": total_days, "available": balance.available},
            )

        # Reserve atomically: loses cleanly to a concurrent reservation
        reserved = self.db.query(LeaveBalance).filter(
            LeaveBalance.id == balance.id,
            LeaveBalance.available >= total_days,
        ).update({LeaveBalance.pending: LeaveBalance.pending + total_days}, synchronize_session=False)
        if not reserved:
            raise InsufficientBalanceError(
                f"Insufficient balance. Requested: {total_days}",
                details={"requested": total_days},
            )

        leave = LeaveRequest(
            employee_id=employee.id,
            leave_type=payload.leave_type,
            priority=payload.priority,
            start_date=payload.start_date,
            end_date=payload.end_date,
            total_days=total_days,
            reason=reason,
            attachment_url=payload.attachment_url,
            status=LeaveStatus.PENDING,
        )
        self.db.add(leave)
        self.db.flush()

        self.audit.log_action(
            action="LEAVE_REQUEST_SUBMITTED",
            entity_type="leave_request",
            entity_id=leave.id,
            user_id=actor.user_id,
            user_role=actor.role,
            details={
                "leave_type": payload.leave_type,
                "total_days": total_days,
                "start_date": payload.start_date,
                "end_date": payload.end_date,
            },
            after_state=_snapshot(leave),
        )
        logger.info(f"Leave request {leave.id} submitted by employee {employee.id} ({total_days} days)")
        return leave

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------
    @staticmethod
    def _validate_decision(decision: LeaveDecision) -> Optional[str]:
        comment = (decision.comment or "").strip() or None
        if decision.action == "reject" and comment is None:
            raise InvalidInputError("A comment is required when rejecting a leave request")
        return comment

    def _compare_and_set(self, leave: LeaveRequest, expected: LeaveStatus, values: dict):
        """Apply `values` only if the row is still in `expected` status."""
        updated = self.db.query(LeaveRequest).filter(
            LeaveRequest.id == leave.id,
            LeaveRequest.status == expected,
        ).update(values, synchronize_session=False)
        self.db.refresh(leave)
        if updated != 1:
            raise InvalidTransitionError(
                f"Leave request was modified concurrently and is no longer {expected.value}",
                current_status=leave.status.value,
            )

    def _notify_requester(self, leave: LeaveRequest, title: str, message: str, kind: str):
        NotificationService.notify_user(
            self.db, leave.employee.user_id, title, message, kind, link=f"/leave/requests/{leave.id}"
        )

    @transactional
    def primary_decision(self, actor: Actor, decision: LeaveDecision) -> LeaveRequest:
        comment = self._validate_decision(decision)
        leave = self._get_request(decision.leave_request_id)

        if not self.policy.can_approve_primary(actor, leave.employee):
            raise AccessDeniedError("You are not allowed to take the primary decision on this request")
        if leave.status != LeaveStatus.PENDING:
            raise InvalidTransitionError(
                "Leave request is not in pending status", current_status=leave.status.value
            )

        before = _snapshot(leave)
        now = datetime.now(timezone.utc)
        approved = decision.action == "approve"
        new_status = LeaveStatus.PRIMARY_APPROVED if approved else LeaveStatus.PRIMARY_REJECTED

        self._compare_and_set(leave, LeaveStatus.PENDING, {
            LeaveRequest.status: new_status,
            LeaveRequest.primary_approver_id: actor.user_id,
            LeaveRequest.primary_comment: comment,
            LeaveRequest.primary_decided_at: now,
            LeaveRequest.updated_at: now,
        })
        if not approved:
            self._move_balance(leave, pending_delta=-leave.total_days)

        self.audit.log_action(
            action="LEAVE_PRIMARY_APPROVED" if approved else "LEAVE_PRIMARY_REJECTED",
            entity_type="leave_request",
            entity_id=leave.id,
            user_id=actor.user_id,
            user_role=actor.role,
            details={"employee_id": leave.employee_id, "total_days": leave.total_days, "comment": comment},
            before_state=before,
            after_state=_snapshot(leave),
        )
        if approved:
            self._notify_requester(
                leave, "Leave Update",
                f"Your {leave.leave_type.value} leave request has passed primary approval and awaits final approval.",
                "info",
            )
        else:
            self._notify_requester(
                leave, "Leave Rejected",
                f"Your {leave.leave_type.value} leave request has been rejected. Reason: {comment}",
                "error",
            )
        logger.info(f"Leave request {leave.id} -> {new_status.value} by user {actor.user_id}")
        return leave

    @transactional
    def final_decision(self, actor: Actor, decision: LeaveDecision) -> LeaveRequest:
        comment = self._validate_decision(decision)
        leave = self._get_request(decision.leave_request_id)

        if not self.policy.can_approve_final(actor):
            raise AccessDeniedError("Final approval requires an organisation-level approver")
        if leave.status != LeaveStatus.PRIMARY_APPROVED:
            raise InvalidTransitionError(
                "Leave request must be primary approved before final approval",
                current_status=leave.status.value,
            )

        before = _snapshot(leave)
        now = datetime.now(timezone.utc)
        approved = decision.action == "approve"
        new_status = LeaveStatus.FINAL_APPROVED if approved else LeaveStatus.FINAL_REJECTED

        self._compare_and_set(leave, LeaveStatus.PRIMARY_APPROVED, {
            LeaveRequest.status: new_status,
            LeaveRequest.final_approver_id: actor.user_id,
            LeaveRequest.final_comment: comment,
            LeaveRequest.final_decided_at: now,
            LeaveRequest.updated_at: now,
        })
        if approved:
            self._move_balance(leave, pending_delta=-leave.total_days, used_delta=leave.total_days)
            self.db.add(LeaveBalanceAdjustment(
                employee_id=leave.employee_id,
                leave_type=leave.leave_type,
                year=leave.balance_year,
                adjustment_type=AdjustmentType.DEDUCT,
                days=leave.total_days,
                reason=f"Leave approved: {leave.reason}"[:255],
                adjusted_by=actor.user_id,
                leave_request_id=leave.id,
            ))
        else:
            self._move_balance(leave, pending_delta=-leave.total_days)

        self.audit.log_action(
            action="LEAVE_FINAL_APPROVED" if approved else "LEAVE_FINAL_REJECTED",
            entity_type="leave_request",
            entity_id=leave.id,
            user_id=actor.user_id,
            user_role=actor.role,
            details={"employee_id": leave.employee_id, "total_days": leave.total_days, "comment": comment},
            before_state=before,
            after_state=_snapshot(leave),
        )
        if approved:
            self._notify_requester(
                leave, "Leave Approved",
                f"Your {leave.leave_type.value} leave request for {leave.total_days} days has been approved.",
                "success",
            )
        else:
            self._notify_requester(
                leave, "Leave Rejected",
                f"Your {leave.leave_type.value} leave request has been rejected. Reason: {comment}",
                "error",
            )
        logger.info(f"Leave request {leave.id} -> {new_status.value} by user {actor.user_id}")
        return leave

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def list_requests(self, actor: Actor, filters: LeaveRequestFilter) -> Tuple[List[LeaveRequest], int]:
        query = self._scoped_requests(actor)

        if filters.status:
            query = query.filter(LeaveRequest.status == filters.status)
        if filters.priority:
            query = query.filter(LeaveRequest.priority == filters.priority)
        if filters.leave_type:
            query = query.filter(LeaveRequest.leave_type == filters.leave_type)
        if filters.branch_id:
            query = query.filter(Employee.branch_id == filters.branch_id)
        if filters.employee_id:
            query = query.filter(LeaveRequest.employee_id == filters.employee_id)
        if filters.year:
            query = query.filter(
                LeaveRequest.start_date >= date(filters.year, 1, 1),
                LeaveRequest.start_date < date(filters.year + 1, 1, 1),
            )
        if filters.search and filters.search.strip():
            pattern = _contains_pattern(filters.search.strip())
            query = query.filter(or_(
                User.first_name.ilike(pattern, escape="\\"),
                User.last_name.ilike(pattern, escape="\\"),
                User.email.ilike(pattern, escape="\\"),
                LeaveRequest.reason.ilike(pattern, escape="\\"),
            ))

        total = query.count()
        items = (
            query.order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc())
            .offset((filters.page - 1) * filters.page_size)
            .limit(filters.page_size)
            .all()
        )
        return items, total

    def get_request(self, actor: Actor, request_id: int) -> LeaveRequest:
        leave = self._scoped_requests(actor).filter(LeaveRequest.id == request_id).first()
        if leave is None:
            raise NotFoundError("Leave request not found")
        return leave

    def primary_queue(
        self,
        actor: Actor,
        status: LeaveStatus = LeaveStatus.PENDING,
        branch_id: Optional[int] = None,
    ) -> List[LeaveRequest]:
        if not self.policy.has_primary_scope(actor):
            raise AccessDeniedError("You do not have access to the primary approval queue")

        query = self._scoped_requests(actor).filter(LeaveRequest.status == status)
        if actor.employee_id is not None:
            query = query.filter(LeaveRequest.employee_id != actor.employee_id)
        if branch_id:
            query = query.filter(Employee.branch_id == branch_id)
        return query.order_by(_PRIORITY_ORDER, LeaveRequest.created_at.asc(), LeaveRequest.id.asc()).all()

    def final_queue(self, actor: Actor) -> List[LeaveRequest]:
        if not self.policy.can_approve_final(actor):
            raise AccessDeniedError("You do not have access to the final approval queue")

        return (
            self._scoped_requests(actor)
            .filter(LeaveRequest.status == LeaveStatus.PRIMARY_APPROVED)
            .order_by(_PRIORITY_ORDER, LeaveRequest.created_at.asc(), LeaveRequest.id.asc())
            .all()
        )

    @transactional
    def get_balances(self, actor: Actor, year: int, employee_id: Optional[int] = None) -> List[LeaveBalance]:
        if employee_id is None:
            employee = self._employee_of(actor)
        else:
            employee = self._get_employee(employee_id)
            if not self.policy.can_view_employee(actor, employee):
                raise AccessDeniedError("You cannot view this employee's leave balance")
        return self.ensure_balances(employee.id, year)

    # ------------------------------------------------------------------
    # Administrative adjustments
    # ------------------------------------------------------------------
    @transactional
    def adjust_balance(self, actor: Actor, payload: BalanceAdjustmentCreate) -> LeaveBalance:
        reason = payload.reason.strip()
        if not reason:
            raise InvalidInputError("A reason is required for a balance adjustment")

        employee = self._get_employee(payload.employee_id)
        if not self.policy.can_adjust_balance(actor, employee):
            raise AccessDeniedError("You cannot adjust this employee's leave balance")

        self.ensure_balances(employee.id, payload.year)
        balance = (
            self._balance_query(employee.id, payload.year, payload.leave_type)
            .with_for_update()
            .first()
        )
        if balance is None:
            balance = LeaveBalance(
                employee_id=employee.id,
                leave_type=payload.leave_type,
                year=payload.year,
                total_allowed=0.0,
                carried_forward=0.0,
                used=0.0,
                pending=0.0,
            )
            self.db.add(balance)
            self.db.flush()

        before = {
            "total_allowed": balance.total_allowed,
            "carried_forward": balance.carried_forward,
            "used": balance.used,
            "pending": balance.pending,
        }
        days = payload.days
        kind = payload.adjustment_type

        if kind == AdjustmentType.ADD:
            balance.total_allowed += days
        elif kind == AdjustmentType.DEDUCT:
            if days > balance.available:
                raise InsufficientBalanceError(
                    f"Cannot deduct {days:g} days. Available: {balance.available:g}",
                    details={"requested": days, "available": balance.available},
                )
            balance.used += days
        elif kind == AdjustmentType.SET:
            if days + balance.carried_forward - balance.used - balance.pending < 0:
                raise InvalidInputError("Allowance cannot be set below days already used or pending")
            balance.total_allowed = days
        elif kind == AdjustmentType.CARRY_FORWARD:
            if balance.total_allowed + days - balance.used - balance.pending < 0:
                raise InvalidInputError("Carried-forward days cannot make the balance negative")
            balance.carried_forward = days

        self.db.add(LeaveBalanceAdjustment(
            employee_id=employee.id,
            leave_type=payload.leave_type,
            year=payload.year,
            adjustment_type=kind,
            days=days,
            reason=reason,
            adjusted_by=actor.user_id,
        ))
        self.db.flush()

        self.audit.log_action(
            action="LEAVE_BALANCE_ADJUSTED",
            entity_type="leave_balance",
            entity_id=balance.id,
            user_id=actor.user_id,
            user_role=actor.role,
            details={"adjustment_type": kind, "days": days, "reason": reason},
            before_state=before,
            after_state={
                "total_allowed": balance.total_allowed,
                "carried_forward": balance.carried_forward,
                "used": balance.used,
                "pending": balance.pending,
            },
        )
        logger.info(
            f"Balance {balance.id} adjusted ({kind.value} {days:g}) by user {actor.user_id}"
        )
        return balance
