from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from lucia_hrms.core.schemas import ApiResponse, Page
from lucia_hrms.database import get_db
from lucia_hrms.models.leave_request import LeavePriority, LeaveStatus, LeaveType
from lucia_hrms.routers.auth_deps import get_approval_policy, get_current_actor
from lucia_hrms.schemas.leave import (
    BalanceAdjustmentCreate,
    LeaveBalanceResponse,
    LeaveDecision,
    LeaveRequestCreate,
    LeaveRequestFilter,
    LeaveRequestResponse,
)
from lucia_hrms.services.approval_policy import Actor, ApprovalPolicy
from lucia_hrms.services.leave_service import LeaveService

router = APIRouter(prefix="/leave", tags=["leave"])


def get_leave_service(
    db: Session = Depends(get_db),
    policy: ApprovalPolicy = Depends(get_approval_policy),
) -> LeaveService:
    return LeaveService(db, policy)


def _to_response(leave) -> LeaveRequestResponse:
    return LeaveRequestResponse.model_validate(leave)


# --- Employee self-service ---

@router.post("/requests", response_model=ApiResponse[LeaveRequestResponse])
def submit_leave_request(
    payload: LeaveRequestCreate,
    actor: Actor = Depends(get_current_actor),
    service: LeaveService = Depends(get_leave_service),
):
    leave = service.submit_request(actor, payload)
    return ApiResponse.ok(_to_response(leave), metadata={"message": "Leave request submitted successfully"})


@router.get("/requests", response_model=ApiResponse[Page[LeaveRequestResponse]])
def list_leave_requests(
    status: Optional[LeaveStatus] = None,
    priority: Optional[LeavePriority] = None,
    leave_type: Optional[LeaveType] = None,
    branch_id: Optional[int] = None,
    employee_id: Optional[int] = None,
    year: Optional[int] = Query(None, ge=1, le=9998),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    service: LeaveService = Depends(get_leave_service),
):
    filters = LeaveRequestFilter(
        status=status,
        priority=priority,
        leave_type=leave_type,
        branch_id=branch_id,
        employee_id=employee_id,
        year=year,
        search=search,
        page=page,
        page_size=page_size,
    )
    items, total = service.list_requests(actor, filters)
    return ApiResponse.ok(Page(
        items=[_to_response(leave) for leave in items],
        total=total,
        page=page,
        page_size=page_size,
    ))


@router.get("/requests/{request_id}", response_model=ApiResponse[LeaveRequestResponse])
def get_leave_request(
    request_id: int,
    actor: Actor = Depends(get_current_actor),
    service: LeaveService = Depends(get_leave_service),
):
    return ApiResponse.ok(_to_response(service.get_request(actor, request_id)))


# --- Primary approval (team leaders, branch roles, HR/admin) ---

@router.get("/primary-approval", response_model=ApiResponse[List[LeaveRequestResponse]])
def primary_approval_queue(
    status: LeaveStatus = LeaveStatus.PENDING,
    branch_id: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    service: LeaveService = Depends(get_leave_service),
):
    items = service.primary_queue(actor, status=status, branch_id=branch_id)
    return ApiResponse.ok([_to_response(leave) for leave in items])


@router.post("/primary-approval", response_model=ApiResponse[LeaveRequestResponse])
def process_primary_approval(
    decision: LeaveDecision,
    actor: Actor = Depends(get_current_actor),
    service: LeaveService = Depends(get_leave_service),
):
    leave = service.primary_decision(actor, decision)
    verb = "approved" if decision.action == "approve" else "rejected"
    return ApiResponse.ok(_to_response(leave), metadata={"message": f"Leave request {verb} successfully"})


# --- Final approval (organisation level) ---

@router.get("/final-approval", response_model=ApiResponse[List[LeaveRequestResponse]])
def final_approval_queue(
    actor: Actor = Depends(get_current_actor),
    service: LeaveService = Depends(get_leave_service),
):
    return ApiResponse.ok([_to_response(leave) for leave in service.final_queue(actor)])


@router.post("/final-approval", response_model=ApiResponse[LeaveRequestResponse])
def process_final_approval(
    decision: LeaveDecision,
    actor: Actor = Depends(get_current_actor),
    service: LeaveService = Depends(get_leave_service),
):
    leave = service.final_decision(actor, decision)
    verb = "finally approved" if decision.action == "approve" else "finally rejected"
    return ApiResponse.ok(_to_response(leave), metadata={"message": f"Leave request {verb} successfully"})


# --- Balances ---

@router.get("/balance", response_model=ApiResponse[List[LeaveBalanceResponse]])
def get_leave_balance(
    year: Optional[int] = Query(None, ge=1, le=9999),
    employee_id: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    service: LeaveService = Depends(get_leave_service),
):
    balances = service.get_balances(actor, year or date.today().year, employee_id)
    return ApiResponse.ok([LeaveBalanceResponse.model_validate(b) for b in balances])


@router.post("/balance/adjustments", response_model=ApiResponse[LeaveBalanceResponse])
def adjust_leave_balance(
    payload: BalanceAdjustmentCreate,
    actor: Actor = Depends(get_current_actor),
    service: LeaveService = Depends(get_leave_service),
):
    balance = service.adjust_balance(actor, payload)
    return ApiResponse.ok(LeaveBalanceResponse.model_validate(balance))
