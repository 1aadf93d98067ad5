"""Leave router — leave types, balances, requests, their transitions and attachments.

All endpoints require authentication. Permission checks happen in the
service, against the acting employee's role assignments.
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from coreops.auth.dependencies import get_current_user
from coreops.common.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, LeaveStatus
from coreops.common.pagination import PaginatedResponse
from coreops.core_hr.models import Employee
from coreops.database import get_db
from coreops.leave.schemas import (
    LeaveApproveRequest,
    LeaveAttachmentCreate,
    LeaveAttachmentOut,
    LeaveBalanceGrant,
    LeaveBalanceOut,
    LeaveCancelRequest,
    LeaveRejectRequest,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveTypeCreate,
    LeaveTypeOut,
    LeaveTypeUpdate,
)
from coreops.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])


# ── GET /types ──────────────────────────────────────────────────────

@router.get("/types", response_model=list[LeaveTypeOut])
async def list_leave_types(
    is_active: Optional[bool] = Query(True),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.list_leave_types(db, is_active=is_active)


# ── POST /types ─────────────────────────────────────────────────────

@router.post("/types", response_model=LeaveTypeOut, status_code=201)
async def create_leave_type(
    body: LeaveTypeCreate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a leave type. Requires company-wide LEAVE_TYPE_WRITE."""
    return await LeaveService.create_leave_type(db, employee.id, body)


# ── PATCH /types/{id} ───────────────────────────────────────────────

@router.patch("/types/{leave_type_id}", response_model=LeaveTypeOut)
async def update_leave_type(
    leave_type_id: uuid.UUID,
    body: LeaveTypeUpdate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Update a leave type; ``version`` must match the stored row."""
    return await LeaveService.update_leave_type(db, leave_type_id, employee.id, body)


# ── GET /balances ───────────────────────────────────────────────────

@router.get("/balances", response_model=list[LeaveBalanceOut])
async def get_balances(
    employee_id: Optional[uuid.UUID] = Query(None, description="Defaults to the caller"),
    year: Optional[int] = Query(None),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_leave_balances(
        db, employee.id, employee_id, year=year,
    )


# ── POST /balances/grant ────────────────────────────────────────────

@router.post("/balances/grant", response_model=LeaveBalanceOut)
async def grant_balance(
    body: LeaveBalanceGrant,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Grant leave days for a year, creating the balance row if needed."""
    return await LeaveService.grant_leave_balance(db, employee.id, body)


# ── GET /requests ───────────────────────────────────────────────────

@router.get("/requests", response_model=PaginatedResponse[LeaveRequestOut])
async def list_requests(
    employee_id: Optional[uuid.UUID] = Query(None),
    status: Optional[LeaveStatus] = Query(None),
    division_id: Optional[uuid.UUID] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Paginated leave requests visible to the caller."""
    return await LeaveService.list_leave_requests(
        db,
        employee.id,
        employee_id=employee_id,
        status=status,
        division_id=division_id,
        page=page,
        page_size=page_size,
    )


# ── POST /requests ──────────────────────────────────────────────────

@router.post("/requests", response_model=LeaveRequestOut, status_code=201)
async def create_request(
    body: LeaveRequestCreate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Apply for leave (for yourself, or for another employee in scope)."""
    return await LeaveService.create_leave_request(db, employee.id, body)


# ── GET /requests/{id} ──────────────────────────────────────────────

@router.get("/requests/{request_id}", response_model=LeaveRequestOut)
async def get_request(
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_leave_request(db, request_id, employee.id)


# ── POST /requests/{id}/approve ─────────────────────────────────────

@router.post("/requests/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_request(
    request_id: uuid.UUID,
    body: LeaveApproveRequest,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Grant the next approval level."""
    return await LeaveService.approve_leave_request(
        db, request_id, employee.id,
        reason=body.reason, expected_version=body.version,
    )


# ── POST /requests/{id}/reject ──────────────────────────────────────

@router.post("/requests/{request_id}/reject", response_model=LeaveRequestOut)
async def reject_request(
    request_id: uuid.UUID,
    body: LeaveRejectRequest,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.reject_leave_request(
        db, request_id, employee.id, body.reason, expected_version=body.version,
    )


# ── POST /requests/{id}/cancel ──────────────────────────────────────

@router.post("/requests/{request_id}/cancel", response_model=LeaveRequestOut)
async def cancel_request(
    request_id: uuid.UUID,
    body: LeaveCancelRequest,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a request; approved leave gets its balance and attendance back."""
    return await LeaveService.cancel_leave_request(
        db, request_id, employee.id, body.reason, expected_version=body.version,
    )


# ── POST /requests/{id}/attachments ─────────────────────────────────

@router.post(
    "/requests/{request_id}/attachments",
    response_model=LeaveAttachmentOut,
    status_code=201,
)
async def upload_attachment(
    request_id: uuid.UUID,
    body: LeaveAttachmentCreate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Register a file the client has already put in object storage."""
    return await LeaveService.upload_leave_attachment(db, request_id, employee.id, body)


# ── GET /requests/{id}/attachments ──────────────────────────────────

@router.get(
    "/requests/{request_id}/attachments",
    response_model=list[LeaveAttachmentOut],
)
async def list_attachments(
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.list_leave_attachments(db, request_id, employee.id)


# ── GET /requests/{id}/attachments/{att_id}/download ────────────────

@router.get(
    "/requests/{request_id}/attachments/{attachment_id}/download",
    response_model=LeaveAttachmentOut,
)
async def download_attachment(
    request_id: uuid.UUID,
    attachment_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Attachment metadata, including the storage key to fetch the file from."""
    return await LeaveService.get_leave_attachment(
        db, request_id, attachment_id, employee.id,
    )
