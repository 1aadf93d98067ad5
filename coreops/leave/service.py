"""Leave service layer — request lifecycle, balances and leave types.

Business logic:
  - Request creation with date, half-day, backdating, overlap and balance checks
  - One- or two-level approval; final approval consumes balance and marks
    attendance for every day in the range
  - Rejection of pending requests
  - Cancellation, restoring balance and attendance when the request was approved
  - Administrative balance grants and leave-type maintenance
  - Attachment metadata for leave requests (upload, list, download lookup)

Every operation flushes into the caller's session; the surrounding unit of
work commits or rolls back the whole of it. Request rows are locked
(``SELECT ... FOR UPDATE``) before being read for a transition and written back
with a compare-and-swap on ``version``.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from coreops.attendance import bridge as attendance_bridge
from coreops.auth.access import (
    assert_actor_can_access_employee,
    assert_company_permission,
    permission_scope,
)
from coreops.common.audit import create_audit_entry
from coreops.common.constants import (
    ACTIVE_LEAVE_STATUSES,
    DEFAULT_PAGE_SIZE,
    LeaveStatus,
    LeaveUnit,
    Permission,
)
from coreops.common.exceptions import (
    DuplicateException,
    NotFoundException,
    OverlappingLeaveError,
    ValidationException,
    VersionConflictError,
)
from coreops.common.pagination import paginate
from coreops.common.versioning import compare_and_swap
from coreops.core_hr.models import Employee
from coreops.governance.month_close import assert_months_open_for_range
from coreops.leave.ledger import BalanceLedger, calculate_units, each_day
from coreops.leave.models import LeaveAttachment, LeaveBalance, LeaveRequest, LeaveType
from coreops.leave.policy import (
    assert_attachments_enabled,
    assert_backdated_allowed,
    assert_date_range,
    assert_half_day_allowed,
    assert_leave_enabled,
    assert_same_year,
    read_leave_config,
)
from coreops.leave.schemas import (
    LeaveAttachmentCreate,
    LeaveAttachmentOut,
    LeaveBalanceGrant,
    LeaveBalanceOut,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveTypeBrief,
    LeaveTypeCreate,
    LeaveTypeOut,
    LeaveTypeUpdate,
)
from coreops.leave.status import (
    ApprovalStep,
    can_approve,
    plan_approval,
    required_approval_permission,
    resolve_state,
)

logger = logging.getLogger(__name__)

REQUEST_ENTITY = "LEAVE_REQUEST"
TYPE_ENTITY = "LEAVE_TYPE"
ATTACHMENT_ENTITY = "LEAVE_ATTACHMENT"


def _today() -> date:
    return date.today()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _clean(text: Optional[str]) -> str:
    return (text or "").strip()


def _require_reason(reason: Optional[str]) -> str:
    cleaned = _clean(reason)
    if not cleaned:
        raise ValidationException(
            errors={"reason": ["Reason is required."]},
            detail="Reason is required",
        )
    return cleaned


def _request_snapshot(request: LeaveRequest) -> dict[str, Any]:
    return {
        "status": request.status,
        "approved_l1_at": request.approved_l1_at,
        "approved_l2_at": request.approved_l2_at,
        "version": request.version,
    }


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations: requests, approvals, balances, leave types."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _lock_request(db: AsyncSession, request_id: uuid.UUID) -> LeaveRequest:
        result = await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .with_for_update()
        )
        request = result.scalar_one_or_none()
        if request is None:
            raise NotFoundException("LeaveRequest", request_id)
        return request

    @staticmethod
    def _check_expected_version(
        request: LeaveRequest, expected_version: Optional[int],
    ) -> None:
        if expected_version is not None and expected_version != request.version:
            logger.warning(
                "Stale version for leave request %s: caller has %d, row is at %d",
                request.id, expected_version, request.version,
            )
            raise VersionConflictError("LeaveRequest", request.id)

    @staticmethod
    async def _write_request(
        db: AsyncSession, request: LeaveRequest, values: dict[str, Any],
    ) -> LeaveRequest:
        result = await compare_and_swap(
            db,
            LeaveRequest,
            entity_type="LeaveRequest",
            row_id=request.id,
            expected_version=request.version,
            values=values,
        )
        return result.unwrap()

    @staticmethod
    async def _get_leave_type(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        *,
        require_active: bool = True,
    ) -> LeaveType:
        leave_type = await db.get(LeaveType, leave_type_id)
        if leave_type is None or (require_active and not leave_type.is_active):
            raise NotFoundException("LeaveType", leave_type_id)
        return leave_type

    @staticmethod
    async def _lock_balance_for(
        db: AsyncSession, request: LeaveRequest,
    ) -> LeaveBalance:
        year = request.start_date.year
        balance = await BalanceLedger.get_balance(
            db, request.employee_id, request.leave_type_id, year, for_update=True,
        )
        if balance is None:
            raise NotFoundException(
                "LeaveBalance",
                f"{request.employee_id}/{request.leave_type_id}/{year}",
            )
        return balance

    @staticmethod
    async def _find_overlap(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start_date: date,
        end_date: date,
    ) -> Optional[uuid.UUID]:
        # Overlap unless the existing range ends before or starts after ours
        result = await db.execute(
            select(LeaveRequest.id)
            .where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status.in_(ACTIVE_LEAVE_STATUSES),
                LeaveRequest.start_date <= end_date,
                LeaveRequest.end_date >= start_date,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _build_balance_response(
        balance: LeaveBalance, leave_type: Optional[LeaveType] = None,
    ) -> LeaveBalanceOut:
        return LeaveBalanceOut(
            id=balance.id,
            employee_id=balance.employee_id,
            leave_type_id=balance.leave_type_id,
            year=balance.year,
            opening_balance=balance.opening_balance,
            granted_balance=balance.granted_balance,
            consumed_balance=balance.consumed_balance,
            available_balance=balance.available_balance,
            version=balance.version,
            leave_type=(
                LeaveTypeBrief.model_validate(leave_type) if leave_type is not None else None
            ),
        )

    # ─────────────────────────────────────────────────────────────────
    # Create Leave Request
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def create_leave_request(
        db: AsyncSession,
        actor_id: uuid.UUID,
        data: LeaveRequestCreate,
    ) -> LeaveRequestOut:
        """File a request in PENDING_L1.

        Paid leave must be covered by the available balance, but nothing is
        reserved here; consumption happens on final approval.
        """
        cfg = await read_leave_config(db)
        assert_leave_enabled(cfg)

        employee_id = data.employee_id or actor_id
        assert_date_range(data.start_date, data.end_date)

        unit = LeaveUnit(data.unit)
        is_half_day = unit is LeaveUnit.HALF_DAY
        if is_half_day:
            assert_half_day_allowed(cfg)
        assert_backdated_allowed(cfg, data.start_date, _today())
        if is_half_day and data.half_day_part is None:
            raise ValidationException(
                errors={"half_day_part": ["half_day_part is required for HALF_DAY."]},
                detail="halfDayPart is required for HALF_DAY",
            )
        reason = _require_reason(data.reason)
        assert_same_year(data.start_date, data.end_date)
        if is_half_day and data.start_date != data.end_date:
            raise ValidationException(
                errors={"end_date": ["A half-day request must cover a single day."]},
            )

        await assert_actor_can_access_employee(
            db, actor_id, Permission.LEAVE_APPLY_SELF, employee_id,
        )
        await assert_months_open_for_range(
            db,
            start_date=data.start_date,
            end_date=data.end_date,
            actor_id=actor_id,
            override_reason=_clean(data.override_reason) or reason,
        )

        leave_type = await LeaveService._get_leave_type(db, data.leave_type_id)
        if is_half_day and not leave_type.supports_half_day:
            raise ValidationException(
                errors={"unit": [f"Leave type {leave_type.code} does not allow half days."]},
            )

        overlap_id = await LeaveService._find_overlap(
            db, employee_id, data.start_date, data.end_date,
        )
        if overlap_id is not None:
            raise OverlappingLeaveError(overlap_id)

        units = calculate_units(data.start_date, data.end_date, unit)

        if leave_type.is_paid:
            year = data.start_date.year
            balance = await BalanceLedger.get_balance(
                db, employee_id, leave_type.id, year, for_update=True,
            )
            if balance is None:
                raise NotFoundException(
                    "LeaveBalance", f"{employee_id}/{leave_type.id}/{year}",
                )
            if Decimal(balance.available_balance) < units:
                raise ValidationException(
                    errors={
                        "balance": [
                            f"Insufficient leave balance: {balance.available_balance} "
                            f"available, {units} requested."
                        ]
                    },
                    detail="Insufficient leave balance",
                )

        request = LeaveRequest(
            employee_id=employee_id,
            leave_type_id=leave_type.id,
            start_date=data.start_date,
            end_date=data.end_date,
            unit=unit,
            half_day_part=data.half_day_part if is_half_day else None,
            units=units,
            reason=reason,
            status=LeaveStatus.PENDING_L1,
            version=1,
            created_by=actor_id,
        )
        db.add(request)
        await db.flush()

        await create_audit_entry(
            db,
            action="LEAVE_REQUEST_CREATE",
            entity_type=REQUEST_ENTITY,
            entity_id=request.id,
            actor_id=actor_id,
            new_values={
                "employee_id": request.employee_id,
                "leave_type_id": request.leave_type_id,
                "start_date": request.start_date,
                "end_date": request.end_date,
                "unit": request.unit,
                "half_day_part": request.half_day_part,
                "units": request.units,
                "status": request.status,
            },
            reason=reason,
        )
        logger.info(
            "Leave request %s created for %s (%s to %s, %s unit(s))",
            request.id, employee_id, request.start_date, request.end_date, units,
        )
        return LeaveRequestOut.model_validate(request)

    # ─────────────────────────────────────────────────────────────────
    # Approve Leave Request
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def approve_leave_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        *,
        reason: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> LeaveRequestOut:
        """Grant the next approval level.

        Under a two-level policy the first call only stamps L1 and moves the
        request to PENDING_L2. The final call consumes paid balance and marks
        attendance for each day in the range.
        """
        cfg = await read_leave_config(db)
        assert_leave_enabled(cfg)
        note = _clean(reason) or None

        request = await LeaveService._lock_request(db, request_id)
        LeaveService._check_expected_version(request, expected_version)

        resolved = resolve_state(request, cfg.approval_levels)
        if not can_approve(resolved):
            raise ValidationException(
                errors={"status": [f"Leave request is {request.status.value}, not pending approval."]},
                detail="Leave request is not pending approval",
            )

        await assert_actor_can_access_employee(
            db, actor_id, required_approval_permission(resolved), request.employee_id,
        )
        await assert_months_open_for_range(
            db,
            start_date=request.start_date,
            end_date=request.end_date,
            actor_id=actor_id,
            override_reason=note,
        )

        before = _request_snapshot(request)
        step = plan_approval(resolved)
        now = _utcnow()

        # ── First of two levels: stamp only ─────────────────────────
        if step is ApprovalStep.STAMP_L1:
            updated = await LeaveService._write_request(db, request, {
                "status": LeaveStatus.PENDING_L2,
                "approved_l1_by": actor_id,
                "approved_l1_at": now,
            })
            await create_audit_entry(
                db,
                action="LEAVE_REQUEST_APPROVE_L1",
                entity_type=REQUEST_ENTITY,
                entity_id=updated.id,
                actor_id=actor_id,
                old_values=before,
                new_values=_request_snapshot(updated),
                reason=note,
            )
            logger.info("Leave request %s approved at L1 by %s", updated.id, actor_id)
            return LeaveRequestOut.model_validate(updated)

        # ── Historical APPROVED row missing its L2 stamp ────────────
        if step is ApprovalStep.STAMP_L2_ONLY:
            logger.warning(
                "Leave request %s is APPROVED without an L2 stamp; stamping L2 only",
                request.id,
            )
            updated = await LeaveService._write_request(db, request, {
                "status": LeaveStatus.APPROVED,
                "approved_l2_by": actor_id,
                "approved_l2_at": now,
            })
            await create_audit_entry(
                db,
                action="LEAVE_REQUEST_APPROVE_L2",
                entity_type=REQUEST_ENTITY,
                entity_id=updated.id,
                actor_id=actor_id,
                old_values=before,
                new_values=_request_snapshot(updated),
                reason=note,
            )
            return LeaveRequestOut.model_validate(updated)

        # ── Final approval ──────────────────────────────────────────
        leave_type = await LeaveService._get_leave_type(db, request.leave_type_id)
        if leave_type.is_paid:
            balance = await LeaveService._lock_balance_for(db, request)
            await BalanceLedger.consume(db, balance, request.units, actor_id=actor_id)

        if cfg.approval_levels == 1:
            stamps = {"approved_l1_by": actor_id, "approved_l1_at": now}
            action = "LEAVE_REQUEST_APPROVE"
        else:
            stamps = {"approved_l2_by": actor_id, "approved_l2_at": now}
            action = "LEAVE_REQUEST_APPROVE_L2"

        updated = await LeaveService._write_request(
            db, request, {"status": LeaveStatus.APPROVED, **stamps},
        )

        half_day_part = updated.half_day_part if updated.unit == LeaveUnit.HALF_DAY else None
        for day in each_day(updated.start_date, updated.end_date):
            await attendance_bridge.apply_leave_to_attendance(
                db,
                employee_id=updated.employee_id,
                on_date=day,
                leave_request_id=updated.id,
                half_day_part=half_day_part,
                actor_id=actor_id,
            )

        await create_audit_entry(
            db,
            action=action,
            entity_type=REQUEST_ENTITY,
            entity_id=updated.id,
            actor_id=actor_id,
            old_values=before,
            new_values=_request_snapshot(updated),
            reason=note,
        )
        logger.info(
            "Leave request %s approved by %s (%s unit(s))", updated.id, actor_id, updated.units,
        )
        return LeaveRequestOut.model_validate(updated)

    # ─────────────────────────────────────────────────────────────────
    # Reject Leave Request
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def reject_leave_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        reason: Optional[str],
        *,
        expected_version: Optional[int] = None,
    ) -> LeaveRequestOut:
        """Reject a pending request. Nothing was consumed, so nothing is restored."""
        cfg = await read_leave_config(db)
        assert_leave_enabled(cfg)
        reason = _require_reason(reason)

        request = await LeaveService._lock_request(db, request_id)
        LeaveService._check_expected_version(request, expected_version)

        resolved = resolve_state(request, cfg.approval_levels)
        if not resolved.state.is_pending:
            raise ValidationException(
                errors={"status": [f"Leave request is {request.status.value}, not pending approval."]},
                detail="Leave request is not pending approval",
            )

        await assert_actor_can_access_employee(
            db, actor_id, required_approval_permission(resolved), request.employee_id,
        )
        await assert_months_open_for_range(
            db,
            start_date=request.start_date,
            end_date=request.end_date,
            actor_id=actor_id,
            override_reason=reason,
        )

        before = _request_snapshot(request)
        updated = await LeaveService._write_request(db, request, {
            "status": LeaveStatus.REJECTED,
            "rejected_by": actor_id,
            "rejected_at": _utcnow(),
            "rejection_reason": reason,
        })
        await create_audit_entry(
            db,
            action="LEAVE_REQUEST_REJECT",
            entity_type=REQUEST_ENTITY,
            entity_id=updated.id,
            actor_id=actor_id,
            old_values=before,
            new_values=_request_snapshot(updated),
            reason=reason,
        )
        logger.info("Leave request %s rejected by %s", updated.id, actor_id)
        return LeaveRequestOut.model_validate(updated)

    # ─────────────────────────────────────────────────────────────────
    # Cancel Leave Request
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def cancel_leave_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        reason: Optional[str],
        *,
        expected_version: Optional[int] = None,
    ) -> LeaveRequestOut:
        """Cancel a pending or approved request.

        Cancelling an approved request gives back the consumed units and
        reverts the attendance days this request marked. Cancelling an already
        cancelled request returns it unchanged.
        """
        cfg = await read_leave_config(db)
        assert_leave_enabled(cfg)
        reason = _require_reason(reason)

        request = await LeaveService._lock_request(db, request_id)
        if request.status == LeaveStatus.CANCELLED:
            return LeaveRequestOut.model_validate(request)
        if request.status == LeaveStatus.REJECTED:
            raise ValidationException(
                errors={"status": ["Cannot cancel a rejected request."]},
                detail="Cannot cancel a rejected request",
            )
        LeaveService._check_expected_version(request, expected_version)

        if request.employee_id != actor_id:
            await assert_actor_can_access_employee(
                db, actor_id, Permission.LEAVE_REQUEST_CANCEL, request.employee_id,
            )
        await assert_months_open_for_range(
            db,
            start_date=request.start_date,
            end_date=request.end_date,
            actor_id=actor_id,
            override_reason=reason,
        )

        before = _request_snapshot(request)
        if request.status == LeaveStatus.APPROVED:
            leave_type = await LeaveService._get_leave_type(
                db, request.leave_type_id, require_active=False,
            )
            if leave_type.is_paid:
                balance = await LeaveService._lock_balance_for(db, request)
                await BalanceLedger.restore(db, balance, request.units, actor_id=actor_id)
            for day in each_day(request.start_date, request.end_date):
                await attendance_bridge.revert_leave_in_attendance(
                    db,
                    employee_id=request.employee_id,
                    on_date=day,
                    leave_request_id=request.id,
                    actor_id=actor_id,
                )

        updated = await LeaveService._write_request(db, request, {
            "status": LeaveStatus.CANCELLED,
            "cancelled_by": actor_id,
            "cancelled_at": _utcnow(),
            "cancel_reason": reason,
        })
        await create_audit_entry(
            db,
            action="LEAVE_REQUEST_CANCEL",
            entity_type=REQUEST_ENTITY,
            entity_id=updated.id,
            actor_id=actor_id,
            old_values=before,
            new_values=_request_snapshot(updated),
            reason=reason,
        )
        logger.info(
            "Leave request %s cancelled by %s (was %s)",
            updated.id, actor_id, before["status"].value,
        )
        return LeaveRequestOut.model_validate(updated)

    # ─────────────────────────────────────────────────────────────────
    # Read Leave Requests
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_leave_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
    ) -> LeaveRequestOut:
        cfg = await read_leave_config(db)
        assert_leave_enabled(cfg)

        request = await db.get(LeaveRequest, request_id)
        if request is None:
            raise NotFoundException("LeaveRequest", request_id)
        if request.employee_id != actor_id:
            await assert_actor_can_access_employee(
                db, actor_id, Permission.LEAVE_REQUEST_READ, request.employee_id,
            )
        return LeaveRequestOut.model_validate(request)

    @staticmethod
    async def list_leave_requests(
        db: AsyncSession,
        actor_id: uuid.UUID,
        *,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[LeaveStatus] = None,
        division_id: Optional[uuid.UUID] = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> dict:
        """List requests visible to the actor, newest activity first.

        Visibility: everything with company-wide read permission, otherwise
        the actor's own requests plus those in divisions they may read.
        """
        cfg = await read_leave_config(db)
        assert_leave_enabled(cfg)

        query = (
            select(LeaveRequest)
            .join(Employee, Employee.id == LeaveRequest.employee_id)
            .order_by(LeaveRequest.updated_at.desc(), LeaveRequest.id.desc())
        )

        company_wide, divisions = await permission_scope(
            db, actor_id, Permission.LEAVE_REQUEST_READ,
        )
        if not company_wide:
            visible = LeaveRequest.employee_id == actor_id
            if divisions:
                visible = or_(visible, Employee.primary_division_id.in_(divisions))
            query = query.where(visible)

        if employee_id:
            query = query.where(LeaveRequest.employee_id == employee_id)
        if status:
            status = LeaveStatus(status)
            if status in (LeaveStatus.PENDING_L1, LeaveStatus.SUBMITTED):
                query = query.where(
                    LeaveRequest.status.in_((LeaveStatus.PENDING_L1, LeaveStatus.SUBMITTED))
                )
            else:
                query = query.where(LeaveRequest.status == status)
        if division_id:
            query = query.where(Employee.primary_division_id == division_id)

        rows, meta = await paginate(db, query, page=page, page_size=page_size)
        return {
            "data": [LeaveRequestOut.model_validate(r) for r in rows],
            "meta": meta,
        }

    # ─────────────────────────────────────────────────────────────────
    # Balances
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def grant_leave_balance(
        db: AsyncSession,
        actor_id: uuid.UUID,
        data: LeaveBalanceGrant,
    ) -> LeaveBalanceOut:
        """Add to (or open) an employee's balance for a leave type and year."""
        cfg = await read_leave_config(db)
        assert_leave_enabled(cfg)

        if isinstance(data.year, bool) or not isinstance(data.year, int):
            raise ValidationException(errors={"year": ["Invalid year."]})
        if data.granted_balance < 0 or (
            data.opening_balance is not None and data.opening_balance < 0
        ):
            raise ValidationException(
                errors={"granted_balance": ["Balance amounts cannot be negative."]},
                detail="Invalid balance amounts",
            )
        reason = _require_reason(data.reason)

        await assert_actor_can_access_employee(
            db, actor_id, Permission.LEAVE_BALANCE_GRANT, data.employee_id,
        )
        leave_type = await LeaveService._get_leave_type(db, data.leave_type_id)

        balance = await BalanceLedger.grant(
            db,
            employee_id=data.employee_id,
            leave_type_id=leave_type.id,
            year=data.year,
            granted=data.granted_balance,
            opening=data.opening_balance,
            actor_id=actor_id,
            reason=reason,
        )
        return LeaveService._build_balance_response(balance, leave_type)

    @staticmethod
    async def get_leave_balances(
        db: AsyncSession,
        actor_id: uuid.UUID,
        employee_id: Optional[uuid.UUID] = None,
        *,
        year: Optional[int] = None,
    ) -> list[LeaveBalanceOut]:
        """Balances for one employee, latest year first, then by type code."""
        cfg = await read_leave_config(db)
        assert_leave_enabled(cfg)

        employee_id = employee_id or actor_id
        if employee_id != actor_id:
            await assert_actor_can_access_employee(
                db, actor_id, Permission.LEAVE_BALANCE_READ, employee_id,
            )

        query = (
            select(LeaveBalance, LeaveType)
            .join(LeaveType, LeaveType.id == LeaveBalance.leave_type_id)
            .where(LeaveBalance.employee_id == employee_id)
            .order_by(LeaveBalance.year.desc(), LeaveType.code.asc())
        )
        if year is not None:
            query = query.where(LeaveBalance.year == year)

        result = await db.execute(query)
        return [
            LeaveService._build_balance_response(balance, leave_type)
            for balance, leave_type in result.all()
        ]

    # ─────────────────────────────────────────────────────────────────
    # Leave Types
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def list_leave_types(
        db: AsyncSession,
        *,
        is_active: Optional[bool] = True,
    ) -> list[LeaveTypeOut]:
        cfg = await read_leave_config(db)
        assert_leave_enabled(cfg)

        query = select(LeaveType).order_by(LeaveType.code.asc())
        if is_active is not None:
            query = query.where(LeaveType.is_active.is_(is_active))
        result = await db.execute(query)
        return [LeaveTypeOut.model_validate(lt) for lt in result.scalars().all()]

    @staticmethod
    async def _assert_code_free(
        db: AsyncSession, code: str, *, exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(LeaveType.id).where(LeaveType.code == code)
        if exclude_id is not None:
            query = query.where(LeaveType.id != exclude_id)
        if (await db.execute(query)).scalar_one_or_none() is not None:
            raise DuplicateException("code", code)

    @staticmethod
    async def create_leave_type(
        db: AsyncSession,
        actor_id: uuid.UUID,
        data: LeaveTypeCreate,
    ) -> LeaveTypeOut:
        cfg = await read_leave_config(db)
        assert_leave_enabled(cfg)
        await assert_company_permission(db, actor_id, Permission.LEAVE_TYPE_WRITE)

        code = data.code.strip().upper()
        await LeaveService._assert_code_free(db, code)

        leave_type = LeaveType(
            code=code,
            name=data.name.strip(),
            description=data.description,
            is_paid=data.is_paid,
            supports_half_day=data.supports_half_day,
            affects_payroll=data.affects_payroll,
            is_active=data.is_active,
            version=1,
            created_by=actor_id,
            updated_by=actor_id,
        )
        db.add(leave_type)
        await db.flush()

        await create_audit_entry(
            db,
            action="LEAVE_TYPE_CREATE",
            entity_type=TYPE_ENTITY,
            entity_id=leave_type.id,
            actor_id=actor_id,
            new_values=data.model_dump(),
        )
        logger.info("Leave type %s created by %s", code, actor_id)
        return LeaveTypeOut.model_validate(leave_type)

    @staticmethod
    async def update_leave_type(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        actor_id: uuid.UUID,
        data: LeaveTypeUpdate,
    ) -> LeaveTypeOut:
        """Patch a leave type if ``data.version`` still matches the stored row."""
        cfg = await read_leave_config(db)
        assert_leave_enabled(cfg)
        await assert_company_permission(db, actor_id, Permission.LEAVE_TYPE_WRITE)

        leave_type = await db.get(LeaveType, leave_type_id)
        if leave_type is None:
            raise NotFoundException("LeaveType", leave_type_id)

        patch = data.model_dump(exclude_unset=True, exclude={"version"})
        if patch.get("code"):
            await LeaveService._assert_code_free(db, patch["code"], exclude_id=leave_type_id)
        if "name" in patch and patch["name"] is not None:
            patch["name"] = patch["name"].strip()
        patch["updated_by"] = actor_id

        before = {key: getattr(leave_type, key) for key in patch if key != "updated_by"}
        before["version"] = leave_type.version

        result = await compare_and_swap(
            db,
            LeaveType,
            entity_type="LeaveType",
            row_id=leave_type_id,
            expected_version=data.version,
            values=patch,
        )
        updated = result.unwrap()

        await create_audit_entry(
            db,
            action="LEAVE_TYPE_UPDATE",
            entity_type=TYPE_ENTITY,
            entity_id=updated.id,
            actor_id=actor_id,
            old_values=before,
            new_values={**data.model_dump(exclude_unset=True), "version": updated.version},
        )
        logger.info("Leave type %s updated to version %d", updated.code, updated.version)
        return LeaveTypeOut.model_validate(updated)

    # ─────────────────────────────────────────────────────────────────
    # Attachments
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _attachment_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        permission: Permission,
    ) -> LeaveRequest:
        """Load the parent request and check the actor may touch its files.

        Employees always reach the attachments of their own requests.
        """
        cfg = await read_leave_config(db)
        assert_leave_enabled(cfg)
        assert_attachments_enabled(cfg)

        request = await db.get(LeaveRequest, request_id)
        if request is None:
            raise NotFoundException("LeaveRequest", request_id)
        if request.employee_id != actor_id:
            await assert_actor_can_access_employee(
                db, actor_id, permission, request.employee_id,
            )
        return request

    @staticmethod
    async def upload_leave_attachment(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        data: LeaveAttachmentCreate,
    ) -> LeaveAttachmentOut:
        """Register an uploaded file against a leave request."""
        request = await LeaveService._attachment_request(
            db, request_id, actor_id, Permission.LEAVE_ATTACHMENT_UPLOAD,
        )

        attachment = LeaveAttachment(
            leave_request_id=request.id,
            file_name=data.file_name,
            mime_type=data.mime_type,
            size_bytes=data.size_bytes,
            storage_key=data.storage_key,
            uploaded_by=actor_id,
        )
        db.add(attachment)
        await db.flush()

        await create_audit_entry(
            db,
            action="LEAVE_ATTACHMENT_UPLOAD",
            entity_type=ATTACHMENT_ENTITY,
            entity_id=attachment.id,
            actor_id=actor_id,
            new_values={"leave_request_id": request.id, **data.model_dump()},
        )
        logger.info(
            "Attachment %s (%s) added to leave request %s by %s",
            attachment.id, data.file_name, request.id, actor_id,
        )
        return LeaveAttachmentOut.model_validate(attachment)

    @staticmethod
    async def list_leave_attachments(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
    ) -> list[LeaveAttachmentOut]:
        await LeaveService._attachment_request(
            db, request_id, actor_id, Permission.LEAVE_ATTACHMENT_READ,
        )
        result = await db.execute(
            select(LeaveAttachment)
            .where(LeaveAttachment.leave_request_id == request_id)
            .order_by(LeaveAttachment.uploaded_at.desc(), LeaveAttachment.id.desc())
        )
        return [LeaveAttachmentOut.model_validate(a) for a in result.scalars().all()]

    @staticmethod
    async def get_leave_attachment(
        db: AsyncSession,
        request_id: uuid.UUID,
        attachment_id: uuid.UUID,
        actor_id: uuid.UUID,
    ) -> LeaveAttachmentOut:
        """Metadata the client needs to fetch the file from storage."""
        await LeaveService._attachment_request(
            db, request_id, actor_id, Permission.LEAVE_ATTACHMENT_READ,
        )
        attachment = (await db.execute(
            select(LeaveAttachment).where(
                LeaveAttachment.id == attachment_id,
                LeaveAttachment.leave_request_id == request_id,
            )
        )).scalar_one_or_none()
        if attachment is None:
            raise NotFoundException("LeaveAttachment", attachment_id)
        return LeaveAttachmentOut.model_validate(attachment)
