"""Leave attachment tests — metadata upload, listing, download lookup,
configuration gate and access rules.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError
from sqlalchemy import select

from coreops.common.audit import AuditTrail
from coreops.common.constants import LeaveUnit, RoleScope, UserRole
from coreops.common.exceptions import ForbiddenException, NotFoundException
from coreops.leave.models import LeaveAttachment
from coreops.leave.schemas import LeaveAttachmentCreate, LeaveRequestCreate
from coreops.leave.service import LeaveService
from tests.conftest import (
    assign_role,
    configure_leave,
    seed_balance,
    seed_division,
    seed_employee,
    seed_leave_type,
)


# ── Helpers ─────────────────────────────────────────────────────────


async def _setup(db, *, attachments_enabled: bool = True):
    """Alice (OPS) with a pending request, her manager, Bob (FIN) and HR."""
    await configure_leave(db, attachments_enabled=attachments_enabled)
    ops = await seed_division(db, code="OPS", name="Operations")
    fin = await seed_division(db, code="FIN", name="Finance")
    alice = await seed_employee(db, first_name="Alice", division_id=ops.id)
    bob = await seed_employee(db, first_name="Bob", division_id=fin.id)
    manager = await seed_employee(db, first_name="Meera", division_id=ops.id)
    hr = await seed_employee(db, first_name="Hari")
    await assign_role(db, alice.id, UserRole.employee, scope=RoleScope.DIVISION, division_id=ops.id)
    await assign_role(db, bob.id, UserRole.employee, scope=RoleScope.DIVISION, division_id=fin.id)
    await assign_role(db, manager.id, UserRole.manager, scope=RoleScope.DIVISION, division_id=ops.id)
    await assign_role(db, hr.id, UserRole.hr_admin)

    leave_type = await seed_leave_type(db)
    await seed_balance(db, alice.id, leave_type.id, opening="10")
    request = await LeaveService.create_leave_request(
        db,
        alice.id,
        LeaveRequestCreate(
            leave_type_id=leave_type.id,
            start_date=date(2026, 3, 2),
            end_date=date(2026, 3, 3),
            unit=LeaveUnit.FULL_DAY,
            reason="Fever",
        ),
    )
    return {
        "alice": alice, "bob": bob, "manager": manager, "hr": hr, "request": request,
    }


def _file(name: str = "medical-certificate.pdf") -> LeaveAttachmentCreate:
    return LeaveAttachmentCreate(
        file_name=name,
        mime_type="application/pdf",
        size_bytes=48213,
        storage_key=f"leave/2026/03/{uuid.uuid4()}/{name}",
    )


# ═════════════════════════════════════════════════════════════════════
# UPLOAD
# ═════════════════════════════════════════════════════════════════════


class TestUploadLeaveAttachment:

    async def test_owner_uploads_and_is_audited(self, db):
        ctx = await _setup(db)
        payload = _file()

        out = await LeaveService.upload_leave_attachment(
            db, ctx["request"].id, ctx["alice"].id, payload,
        )

        assert out.leave_request_id == ctx["request"].id
        assert out.file_name == "medical-certificate.pdf"
        assert out.storage_key == payload.storage_key
        assert out.uploaded_by == ctx["alice"].id

        audit = (await db.execute(
            select(AuditTrail).where(AuditTrail.entity_id == out.id)
        )).scalar_one()
        assert audit.action == "LEAVE_ATTACHMENT_UPLOAD"
        assert audit.entity_type == "LEAVE_ATTACHMENT"
        assert audit.actor_id == ctx["alice"].id

    async def test_hr_uploads_for_employee(self, db):
        ctx = await _setup(db)
        out = await LeaveService.upload_leave_attachment(
            db, ctx["request"].id, ctx["hr"].id, _file(),
        )
        assert out.uploaded_by == ctx["hr"].id

    async def test_manager_without_upload_permission_forbidden(self, db):
        ctx = await _setup(db)
        with pytest.raises(ForbiddenException):
            await LeaveService.upload_leave_attachment(
                db, ctx["request"].id, ctx["manager"].id, _file(),
            )

    async def test_disabled_attachments(self, db):
        ctx = await _setup(db, attachments_enabled=False)
        with pytest.raises(ForbiddenException) as exc_info:
            await LeaveService.upload_leave_attachment(
                db, ctx["request"].id, ctx["alice"].id, _file(),
            )
        assert exc_info.value.detail == "Attachments are disabled"
        assert (await db.execute(select(LeaveAttachment))).scalars().all() == []

    async def test_unknown_request(self, db):
        ctx = await _setup(db)
        with pytest.raises(NotFoundException):
            await LeaveService.upload_leave_attachment(
                db, uuid.uuid4(), ctx["hr"].id, _file(),
            )

    def test_blank_metadata_rejected(self):
        with pytest.raises(ValidationError):
            LeaveAttachmentCreate(
                file_name="   ", mime_type="application/pdf",
                size_bytes=10, storage_key="leave/x",
            )
        with pytest.raises(ValidationError):
            LeaveAttachmentCreate(
                file_name="scan.png", mime_type="image/png",
                size_bytes=0, storage_key="leave/x",
            )


# ═════════════════════════════════════════════════════════════════════
# LIST / DOWNLOAD
# ═════════════════════════════════════════════════════════════════════


class TestReadLeaveAttachments:

    async def test_list_newest_first(self, db):
        ctx = await _setup(db)
        now = datetime.now(timezone.utc)
        for name, age in (("old.pdf", 2), ("new.pdf", 0), ("mid.pdf", 1)):
            db.add(LeaveAttachment(
                leave_request_id=ctx["request"].id,
                file_name=name,
                mime_type="application/pdf",
                size_bytes=100,
                storage_key=f"leave/{name}",
                uploaded_by=ctx["alice"].id,
                uploaded_at=now - timedelta(hours=age),
            ))
        await db.flush()

        rows = await LeaveService.list_leave_attachments(
            db, ctx["request"].id, ctx["manager"].id,
        )
        assert [a.file_name for a in rows] == ["new.pdf", "mid.pdf", "old.pdf"]

    async def test_other_division_employee_cannot_list(self, db):
        ctx = await _setup(db)
        with pytest.raises(ForbiddenException):
            await LeaveService.list_leave_attachments(db, ctx["request"].id, ctx["bob"].id)

    async def test_download_returns_metadata(self, db):
        ctx = await _setup(db)
        uploaded = await LeaveService.upload_leave_attachment(
            db, ctx["request"].id, ctx["alice"].id, _file("scan.pdf"),
        )
        out = await LeaveService.get_leave_attachment(
            db, ctx["request"].id, uploaded.id, ctx["hr"].id,
        )
        assert out.id == uploaded.id
        assert out.storage_key == uploaded.storage_key

    async def test_download_through_wrong_request_is_not_found(self, db):
        ctx = await _setup(db)
        uploaded = await LeaveService.upload_leave_attachment(
            db, ctx["request"].id, ctx["alice"].id, _file(),
        )
        other = await LeaveService.create_leave_request(
            db,
            ctx["alice"].id,
            LeaveRequestCreate(
                leave_type_id=ctx["request"].leave_type_id,
                start_date=date(2026, 3, 10),
                end_date=date(2026, 3, 10),
                unit=LeaveUnit.FULL_DAY,
                reason="Follow-up visit",
            ),
        )
        with pytest.raises(NotFoundException):
            await LeaveService.get_leave_attachment(
                db, other.id, uploaded.id, ctx["alice"].id,
            )

    async def test_read_blocked_when_disabled(self, db):
        ctx = await _setup(db, attachments_enabled=False)
        with pytest.raises(ForbiddenException):
            await LeaveService.list_leave_attachments(db, ctx["request"].id, ctx["alice"].id)
