"""Leave → attendance synchronisation.

Approved leave marks each covered day ``on_leave``; cancelling approved leave
puts back only the days this bridge wrote. Ownership of a day is recognised by
``source == "system"`` plus a note of the form ``LEAVE_REQUEST:<id>[:AM|PM]``,
so manual corrections made by HR after approval are left alone on revert.

Both functions join the caller's transaction and audit every write.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coreops.attendance.models import AttendanceRecord
from coreops.common.audit import create_audit_entry
from coreops.common.constants import (
    ATTENDANCE_SOURCE_SYSTEM,
    AttendanceStatus,
    HalfDayPart,
)

ENTITY_TYPE = "ATTENDANCE"
LEAVE_NOTE_PREFIX = "LEAVE_REQUEST"
REVERTED_NOTE_PREFIX = "REVERTED_LEAVE_REQUEST"


def leave_note(leave_request_id: uuid.UUID, half_day_part: Optional[HalfDayPart] = None) -> str:
    note = f"{LEAVE_NOTE_PREFIX}:{leave_request_id}"
    if half_day_part is not None:
        note = f"{note}:{HalfDayPart(half_day_part).value}"
    return note


def _snapshot(record: AttendanceRecord) -> dict[str, Any]:
    return {
        "employee_id": record.employee_id,
        "attendance_date": record.attendance_date,
        "status": record.status,
        "source": record.source,
        "note": record.note,
    }


async def _get_locked(
    db: AsyncSession, employee_id: uuid.UUID, on_date: date,
) -> Optional[AttendanceRecord]:
    result = await db.execute(
        select(AttendanceRecord)
        .where(
            AttendanceRecord.employee_id == employee_id,
            AttendanceRecord.attendance_date == on_date,
        )
        .with_for_update()
    )
    return result.scalar_one_or_none()


async def apply_leave_to_attendance(
    db: AsyncSession,
    *,
    employee_id: uuid.UUID,
    on_date: date,
    leave_request_id: uuid.UUID,
    half_day_part: Optional[HalfDayPart],
    actor_id: uuid.UUID,
) -> AttendanceRecord:
    """Mark *on_date* as leave for the employee, creating the record if needed."""
    note = leave_note(leave_request_id, half_day_part)
    existing = await _get_locked(db, employee_id, on_date)

    if existing is None:
        record = AttendanceRecord(
            employee_id=employee_id,
            attendance_date=on_date,
            status=AttendanceStatus.on_leave,
            source=ATTENDANCE_SOURCE_SYSTEM,
            note=note,
            marked_by=actor_id,
            version=1,
        )
        db.add(record)
        await db.flush()
        before = None
    else:
        before = _snapshot(existing)
        existing.status = AttendanceStatus.on_leave
        existing.source = ATTENDANCE_SOURCE_SYSTEM
        existing.note = note
        existing.marked_by = actor_id
        existing.version = existing.version + 1
        existing.updated_at = datetime.now(timezone.utc)
        await db.flush()
        record = existing

    await create_audit_entry(
        db,
        action="ATTENDANCE_SYNC_APPLIED",
        entity_type=ENTITY_TYPE,
        entity_id=record.id,
        actor_id=actor_id,
        old_values=before,
        new_values=_snapshot(record),
    )
    return record


async def revert_leave_in_attendance(
    db: AsyncSession,
    *,
    employee_id: uuid.UUID,
    on_date: date,
    leave_request_id: uuid.UUID,
    actor_id: uuid.UUID,
) -> Optional[AttendanceRecord]:
    """Undo a day previously applied for *leave_request_id*.

    Returns None without writing when the day has no record or the record was
    not written by this bridge for this request.
    """
    existing = await _get_locked(db, employee_id, on_date)
    if existing is None:
        return None
    if existing.source != ATTENDANCE_SOURCE_SYSTEM or not (existing.note or "").startswith(
        leave_note(leave_request_id)
    ):
        return None

    before = _snapshot(existing)
    existing.status = AttendanceStatus.absent
    existing.note = f"{REVERTED_NOTE_PREFIX}:{leave_request_id}"
    existing.marked_by = actor_id
    existing.version = existing.version + 1
    existing.updated_at = datetime.now(timezone.utc)
    await db.flush()

    await create_audit_entry(
        db,
        action="ATTENDANCE_SYNC_REVERTED",
        entity_type=ENTITY_TYPE,
        entity_id=existing.id,
        actor_id=actor_id,
        old_values=before,
        new_values=_snapshot(existing),
    )
    return existing
