"""Month-close guard.

Once payroll for a month is closed, leave transitions touching that month are
refused unless the actor holds the company-wide override permission and states
why. When month close is switched off for the tenant the guard does nothing.
"""

from __future__ import annotations

import calendar
import logging
import uuid
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coreops.auth.access import has_company_permission
from coreops.common.constants import MonthCloseStatus, Permission, SettingKey
from coreops.common.exceptions import ForbiddenException, ValidationException
from coreops.common.models import get_setting_value, parse_bool
from coreops.governance.models import MonthClose

logger = logging.getLogger(__name__)

COMPANY_SCOPE = "COMPANY"


def month_end(d: date) -> date:
    return date(d.year, d.month, calendar.monthrange(d.year, d.month)[1])


def months_in_range(start_date: date, end_date: date) -> list[date]:
    """Month-end dates for every calendar month touched by the inclusive range."""
    months: list[date] = []
    year, month = start_date.year, start_date.month
    while (year, month) <= (end_date.year, end_date.month):
        months.append(month_end(date(year, month, 1)))
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return months


async def is_month_close_enabled(db: AsyncSession) -> bool:
    return parse_bool(await get_setting_value(db, SettingKey.MONTH_CLOSE_ENABLED.value))


async def get_month_status(db: AsyncSession, month: date) -> MonthCloseStatus:
    """Latest recorded status for the month ending on *month*; OPEN if none."""
    result = await db.execute(
        select(MonthClose.status)
        .where(MonthClose.scope == COMPANY_SCOPE, MonthClose.month == month)
        .order_by(MonthClose.created_at.desc(), MonthClose.id.desc())
        .limit(1)
    )
    status = result.scalar_one_or_none()
    return status or MonthCloseStatus.OPEN


async def assert_months_open_for_range(
    db: AsyncSession,
    *,
    start_date: date,
    end_date: date,
    actor_id: uuid.UUID,
    override_reason: Optional[str] = None,
) -> None:
    """Refuse the operation if any month in the range is closed.

    Raises:
        ForbiddenException: a month is closed and the actor cannot override.
        ValidationException: the actor may override but gave no reason.
    """
    if not await is_month_close_enabled(db):
        return

    override_allowed = await has_company_permission(
        db, actor_id, Permission.LEAVE_MONTH_CLOSE_OVERRIDE,
    )
    reason = (override_reason or "").strip()

    for month in months_in_range(start_date, end_date):
        if await get_month_status(db, month) != MonthCloseStatus.CLOSED:
            continue
        if not override_allowed:
            raise ForbiddenException(
                detail=f"Month {month:%Y-%m} is closed.",
            )
        if not reason:
            raise ValidationException(
                errors={"reason": [f"Reason is required to override closed month {month:%Y-%m}."]},
                detail="Reason is required",
            )
        logger.warning(
            "Closed month %s overridden by %s: %s", f"{month:%Y-%m}", actor_id, reason,
        )
