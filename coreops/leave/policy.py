"""Leave policy: tenant configuration and date admissibility rules."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from coreops.common.constants import SettingKey
from coreops.common.exceptions import ForbiddenException, ValidationException
from coreops.common.models import get_setting_value, parse_bool, parse_int


@dataclass(frozen=True)
class LeaveConfig:
    enabled: bool = False
    approval_levels: int = 1
    allow_half_day: bool = False
    allow_backdated: bool = False
    backdate_limit_days: int = 0
    attachments_enabled: bool = False


async def read_leave_config(db: AsyncSession) -> LeaveConfig:
    """Load the leave settings; missing keys fall back to off / zero / one level."""

    async def _get(key: SettingKey):
        return await get_setting_value(db, key.value)

    levels = parse_int(await _get(SettingKey.LEAVE_APPROVAL_LEVELS), 1)
    return LeaveConfig(
        enabled=parse_bool(await _get(SettingKey.LEAVE_ENABLED)),
        approval_levels=2 if levels == 2 else 1,
        allow_half_day=parse_bool(await _get(SettingKey.LEAVE_ALLOW_HALF_DAY)),
        allow_backdated=parse_bool(await _get(SettingKey.LEAVE_ALLOW_BACKDATED_REQUESTS)),
        backdate_limit_days=parse_int(await _get(SettingKey.LEAVE_BACKDATE_LIMIT_DAYS), 0),
        attachments_enabled=parse_bool(await _get(SettingKey.LEAVE_ATTACHMENTS_ENABLED)),
    )


def assert_leave_enabled(cfg: LeaveConfig) -> None:
    if not cfg.enabled:
        raise ForbiddenException(detail="Leave module is disabled")


def assert_date_range(start_date: Optional[date], end_date: Optional[date]) -> None:
    errors: dict[str, list[str]] = {}
    if start_date is None:
        errors["start_date"] = ["Start date is required."]
    if end_date is None:
        errors["end_date"] = ["End date is required."]
    if errors:
        raise ValidationException(errors=errors, detail="Invalid date")
    if start_date > end_date:
        raise ValidationException(
            errors={"end_date": ["End date must be on or after start date."]},
            detail="Invalid date range",
        )


def assert_same_year(start_date: date, end_date: date) -> None:
    if start_date.year != end_date.year:
        raise ValidationException(
            errors={"end_date": ["Leave request cannot span multiple years."]},
            detail="Leave request cannot span multiple years",
        )


def assert_backdated_allowed(cfg: LeaveConfig, start_date: date, today: date) -> None:
    """Backdating is refused outright, or limited to ``backdate_limit_days``.

    A limit of zero or less with backdating switched on means no limit.
    """
    if not cfg.allow_backdated:
        if start_date < today:
            raise ValidationException(
                errors={"start_date": ["Backdated leave requests are not allowed."]},
                detail="Backdated leave requests are not allowed",
            )
        return

    if cfg.backdate_limit_days <= 0:
        return
    if (today - start_date).days > cfg.backdate_limit_days:
        raise ValidationException(
            errors={
                "start_date": [
                    f"Start date is more than {cfg.backdate_limit_days} day(s) in the past."
                ]
            },
            detail="Backdated leave request exceeds limit",
        )


def assert_half_day_allowed(cfg: LeaveConfig) -> None:
    if not cfg.allow_half_day:
        raise ValidationException(
            errors={"unit": ["Half-day leave is disabled."]},
            detail="Half-day leave is disabled",
        )


def assert_attachments_enabled(cfg: LeaveConfig) -> None:
    if not cfg.attachments_enabled:
        raise ForbiddenException(detail="Attachments are disabled")
