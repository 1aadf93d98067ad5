"""Balance ledger — grant / consume / restore on per-year leave balances.

``available = round(opening + granted - consumed, 2)`` is recomputed from the
three inputs on every write and never adjusted on its own. Every write is a
compare-and-swap on ``version`` and is audited in the caller's transaction.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coreops.common.audit import create_audit_entry
from coreops.common.constants import LeaveUnit
from coreops.common.exceptions import ConflictError, ValidationException
from coreops.common.versioning import compare_and_swap
from coreops.leave.models import LeaveBalance

logger = logging.getLogger(__name__)

ENTITY_TYPE = "LEAVE_BALANCE"
TWO_PLACES = Decimal("0.01")
HALF_DAY_UNITS = Decimal("0.5")

Number = Union[Decimal, int, float, str, None]


# ─────────────────────────────────────────────────────────────────────
# Pure arithmetic
# ─────────────────────────────────────────────────────────────────────


def to_decimal(value: Number) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    # str() first so floats like 0.1 do not drag binary noise along
    return Decimal(str(value))


def round2(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def calculate_available(opening: Number, granted: Number, consumed: Number) -> Decimal:
    return round2(to_decimal(opening) + to_decimal(granted) - to_decimal(consumed))


def each_day(start_date: date, end_date: date) -> list[date]:
    """Every calendar day from *start_date* to *end_date*, inclusive."""
    return [
        start_date + timedelta(days=offset)
        for offset in range((end_date - start_date).days + 1)
    ]


def calculate_units(start_date: date, end_date: date, unit: LeaveUnit) -> Decimal:
    """0.5 for a half day, otherwise the inclusive calendar-day count."""
    if start_date > end_date:
        raise ValidationException(
            errors={"end_date": ["End date must be on or after start date."]},
            detail="Invalid date range",
        )
    if LeaveUnit(unit) is LeaveUnit.HALF_DAY:
        return HALF_DAY_UNITS
    return Decimal((end_date - start_date).days + 1)


def _snapshot(balance: LeaveBalance) -> dict[str, Any]:
    return {
        "employee_id": balance.employee_id,
        "leave_type_id": balance.leave_type_id,
        "year": balance.year,
        "opening_balance": balance.opening_balance,
        "granted_balance": balance.granted_balance,
        "consumed_balance": balance.consumed_balance,
        "available_balance": balance.available_balance,
        "version": balance.version,
    }


# ═════════════════════════════════════════════════════════════════════
# BalanceLedger
# ═════════════════════════════════════════════════════════════════════


class BalanceLedger:
    """Sole writer of LeaveBalance numeric columns."""

    @staticmethod
    async def get_balance(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
        *,
        for_update: bool = False,
    ) -> Optional[LeaveBalance]:
        query = select(LeaveBalance).where(
            LeaveBalance.employee_id == employee_id,
            LeaveBalance.leave_type_id == leave_type_id,
            LeaveBalance.year == year,
        )
        if for_update:
            query = query.with_for_update()
        result = await db.execute(query)
        return result.scalar_one_or_none()

    # ── Grant ───────────────────────────────────────────────────────

    @staticmethod
    async def grant(
        db: AsyncSession,
        *,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
        granted: Decimal,
        opening: Optional[Decimal],
        actor_id: uuid.UUID,
        reason: str,
    ) -> LeaveBalance:
        """Create the year's balance row or add *granted* to the existing one.

        ``opening`` replaces the stored opening balance only when supplied.
        """
        existing = await BalanceLedger.get_balance(
            db, employee_id, leave_type_id, year, for_update=True,
        )

        if existing is None:
            opening_value = round2(to_decimal(opening))
            granted_value = round2(to_decimal(granted))
            balance = LeaveBalance(
                employee_id=employee_id,
                leave_type_id=leave_type_id,
                year=year,
                opening_balance=opening_value,
                granted_balance=granted_value,
                consumed_balance=Decimal("0"),
                available_balance=calculate_available(opening_value, granted_value, 0),
                version=1,
                created_by=actor_id,
                updated_by=actor_id,
            )
            db.add(balance)
            try:
                await db.flush()
            except IntegrityError as exc:
                # A concurrent grant created the row first
                raise ConflictError(
                    "Leave balance was created by another request. Retry the grant.",
                ) from exc
            before = None
        else:
            before = _snapshot(existing)
            opening_value = (
                round2(to_decimal(opening)) if opening is not None
                else to_decimal(existing.opening_balance)
            )
            granted_value = round2(to_decimal(existing.granted_balance) + to_decimal(granted))
            consumed_value = to_decimal(existing.consumed_balance)
            balance = (
                await compare_and_swap(
                    db,
                    LeaveBalance,
                    entity_type=ENTITY_TYPE,
                    row_id=existing.id,
                    expected_version=existing.version,
                    values={
                        "opening_balance": opening_value,
                        "granted_balance": granted_value,
                        "available_balance": calculate_available(
                            opening_value, granted_value, consumed_value,
                        ),
                        "updated_by": actor_id,
                    },
                )
            ).unwrap()

        await create_audit_entry(
            db,
            action="LEAVE_BALANCE_GRANT",
            entity_type=ENTITY_TYPE,
            entity_id=balance.id,
            actor_id=actor_id,
            old_values=before,
            new_values=_snapshot(balance),
            reason=reason,
        )
        logger.info(
            "Granted %s day(s) of leave type %s to %s for %d (available %s)",
            granted, leave_type_id, employee_id, year, balance.available_balance,
        )
        return balance

    # ── Consume ─────────────────────────────────────────────────────

    @staticmethod
    async def consume(
        db: AsyncSession,
        balance: LeaveBalance,
        units: Decimal,
        *,
        actor_id: uuid.UUID,
    ) -> LeaveBalance:
        """Deduct *units* from a balance locked by the caller.

        Insufficient balance raises before anything is written, so the row
        and its version stay as they were.
        """
        units = to_decimal(units)
        available = to_decimal(balance.available_balance)
        if available < units:
            raise ValidationException(
                errors={
                    "balance": [
                        f"Insufficient leave balance: {available} available, {units} requested."
                    ]
                },
                detail="Insufficient leave balance",
            )

        before = _snapshot(balance)
        consumed_value = round2(to_decimal(balance.consumed_balance) + units)
        updated = (
            await compare_and_swap(
                db,
                LeaveBalance,
                entity_type=ENTITY_TYPE,
                row_id=balance.id,
                expected_version=balance.version,
                values={
                    "consumed_balance": consumed_value,
                    "available_balance": calculate_available(
                        balance.opening_balance, balance.granted_balance, consumed_value,
                    ),
                    "updated_by": actor_id,
                },
            )
        ).unwrap()

        await create_audit_entry(
            db,
            action="LEAVE_BALANCE_CONSUME",
            entity_type=ENTITY_TYPE,
            entity_id=updated.id,
            actor_id=actor_id,
            old_values=before,
            new_values=_snapshot(updated),
        )
        logger.info(
            "Consumed %s from balance %s (available %s -> %s)",
            units, updated.id, before["available_balance"], updated.available_balance,
        )
        return updated

    # ── Restore ─────────────────────────────────────────────────────

    @staticmethod
    async def restore(
        db: AsyncSession,
        balance: LeaveBalance,
        units: Decimal,
        *,
        actor_id: uuid.UUID,
    ) -> LeaveBalance:
        """Give back *units*; consumed never drops below zero."""
        before = _snapshot(balance)
        consumed_value = max(
            Decimal("0"), round2(to_decimal(balance.consumed_balance) - to_decimal(units)),
        )
        updated = (
            await compare_and_swap(
                db,
                LeaveBalance,
                entity_type=ENTITY_TYPE,
                row_id=balance.id,
                expected_version=balance.version,
                values={
                    "consumed_balance": consumed_value,
                    "available_balance": calculate_available(
                        balance.opening_balance, balance.granted_balance, consumed_value,
                    ),
                    "updated_by": actor_id,
                },
            )
        ).unwrap()

        await create_audit_entry(
            db,
            action="LEAVE_BALANCE_RESTORE",
            entity_type=ENTITY_TYPE,
            entity_id=updated.id,
            actor_id=actor_id,
            old_values=before,
            new_values=_snapshot(updated),
        )
        logger.info(
            "Restored %s to balance %s (available %s -> %s)",
            units, updated.id, before["available_balance"], updated.available_balance,
        )
        return updated
