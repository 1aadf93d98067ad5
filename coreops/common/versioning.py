"""Optimistic concurrency: compare-and-swap updates on a ``version`` column.

Every versioned row carries a monotonically increasing integer. Writers state
the version they read; the UPDATE only lands if nobody else wrote in between::

    UPDATE t SET ..., version = version + 1 WHERE id = :id AND version = :seen

The outcome is reported as a ``CasResult`` instead of a boolean so callers can
tell a row that changed apart from a row that vanished.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from coreops.common.exceptions import NotFoundException, VersionConflictError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


class CasOutcome(str, enum.Enum):
    applied = "applied"
    stale = "stale"
    missing = "missing"


@dataclass(frozen=True)
class CasResult(Generic[ModelT]):
    outcome: CasOutcome
    entity_type: str
    entity_id: uuid.UUID
    row: Optional[ModelT] = None

    @property
    def applied(self) -> bool:
        return self.outcome is CasOutcome.applied

    def unwrap(self) -> ModelT:
        """Return the updated row or raise the matching typed error."""
        if self.outcome is CasOutcome.applied:
            return self.row  # type: ignore[return-value]
        if self.outcome is CasOutcome.missing:
            raise NotFoundException(self.entity_type, self.entity_id)
        raise VersionConflictError(self.entity_type, self.entity_id)


async def compare_and_swap(
    db: AsyncSession,
    model: Any,
    *,
    entity_type: str,
    row_id: uuid.UUID,
    expected_version: int,
    values: dict[str, Any],
) -> CasResult:
    """Apply *values* to the row if its version still equals *expected_version*.

    On success the version is bumped by one, ``updated_at`` is stamped, and the
    refreshed ORM instance is returned in the result.
    """
    stmt = (
        update(model)
        .where(model.id == row_id, model.version == expected_version)
        .values(
            **values,
            updated_at=datetime.now(timezone.utc),
            version=model.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)

    if result.rowcount == 1:
        row = await db.get(model, row_id, populate_existing=True)
        return CasResult(CasOutcome.applied, entity_type, row_id, row)

    still_there = await db.scalar(select(model.id).where(model.id == row_id))
    outcome = CasOutcome.missing if still_there is None else CasOutcome.stale
    logger.warning(
        "Compare-and-swap on %s %s failed: %s (expected version %d)",
        entity_type, row_id, outcome.value, expected_version,
    )
    return CasResult(outcome, entity_type, row_id)
