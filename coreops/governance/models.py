"""Governance ORM models: MonthClose (payroll period lock)."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from coreops.common.constants import MonthCloseStatus
from coreops.database import Base


class MonthClose(Base):
    """Append-only month status log; the newest row for a month wins.

    ``month`` holds the last calendar day of the month it describes.
    """

    __tablename__ = "month_close"
    __table_args__ = (
        sa.Index("ix_month_close_scope_month", "scope", "month"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    month: Mapped[date] = mapped_column(sa.Date, nullable=False)
    scope: Mapped[str] = mapped_column(sa.String(20), nullable=False, default="COMPANY")
    status: Mapped[MonthCloseStatus] = mapped_column(
        sa.Enum(MonthCloseStatus, name="month_close_status", native_enum=False, length=10),
        nullable=False,
    )
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    closed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
