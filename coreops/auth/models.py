"""Auth ORM models: RoleAssignment (company- or division-scoped roles)."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coreops.common.constants import RoleScope, UserRole
from coreops.database import Base

if TYPE_CHECKING:
    from coreops.core_hr.models import Employee


class RoleAssignment(Base):
    __tablename__ = "role_assignments"
    __table_args__ = (
        sa.CheckConstraint(
            "scope = 'COMPANY' OR division_id IS NOT NULL",
            name="ck_role_assignment_division_scope",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    role: Mapped[UserRole] = mapped_column(
        sa.Enum(UserRole, name="user_role", native_enum=False, length=20),
        nullable=False,
    )
    scope: Mapped[RoleScope] = mapped_column(
        sa.Enum(RoleScope, name="role_scope", native_enum=False, length=10),
        nullable=False,
        default=RoleScope.COMPANY,
    )
    division_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("divisions.id")
    )
    assigned_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    assigned_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)

    # Relationships
    employee: Mapped[Employee] = relationship(
        back_populates="role_assignments", foreign_keys=[employee_id]
    )
