"""Permission checks against role assignments.

A role grants the codes listed for it in ``PERMISSIONS``. A COMPANY-scoped
assignment applies to every employee; a DIVISION-scoped one only to employees
whose primary division matches.
"""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coreops.auth.models import RoleAssignment
from coreops.common.constants import PERMISSIONS, Permission, RoleScope
from coreops.common.exceptions import ForbiddenException
from coreops.core_hr.models import Employee


async def _active_assignments(
    db: AsyncSession, actor_id: uuid.UUID,
) -> list[RoleAssignment]:
    result = await db.execute(
        select(RoleAssignment).where(
            RoleAssignment.employee_id == actor_id,
            RoleAssignment.is_active.is_(True),
        )
    )
    return list(result.scalars().all())


async def has_permission(
    db: AsyncSession,
    actor_id: uuid.UUID,
    permission: Permission,
    *,
    division_id: Optional[uuid.UUID] = None,
) -> bool:
    """True if the actor holds *permission* company-wide or on *division_id*."""
    for assignment in await _active_assignments(db, actor_id):
        if permission not in PERMISSIONS.get(assignment.role, []):
            continue
        if assignment.scope == RoleScope.COMPANY:
            return True
        if (
            assignment.scope == RoleScope.DIVISION
            and division_id is not None
            and assignment.division_id == division_id
        ):
            return True
    return False


async def has_company_permission(
    db: AsyncSession, actor_id: uuid.UUID, permission: Permission,
) -> bool:
    for assignment in await _active_assignments(db, actor_id):
        if (
            assignment.scope == RoleScope.COMPANY
            and permission in PERMISSIONS.get(assignment.role, [])
        ):
            return True
    return False


async def permission_scope(
    db: AsyncSession, actor_id: uuid.UUID, permission: Permission,
) -> tuple[bool, set[uuid.UUID]]:
    """Where the actor holds *permission*: ``(company_wide, division_ids)``."""
    company_wide = False
    divisions: set[uuid.UUID] = set()
    for assignment in await _active_assignments(db, actor_id):
        if permission not in PERMISSIONS.get(assignment.role, []):
            continue
        if assignment.scope == RoleScope.COMPANY:
            company_wide = True
        elif assignment.division_id is not None:
            divisions.add(assignment.division_id)
    return company_wide, divisions


async def get_employee_division_id(
    db: AsyncSession, employee_id: uuid.UUID,
) -> Optional[uuid.UUID]:
    result = await db.execute(
        select(Employee.primary_division_id).where(Employee.id == employee_id)
    )
    return result.scalar_one_or_none()


async def assert_actor_can_access_employee(
    db: AsyncSession,
    actor_id: uuid.UUID,
    permission: Permission,
    employee_id: uuid.UUID,
) -> None:
    """Raise ForbiddenException unless the actor may act on *employee_id*.

    Scope is resolved through the employee's primary division; an employee
    without one is reachable only through COMPANY-scoped roles.
    """
    division_id = await get_employee_division_id(db, employee_id)
    if not await has_permission(db, actor_id, permission, division_id=division_id):
        raise ForbiddenException()


async def assert_company_permission(
    db: AsyncSession, actor_id: uuid.UUID, permission: Permission,
) -> None:
    if not await has_company_permission(db, actor_id, permission):
        raise ForbiddenException()
