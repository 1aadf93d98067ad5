"""Shared test fixtures — async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
``SELECT ... FOR UPDATE`` compiles to a plain SELECT on SQLite, so row-lock
behaviour itself is not exercised here; version checks are.
"""

from __future__ import annotations

import os

# Set test settings before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from coreops.common.constants import (
    MonthCloseStatus,
    RoleScope,
    SettingKey,
    UserRole,
)
from coreops.config import settings
from coreops.database import Base, get_db, unit_of_work
from coreops.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import coreops.attendance.models  # noqa: F401
import coreops.auth.models  # noqa: F401
import coreops.common.audit  # noqa: F401
import coreops.common.models  # noqa: F401
import coreops.core_hr.models  # noqa: F401
import coreops.governance.models  # noqa: F401
import coreops.leave.models  # noqa: F401

# ── SQLite compat: compile PG-specific types ────────────────────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from coreops.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with unit_of_work(TestSessionFactory) as session:
        yield session


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

def _make_division(*, code: str = "OPS", name: str = "Operations") -> dict:
    return dict(
        id=uuid.uuid4(),
        code=code,
        name=name,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )


def _make_employee(
    *,
    email: Optional[str] = None,
    first_name: str = "Test",
    last_name: str = "User",
    division_id: Optional[uuid.UUID] = None,
) -> dict:
    code = uuid.uuid4().hex[:6].upper()
    return dict(
        id=uuid.uuid4(),
        employee_code=f"CO-{code}",
        first_name=first_name,
        last_name=last_name,
        email=email or f"user.{code.lower()}@coreops.test",
        primary_division_id=division_id,
        date_of_joining=date(2024, 1, 15),
        is_active=True,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


async def seed_division(db: AsyncSession, **kwargs) -> Any:
    from coreops.core_hr.models import Division

    division = Division(**_make_division(**kwargs))
    db.add(division)
    await db.flush()
    return division


async def seed_employee(db: AsyncSession, **kwargs) -> Any:
    from coreops.core_hr.models import Employee

    employee = Employee(**_make_employee(**kwargs))
    db.add(employee)
    await db.flush()
    return employee


async def assign_role(
    db: AsyncSession,
    employee_id: uuid.UUID,
    role: UserRole,
    *,
    scope: RoleScope = RoleScope.COMPANY,
    division_id: Optional[uuid.UUID] = None,
) -> Any:
    from coreops.auth.models import RoleAssignment

    assignment = RoleAssignment(
        employee_id=employee_id,
        role=role,
        scope=scope,
        division_id=division_id,
        is_active=True,
    )
    db.add(assignment)
    await db.flush()
    return assignment


async def set_setting(db: AsyncSession, key: SettingKey, value: Any) -> None:
    from coreops.common.models import AppSetting

    existing = await db.get(AppSetting, key.value)
    if existing is None:
        db.add(AppSetting(key=key.value, value=value))
    else:
        existing.value = value
    await db.flush()


async def configure_leave(
    db: AsyncSession,
    *,
    enabled: bool = True,
    approval_levels: int = 1,
    allow_half_day: bool = True,
    allow_backdated: bool = True,
    backdate_limit_days: int = 0,
    month_close_enabled: bool = False,
    attachments_enabled: bool = False,
) -> None:
    await set_setting(db, SettingKey.LEAVE_ENABLED, "true" if enabled else "false")
    await set_setting(db, SettingKey.LEAVE_APPROVAL_LEVELS, str(approval_levels))
    await set_setting(db, SettingKey.LEAVE_ALLOW_HALF_DAY, allow_half_day)
    await set_setting(db, SettingKey.LEAVE_ALLOW_BACKDATED_REQUESTS, allow_backdated)
    await set_setting(db, SettingKey.LEAVE_BACKDATE_LIMIT_DAYS, backdate_limit_days)
    await set_setting(db, SettingKey.MONTH_CLOSE_ENABLED, month_close_enabled)
    await set_setting(db, SettingKey.LEAVE_ATTACHMENTS_ENABLED, attachments_enabled)


async def seed_leave_type(
    db: AsyncSession,
    *,
    code: str = "PL",
    name: str = "Paid Leave",
    is_paid: bool = True,
    supports_half_day: bool = True,
    is_active: bool = True,
) -> Any:
    from coreops.leave.models import LeaveType

    leave_type = LeaveType(
        code=code,
        name=name,
        is_paid=is_paid,
        supports_half_day=supports_half_day,
        affects_payroll=is_paid,
        is_active=is_active,
        version=1,
    )
    db.add(leave_type)
    await db.flush()
    return leave_type


async def seed_balance(
    db: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    *,
    year: int = 2026,
    opening: str = "10",
    granted: str = "0",
    consumed: str = "0",
) -> Any:
    from coreops.leave.ledger import calculate_available
    from coreops.leave.models import LeaveBalance

    balance = LeaveBalance(
        employee_id=employee_id,
        leave_type_id=leave_type_id,
        year=year,
        opening_balance=Decimal(opening),
        granted_balance=Decimal(granted),
        consumed_balance=Decimal(consumed),
        available_balance=calculate_available(opening, granted, consumed),
        version=1,
    )
    db.add(balance)
    await db.flush()
    return balance


async def close_month(
    db: AsyncSession,
    month_end: date,
    *,
    status: MonthCloseStatus = MonthCloseStatus.CLOSED,
    created_at: Optional[datetime] = None,
) -> Any:
    from coreops.governance.models import MonthClose

    row = MonthClose(
        month=month_end,
        scope="COMPANY",
        status=status,
        created_at=created_at or datetime.now(timezone.utc),
    )
    db.add(row)
    await db.flush()
    return row


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(employee_id: uuid.UUID, expired: bool = False) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
    payload = {
        "sub": str(employee_id),
        "type": "access",
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers_for(employee_id: uuid.UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(employee_id)}"}
