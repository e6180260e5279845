"""Shared test fixtures — async DB, client, frozen clock, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test settings before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
# One shared in-memory connection: keep the sweep's tenant sessions sequential
os.environ.setdefault("SWEEP_MAX_CONCURRENCY", "1")

import uuid
from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from backoffice.attendance.clock import Clock, get_clock
from backoffice.common.constants import BUSINESS_TZ, TenantRole
from backoffice.config import settings
from backoffice.database import Base, get_db, get_session_factory
from backoffice.main import create_app

# Import ALL model modules so every table is registered on Base.metadata
import backoffice.attendance.models  # noqa: F401
import backoffice.auth.models  # noqa: F401
import backoffice.common.audit  # noqa: F401
import backoffice.people.models  # noqa: F401

# ── SQLite compat: compile PG-specific types to TEXT ────────────────

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


# Register PG-compatible functions for SQLite
@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() and gen_random_uuid() as SQLite custom functions."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )
    dbapi_conn.create_function(
        "gen_random_uuid", 0, lambda: str(uuid.uuid4()),
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
    from backoffice.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Frozen business time ────────────────────────────────────────────

# Wednesday 2026-10-14, 19:30 business time (after an 18:00 end of day)
TODAY = date(2026, 10, 14)
NOW = datetime(2026, 10, 14, 19, 30, tzinfo=BUSINESS_TZ)


def local(day: date, hour: int, minute: int = 0) -> datetime:
    """Aware instant at ``hour:minute`` business time on ``day``."""
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=BUSINESS_TZ)


def frozen_clock(instant: datetime = NOW) -> Clock:
    return Clock(now=lambda: instant)


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB, session factory and clock overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    application.dependency_overrides[get_session_factory] = lambda: TestSessionFactory
    application.dependency_overrides[get_clock] = lambda: frozen_clock()
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


async def reload_record(record_id: uuid.UUID):
    """Read a daily_attendance row back through a fresh session."""
    from backoffice.attendance.models import AttendanceRecord

    async with TestSessionFactory() as session:
        return await session.get(AttendanceRecord, record_id)


# ── Model factories ─────────────────────────────────────────────────

async def make_tenant(db, *, name: str = "Acme Field Services", is_active: bool = True):
    from backoffice.auth.models import Tenant

    tenant = Tenant(id=uuid.uuid4(), name=name, is_active=is_active)
    db.add(tenant)
    await db.commit()
    return tenant


async def make_working_hours(db, tenant_id, *, start: Optional[str] = "09:00:00",
                             end: Optional[str] = "18:00:00"):
    from backoffice.attendance.models import WorkingHoursConfig

    config = WorkingHoursConfig(tenant_id=tenant_id, work_start_time=start, work_end_time=end)
    db.add(config)
    await db.commit()
    return config


async def make_member(db, tenant_id, *, role: TenantRole = TenantRole.owner,
                      user_id: Optional[uuid.UUID] = None, is_active: bool = True):
    from backoffice.auth.models import UserTenantRole

    member = UserTenantRole(
        tenant_id=tenant_id,
        user_id=user_id or uuid.uuid4(),
        role=role,
        is_active=is_active,
    )
    db.add(member)
    await db.commit()
    return member


async def make_technician(db, tenant_id, *, full_name: str = "Budi Santoso",
                          email: Optional[str] = None, activated: bool = True):
    """Insert a technician; ``activated`` technicians get an auth user + role row."""
    from backoffice.people.models import Technician

    user_id = uuid.uuid4() if activated else None
    technician = Technician(
        tenant_id=tenant_id,
        user_id=user_id,
        full_name=full_name,
        email=email or f"{full_name.split()[0].lower()}@example.com",
    )
    db.add(technician)
    await db.commit()
    if activated:
        await make_member(db, tenant_id, role=TenantRole.technician, user_id=user_id)
    return technician


async def make_record(db, tenant_id, technician_id, day: date, *,
                      clock_in: Optional[datetime] = None,
                      clock_out: Optional[datetime] = None, **fields):
    from backoffice.attendance.models import AttendanceRecord

    record = AttendanceRecord(
        tenant_id=tenant_id,
        technician_id=technician_id,
        date=day,
        clock_in_time=clock_in,
        clock_out_time=clock_out,
        work_start_time=clock_in,
        work_end_time=clock_out,
        **fields,
    )
    db.add(record)
    await db.commit()
    return record


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    user_id: uuid.UUID,
    tenant_id: Optional[uuid.UUID] = None,
    *,
    expired: bool = False,
    token_type: str = "access",
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "exp": exp,
    }
    if tenant_id is not None:
        payload["tenant_id"] = str(tenant_id)
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def bearer(user_id: uuid.UUID, tenant_id: Optional[uuid.UUID] = None, **kwargs) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, tenant_id, **kwargs)}"}


@pytest.fixture
async def tenant(db):
    """Active tenant with a 09:00–18:00 working day."""
    t = await make_tenant(db)
    await make_working_hours(db, t.id)
    return t


@pytest.fixture
async def admin_headers(db, tenant) -> dict[str, str]:
    """Bearer headers for the tenant owner."""
    owner = await make_member(db, tenant.id, role=TenantRole.owner)
    return bearer(owner.user_id, tenant.id)
