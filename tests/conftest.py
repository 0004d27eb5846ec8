"""Pytest fixtures for timesheet payroll tests."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from timesheet_payroll.api.app import create_app
from timesheet_payroll.api.dependencies import get_db_session
from timesheet_payroll.calculators.types import RateSnapshot, RateType
from timesheet_payroll.models import Base, EmployeeRate, Job, Timesheet
from timesheet_payroll.services.actor import Actor, Role

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ADMIN = Actor(user_id="admin-1", role=Role.ADMIN)
ALICE = Actor(user_id="emp-alice", role=Role.EMPLOYEE)
BOB = Actor(user_id="emp-bob", role=Role.EMPLOYEE)


def actor_headers(actor: Actor) -> dict[str, str]:
    """Request headers identifying an actor."""
    return {"X-Actor-Id": actor.user_id, "X-Actor-Role": actor.role.value}


@pytest.fixture
async def engine():
    """Create a fresh test database for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    # Let SQLAlchemy emit BEGIN itself so that SAVEPOINTs work on SQLite.
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client sharing the test session."""
    app = create_app()

    async def _override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        yield session

    app.dependency_overrides[get_db_session] = _override_get_db_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def make_rate(session: AsyncSession):
    """Factory for employee rate records."""

    async def _make_rate(
        employee_id: str,
        amount: str,
        effective_date: date = date(2024, 1, 1),
        rate_type: str = "hourly",
        location_id: str | None = None,
        client_profile_id: str | None = None,
        created_at: datetime | None = None,
    ) -> EmployeeRate:
        rate = EmployeeRate(
            employee_id=employee_id,
            rate_type=rate_type,
            amount=Decimal(amount),
            effective_date=effective_date,
            location_id=location_id,
            client_profile_id=client_profile_id,
        )
        if created_at is not None:
            rate.created_at = created_at
        session.add(rate)
        await session.flush()
        return rate

    return _make_rate


@pytest.fixture
def make_job(session: AsyncSession):
    """Factory for scheduling jobs."""

    async def _make_job(
        job_id: str,
        service_date: date,
        assigned_employees: list[str] | None = None,
        employee_assignments: list[dict] | None = None,
        duration_minutes: int | None = None,
        estimated_duration_minutes: int | None = None,
        scheduled_start: datetime | None = None,
        location_id: str | None = None,
        client_profile_id: str | None = None,
        status: str = "completed",
    ) -> Job:
        job = Job(
            job_id=job_id,
            service_date=service_date,
            assigned_employees=assigned_employees,
            employee_assignments=employee_assignments,
            duration_minutes=duration_minutes,
            estimated_duration_minutes=estimated_duration_minutes,
            scheduled_start=scheduled_start,
            location_id=location_id,
            client_profile_id=client_profile_id,
            status=status,
        )
        session.add(job)
        await session.flush()
        return job

    return _make_job


@pytest.fixture
def make_timesheet(session: AsyncSession):
    """Factory for timesheets with a frozen rate snapshot."""

    async def _make_timesheet(
        employee_id: str = ALICE.user_id,
        job_id: str | None = None,
        hours: str = "2.00",
        units: int = 1,
        rate_type: RateType | None = RateType.HOURLY,
        amount: str = "20.00",
        employee_approved: bool = False,
        start: datetime = datetime(2024, 1, 10, 9, 0),
        end: datetime | None = None,
    ) -> Timesheet:
        timesheet = Timesheet(
            employee_id=employee_id,
            job_id=job_id,
            start=start,
            end=end,
            hours=Decimal(hours),
            units=units,
            employee_approved=employee_approved,
            admin_approved=False,
        )
        if rate_type is not None:
            timesheet.rate_snapshot = RateSnapshot(rate_type, Decimal(amount))
        session.add(timesheet)
        await session.flush()
        return timesheet

    return _make_timesheet
