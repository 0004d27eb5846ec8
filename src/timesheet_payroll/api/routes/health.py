"""Health check endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, status
from pydantic import BaseModel
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError

from timesheet_payroll.api.dependencies import DbSession
from timesheet_payroll.config import get_settings
from timesheet_payroll.models import PayrollRun, RunStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Service and database status."""

    status: str
    timestamp: datetime
    database: str
    version: str
    open_payroll_runs: int | None = None


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession) -> HealthResponse:
    """Report database reachability and how many payroll runs are still in draft."""
    db_status = "unhealthy"
    open_runs = None
    try:
        await db.execute(text("SELECT 1"))
        open_runs = await db.scalar(
            select(func.count()).select_from(PayrollRun).where(PayrollRun.status == RunStatus.DRAFT)
        )
        db_status = "healthy"
    except SQLAlchemyError:
        logger.exception("Database health check failed")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=db_status,
        version=get_settings().app_version,
        open_payroll_runs=open_runs,
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check() -> dict[str, str]:
    return {"status": "ready"}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
