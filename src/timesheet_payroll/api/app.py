"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from timesheet_payroll.api.routes import (
    health_router,
    payroll_runs_router,
    periods_router,
    rates_router,
    timesheets_router,
)
from timesheet_payroll.api.schemas import ErrorResponse
from timesheet_payroll.config import get_settings
from timesheet_payroll.database import create_schema, dispose_db, init_db
from timesheet_payroll.errors import (
    ConflictError,
    NotFoundError,
    PayrollError,
    PermissionDeniedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS_CODES: list[tuple[type[PayrollError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
]


def status_code_for(exc: PayrollError) -> int:
    """Map a payroll error to its HTTP status."""
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    init_db()
    if get_settings().auto_create_schema:
        await create_schema()
    yield
    # Shutdown
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Timesheet Payroll API",
        description="Rates, timesheets, approvals and payroll runs",
        version=get_settings().app_version,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(get_settings().cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(PayrollError)
    async def payroll_error_handler(request: Request, exc: PayrollError) -> JSONResponse:
        """Translate domain errors into JSON responses."""
        status_code = status_code_for(exc)
        if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error("Unmapped payroll error on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(detail=exc.message, code=exc.code).model_dump(exclude_none=True),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(periods_router, prefix="/api/v1")
    app.include_router(rates_router, prefix="/api/v1")
    app.include_router(timesheets_router, prefix="/api/v1")
    app.include_router(payroll_runs_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
