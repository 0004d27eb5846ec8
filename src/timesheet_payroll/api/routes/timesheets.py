"""Timesheet API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, status

from timesheet_payroll.api.dependencies import AdminActor, CurrentActor, DbSession
from timesheet_payroll.api.schemas import (
    AssignmentResponse,
    DraftCandidateResponse,
    ErrorResponse,
    GenerateResponse,
    PairFailureResponse,
    PeriodRange,
    RateSnapshotSchema,
    ScanResponse,
    TimesheetApprove,
    TimesheetCreate,
    TimesheetListResponse,
    TimesheetResponse,
    TimesheetUpdate,
)
from timesheet_payroll.calculators.earnings import calculate_earnings
from timesheet_payroll.calculators.types import RateSnapshot
from timesheet_payroll.models import Timesheet
from timesheet_payroll.services.timesheet_generator import TimesheetGenerator
from timesheet_payroll.services.timesheet_service import TimesheetService

router = APIRouter(prefix="/timesheets", tags=["timesheets"])


def timesheet_response(timesheet: Timesheet) -> TimesheetResponse:
    """Build a response including the earnings owed for the timesheet."""
    response = TimesheetResponse.model_validate(timesheet)
    response.earnings = calculate_earnings(timesheet)
    return response


# ============================================================================
# Generation
# ============================================================================


@router.post(
    "/scan",
    response_model=ScanResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def scan_period(
    db: DbSession,
    actor: AdminActor,
    payload: PeriodRange,
) -> ScanResponse:
    """Preview which drafts generation would create. Writes nothing."""
    scan = await TimesheetGenerator(db).scan_period(payload.period_start, payload.period_end)
    return ScanResponse(
        period_start=scan.period.start,
        period_end=scan.period.end,
        total_jobs=scan.total_jobs,
        total_assignments=scan.total_assignments,
        drafts=[
            DraftCandidateResponse(
                employee_id=draft.assignment.employee_id,
                job_id=draft.assignment.job_id,
                service_date=draft.assignment.service_date,
                rate_snapshot=RateSnapshotSchema.model_validate(draft.rate_snapshot),
                hours=draft.hours,
                units=draft.units,
                needs_hours=draft.needs_hours,
            )
            for draft in scan.drafts
        ],
        missing_rates=[AssignmentResponse.model_validate(a) for a in scan.missing_rates],
        existing=[AssignmentResponse.model_validate(a) for a in scan.existing],
    )


@router.post(
    "/generate",
    response_model=GenerateResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def generate_drafts(
    db: DbSession,
    actor: AdminActor,
    payload: PeriodRange,
) -> GenerateResponse:
    """Create draft timesheets for every assignment in the period lacking one."""
    result = await TimesheetGenerator(db).scan_and_generate(payload.period_start, payload.period_end)
    return GenerateResponse(
        period_start=result.period.start,
        period_end=result.period.end,
        drafts_created=[timesheet_response(ts) for ts in result.drafts_created],
        missing_rates=[AssignmentResponse.model_validate(a) for a in result.missing_rates],
        skipped_existing=result.skipped_existing,
        needs_hours=[AssignmentResponse.model_validate(a) for a in result.needs_hours],
        failures=[
            PairFailureResponse(
                employee_id=failure.assignment.employee_id,
                job_id=failure.assignment.job_id,
                reason=failure.reason,
            )
            for failure in result.failures
        ],
    )


# ============================================================================
# Timesheet CRUD
# ============================================================================


@router.post(
    "",
    response_model=TimesheetResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_timesheet(
    db: DbSession,
    actor: CurrentActor,
    payload: TimesheetCreate,
) -> TimesheetResponse:
    """Manually enter a timesheet (admin only)."""
    snapshot = None
    if payload.rate_snapshot is not None:
        snapshot = RateSnapshot(payload.rate_snapshot.rate_type, payload.rate_snapshot.amount)

    timesheet = await TimesheetService(db).create_manual(
        actor,
        employee_id=payload.employee_id,
        start=payload.start,
        end=payload.end,
        hours=payload.hours,
        units=payload.units,
        job_id=payload.job_id,
        rate_snapshot=snapshot,
        location_id=payload.location_id,
        client_profile_id=payload.client_profile_id,
    )
    return timesheet_response(timesheet)


@router.get(
    "",
    response_model=TimesheetListResponse,
    responses={403: {"model": ErrorResponse}},
)
async def list_timesheets(
    db: DbSession,
    actor: CurrentActor,
    employee_id: str | None = None,
    payroll_run_id: UUID | None = None,
    start_from: Annotated[date | None, Query()] = None,
    start_before: Annotated[date | None, Query()] = None,
) -> TimesheetListResponse:
    """List timesheets. Employees only see their own."""
    if not actor.is_admin:
        if employee_id is not None and employee_id != actor.user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Employees can only view their own timesheets",
            )
        employee_id = actor.user_id

    timesheets = await TimesheetService(db).list_timesheets(
        employee_id=employee_id,
        payroll_run_id=payroll_run_id,
        start_from=start_from,
        start_before=start_before,
    )
    items = [timesheet_response(ts) for ts in timesheets]
    return TimesheetListResponse(items=items, total=len(items))


@router.get(
    "/{timesheet_id}",
    response_model=TimesheetResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_timesheet(
    db: DbSession,
    actor: CurrentActor,
    timesheet_id: Annotated[UUID, Path()],
) -> TimesheetResponse:
    """Get a specific timesheet by ID."""
    timesheet = await TimesheetService(db).get_or_raise(timesheet_id)
    if not actor.is_admin and timesheet.employee_id != actor.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Employees can only view their own timesheets",
        )
    return timesheet_response(timesheet)


@router.patch(
    "/{timesheet_id}",
    response_model=TimesheetResponse,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def edit_timesheet(
    db: DbSession,
    actor: CurrentActor,
    timesheet_id: Annotated[UUID, Path()],
    payload: TimesheetUpdate,
) -> TimesheetResponse:
    """Edit a timesheet. Compensable changes clear both approvals."""
    timesheet = await TimesheetService(db).edit(
        actor,
        timesheet_id,
        payload.model_dump(exclude_unset=True),
    )
    return timesheet_response(timesheet)


@router.post(
    "/{timesheet_id}/approve",
    response_model=TimesheetResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def employee_approve_timesheet(
    db: DbSession,
    actor: CurrentActor,
    timesheet_id: Annotated[UUID, Path()],
    payload: TimesheetApprove | None = None,
) -> TimesheetResponse:
    """Employee confirms a timesheet."""
    timesheet = await TimesheetService(db).employee_approve(
        actor,
        timesheet_id,
        comment=payload.comment if payload else None,
    )
    return timesheet_response(timesheet)
