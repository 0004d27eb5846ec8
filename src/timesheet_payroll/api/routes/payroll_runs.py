"""Payroll run API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, status

from timesheet_payroll.api.dependencies import AdminActor, CurrentActor, DbSession
from timesheet_payroll.api.schemas import (
    ApproveIntoRunRequest,
    ApproveIntoRunResponse,
    ErrorResponse,
    ItemFailureResponse,
    PayrollRunCreate,
    PayrollRunListResponse,
    PayrollRunResponse,
    RunTotalsSchema,
)
from timesheet_payroll.models import PayrollRun
from timesheet_payroll.services.actor import Actor
from timesheet_payroll.services.payroll_run_service import PayrollRunService

router = APIRouter(prefix="/payroll-runs", tags=["payroll-runs"])


def run_response(run: PayrollRun, actor: Actor) -> PayrollRunResponse:
    """Build a run response; employees only see their own line of the totals."""
    response = PayrollRunResponse.model_validate(run)
    if not actor.is_admin:
        own = response.totals.by_employee.get(actor.user_id)
        response.totals.by_employee = {actor.user_id: own} if own is not None else {}
    return response


# ============================================================================
# Payroll Run CRUD
# ============================================================================


@router.post(
    "",
    response_model=PayrollRunResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def create_payroll_run(
    db: DbSession,
    actor: AdminActor,
    payload: PayrollRunCreate,
) -> PayrollRunResponse:
    """Create a new payroll run in draft status."""
    run = await PayrollRunService(db).create_run(actor, payload.period_start, payload.period_end)
    return run_response(run, actor)


@router.get("", response_model=PayrollRunListResponse)
async def list_payroll_runs(
    db: DbSession,
    actor: CurrentActor,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> PayrollRunListResponse:
    """List payroll runs. Employees see runs containing their timesheets."""
    service = PayrollRunService(db)
    if actor.is_admin:
        runs = await service.list_runs(status=status_filter)
    else:
        runs = await service.list_runs_for_employee(actor.user_id)
        if status_filter:
            runs = [run for run in runs if run.status == status_filter]

    items = [run_response(run, actor) for run in runs]
    return PayrollRunListResponse(items=items, total=len(items))


@router.get(
    "/{payroll_run_id}",
    response_model=PayrollRunResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_payroll_run(
    db: DbSession,
    actor: CurrentActor,
    payroll_run_id: Annotated[UUID, Path()],
) -> PayrollRunResponse:
    """Get a specific payroll run by ID."""
    service = PayrollRunService(db)
    run = await service.get_run_or_raise(payroll_run_id)
    if not actor.is_admin:
        member_runs = await service.list_runs_for_employee(actor.user_id)
        if run.payroll_run_id not in {r.payroll_run_id for r in member_runs}:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Payroll run does not include your timesheets",
            )
    return run_response(run, actor)


# ============================================================================
# Approval, totals and locking
# ============================================================================


@router.post(
    "/{payroll_run_id}/timesheets",
    response_model=ApproveIntoRunResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_timesheets_into_run(
    db: DbSession,
    actor: AdminActor,
    payroll_run_id: Annotated[UUID, Path()],
    payload: ApproveIntoRunRequest,
) -> ApproveIntoRunResponse:
    """Admin-approve timesheets into a draft run. Reports per-item outcomes."""
    result = await PayrollRunService(db).approve_into_run(
        actor,
        payroll_run_id,
        payload.timesheet_ids,
        allow_unapproved=payload.allow_unapproved,
    )
    return ApproveIntoRunResponse(
        payroll_run_id=result.payroll_run_id,
        approved=[ts.timesheet_id for ts in result.approved],
        failures=[ItemFailureResponse.model_validate(f) for f in result.failures],
        totals=RunTotalsSchema.model_validate(result.totals),
    )


@router.post(
    "/{payroll_run_id}/recalculate",
    response_model=RunTotalsSchema,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def recalculate_payroll_run(
    db: DbSession,
    actor: AdminActor,
    payroll_run_id: Annotated[UUID, Path()],
) -> RunTotalsSchema:
    """Recompute a draft run's totals from its timesheets."""
    totals = await PayrollRunService(db).recalculate(actor, payroll_run_id)
    return RunTotalsSchema.model_validate(totals)


@router.post(
    "/{payroll_run_id}/lock",
    response_model=PayrollRunResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def lock_payroll_run(
    db: DbSession,
    actor: AdminActor,
    payroll_run_id: Annotated[UUID, Path()],
) -> PayrollRunResponse:
    """Lock a draft run and its timesheets. Cannot be undone."""
    run = await PayrollRunService(db).lock_run(actor, payroll_run_id)
    return run_response(run, actor)
