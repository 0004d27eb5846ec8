"""Pay period endpoints."""

from fastapi import APIRouter

from timesheet_payroll.api.dependencies import CurrentActor
from timesheet_payroll.api.schemas import (
    LastCompletedPeriodRequest,
    LastCompletedPeriodResponse,
    PeriodResponse,
)
from timesheet_payroll.calculators.pay_period import compute_last_completed_period
from timesheet_payroll.calculators.types import PayrollCycle

router = APIRouter(prefix="/payroll-periods", tags=["payroll-periods"])


@router.post("/last-completed", response_model=LastCompletedPeriodResponse)
async def last_completed_period(
    actor: CurrentActor,
    payload: LastCompletedPeriodRequest,
) -> LastCompletedPeriodResponse:
    """Most recent fully elapsed period for a payroll cycle."""
    cycle = PayrollCycle(**payload.cycle.model_dump())
    period = compute_last_completed_period(payload.reference_date, cycle)
    if period is None:
        return LastCompletedPeriodResponse(period=None)
    return LastCompletedPeriodResponse(period=PeriodResponse.model_validate(period))
