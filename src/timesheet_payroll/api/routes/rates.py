"""Employee rate endpoints."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, status

from timesheet_payroll.api.dependencies import AdminActor, CurrentActor, DbSession
from timesheet_payroll.api.schemas import (
    ErrorResponse,
    RateCreate,
    RateResponse,
    ResolvedRateResponse,
)
from timesheet_payroll.calculators.rate_resolver import RateResolver
from timesheet_payroll.services.rate_service import RateService

router = APIRouter(prefix="/rates", tags=["rates"])


@router.post(
    "",
    response_model=RateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def create_rate(
    db: DbSession,
    actor: AdminActor,
    payload: RateCreate,
) -> RateResponse:
    """Append a rate record; earlier records are never modified."""
    rate = await RateService(db).add_rate(
        actor,
        employee_id=payload.employee_id,
        rate_type=payload.rate_type.value,
        amount=payload.amount,
        effective_date=payload.effective_date,
        location_id=payload.location_id,
        client_profile_id=payload.client_profile_id,
    )
    return RateResponse.model_validate(rate)


@router.get(
    "",
    response_model=list[RateResponse],
    responses={403: {"model": ErrorResponse}},
)
async def list_rates(
    db: DbSession,
    actor: CurrentActor,
    employee_id: Annotated[str, Query(min_length=1)],
) -> list[RateResponse]:
    """Rate history for an employee."""
    if not actor.is_admin and actor.user_id != employee_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Employees can only view their own rates",
        )
    rates = await RateService(db).list_rates(employee_id)
    return [RateResponse.model_validate(rate) for rate in rates]


@router.get(
    "/effective",
    response_model=ResolvedRateResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_effective_rate(
    db: DbSession,
    actor: CurrentActor,
    employee_id: Annotated[str, Query(min_length=1)],
    as_of: date,
    location_id: str | None = None,
    client_profile_id: str | None = None,
) -> ResolvedRateResponse:
    """The single rate in force for an employee on a date."""
    if not actor.is_admin and actor.user_id != employee_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Employees can only view their own rates",
        )
    resolved = await RateResolver(db).require_effective_rate(
        employee_id,
        as_of,
        location_id=location_id,
        client_profile_id=client_profile_id,
    )
    return ResolvedRateResponse.model_validate(resolved)
