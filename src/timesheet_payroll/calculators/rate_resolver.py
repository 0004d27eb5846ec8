"""Effective pay rate resolution with location/client scoping."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_payroll.calculators.types import RateType, ResolvedRate
from timesheet_payroll.errors import RateNotFoundError
from timesheet_payroll.models.rates import EmployeeRate


class RateResolver:
    """Resolves the single pay rate in force for an employee on a date.

    Rate selection:
    1. Only rates with effective_date <= as_of_date are candidates
    2. Rates scoped to a different location/client are excluded
    3. Any scoped match beats any global rate, regardless of recency
    4. Within the winning group the latest effective_date wins
    5. Ties go to the more specific scope, then the most recently created
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def resolve_effective_rate(
        self,
        employee_id: str,
        as_of_date: date,
        location_id: str | None = None,
        client_profile_id: str | None = None,
    ) -> ResolvedRate | None:
        """Resolve the effective rate, or None when the employee has none.

        A missing rate is an expected condition that callers aggregate
        (for example as a missing-rate warning during generation).
        """
        rates = await self._get_candidate_rates(employee_id, as_of_date)
        best = self.select_rate(rates, location_id, client_profile_id)
        if best is None:
            return None

        return ResolvedRate(
            employee_rate_id=best.employee_rate_id,
            rate_type=RateType(best.rate_type),
            amount=best.amount,
            effective_date=best.effective_date,
            location_id=best.location_id,
            client_profile_id=best.client_profile_id,
        )

    async def require_effective_rate(
        self,
        employee_id: str,
        as_of_date: date,
        location_id: str | None = None,
        client_profile_id: str | None = None,
    ) -> ResolvedRate:
        """Resolve the effective rate.

        Raises:
            RateNotFoundError: If no rate is in force on the date
        """
        resolved = await self.resolve_effective_rate(
            employee_id, as_of_date, location_id, client_profile_id
        )
        if resolved is None:
            raise RateNotFoundError(
                employee_id,
                as_of_date,
                {"location_id": location_id, "client_profile_id": client_profile_id},
            )
        return resolved

    @staticmethod
    def select_rate(
        rates: list[EmployeeRate],
        location_id: str | None,
        client_profile_id: str | None,
    ) -> EmployeeRate | None:
        """Pick the winning rate from already date-filtered candidates."""
        best_rate: EmployeeRate | None = None
        best_key: tuple | None = None

        for rate in rates:
            score = rate.matches_scope(location_id, client_profile_id)

            if score < 0:
                # Scoped elsewhere, skip
                continue

            key = (score > 0, rate.effective_date, score, rate.created_at or datetime.min)
            if best_key is None or key > best_key:
                best_rate = rate
                best_key = key

        return best_rate

    async def _get_candidate_rates(
        self,
        employee_id: str,
        as_of_date: date,
    ) -> list[EmployeeRate]:
        """Get all rates for an employee that have taken effect by a date."""
        result = await self.session.execute(
            select(EmployeeRate)
            .where(
                EmployeeRate.employee_id == employee_id,
                EmployeeRate.effective_date <= as_of_date,
            )
            .order_by(EmployeeRate.effective_date.desc())
        )
        return list(result.scalars().all())
