"""Employee rate records.

Rates are append-only: a change in pay is a new record with a later
effective date. Existing timesheets keep the snapshot they were created
with, so nothing here touches timesheets.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_payroll.calculators.types import RateType
from timesheet_payroll.errors import PermissionDeniedError, ValidationError
from timesheet_payroll.models import EmployeeRate
from timesheet_payroll.services.actor import Actor
from timesheet_payroll.services.audit import record_audit

logger = logging.getLogger(__name__)


class RateService:
    """Service for recording and listing employee pay rates."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add_rate(
        self,
        actor: Actor,
        employee_id: str,
        rate_type: str,
        amount: Decimal | str | int,
        effective_date: date,
        location_id: str | None = None,
        client_profile_id: str | None = None,
    ) -> EmployeeRate:
        """Append a rate record for an employee (admin only)."""
        if not actor.is_admin:
            raise PermissionDeniedError("Only admins can set pay rates")
        if not employee_id:
            raise ValidationError("employee_id is required")

        try:
            parsed_type = RateType(rate_type)
        except ValueError:
            raise ValidationError(f"Unknown rate type: {rate_type!r}") from None

        try:
            parsed_amount = Decimal(str(amount))
        except InvalidOperation:
            raise ValidationError(f"Invalid rate amount: {amount!r}") from None
        if not parsed_amount.is_finite() or parsed_amount <= 0:
            raise ValidationError("Rate amount must be a positive number")

        rate = EmployeeRate(
            employee_id=employee_id,
            rate_type=parsed_type.value,
            amount=parsed_amount,
            effective_date=effective_date,
            location_id=location_id or None,
            client_profile_id=client_profile_id or None,
        )
        self.session.add(rate)
        await self.session.flush()

        await record_audit(
            self.session,
            entity_type="employee_rate",
            entity_id=rate.employee_rate_id,
            action="created",
            actor=actor,
            details={
                "employee_id": employee_id,
                "rate_type": parsed_type.value,
                "amount": parsed_amount,
                "effective_date": effective_date,
                "location_id": rate.location_id,
                "client_profile_id": rate.client_profile_id,
            },
        )
        logger.info(
            "Added %s rate %s for employee %s effective %s",
            parsed_type.value,
            parsed_amount,
            employee_id,
            effective_date,
        )
        return rate

    async def list_rates(self, employee_id: str) -> list[EmployeeRate]:
        """All rate records for an employee, newest effective date first."""
        result = await self.session.execute(
            select(EmployeeRate)
            .where(EmployeeRate.employee_id == employee_id)
            .order_by(EmployeeRate.effective_date.desc(), EmployeeRate.created_at.desc())
        )
        return list(result.scalars().all())
