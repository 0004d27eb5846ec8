"""Employee pay rate model."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from timesheet_payroll.models.base import Base, TimestampMixin


class EmployeeRate(Base, TimestampMixin):
    """Employee pay rate, optionally scoped to a location and/or client.

    Rates are append-only: a change in pay is recorded as a new row with a
    later effective date so that history is preserved.
    """

    __tablename__ = "employee_rate"

    employee_rate_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[str] = mapped_column(String, nullable=False)
    rate_type: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Scope
    location_id: Mapped[str | None] = mapped_column(String, nullable=True)
    client_profile_id: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "rate_type IN ('hourly', 'per_visit')",
            name="employee_rate_type_check",
        ),
        CheckConstraint("amount > 0", name="employee_rate_amount_positive"),
        Index("ix_employee_rate_employee_effective", "employee_id", "effective_date"),
    )

    @property
    def is_scoped(self) -> bool:
        return self.location_id is not None or self.client_profile_id is not None

    def matches_scope(
        self,
        location_id: str | None,
        client_profile_id: str | None,
    ) -> int:
        """Calculate scope match score (higher = more specific).

        Returns -1 when the rate is scoped to something other than the
        requested location or client, 0 for a global rate.
        """
        score = 0
        if self.location_id is not None:
            if self.location_id == location_id:
                score += 2
            else:
                return -1  # Explicit mismatch
        if self.client_profile_id is not None:
            if self.client_profile_id == client_profile_id:
                score += 1
            else:
                return -1
        return score
