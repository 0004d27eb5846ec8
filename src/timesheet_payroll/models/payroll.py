"""Timesheet and payroll run models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from timesheet_payroll.calculators.types import RateSnapshot, RunTotals
from timesheet_payroll.models.base import Base, JSONDocument, TimestampMixin, UpdatedAtMixin


class RunStatus:
    """Payroll run status values."""

    DRAFT = "draft"
    LOCKED = "locked"


class TimesheetSource:
    """Where a timesheet came from."""

    MANUAL = "manual"
    PAYROLL_PREP = "payroll_prep"


class PayrollRun(Base, TimestampMixin, UpdatedAtMixin):
    """Aggregation of approved timesheets for one pay period."""

    __tablename__ = "payroll_run"

    payroll_run_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)  # exclusive
    status: Mapped[str] = mapped_column(String, nullable=False, default=RunStatus.DRAFT)

    total_hours: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total_earnings: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    totals_json: Mapped[dict[str, Any]] = mapped_column(JSONDocument, nullable=False, default=dict)

    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    locked_at: Mapped[datetime | None] = mapped_column(nullable=True)
    locked_by: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint("status IN ('draft', 'locked')", name="payroll_run_status_check"),
        CheckConstraint("period_end > period_start", name="payroll_run_dates_check"),
        Index("ix_payroll_run_period", "period_start", "period_end"),
    )

    @property
    def is_locked(self) -> bool:
        return self.status == RunStatus.LOCKED

    @property
    def totals(self) -> RunTotals:
        return RunTotals.from_json(self.totals_json)


class Timesheet(Base, TimestampMixin, UpdatedAtMixin):
    """One employee's compensable time or visit record for one job."""

    __tablename__ = "timesheet"

    timesheet_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[str] = mapped_column(String, nullable=False)
    job_id: Mapped[str | None] = mapped_column(String, nullable=True)
    start: Mapped[datetime | None] = mapped_column(nullable=True)
    end: Mapped[datetime | None] = mapped_column(nullable=True)
    hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=Decimal("0"))
    units: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Frozen copy of {type, amount} taken when the timesheet was created.
    rate_snapshot_json: Mapped[dict[str, Any] | None] = mapped_column(JSONDocument, nullable=True)

    # Approval
    employee_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    employee_approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    employee_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    change_requested_at: Mapped[datetime | None] = mapped_column(nullable=True)
    admin_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    admin_approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    admin_approved_by: Mapped[str | None] = mapped_column(String, nullable=True)

    # Run membership and locking
    approved_in_run_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id"),
        nullable=True,
        index=True,
    )
    locked_at: Mapped[datetime | None] = mapped_column(nullable=True)

    source: Mapped[str] = mapped_column(String, nullable=False, default=TimesheetSource.MANUAL)

    __table_args__ = (
        UniqueConstraint("employee_id", "job_id", name="timesheet_employee_job_unique"),
        CheckConstraint("hours >= 0", name="timesheet_hours_check"),
        CheckConstraint("units >= 0", name="timesheet_units_check"),
        CheckConstraint(
            "source IN ('manual', 'payroll_prep')",
            name="timesheet_source_check",
        ),
        Index("ix_timesheet_employee", "employee_id"),
    )

    @property
    def rate_snapshot(self) -> RateSnapshot | None:
        return RateSnapshot.from_json(self.rate_snapshot_json)

    @rate_snapshot.setter
    def rate_snapshot(self, value: RateSnapshot | None) -> None:
        self.rate_snapshot_json = value.to_json() if value is not None else None
