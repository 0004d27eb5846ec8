"""Value types shared by the payroll calculators and services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping
from uuid import UUID


class RateType(str, Enum):
    """How a pay rate converts work into money."""

    HOURLY = "hourly"
    PER_VISIT = "per_visit"


class PayrollFrequency(str, Enum):
    """Supported payroll cycle frequencies."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    SEMIMONTHLY = "semimonthly"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class RateSnapshot:
    """Immutable copy of a rate's type and amount, embedded in a timesheet."""

    rate_type: RateType
    amount: Decimal

    def to_json(self) -> dict[str, str]:
        return {"type": self.rate_type.value, "amount": str(self.amount)}

    @classmethod
    def from_json(cls, data: Mapping[str, Any] | None) -> RateSnapshot | None:
        """Parse a stored snapshot.

        Older documents carry only ``hourlyRate``; those are read as hourly.
        Anything unrecognised yields None.
        """
        if not data:
            return None
        raw_type = data.get("type")
        if raw_type in (RateType.HOURLY.value, RateType.PER_VISIT.value):
            return cls(RateType(raw_type), Decimal(str(data.get("amount") or 0)))
        legacy_rate = data.get("hourlyRate")
        if legacy_rate:
            return cls(RateType.HOURLY, Decimal(str(legacy_rate)))
        return None


@dataclass(frozen=True)
class ResolvedRate:
    """The effective rate selected by the rate resolver."""

    employee_rate_id: UUID
    rate_type: RateType
    amount: Decimal
    effective_date: date
    location_id: str | None = None
    client_profile_id: str | None = None

    @property
    def is_scoped(self) -> bool:
        return self.location_id is not None or self.client_profile_id is not None

    def snapshot(self) -> RateSnapshot:
        return RateSnapshot(self.rate_type, self.amount)


@dataclass(frozen=True)
class Period:
    """Half-open date range [start, end)."""

    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day < self.end


@dataclass(frozen=True)
class PayrollCycle:
    """Payroll cycle settings; read-only configuration."""

    frequency: PayrollFrequency | str | None = None
    anchor_day_of_week: int | None = None  # 0=Sunday .. 6=Saturday
    anchor_day_of_month: int | None = None  # 1..28
    anchor_date: date | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> PayrollCycle:
        """Build a cycle from a settings document (snake or camel case keys)."""
        data = data or {}

        def pick(snake: str, camel: str) -> Any:
            return data.get(snake, data.get(camel))

        anchor_date = pick("anchor_date", "anchorDate")
        if isinstance(anchor_date, str):
            anchor_date = date.fromisoformat(anchor_date[:10])
        return cls(
            frequency=data.get("frequency"),
            anchor_day_of_week=pick("anchor_day_of_week", "anchorDayOfWeek"),
            anchor_day_of_month=pick("anchor_day_of_month", "anchorDayOfMonth"),
            anchor_date=anchor_date,
        )


@dataclass(frozen=True)
class Assignment:
    """One employee assigned to one job, normalised from scheduling data."""

    employee_id: str
    job_id: str
    service_date: date
    location_id: str | None = None
    client_profile_id: str | None = None
    duration_minutes: int | None = None
    scheduled_start: datetime | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.employee_id, self.job_id)


@dataclass
class EmployeeTotals:
    """Per-employee totals within a payroll run."""

    hours: Decimal = Decimal("0")
    earnings: Decimal = Decimal("0")
    timesheet_count: int = 0

    def to_json(self) -> dict[str, Any]:
        return {
            "hours": str(self.hours),
            "earnings": str(self.earnings),
            "timesheet_count": self.timesheet_count,
        }


@dataclass
class RunTotals:
    """Aggregated totals for a payroll run."""

    by_employee: dict[str, EmployeeTotals] = field(default_factory=dict)
    total_hours: Decimal = Decimal("0")
    total_earnings: Decimal = Decimal("0")

    def to_json(self) -> dict[str, Any]:
        return {
            "by_employee": {
                employee_id: totals.to_json()
                for employee_id, totals in sorted(self.by_employee.items())
            },
            "total_hours": str(self.total_hours),
            "total_earnings": str(self.total_earnings),
        }

    @classmethod
    def from_json(cls, data: Mapping[str, Any] | None) -> RunTotals:
        if not data:
            return cls()
        by_employee = {
            employee_id: EmployeeTotals(
                hours=Decimal(str(row.get("hours", "0"))),
                earnings=Decimal(str(row.get("earnings", "0"))),
                timesheet_count=int(row.get("timesheet_count", 0)),
            )
            for employee_id, row in (data.get("by_employee") or {}).items()
        }
        return cls(
            by_employee=by_employee,
            total_hours=Decimal(str(data.get("total_hours", "0"))),
            total_earnings=Decimal(str(data.get("total_earnings", "0"))),
        )
