"""Scheduling data consumed by the payroll core.

Jobs are owned by the scheduling side of the portal; the payroll core only
reads them.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from timesheet_payroll.models.base import Base, JSONDocument, TimestampMixin

CANCELED_JOB_STATUSES = frozenset({"canceled", "cancelled"})


class Job(Base, TimestampMixin):
    """A scheduled or completed cleaning job."""

    __tablename__ = "job"

    job_id: Mapped[str] = mapped_column(String, primary_key=True)
    service_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    scheduled_start: Mapped[datetime | None] = mapped_column(nullable=True)
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    estimated_duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    location_id: Mapped[str | None] = mapped_column(String, nullable=True)
    client_profile_id: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="scheduled")

    # Current format: list of employee ids.
    assigned_employees: Mapped[list[str] | None] = mapped_column(JSONDocument, nullable=True)
    # Legacy format: list of embedded assignment objects keyed by "uid".
    employee_assignments: Mapped[list[dict[str, Any]] | None] = mapped_column(
        JSONDocument, nullable=True
    )

    @property
    def is_canceled(self) -> bool:
        return (self.status or "").lower() in CANCELED_JOB_STATUSES

    def effective_duration_minutes(self) -> int | None:
        """Recorded duration, falling back to the estimate."""
        if self.duration_minutes is not None:
            return self.duration_minutes
        return self.estimated_duration_minutes
