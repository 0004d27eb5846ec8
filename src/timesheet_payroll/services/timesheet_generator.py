"""Draft timesheet generation from scheduling data."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_payroll.calculators.earnings import round_money
from timesheet_payroll.calculators.rate_resolver import RateResolver
from timesheet_payroll.calculators.types import Assignment, Period, RateSnapshot, RateType, ResolvedRate
from timesheet_payroll.database import insert_ignoring_conflicts
from timesheet_payroll.errors import ValidationError
from timesheet_payroll.models import Job, Timesheet, TimesheetSource, utcnow
from timesheet_payroll.services.assignments import expand_jobs

logger = logging.getLogger(__name__)

MINUTES_PER_HOUR = Decimal(60)


@dataclass(frozen=True)
class DraftCandidate:
    """A timesheet the generator would create for one assignment."""

    assignment: Assignment
    rate_snapshot: RateSnapshot
    hours: Decimal
    units: int
    start: datetime
    end: datetime | None

    @property
    def needs_hours(self) -> bool:
        """Hourly draft without a job duration; hours must be entered by hand."""
        return self.rate_snapshot.rate_type == RateType.HOURLY and self.assignment.duration_minutes is None


@dataclass
class ScanResult:
    """Read-only view of what generation would do for a period."""

    period: Period
    total_jobs: int = 0
    total_assignments: int = 0
    drafts: list[DraftCandidate] = field(default_factory=list)
    missing_rates: list[Assignment] = field(default_factory=list)
    existing: list[Assignment] = field(default_factory=list)


@dataclass(frozen=True)
class PairFailure:
    """An assignment whose timesheet could not be written."""

    assignment: Assignment
    reason: str


@dataclass
class GenerationResult:
    """Per-pair outcome of a generation pass."""

    period: Period
    drafts_created: list[Timesheet] = field(default_factory=list)
    missing_rates: list[Assignment] = field(default_factory=list)
    skipped_existing: int = 0
    needs_hours: list[Assignment] = field(default_factory=list)
    failures: list[PairFailure] = field(default_factory=list)


def build_draft(assignment: Assignment, rate: ResolvedRate) -> DraftCandidate:
    """Turn an assignment and its resolved rate into a draft candidate."""
    start = assignment.scheduled_start or datetime.combine(assignment.service_date, time.min)
    end = None
    if assignment.duration_minutes is not None:
        end = start + timedelta(minutes=assignment.duration_minutes)

    if rate.rate_type == RateType.HOURLY:
        if assignment.duration_minutes is not None:
            hours = round_money(Decimal(assignment.duration_minutes) / MINUTES_PER_HOUR)
        else:
            hours = Decimal("0.00")
    else:
        hours = Decimal("0.00")

    return DraftCandidate(
        assignment=assignment,
        rate_snapshot=rate.snapshot(),
        hours=hours,
        units=1,
        start=start,
        end=end,
    )


class TimesheetGenerator:
    """Generates draft timesheets for every assignment in a period lacking one.

    Generation is idempotent: an (employee, job) pair that already has a
    timesheet is skipped, and the insert itself ignores conflicts on that
    natural key so that concurrent passes cannot duplicate.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.rate_resolver = RateResolver(session)

    async def scan_period(self, period_start: date, period_end: date) -> ScanResult:
        """Classify every assignment in [period_start, period_end) without writing."""
        period = self._validate_period(period_start, period_end)
        jobs = await self._get_jobs(period)
        assignments = expand_jobs(jobs)

        result = ScanResult(
            period=period,
            total_jobs=len(jobs),
            total_assignments=len(assignments),
        )
        existing_keys = await self._get_existing_keys(assignments)
        rate_cache: dict[tuple, ResolvedRate | None] = {}

        for assignment in assignments:
            if assignment.key in existing_keys:
                result.existing.append(assignment)
                continue

            cache_key = (
                assignment.employee_id,
                assignment.service_date,
                assignment.location_id,
                assignment.client_profile_id,
            )
            if cache_key not in rate_cache:
                rate_cache[cache_key] = await self.rate_resolver.resolve_effective_rate(
                    assignment.employee_id,
                    assignment.service_date,
                    location_id=assignment.location_id,
                    client_profile_id=assignment.client_profile_id,
                )
            rate = rate_cache[cache_key]

            if rate is None:
                result.missing_rates.append(assignment)
                continue

            result.drafts.append(build_draft(assignment, rate))

        return result

    async def scan_and_generate(self, period_start: date, period_end: date) -> GenerationResult:
        """Create draft timesheets for the period and report per-pair outcomes.

        A failed write for one pair is recorded in ``failures`` and does not
        stop the remaining pairs.
        """
        scan = await self.scan_period(period_start, period_end)
        result = GenerationResult(
            period=scan.period,
            missing_rates=list(scan.missing_rates),
            skipped_existing=len(scan.existing),
        )

        created_ids: list[UUID] = []
        for draft in scan.drafts:
            assignment = draft.assignment
            timesheet_id = uuid4()
            now = utcnow()
            stmt = insert_ignoring_conflicts(
                self.session,
                Timesheet.__table__,
                {
                    "timesheet_id": timesheet_id,
                    "employee_id": assignment.employee_id,
                    "job_id": assignment.job_id,
                    "start": draft.start,
                    "end": draft.end,
                    "hours": draft.hours,
                    "units": draft.units,
                    "rate_snapshot_json": draft.rate_snapshot.to_json(),
                    "employee_approved": False,
                    "admin_approved": False,
                    "source": TimesheetSource.PAYROLL_PREP,
                    "created_at": now,
                    "updated_at": now,
                },
                index_elements=["employee_id", "job_id"],
            )
            try:
                async with self.session.begin_nested():
                    insert_result = await self.session.execute(stmt)
            except SQLAlchemyError as exc:
                logger.warning(
                    "Failed to create timesheet for employee %s on job %s: %s",
                    assignment.employee_id,
                    assignment.job_id,
                    exc,
                )
                result.failures.append(PairFailure(assignment, str(exc)))
                continue

            if not insert_result.rowcount:
                # Created concurrently by another pass
                result.skipped_existing += 1
                continue

            created_ids.append(timesheet_id)
            if draft.needs_hours:
                result.needs_hours.append(assignment)

        result.drafts_created = await self._load_timesheets(created_ids)

        logger.info(
            "Generated %d draft timesheets for %s..%s (%d existing, %d missing rates, %d failed)",
            len(result.drafts_created),
            scan.period.start,
            scan.period.end,
            result.skipped_existing,
            len(result.missing_rates),
            len(result.failures),
        )
        return result

    def _validate_period(self, period_start: date, period_end: date) -> Period:
        if period_start >= period_end:
            raise ValidationError(
                f"Period end {period_end} must be after period start {period_start}"
            )
        return Period(period_start, period_end)

    async def _get_jobs(self, period: Period) -> list[Job]:
        """Get all jobs whose service date falls within the period."""
        result = await self.session.execute(
            select(Job)
            .where(
                Job.service_date >= period.start,
                Job.service_date < period.end,
            )
            .order_by(Job.job_id)
        )
        return list(result.scalars().all())

    async def _get_existing_keys(self, assignments: list[Assignment]) -> set[tuple[str, str]]:
        """Get (employee_id, job_id) pairs that already have a timesheet."""
        job_ids = sorted({a.job_id for a in assignments})
        if not job_ids:
            return set()
        result = await self.session.execute(
            select(Timesheet.employee_id, Timesheet.job_id).where(Timesheet.job_id.in_(job_ids))
        )
        return {(employee_id, job_id) for employee_id, job_id in result.all()}

    async def _load_timesheets(self, timesheet_ids: list[UUID]) -> list[Timesheet]:
        if not timesheet_ids:
            return []
        result = await self.session.execute(
            select(Timesheet)
            .where(Timesheet.timesheet_id.in_(timesheet_ids))
            .order_by(Timesheet.job_id, Timesheet.employee_id)
        )
        return list(result.scalars().all())
