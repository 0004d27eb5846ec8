"""Timesheet CRUD with approval guardrails."""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_payroll.calculators.earnings import round_money
from timesheet_payroll.calculators.rate_resolver import RateResolver
from timesheet_payroll.calculators.types import RateSnapshot, RateType
from timesheet_payroll.errors import (
    ConflictError,
    PermissionDeniedError,
    TimesheetLockedError,
    TimesheetNotFoundError,
    ValidationError,
)
from timesheet_payroll.models import PayrollRun, Timesheet, TimesheetSource, to_naive_utc, utcnow
from timesheet_payroll.services.actor import Actor
from timesheet_payroll.services.audit import record_audit
from timesheet_payroll.services.state_machine import (
    TimesheetAction,
    TimesheetState,
    TimesheetStateMachine,
)

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = Decimal(3600)

EMPLOYEE_EDITABLE_FIELDS = frozenset({"start", "end", "hours", "job_id", "employee_comment"})
ADMIN_EDITABLE_FIELDS = EMPLOYEE_EDITABLE_FIELDS | {"units"}

# Fields whose change alters what the timesheet claims to be owed.
COMPENSABLE_FIELDS = frozenset({"start", "end", "hours", "units", "job_id"})


def hours_between(start: datetime, end: datetime) -> Decimal:
    """Elapsed hours between two instants, rounded to hundredths."""
    return round_money(Decimal((end - start).total_seconds()) / SECONDS_PER_HOUR)


def _validate_times(start: datetime | None, end: datetime | None) -> None:
    if start is not None and end is not None and end < start:
        raise ValidationError(f"Timesheet end {end} is before start {start}")


def _validate_quantities(hours: Decimal | None, units: int | None) -> None:
    if hours is not None and Decimal(hours) < 0:
        raise ValidationError("Hours cannot be negative")
    if units is not None and units < 0:
        raise ValidationError("Units cannot be negative")


class TimesheetService:
    """Service for creating, editing and approving individual timesheets.

    Operations:
    - create_manual: admin-entered timesheet
    - edit: role-gated field changes; compensable edits reset approval
    - employee_approve: employee confirms their own timesheet
    - get / list_timesheets: reads for employee and admin screens
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.rate_resolver = RateResolver(session)

    async def get(self, timesheet_id: UUID, for_update: bool = False) -> Timesheet | None:
        """Load a timesheet, optionally locking its row."""
        stmt = select(Timesheet).where(Timesheet.timesheet_id == timesheet_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_raise(self, timesheet_id: UUID, for_update: bool = False) -> Timesheet:
        timesheet = await self.get(timesheet_id, for_update=for_update)
        if timesheet is None:
            raise TimesheetNotFoundError(timesheet_id)
        return timesheet

    async def get_state(self, timesheet: Timesheet) -> TimesheetState:
        """Derive the approval state, reading the owning run's current status."""
        run_status = None
        if timesheet.approved_in_run_id is not None:
            stmt = select(PayrollRun.status).where(
                PayrollRun.payroll_run_id == timesheet.approved_in_run_id
            )
            run_status = (await self.session.execute(stmt)).scalar_one_or_none()
        return TimesheetStateMachine.state_of(timesheet, run_status)

    async def list_timesheets(
        self,
        employee_id: str | None = None,
        payroll_run_id: UUID | None = None,
        start_from: date | None = None,
        start_before: date | None = None,
    ) -> list[Timesheet]:
        """List timesheets with optional filters, oldest first."""
        query = select(Timesheet)
        if employee_id is not None:
            query = query.where(Timesheet.employee_id == employee_id)
        if payroll_run_id is not None:
            query = query.where(Timesheet.approved_in_run_id == payroll_run_id)
        if start_from is not None:
            query = query.where(Timesheet.start >= datetime.combine(start_from, time.min))
        if start_before is not None:
            query = query.where(Timesheet.start < datetime.combine(start_before, time.min))

        query = query.order_by(Timesheet.employee_id, Timesheet.start, Timesheet.created_at)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_for_employee(self, employee_id: str) -> list[Timesheet]:
        return await self.list_timesheets(employee_id=employee_id)

    async def list_for_run(self, payroll_run_id: UUID) -> list[Timesheet]:
        return await self.list_timesheets(payroll_run_id=payroll_run_id)

    async def create_manual(
        self,
        actor: Actor,
        employee_id: str,
        start: datetime,
        end: datetime | None = None,
        hours: Decimal | None = None,
        units: int = 1,
        job_id: str | None = None,
        rate_snapshot: RateSnapshot | None = None,
        location_id: str | None = None,
        client_profile_id: str | None = None,
    ) -> Timesheet:
        """Create a timesheet by hand (admin only).

        When no snapshot is supplied the rate in force on the start date is
        resolved and frozen. The timesheet is still created when no rate is
        found; it cannot be approved into a run until an admin fixes it.
        """
        if not actor.is_admin:
            raise PermissionDeniedError("Only admins can create timesheets manually")

        start = to_naive_utc(start)
        end = to_naive_utc(end)
        _validate_times(start, end)
        _validate_quantities(hours, units)
        if rate_snapshot is not None and rate_snapshot.amount <= 0:
            raise ValidationError("Rate amount must be positive")

        if job_id is not None:
            await self._ensure_no_duplicate(employee_id, job_id)

        if rate_snapshot is None:
            resolved = await self.rate_resolver.resolve_effective_rate(
                employee_id,
                start.date(),
                location_id=location_id,
                client_profile_id=client_profile_id,
            )
            if resolved is None:
                logger.warning(
                    "No effective rate for employee %s on %s; creating timesheet without snapshot",
                    employee_id,
                    start.date(),
                )
            else:
                rate_snapshot = resolved.snapshot()

        if hours is None:
            if end is not None and (rate_snapshot is None or rate_snapshot.rate_type == RateType.HOURLY):
                hours = hours_between(start, end)
            else:
                hours = Decimal("0.00")

        timesheet = Timesheet(
            employee_id=employee_id,
            job_id=job_id,
            start=start,
            end=end,
            hours=Decimal(hours),
            units=units,
            employee_approved=False,
            admin_approved=False,
            source=TimesheetSource.MANUAL,
        )
        timesheet.rate_snapshot = rate_snapshot
        try:
            async with self.session.begin_nested():
                self.session.add(timesheet)
                await self.session.flush()
        except IntegrityError:
            raise ConflictError(
                f"Employee {employee_id} already has a timesheet for job {job_id}"
            ) from None

        await record_audit(
            self.session,
            entity_type="timesheet",
            entity_id=timesheet.timesheet_id,
            action="created",
            actor=actor,
            details={"employee_id": employee_id, "job_id": job_id, "hours": timesheet.hours},
        )
        return timesheet

    async def edit(
        self,
        actor: Actor,
        timesheet_id: UUID,
        changes: dict[str, Any],
    ) -> Timesheet:
        """Apply field changes to an unlocked timesheet.

        Any change to a compensable field is a new, unreviewed claim: both
        approvals are cleared and the timesheet leaves its draft run.

        Raises:
            TimesheetLockedError: If the owning run is locked
            PermissionDeniedError: If the caller may not edit these fields
        """
        timesheet, from_state = await self._lock_for_change(timesheet_id)
        self._check_can_edit(actor, timesheet, changes)

        if not TimesheetStateMachine.is_editable(from_state):
            raise TimesheetLockedError(timesheet.timesheet_id, timesheet.approved_in_run_id)

        changes = dict(changes)
        for field_name in ("hours", "units"):
            if field_name in changes and changes[field_name] is None:
                raise ValidationError(f"Timesheet {field_name} cannot be null")
        for field_name in ("start", "end"):
            if field_name in changes:
                changes[field_name] = to_naive_utc(changes[field_name])

        new_start = changes.get("start", timesheet.start)
        new_end = changes.get("end", timesheet.end)
        _validate_times(new_start, new_end)
        _validate_quantities(changes.get("hours"), changes.get("units"))

        if "job_id" in changes and changes["job_id"] not in (None, timesheet.job_id):
            await self._ensure_no_duplicate(timesheet.employee_id, changes["job_id"])

        if (
            "hours" not in changes
            and ("start" in changes or "end" in changes)
            and new_start is not None
            and new_end is not None
        ):
            changes = {**changes, "hours": hours_between(new_start, new_end)}

        changed: dict[str, Any] = {}
        for field_name, value in changes.items():
            if field_name == "hours" and value is not None:
                value = Decimal(value)
            if getattr(timesheet, field_name) != value:
                changed[field_name] = value
                setattr(timesheet, field_name, value)

        if COMPENSABLE_FIELDS & changed.keys():
            to_state = TimesheetStateMachine.validate_action(TimesheetAction.EDIT, from_state)
            self._reset_approval(timesheet, to_state)

        await self.session.flush()

        if changed:
            await record_audit(
                self.session,
                entity_type="timesheet",
                entity_id=timesheet.timesheet_id,
                action="edited",
                actor=actor,
                details={"changes": changed, "from_state": from_state.value},
            )
        return timesheet

    async def employee_approve(
        self,
        actor: Actor,
        timesheet_id: UUID,
        comment: str | None = None,
    ) -> Timesheet:
        """Employee confirms a timesheet as accurate."""
        timesheet, from_state = await self._lock_for_change(timesheet_id)
        if actor.user_id != timesheet.employee_id and not actor.is_admin:
            raise PermissionDeniedError("Employees can only approve their own timesheets")

        if from_state == TimesheetState.LOCKED:
            raise TimesheetLockedError(timesheet.timesheet_id, timesheet.approved_in_run_id)

        if timesheet.employee_approved:
            return timesheet

        if from_state != TimesheetState.FULLY_APPROVED:
            TimesheetStateMachine.validate_action(TimesheetAction.EMPLOYEE_APPROVE, from_state)

        timesheet.employee_approved = True
        timesheet.employee_approved_at = utcnow()
        timesheet.change_requested_at = None
        if comment is not None:
            timesheet.employee_comment = comment
        await self.session.flush()

        await record_audit(
            self.session,
            entity_type="timesheet",
            entity_id=timesheet.timesheet_id,
            action="employee_approved",
            actor=actor,
        )
        return timesheet

    async def _lock_for_change(self, timesheet_id: UUID) -> tuple[Timesheet, TimesheetState]:
        """Lock the owning run row, then the timesheet row, and derive the state.

        Rows are always locked run first, timesheet second, the same order
        PayrollRunService uses when approving into or locking a run.
        """
        timesheet = await self.get_or_raise(timesheet_id)
        run_id = timesheet.approved_in_run_id
        run_status = None
        if run_id is not None:
            run_status = await self.session.scalar(
                select(PayrollRun.status).where(PayrollRun.payroll_run_id == run_id).with_for_update()
            )

        timesheet = await self.get_or_raise(timesheet_id, for_update=True)
        if timesheet.approved_in_run_id != run_id:
            raise ConflictError(
                f"Timesheet {timesheet_id} moved between payroll runs during the update; retry"
            )
        return timesheet, TimesheetStateMachine.state_of(timesheet, run_status)

    def _check_can_edit(self, actor: Actor, timesheet: Timesheet, changes: dict[str, Any]) -> None:
        if actor.is_admin:
            allowed = ADMIN_EDITABLE_FIELDS
        elif actor.user_id == timesheet.employee_id:
            allowed = EMPLOYEE_EDITABLE_FIELDS
        else:
            raise PermissionDeniedError("Employees can only edit their own timesheets")

        disallowed = set(changes) - allowed
        if disallowed:
            raise PermissionDeniedError(
                f"Role '{actor.role.value}' cannot edit fields: {', '.join(sorted(disallowed))}"
            )

    def _reset_approval(self, timesheet: Timesheet, to_state: TimesheetState) -> None:
        timesheet.employee_approved = False
        timesheet.employee_approved_at = None
        timesheet.admin_approved = False
        timesheet.admin_approved_at = None
        timesheet.admin_approved_by = None
        timesheet.approved_in_run_id = None
        if to_state == TimesheetState.CHANGE_REQUESTED:
            timesheet.change_requested_at = utcnow()

    async def _ensure_no_duplicate(self, employee_id: str, job_id: str) -> None:
        existing = await self.session.execute(
            select(Timesheet.timesheet_id).where(
                Timesheet.employee_id == employee_id,
                Timesheet.job_id == job_id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(f"Employee {employee_id} already has a timesheet for job {job_id}")
