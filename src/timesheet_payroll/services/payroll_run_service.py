"""Payroll run service: approval into runs, totals and locking."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_payroll.calculators.earnings import summarize_run
from timesheet_payroll.calculators.types import RunTotals
from timesheet_payroll.errors import (
    InvalidTransitionError,
    PermissionDeniedError,
    RunAlreadyLockedError,
    RunLockedError,
    RunNotFoundError,
    ValidationError,
)
from timesheet_payroll.models import PayrollRun, RunStatus, Timesheet, utcnow
from timesheet_payroll.services.actor import Actor
from timesheet_payroll.services.audit import record_audit
from timesheet_payroll.services.state_machine import TimesheetAction, TimesheetStateMachine

logger = logging.getLogger(__name__)


class FailureReason:
    """Why a timesheet was not approved into a run."""

    NOT_FOUND = "not_found"
    ALREADY_LOCKED = "already_locked"
    IN_OTHER_RUN = "in_other_run"
    NOT_APPROVED = "not_approved"
    MISSING_RATE = "missing_rate"
    INVALID_TRANSITION = "invalid_transition"


@dataclass(frozen=True)
class ItemFailure:
    """A timesheet rejected by a batch approval."""

    timesheet_id: UUID
    reason: str
    message: str


@dataclass
class ApprovalResult:
    """Per-item outcome of approving timesheets into a run."""

    payroll_run_id: UUID
    approved: list[Timesheet] = field(default_factory=list)
    failures: list[ItemFailure] = field(default_factory=list)
    totals: RunTotals | None = None


def _unique(ids: Iterable[UUID]) -> list[UUID]:
    seen: set[UUID] = set()
    ordered = []
    for item in ids:
        if item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered


class PayrollRunService:
    """Service for managing the payroll run lifecycle.

    Operations:
    - create_run: open a draft run for a period
    - approve_into_run: admin-approve timesheets and attach them to a draft run
    - recalculate: recompute totals from member timesheets
    - lock_run: freeze the run and every member timesheet

    A run moves draft → locked exactly once. Every method flushes but never
    commits; the caller's unit of work decides whether changes persist.

    Row locks are taken run first, then member timesheets. TimesheetService
    follows the same order.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_run(self, payroll_run_id: UUID, for_update: bool = False) -> PayrollRun | None:
        stmt = select(PayrollRun).where(PayrollRun.payroll_run_id == payroll_run_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_run_or_raise(self, payroll_run_id: UUID, for_update: bool = False) -> PayrollRun:
        run = await self.get_run(payroll_run_id, for_update=for_update)
        if run is None:
            raise RunNotFoundError(payroll_run_id)
        return run

    async def list_runs(self, status: str | None = None) -> list[PayrollRun]:
        """List runs, most recent period first."""
        query = select(PayrollRun)
        if status is not None:
            query = query.where(PayrollRun.status == status)
        query = query.order_by(PayrollRun.period_start.desc(), PayrollRun.created_at.desc())
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_runs_for_employee(self, employee_id: str) -> list[PayrollRun]:
        """Runs containing at least one of the employee's timesheets."""
        member_runs = (
            select(Timesheet.approved_in_run_id)
            .where(
                Timesheet.employee_id == employee_id,
                Timesheet.approved_in_run_id.is_not(None),
            )
            .scalar_subquery()
        )
        result = await self.session.execute(
            select(PayrollRun)
            .where(PayrollRun.payroll_run_id.in_(member_runs))
            .order_by(PayrollRun.period_start.desc())
        )
        return list(result.scalars().all())

    async def get_run_timesheets(self, payroll_run_id: UUID, for_update: bool = False) -> list[Timesheet]:
        """Timesheets approved into a run."""
        stmt = (
            select(Timesheet)
            .where(
                Timesheet.approved_in_run_id == payroll_run_id,
                Timesheet.admin_approved.is_(True),
            )
            .order_by(Timesheet.employee_id, Timesheet.start)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create_run(
        self,
        actor: Actor,
        period_start: date,
        period_end: date,
    ) -> PayrollRun:
        """Open a draft run for [period_start, period_end)."""
        self._require_admin(actor, "create payroll runs")
        if period_start >= period_end:
            raise ValidationError(
                f"Period end {period_end} must be after period start {period_start}"
            )

        run = PayrollRun(
            period_start=period_start,
            period_end=period_end,
            status=RunStatus.DRAFT,
            created_by=actor.user_id,
        )
        run.totals_json = RunTotals().to_json()
        self.session.add(run)
        await self.session.flush()

        await record_audit(
            self.session,
            entity_type="payroll_run",
            entity_id=run.payroll_run_id,
            action="created",
            actor=actor,
            details={"period_start": period_start, "period_end": period_end},
        )
        logger.info("Created payroll run %s for %s..%s", run.payroll_run_id, period_start, period_end)
        return run

    async def approve_into_run(
        self,
        actor: Actor,
        payroll_run_id: UUID,
        timesheet_ids: Iterable[UUID],
        allow_unapproved: bool = False,
    ) -> ApprovalResult:
        """Admin-approve timesheets and attach them to a draft run.

        Items that cannot be approved are reported in ``failures`` and the
        rest proceed. Re-approving a timesheet already in this run succeeds
        without change. Totals are recalculated afterwards.

        Raises:
            RunNotFoundError: If the run does not exist
            RunLockedError: If the run is locked
        """
        self._require_admin(actor, "approve timesheets")
        run = await self.get_run_or_raise(payroll_run_id, for_update=True)
        if run.is_locked:
            raise RunLockedError(run.payroll_run_id, "approve timesheets")

        ids = _unique(timesheet_ids)
        result = ApprovalResult(payroll_run_id=run.payroll_run_id)
        if not ids:
            result.totals = run.totals
            return result

        timesheets = await self._load_for_update(ids)
        other_run_status = await self._get_run_statuses(
            {
                ts.approved_in_run_id
                for ts in timesheets.values()
                if ts.approved_in_run_id is not None and ts.approved_in_run_id != run.payroll_run_id
            }
        )
        now = utcnow()

        for timesheet_id in ids:
            timesheet = timesheets.get(timesheet_id)
            if timesheet is None:
                result.failures.append(
                    ItemFailure(timesheet_id, FailureReason.NOT_FOUND, "Timesheet not found")
                )
                continue

            if timesheet.approved_in_run_id == run.payroll_run_id and timesheet.admin_approved:
                result.approved.append(timesheet)
                continue

            if timesheet.approved_in_run_id is not None and timesheet.approved_in_run_id != run.payroll_run_id:
                if other_run_status.get(timesheet.approved_in_run_id) == RunStatus.LOCKED:
                    result.failures.append(
                        ItemFailure(
                            timesheet_id,
                            FailureReason.ALREADY_LOCKED,
                            f"Timesheet is locked in payroll run {timesheet.approved_in_run_id}",
                        )
                    )
                else:
                    result.failures.append(
                        ItemFailure(
                            timesheet_id,
                            FailureReason.IN_OTHER_RUN,
                            f"Timesheet is already approved into payroll run {timesheet.approved_in_run_id}",
                        )
                    )
                continue

            if not timesheet.employee_approved and not allow_unapproved:
                result.failures.append(
                    ItemFailure(
                        timesheet_id,
                        FailureReason.NOT_APPROVED,
                        "Timesheet has not been approved by the employee",
                    )
                )
                continue

            if timesheet.rate_snapshot is None:
                result.failures.append(
                    ItemFailure(
                        timesheet_id,
                        FailureReason.MISSING_RATE,
                        "Timesheet has no rate snapshot",
                    )
                )
                continue

            try:
                TimesheetStateMachine.validate_action(
                    TimesheetAction.APPROVE_INTO_RUN,
                    TimesheetStateMachine.state_of(timesheet),
                )
            except InvalidTransitionError as exc:
                result.failures.append(
                    ItemFailure(timesheet_id, FailureReason.INVALID_TRANSITION, exc.message)
                )
                continue

            timesheet.admin_approved = True
            timesheet.admin_approved_at = now
            timesheet.admin_approved_by = actor.user_id
            timesheet.approved_in_run_id = run.payroll_run_id
            timesheet.change_requested_at = None
            result.approved.append(timesheet)

        await self.session.flush()
        result.totals = await self._apply_totals(run)

        await record_audit(
            self.session,
            entity_type="payroll_run",
            entity_id=run.payroll_run_id,
            action="timesheets_approved",
            actor=actor,
            details={
                "approved": [ts.timesheet_id for ts in result.approved],
                "failed": [
                    {"timesheet_id": f.timesheet_id, "reason": f.reason} for f in result.failures
                ],
                "allow_unapproved": allow_unapproved,
            },
        )
        logger.info(
            "Approved %d timesheets into payroll run %s (%d rejected)",
            len(result.approved),
            run.payroll_run_id,
            len(result.failures),
        )
        return result

    async def recalculate(self, actor: Actor, payroll_run_id: UUID) -> RunTotals:
        """Recompute a draft run's totals from its member timesheets.

        Raises:
            RunLockedError: If the run is locked; its totals are final
        """
        self._require_admin(actor, "recalculate payroll runs")
        run = await self.get_run_or_raise(payroll_run_id, for_update=True)
        if run.is_locked:
            raise RunLockedError(run.payroll_run_id, "recalculate totals")
        return await self._apply_totals(run)

    async def lock_run(self, actor: Actor, payroll_run_id: UUID) -> PayrollRun:
        """Lock a draft run and every timesheet in it.

        Totals are recalculated one final time, then the status flips from
        draft to locked with a conditional update so that two concurrent
        lock requests cannot both succeed.

        Raises:
            RunNotFoundError: If the run does not exist
            RunAlreadyLockedError: If the run is already locked
        """
        self._require_admin(actor, "lock payroll runs")
        run = await self.get_run_or_raise(payroll_run_id, for_update=True)
        if run.is_locked:
            raise RunAlreadyLockedError(run.payroll_run_id)

        totals = await self._apply_totals(run)
        locked_at = utcnow()

        cas_result = await self.session.execute(
            update(PayrollRun)
            .where(
                PayrollRun.payroll_run_id == run.payroll_run_id,
                PayrollRun.status == RunStatus.DRAFT,
            )
            .values(status=RunStatus.LOCKED, locked_at=locked_at, locked_by=actor.user_id)
            .execution_options(synchronize_session=False)
        )
        if cas_result.rowcount == 0:
            raise RunAlreadyLockedError(run.payroll_run_id)

        locked_timesheets = await self.session.execute(
            update(Timesheet)
            .where(
                Timesheet.approved_in_run_id == run.payroll_run_id,
                Timesheet.admin_approved.is_(True),
            )
            .values(locked_at=locked_at)
            .execution_options(synchronize_session=False)
        )
        await self.session.refresh(run)
        for timesheet in await self.get_run_timesheets(run.payroll_run_id):
            await self.session.refresh(timesheet)

        await record_audit(
            self.session,
            entity_type="payroll_run",
            entity_id=run.payroll_run_id,
            action="locked",
            actor=actor,
            details={
                "timesheet_count": locked_timesheets.rowcount or 0,
                "total_hours": totals.total_hours,
                "total_earnings": totals.total_earnings,
            },
        )
        logger.info(
            "Locked payroll run %s: %s hours, %s earnings across %d timesheets",
            run.payroll_run_id,
            totals.total_hours,
            totals.total_earnings,
            locked_timesheets.rowcount or 0,
        )
        return run

    async def _apply_totals(self, run: PayrollRun) -> RunTotals:
        totals = summarize_run(await self.get_run_timesheets(run.payroll_run_id))
        run.total_hours = totals.total_hours
        run.total_earnings = totals.total_earnings
        run.totals_json = totals.to_json()
        await self.session.flush()
        return totals

    async def _load_for_update(self, timesheet_ids: list[UUID]) -> dict[UUID, Timesheet]:
        result = await self.session.execute(
            select(Timesheet)
            .where(Timesheet.timesheet_id.in_(timesheet_ids))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return {ts.timesheet_id: ts for ts in result.scalars().all()}

    async def _get_run_statuses(self, payroll_run_ids: set[UUID]) -> dict[UUID, str]:
        if not payroll_run_ids:
            return {}
        result = await self.session.execute(
            select(PayrollRun.payroll_run_id, PayrollRun.status).where(
                PayrollRun.payroll_run_id.in_(payroll_run_ids)
            )
        )
        return {run_id: status for run_id, status in result.all()}

    def _require_admin(self, actor: Actor, action: str) -> None:
        if not actor.is_admin:
            raise PermissionDeniedError(f"Only admins can {action}")
