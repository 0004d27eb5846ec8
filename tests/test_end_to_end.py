"""End-to-end payroll flow: generate, approve, run, lock."""

from datetime import date
from decimal import Decimal

import pytest

from timesheet_payroll.calculators.pay_period import compute_last_completed_period
from timesheet_payroll.calculators.types import PayrollCycle, Period
from timesheet_payroll.errors import RunAlreadyLockedError, TimesheetLockedError
from timesheet_payroll.models import RunStatus
from timesheet_payroll.services import (
    PayrollRunService,
    TimesheetGenerator,
    TimesheetService,
    TimesheetState,
    TimesheetStateMachine,
)

from .conftest import ADMIN, ALICE

pytestmark = pytest.mark.asyncio


class TestPayrollFlow:
    """Test a full pay period from job to locked run."""

    async def test_hourly_job_to_locked_run(self, session, make_rate, make_job):
        await make_rate(ALICE.user_id, "20.00")
        await make_job(
            "job-1",
            date(2024, 1, 10),
            assigned_employees=[ALICE.user_id],
            duration_minutes=120,
        )
        period = compute_last_completed_period(
            date(2024, 1, 16),
            PayrollCycle(frequency="biweekly", anchor_date=date(2024, 1, 1)),
        )
        assert period == Period(date(2024, 1, 1), date(2024, 1, 15))

        generated = await TimesheetGenerator(session).scan_and_generate(period.start, period.end)
        (draft,) = generated.drafts_created
        assert draft.hours == Decimal("2.00")

        timesheets = TimesheetService(session)
        await timesheets.employee_approve(ALICE, draft.timesheet_id)
        assert await timesheets.get_state(draft) == TimesheetState.EMPLOYEE_APPROVED

        runs = PayrollRunService(session)
        run = await runs.create_run(ADMIN, period.start, period.end)
        result = await runs.approve_into_run(ADMIN, run.payroll_run_id, [draft.timesheet_id])
        assert result.failures == []
        assert await timesheets.get_state(draft) == TimesheetState.FULLY_APPROVED

        locked = await runs.lock_run(ADMIN, run.payroll_run_id)

        assert locked.status == RunStatus.LOCKED
        assert locked.total_hours == Decimal("2.00")
        assert locked.total_earnings == Decimal("40.00")
        assert locked.totals.by_employee[ALICE.user_id].earnings == Decimal("40.00")
        assert TimesheetStateMachine.state_of(draft, run_status=locked.status) == TimesheetState.LOCKED

        with pytest.raises(RunAlreadyLockedError, match="already locked"):
            await runs.lock_run(ADMIN, run.payroll_run_id)

        with pytest.raises(TimesheetLockedError):
            await timesheets.edit(ADMIN, draft.timesheet_id, {"hours": Decimal("5.00")})

    async def test_rate_change_after_generation_keeps_snapshot(self, session, make_rate, make_job):
        await make_rate(ALICE.user_id, "20.00")
        await make_job("job-1", date(2024, 1, 10), assigned_employees=[ALICE.user_id], duration_minutes=60)

        generated = await TimesheetGenerator(session).scan_and_generate(date(2024, 1, 1), date(2024, 1, 15))
        (draft,) = generated.drafts_created
        await make_rate(ALICE.user_id, "30.00", effective_date=date(2024, 1, 5))
        await TimesheetService(session).employee_approve(ALICE, draft.timesheet_id)

        runs = PayrollRunService(session)
        run = await runs.create_run(ADMIN, date(2024, 1, 1), date(2024, 1, 15))
        await runs.approve_into_run(ADMIN, run.payroll_run_id, [draft.timesheet_id])
        locked = await runs.lock_run(ADMIN, run.payroll_run_id)

        assert locked.total_earnings == Decimal("20.00")
