"""Payroll Command Line Interface.

Provides operational tools for:
- Computing the last completed pay period
- Scanning a period for draft timesheets to create
- Generating draft timesheets
- Locking a payroll run
- Creating the database schema

Usage:
    python -m timesheet_payroll.cli last-period --frequency weekly --anchor-day-of-week 1
    python -m timesheet_payroll.cli scan --start 2024-01-01 --end 2024-01-15
    python -m timesheet_payroll.cli generate --start 2024-01-01 --end 2024-01-15
    python -m timesheet_payroll.cli lock --run-id X
    python -m timesheet_payroll.cli init-db
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import date
from typing import Any, Awaitable, Callable
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_payroll.calculators.pay_period import compute_last_completed_period
from timesheet_payroll.calculators.types import PayrollCycle, PayrollFrequency
from timesheet_payroll.config import configure_logging
from timesheet_payroll.database import create_schema, dispose_db, get_session
from timesheet_payroll.errors import PayrollError
from timesheet_payroll.services.actor import Actor, Role
from timesheet_payroll.services.payroll_run_service import PayrollRunService
from timesheet_payroll.services.timesheet_generator import TimesheetGenerator

logger = logging.getLogger(__name__)


def parse_date(s: str) -> date:
    """Parse ISO date string."""
    return date.fromisoformat(s)


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


class PayrollCli:
    """Payroll Command Line Interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m timesheet_payroll.cli",
            description="Timesheet payroll operational tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        # last-period command
        last_period = subparsers.add_parser(
            "last-period",
            help="Show the most recent fully elapsed pay period",
        )
        last_period.add_argument(
            "--frequency",
            required=True,
            choices=[f.value for f in PayrollFrequency],
            help="Payroll cycle frequency",
        )
        last_period.add_argument(
            "--reference-date",
            type=parse_date,
            default=None,
            help="Date to compute from (default: today)",
        )
        last_period.add_argument(
            "--anchor-day-of-week",
            type=int,
            help="Weekly anchor, 0=Sunday .. 6=Saturday",
        )
        last_period.add_argument(
            "--anchor-day-of-month",
            type=int,
            help="Monthly anchor, 1..28",
        )
        last_period.add_argument(
            "--anchor-date",
            type=parse_date,
            help="Biweekly anchor date (ISO format)",
        )
        last_period.add_argument(
            "--json",
            action="store_true",
            help="Output as JSON",
        )

        # scan and generate commands
        for name, help_text in (
            ("scan", "Preview draft timesheets for a period without writing"),
            ("generate", "Create draft timesheets for a period"),
        ):
            command = subparsers.add_parser(name, help=help_text)
            command.add_argument(
                "--start",
                type=parse_date,
                required=True,
                help="Period start (ISO date, inclusive)",
            )
            command.add_argument(
                "--end",
                type=parse_date,
                required=True,
                help="Period end (ISO date, exclusive)",
            )
            command.add_argument(
                "--json",
                action="store_true",
                help="Output as JSON",
            )

        # lock command
        lock = subparsers.add_parser(
            "lock",
            help="Lock a draft payroll run",
        )
        lock.add_argument(
            "--run-id",
            type=parse_uuid,
            required=True,
            help="Payroll run ID",
        )
        lock.add_argument(
            "--actor-id",
            help="User recorded as locking the run (default: system)",
        )

        # init-db command
        subparsers.add_parser(
            "init-db",
            help="Create any missing database tables",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        # Dispatch to command handler
        handlers: dict[str, Callable[..., int]] = {
            "last-period": self._cmd_last_period,
            "scan": self._cmd_scan,
            "generate": self._cmd_generate,
            "lock": self._cmd_lock,
            "init-db": self._cmd_init_db,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        try:
            return handler(parsed)
        except PayrollError as e:
            print(f"ERROR [{e.code}]: {e.message}", file=sys.stderr)
            return 1
        except SQLAlchemyError as e:
            logger.exception("Database error running %s", parsed.command)
            print(f"ERROR: {e}", file=sys.stderr)
            return 1

    def _with_session(self, operation: Callable[[AsyncSession], Awaitable[int]]) -> int:
        """Run one operation in its own unit of work."""

        async def runner() -> int:
            try:
                async with get_session() as session:
                    return await operation(session)
            finally:
                await dispose_db()

        return asyncio.run(runner())

    def _cmd_last_period(self, args: argparse.Namespace) -> int:
        """Print the last completed pay period."""
        cycle = PayrollCycle(
            frequency=args.frequency,
            anchor_day_of_week=args.anchor_day_of_week,
            anchor_day_of_month=args.anchor_day_of_month,
            anchor_date=args.anchor_date,
        )
        reference_date = args.reference_date or date.today()
        period = compute_last_completed_period(reference_date, cycle)

        if period is None:
            print(
                f"Payroll cycle '{args.frequency}' is missing a valid anchor",
                file=sys.stderr,
            )
            return 1

        if args.json:
            print(json.dumps({"start": period.start.isoformat(), "end": period.end.isoformat()}))
        else:
            print(f"Last completed {args.frequency} period as of {reference_date}:")
            print(f"  Start: {period.start.isoformat()}")
            print(f"  End:   {period.end.isoformat()} (exclusive)")
        return 0

    def _cmd_scan(self, args: argparse.Namespace) -> int:
        """Preview generation for a period."""

        async def operation(session: AsyncSession) -> int:
            scan = await TimesheetGenerator(session).scan_period(args.start, args.end)
            if args.json:
                print(
                    json.dumps(
                        {
                            "total_jobs": scan.total_jobs,
                            "total_assignments": scan.total_assignments,
                            "drafts": [list(d.assignment.key) for d in scan.drafts],
                            "missing_rates": [list(a.key) for a in scan.missing_rates],
                            "existing": [list(a.key) for a in scan.existing],
                        }
                    )
                )
                return 0

            print(f"Scan of {args.start} .. {args.end} (end exclusive)")
            print(f"  Jobs:          {scan.total_jobs}")
            print(f"  Assignments:   {scan.total_assignments}")
            print(f"  Drafts to add: {len(scan.drafts)}")
            print(f"  Existing:      {len(scan.existing)}")
            print(f"  Missing rates: {len(scan.missing_rates)}")
            for assignment in scan.missing_rates:
                print(f"    - employee {assignment.employee_id} on job {assignment.job_id}")
            return 0

        return self._with_session(operation)

    def _cmd_generate(self, args: argparse.Namespace) -> int:
        """Create draft timesheets for a period."""

        async def operation(session: AsyncSession) -> int:
            result = await TimesheetGenerator(session).scan_and_generate(args.start, args.end)
            summary: dict[str, Any] = {
                "drafts_created": len(result.drafts_created),
                "skipped_existing": result.skipped_existing,
                "missing_rates": [list(a.key) for a in result.missing_rates],
                "needs_hours": [list(a.key) for a in result.needs_hours],
                "failures": [
                    {"pair": list(f.assignment.key), "reason": f.reason} for f in result.failures
                ],
            }
            if args.json:
                print(json.dumps(summary))
            else:
                print(f"Generated drafts for {args.start} .. {args.end} (end exclusive)")
                print(f"  Created:       {summary['drafts_created']}")
                print(f"  Existing:      {summary['skipped_existing']}")
                print(f"  Missing rates: {len(result.missing_rates)}")
                print(f"  Needs hours:   {len(result.needs_hours)}")
                print(f"  Failed:        {len(result.failures)}")
                for failure in result.failures:
                    print(f"    - {failure.assignment.key}: {failure.reason}")
            return 1 if result.failures else 0

        return self._with_session(operation)

    def _cmd_lock(self, args: argparse.Namespace) -> int:
        """Lock a payroll run."""
        if args.actor_id:
            actor = Actor(user_id=args.actor_id, role=Role.SUPER_ADMIN)
        else:
            actor = Actor.system()

        async def operation(session: AsyncSession) -> int:
            run = await PayrollRunService(session).lock_run(actor, args.run_id)
            print(f"Locked payroll run {run.payroll_run_id}")
            print(f"  Period:         {run.period_start} .. {run.period_end}")
            print(f"  Total hours:    {run.total_hours}")
            print(f"  Total earnings: {run.total_earnings}")
            return 0

        return self._with_session(operation)

    def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create the database schema."""

        async def runner() -> int:
            try:
                await create_schema()
            finally:
                await dispose_db()
            print("Database schema created")
            return 0

        return asyncio.run(runner())


def main() -> int:
    """CLI entry point."""
    configure_logging()
    cli = PayrollCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
