"""Earnings from a timesheet's frozen rate snapshot."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Iterable

from timesheet_payroll.calculators.types import EmployeeTotals, RateType, RunTotals

if TYPE_CHECKING:
    from timesheet_payroll.models import Timesheet

CENT = Decimal("0.01")


def round_money(value: Decimal) -> Decimal:
    """Round to cents, half-up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_earnings(timesheet: Timesheet) -> Decimal:
    """Compute the amount owed for a single timesheet.

    per_visit pays rate x units (units default to 1), hourly pays
    rate x hours. A timesheet without a usable snapshot earns 0; this
    function never raises.
    """
    snapshot = timesheet.rate_snapshot
    if snapshot is None:
        return Decimal("0.00")

    if snapshot.rate_type == RateType.PER_VISIT:
        units = timesheet.units if timesheet.units is not None else 1
        return round_money(snapshot.amount * Decimal(units))

    hours = Decimal(timesheet.hours or 0)
    return round_money(snapshot.amount * hours)


def summarize_run(timesheets: Iterable[Timesheet]) -> RunTotals:
    """Aggregate hours and earnings per employee and for the whole run."""
    totals = RunTotals()

    for timesheet in timesheets:
        if timesheet.rate_snapshot is None:
            continue

        earnings = calculate_earnings(timesheet)
        hours = Decimal(timesheet.hours or 0)

        employee_totals = totals.by_employee.setdefault(timesheet.employee_id, EmployeeTotals())
        employee_totals.hours += hours
        employee_totals.earnings += earnings
        employee_totals.timesheet_count += 1

        totals.total_hours += hours
        totals.total_earnings += earnings

    for employee_totals in totals.by_employee.values():
        employee_totals.hours = round_money(employee_totals.hours)
        employee_totals.earnings = round_money(employee_totals.earnings)
    totals.total_hours = round_money(totals.total_hours)
    totals.total_earnings = round_money(totals.total_earnings)
    return totals
