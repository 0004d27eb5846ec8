"""Pay period boundaries derived from a payroll cycle.

All periods are half-open: ``end`` is the first day *after* the period.
"""

from __future__ import annotations

from datetime import date, timedelta

from timesheet_payroll.calculators.types import PayrollCycle, PayrollFrequency, Period

MAX_ANCHOR_DAY_OF_MONTH = 28


def _add_months(day_of_month: int, year: int, month: int, months: int) -> date:
    index = year * 12 + (month - 1) + months
    return date(index // 12, index % 12 + 1, day_of_month)


def _sunday_based_weekday(day: date) -> int:
    """Weekday with 0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def _last_weekly(reference_date: date, anchor_day_of_week: int) -> Period:
    diff = (_sunday_based_weekday(reference_date) - anchor_day_of_week) % 7
    current_start = reference_date - timedelta(days=diff)
    # The current window always extends past the reference date.
    return Period(current_start - timedelta(days=7), current_start)


def _last_biweekly(reference_date: date, anchor_date: date) -> Period:
    windows = (reference_date - anchor_date).days // 14
    current_start = anchor_date + timedelta(days=windows * 14)
    return Period(current_start - timedelta(days=14), current_start)


def _last_monthly(reference_date: date, anchor_day_of_month: int) -> Period:
    this_anchor = date(reference_date.year, reference_date.month, anchor_day_of_month)
    if this_anchor <= reference_date:
        end = this_anchor
    else:
        end = _add_months(anchor_day_of_month, reference_date.year, reference_date.month, -1)
    start = _add_months(anchor_day_of_month, end.year, end.month, -1)
    return Period(start, end)


def _last_semimonthly(reference_date: date) -> Period:
    if reference_date.day >= 16:
        return Period(
            date(reference_date.year, reference_date.month, 1),
            date(reference_date.year, reference_date.month, 16),
        )
    previous = _add_months(1, reference_date.year, reference_date.month, -1)
    return Period(
        date(previous.year, previous.month, 16),
        date(reference_date.year, reference_date.month, 1),
    )


def compute_last_completed_period(
    reference_date: date,
    cycle: PayrollCycle | None,
) -> Period | None:
    """Return the most recent pay period that ended on or before ``reference_date``.

    Returns None when the cycle is missing its anchor, has an anchor outside
    the allowed range, or names an unknown frequency.
    """
    if cycle is None or cycle.frequency is None:
        return None
    try:
        frequency = PayrollFrequency(cycle.frequency)
    except ValueError:
        return None

    if frequency == PayrollFrequency.WEEKLY:
        dow = cycle.anchor_day_of_week
        if not isinstance(dow, int) or not 0 <= dow <= 6:
            return None
        return _last_weekly(reference_date, dow)

    if frequency == PayrollFrequency.BIWEEKLY:
        if cycle.anchor_date is None:
            return None
        return _last_biweekly(reference_date, cycle.anchor_date)

    if frequency == PayrollFrequency.MONTHLY:
        dom = cycle.anchor_day_of_month
        if not isinstance(dom, int) or not 1 <= dom <= MAX_ANCHOR_DAY_OF_MONTH:
            return None
        return _last_monthly(reference_date, dom)

    return _last_semimonthly(reference_date)

