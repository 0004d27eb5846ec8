"""Payroll calculators."""

from timesheet_payroll.calculators.earnings import calculate_earnings, round_money, summarize_run
from timesheet_payroll.calculators.pay_period import compute_last_completed_period
from timesheet_payroll.calculators.rate_resolver import RateResolver

__all__ = [
    "calculate_earnings",
    "compute_last_completed_period",
    "RateResolver",
    "round_money",
    "summarize_run",
]
