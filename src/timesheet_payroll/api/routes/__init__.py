"""API routes."""

from timesheet_payroll.api.routes.health import router as health_router
from timesheet_payroll.api.routes.payroll_runs import router as payroll_runs_router
from timesheet_payroll.api.routes.periods import router as periods_router
from timesheet_payroll.api.routes.rates import router as rates_router
from timesheet_payroll.api.routes.timesheets import router as timesheets_router

__all__ = [
    "health_router",
    "payroll_runs_router",
    "periods_router",
    "rates_router",
    "timesheets_router",
]
