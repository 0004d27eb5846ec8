"""ORM models for the payroll core."""

from timesheet_payroll.models.audit import AuditEvent
from timesheet_payroll.models.base import Base, to_naive_utc, utcnow
from timesheet_payroll.models.payroll import PayrollRun, RunStatus, Timesheet, TimesheetSource
from timesheet_payroll.models.rates import EmployeeRate
from timesheet_payroll.models.scheduling import Job

__all__ = [
    "AuditEvent",
    "Base",
    "EmployeeRate",
    "Job",
    "PayrollRun",
    "RunStatus",
    "Timesheet",
    "TimesheetSource",
    "to_naive_utc",
    "utcnow",
]
