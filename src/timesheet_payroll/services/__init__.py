"""Payroll core services."""

from timesheet_payroll.services.actor import Actor, Role
from timesheet_payroll.services.payroll_run_service import ApprovalResult, ItemFailure, PayrollRunService
from timesheet_payroll.services.rate_service import RateService
from timesheet_payroll.services.state_machine import TimesheetState, TimesheetStateMachine
from timesheet_payroll.services.timesheet_generator import GenerationResult, ScanResult, TimesheetGenerator
from timesheet_payroll.services.timesheet_service import TimesheetService

__all__ = [
    "Actor",
    "ApprovalResult",
    "GenerationResult",
    "ItemFailure",
    "PayrollRunService",
    "RateService",
    "Role",
    "ScanResult",
    "TimesheetGenerator",
    "TimesheetService",
    "TimesheetState",
    "TimesheetStateMachine",
]
