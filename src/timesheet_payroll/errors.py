"""Error taxonomy for the payroll core.

Validation errors are rejected before anything is written. Not-found and
conflict errors block only the requested action. Batch operations do not
raise for individual items; they report per-item outcomes instead.
"""

from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID


class PayrollError(Exception):
    """Base class for all payroll core errors."""

    code = "PAYROLL_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(PayrollError):
    """Input rejected at the call boundary."""

    code = "VALIDATION_ERROR"


class PermissionDeniedError(PayrollError):
    """The caller's role does not allow the action."""

    code = "PERMISSION_DENIED"


class NotFoundError(PayrollError):
    """A referenced record does not exist."""

    code = "NOT_FOUND"


class RunNotFoundError(NotFoundError):
    def __init__(self, payroll_run_id: UUID):
        self.payroll_run_id = payroll_run_id
        super().__init__(f"Payroll run {payroll_run_id} not found")


class TimesheetNotFoundError(NotFoundError):
    def __init__(self, timesheet_id: UUID):
        self.timesheet_id = timesheet_id
        super().__init__(f"Timesheet {timesheet_id} not found")


class RateNotFoundError(NotFoundError):
    """Raised when no effective rate exists for an employee on a date."""

    code = "MISSING_RATE"

    def __init__(
        self,
        employee_id: str,
        as_of_date: date,
        scope: dict[str, Any],
    ):
        self.employee_id = employee_id
        self.as_of_date = as_of_date
        self.scope = scope
        super().__init__(
            f"No effective pay rate found for employee {employee_id} "
            f"on {as_of_date} with scope {scope}"
        )


class ConflictError(PayrollError):
    """The action conflicts with the current state of a record."""

    code = "CONFLICT"


class TimesheetLockedError(ConflictError):
    """The timesheet belongs to a locked payroll run."""

    code = "ALREADY_LOCKED"

    def __init__(self, timesheet_id: UUID, payroll_run_id: UUID | None):
        self.timesheet_id = timesheet_id
        self.payroll_run_id = payroll_run_id
        super().__init__(
            f"Timesheet {timesheet_id} is locked in payroll run {payroll_run_id}"
        )


class RunLockedError(ConflictError):
    """The payroll run is locked and rejects further changes."""

    code = "ALREADY_LOCKED"

    def __init__(self, payroll_run_id: UUID, action: str):
        self.payroll_run_id = payroll_run_id
        self.action = action
        super().__init__(f"Payroll run {payroll_run_id} is locked; cannot {action}")


class RunAlreadyLockedError(RunLockedError):
    """A lock was requested for a run that is already locked."""

    def __init__(self, payroll_run_id: UUID):
        super().__init__(payroll_run_id, "lock again")
        self.message = f"Payroll run {payroll_run_id} is already locked"
        self.args = (self.message,)


class InvalidTransitionError(ConflictError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_state: str, to_state: str, reason: str | None = None):
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason
        msg = f"Invalid transition from '{from_state}' to '{to_state}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
