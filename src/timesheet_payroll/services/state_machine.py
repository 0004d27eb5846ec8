"""Timesheet approval state machine with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from timesheet_payroll.errors import InvalidTransitionError
from timesheet_payroll.models.payroll import RunStatus

if TYPE_CHECKING:
    from timesheet_payroll.models import Timesheet


class TimesheetState(str, Enum):
    """Approval states of a timesheet."""

    DRAFT = "draft"
    EMPLOYEE_APPROVED = "employee_approved"
    CHANGE_REQUESTED = "change_requested"
    FULLY_APPROVED = "fully_approved"
    LOCKED = "locked"


class TimesheetAction(str, Enum):
    """Actions that move a timesheet between states."""

    EMPLOYEE_APPROVE = "employee_approve"
    EDIT = "edit"
    APPROVE_INTO_RUN = "approve_into_run"
    LOCK = "lock"


class TimesheetStateMachine:
    """State machine for timesheet approval.

    Allowed transitions:
    - draft → employee_approved (employee approves)
    - change_requested → employee_approved (employee re-approves)
    - employee_approved → fully_approved (admin approves into a run)
    - draft / change_requested → fully_approved (admin discretion)
    - any unlocked state → draft / change_requested (edit)
    - fully_approved → locked (owning run locks)
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        TimesheetState.DRAFT: [
            TimesheetState.DRAFT,
            TimesheetState.EMPLOYEE_APPROVED,
            TimesheetState.FULLY_APPROVED,
        ],
        TimesheetState.CHANGE_REQUESTED: [
            TimesheetState.CHANGE_REQUESTED,
            TimesheetState.EMPLOYEE_APPROVED,
            TimesheetState.FULLY_APPROVED,
        ],
        TimesheetState.EMPLOYEE_APPROVED: [
            TimesheetState.CHANGE_REQUESTED,
            TimesheetState.FULLY_APPROVED,
        ],
        TimesheetState.FULLY_APPROVED: [
            TimesheetState.CHANGE_REQUESTED,
            TimesheetState.FULLY_APPROVED,
            TimesheetState.LOCKED,
        ],
        TimesheetState.LOCKED: [],  # Terminal state
    }

    # Transitions each action may produce
    ACTION_TARGETS: dict[str, set[str]] = {
        TimesheetAction.EMPLOYEE_APPROVE: {TimesheetState.EMPLOYEE_APPROVED},
        TimesheetAction.EDIT: {TimesheetState.DRAFT, TimesheetState.CHANGE_REQUESTED},
        TimesheetAction.APPROVE_INTO_RUN: {TimesheetState.FULLY_APPROVED},
        TimesheetAction.LOCK: {TimesheetState.LOCKED},
    }

    @classmethod
    def state_of(cls, timesheet: Timesheet, run_status: str | None = None) -> TimesheetState:
        """Derive the state of a timesheet.

        ``run_status`` is the status of the run named by approved_in_run_id,
        or None when the timesheet is not attached to a run.
        """
        if timesheet.approved_in_run_id is not None and run_status == RunStatus.LOCKED:
            return TimesheetState.LOCKED
        if timesheet.admin_approved:
            return TimesheetState.FULLY_APPROVED
        if timesheet.employee_approved:
            return TimesheetState.EMPLOYEE_APPROVED
        if timesheet.change_requested_at is not None:
            return TimesheetState.CHANGE_REQUESTED
        return TimesheetState.DRAFT

    @classmethod
    def can_transition(cls, from_state: str, to_state: str) -> bool:
        """Check if a transition is valid."""
        return to_state in cls.get_next_states(from_state)

    @classmethod
    def validate_transition(cls, from_state: str, to_state: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_state, to_state):
            raise InvalidTransitionError(from_state, to_state)

    @classmethod
    def target_for_action(cls, action: str, from_state: str) -> TimesheetState:
        """Resolve the state an action leads to from ``from_state``."""
        if action == TimesheetAction.EDIT:
            # Editing an approved record is a new, unapproved claim.
            if from_state == TimesheetState.DRAFT:
                return TimesheetState.DRAFT
            return TimesheetState.CHANGE_REQUESTED
        (target,) = cls.ACTION_TARGETS[action]
        return TimesheetState(target)

    @classmethod
    def validate_action(cls, action: str, from_state: str) -> TimesheetState:
        """Validate an action from a state and return the resulting state."""
        if from_state == TimesheetState.LOCKED:
            raise InvalidTransitionError(
                from_state,
                cls.target_for_action(action, TimesheetState.FULLY_APPROVED),
                "timesheet belongs to a locked payroll run",
            )
        to_state = cls.target_for_action(action, from_state)
        cls.validate_transition(from_state, to_state)
        return to_state

    @classmethod
    def is_editable(cls, state: str) -> bool:
        """Check if fields may still change in this state."""
        return state != TimesheetState.LOCKED

    @classmethod
    def get_next_states(cls, current_state: str) -> list[str]:
        """Get list of valid next states from current state."""
        return cls.VALID_TRANSITIONS.get(current_state, [])
