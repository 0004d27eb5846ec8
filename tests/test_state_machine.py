"""Tests for the timesheet approval state machine."""

from datetime import datetime
from uuid import uuid4

import pytest

from timesheet_payroll.errors import InvalidTransitionError
from timesheet_payroll.models import RunStatus, Timesheet
from timesheet_payroll.services.state_machine import (
    TimesheetAction,
    TimesheetState,
    TimesheetStateMachine,
)


def _timesheet(**fields) -> Timesheet:
    return Timesheet(employee_id="emp-1", **fields)


class TestStateOf:
    """Test deriving a state from timesheet fields."""

    def test_new_timesheet_is_draft(self):
        timesheet = _timesheet(employee_approved=False, admin_approved=False)
        assert TimesheetStateMachine.state_of(timesheet) == TimesheetState.DRAFT

    def test_employee_approved(self):
        timesheet = _timesheet(employee_approved=True, admin_approved=False)
        assert TimesheetStateMachine.state_of(timesheet) == TimesheetState.EMPLOYEE_APPROVED

    def test_change_requested(self):
        timesheet = _timesheet(
            employee_approved=False,
            admin_approved=False,
            change_requested_at=datetime(2024, 1, 12),
        )
        assert TimesheetStateMachine.state_of(timesheet) == TimesheetState.CHANGE_REQUESTED

    def test_fully_approved_in_draft_run(self):
        timesheet = _timesheet(
            employee_approved=True, admin_approved=True, approved_in_run_id=uuid4()
        )
        state = TimesheetStateMachine.state_of(timesheet, RunStatus.DRAFT)
        assert state == TimesheetState.FULLY_APPROVED

    def test_locked_when_run_locked(self):
        timesheet = _timesheet(
            employee_approved=True, admin_approved=True, approved_in_run_id=uuid4()
        )
        state = TimesheetStateMachine.state_of(timesheet, RunStatus.LOCKED)
        assert state == TimesheetState.LOCKED


class TestTransitions:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        # draft → employee_approved
        assert TimesheetStateMachine.can_transition("draft", "employee_approved") is True

        # employee_approved → fully_approved
        assert TimesheetStateMachine.can_transition("employee_approved", "fully_approved") is True

        # admin discretion: draft → fully_approved
        assert TimesheetStateMachine.can_transition("draft", "fully_approved") is True

        # edit after approval
        assert TimesheetStateMachine.can_transition("fully_approved", "change_requested") is True
        assert TimesheetStateMachine.can_transition("employee_approved", "change_requested") is True

        # re-approval after a change
        assert TimesheetStateMachine.can_transition("change_requested", "employee_approved") is True

        # run locks
        assert TimesheetStateMachine.can_transition("fully_approved", "locked") is True

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        # Only approved timesheets lock
        assert TimesheetStateMachine.can_transition("draft", "locked") is False
        assert TimesheetStateMachine.can_transition("employee_approved", "locked") is False

        # Locked is terminal
        for state in TimesheetState:
            assert TimesheetStateMachine.can_transition("locked", state) is False

    def test_validate_transition_raises(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            TimesheetStateMachine.validate_transition("draft", "locked")

        assert exc_info.value.from_state == "draft"
        assert exc_info.value.to_state == "locked"

    def test_get_next_states(self):
        assert TimesheetStateMachine.get_next_states("locked") == []
        assert "employee_approved" in TimesheetStateMachine.get_next_states("draft")


class TestActions:
    """Test resolving actions to target states."""

    def test_edit_draft_stays_draft(self):
        to_state = TimesheetStateMachine.validate_action(TimesheetAction.EDIT, TimesheetState.DRAFT)
        assert to_state == TimesheetState.DRAFT

    @pytest.mark.parametrize(
        "from_state",
        [
            TimesheetState.EMPLOYEE_APPROVED,
            TimesheetState.FULLY_APPROVED,
            TimesheetState.CHANGE_REQUESTED,
        ],
    )
    def test_edit_after_approval_requests_change(self, from_state):
        to_state = TimesheetStateMachine.validate_action(TimesheetAction.EDIT, from_state)
        assert to_state == TimesheetState.CHANGE_REQUESTED

    def test_employee_approve_from_draft(self):
        to_state = TimesheetStateMachine.validate_action(
            TimesheetAction.EMPLOYEE_APPROVE, TimesheetState.DRAFT
        )
        assert to_state == TimesheetState.EMPLOYEE_APPROVED

    def test_employee_approve_twice_is_invalid(self):
        with pytest.raises(InvalidTransitionError):
            TimesheetStateMachine.validate_action(
                TimesheetAction.EMPLOYEE_APPROVE, TimesheetState.EMPLOYEE_APPROVED
            )

    @pytest.mark.parametrize("action", list(TimesheetAction))
    def test_nothing_happens_to_locked_timesheets(self, action):
        with pytest.raises(InvalidTransitionError) as exc_info:
            TimesheetStateMachine.validate_action(action, TimesheetState.LOCKED)

        assert "locked payroll run" in str(exc_info.value)

    def test_is_editable(self):
        assert TimesheetStateMachine.is_editable(TimesheetState.FULLY_APPROVED) is True
        assert TimesheetStateMachine.is_editable(TimesheetState.LOCKED) is False
