"""Tests for the approvable request state machine."""

from types import SimpleNamespace

import pytest

from payroll_workflow.approvals.state_machine import RequestStateMachine
from payroll_workflow.errors import InvalidTransitionError
from payroll_workflow.models import RequestStatus, RequestType


class TestRequestStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        # pending → pending (advance a level)
        assert RequestStateMachine.can_transition("pending", "pending") is True

        assert RequestStateMachine.can_transition("pending", "approved") is True
        assert RequestStateMachine.can_transition("pending", "rejected") is True
        assert RequestStateMachine.can_transition("pending", "cancelled") is True

        # approved → deleted (downstream soft delete)
        assert RequestStateMachine.can_transition("approved", "deleted") is True

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        assert RequestStateMachine.can_transition("approved", "pending") is False
        assert RequestStateMachine.can_transition("approved", "rejected") is False
        assert RequestStateMachine.can_transition("rejected", "pending") is False
        assert RequestStateMachine.can_transition("cancelled", "approved") is False
        assert RequestStateMachine.can_transition("deleted", "approved") is False
        assert RequestStateMachine.can_transition("unknown", "approved") is False

    def test_validate_transition_raises(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            RequestStateMachine.validate_transition("rejected", "approved")

        assert exc_info.value.from_status == "rejected"
        assert exc_info.value.to_status == "approved"

    def test_terminal_states(self):
        assert RequestStateMachine.is_terminal("rejected") is True
        assert RequestStateMachine.is_terminal("cancelled") is True
        assert RequestStateMachine.is_terminal("deleted") is True
        assert RequestStateMachine.is_terminal("pending") is False
        assert RequestStateMachine.is_terminal("approved") is False

    def test_only_approved_is_effective(self):
        for status in RequestStatus:
            expected = status == RequestStatus.APPROVED
            assert RequestStateMachine.is_effective(status.value) is expected

    def test_require_actionable(self):
        pending = SimpleNamespace(
            status="pending", request_type=RequestType.LEAVE, request_id=7
        )
        RequestStateMachine.require_actionable(pending, "approved")

        approved = SimpleNamespace(
            status="approved", request_type=RequestType.LEAVE, request_id=7
        )
        with pytest.raises(InvalidTransitionError, match="VAC #7 is no longer pending"):
            RequestStateMachine.require_actionable(approved, "rejected")
