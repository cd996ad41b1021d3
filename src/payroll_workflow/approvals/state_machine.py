"""Approvable request state machine with transition validation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from payroll_workflow.errors import InvalidTransitionError
from payroll_workflow.models.approval import RequestStatus

if TYPE_CHECKING:
    from payroll_workflow.models.approval import ApprovableMixin


class RequestStateMachine:
    """State machine for approvable request status transitions.

    Allowed transitions:
    - pending → pending (advance to the next level)
    - pending → approved
    - pending → rejected
    - pending → cancelled (requester withdraw or superseded payroll)
    - approved → deleted (downstream soft-delete)
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        RequestStatus.PENDING: [
            RequestStatus.PENDING,
            RequestStatus.APPROVED,
            RequestStatus.REJECTED,
            RequestStatus.CANCELLED,
        ],
        RequestStatus.APPROVED: [RequestStatus.DELETED],
        RequestStatus.REJECTED: [],  # Terminal state
        RequestStatus.CANCELLED: [],  # Terminal state
        RequestStatus.DELETED: [],  # Terminal state
    }

    # Statuses in which approvers can still act
    ACTIONABLE = {RequestStatus.PENDING}

    # Statuses counted by downstream consumers (payroll, balances)
    EFFECTIVE = {RequestStatus.APPROVED}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def is_actionable(cls, status: str) -> bool:
        return status in cls.ACTIONABLE

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return not cls.VALID_TRANSITIONS.get(status)

    @classmethod
    def is_effective(cls, status: str) -> bool:
        return status in cls.EFFECTIVE

    @classmethod
    def require_actionable(cls, request: ApprovableMixin, to_status: str) -> None:
        """Raise unless the request is still waiting on an approver."""
        if not cls.is_actionable(request.status):
            raise InvalidTransitionError(
                request.status,
                to_status,
                f"{request.request_type.value} #{request.request_id} is no longer pending",
            )
