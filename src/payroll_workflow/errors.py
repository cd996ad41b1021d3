"""Error taxonomy for approval workflow and payroll operations.

All errors are local validation failures surfaced synchronously to the
caller. None of them is retried internally.
"""

from __future__ import annotations


class WorkflowError(Exception):
    """Base class for approval and payroll errors."""


class ResolutionError(WorkflowError):
    """Raised when an approver function yields no employee."""

    def __init__(self, function: str, employee_no: int | None, reason: str):
        self.function = function
        self.employee_no = employee_no
        self.reason = reason
        super().__init__(
            f"Could not resolve approver via {function} for employee {employee_no}: {reason}"
        )


class ApprovalChainNotConfiguredError(WorkflowError):
    """Raised when no active chain level matches a request type and scope."""

    def __init__(self, request_type: str, level_no: int | None = None):
        self.request_type = request_type
        self.level_no = level_no
        msg = f"No approval chain configured for request type '{request_type}'"
        if level_no is not None:
            msg += f" at level {level_no}"
        super().__init__(msg)


class UnauthorizedApproverError(WorkflowError):
    """Raised when the actor is not the current pending approver."""

    def __init__(self, actor_no: int, expected_no: int | None, level_no: int | None):
        self.actor_no = actor_no
        self.expected_no = expected_no
        self.level_no = level_no
        super().__init__(
            f"Employee {actor_no} is not the pending approver at level {level_no} "
            f"(expected {expected_no})"
        )


class InvalidTransitionError(WorkflowError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PriorPayrollUnapprovedError(WorkflowError):
    """Raised when an earlier month still has a non-approved latest payroll."""

    def __init__(self, employee_no: int, salary_month: str, blocking_month: str):
        self.employee_no = employee_no
        self.salary_month = salary_month
        self.blocking_month = blocking_month
        super().__init__(
            f"Cannot calculate {salary_month} for employee {employee_no}: "
            f"payroll for {blocking_month} is not approved"
        )


class ConcurrentModificationError(WorkflowError):
    """Raised when an optimistic check fails; retry the whole operation."""


class RequestValidationError(WorkflowError, ValueError):
    """Raised when a submitted request fails business validation."""


class RecordNotFoundError(WorkflowError, LookupError):
    """Raised when a referenced record does not exist."""

    def __init__(self, entity: str, key: object):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key} not found")
