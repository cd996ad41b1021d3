"""Approval workflow engine driving requests through their chains."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_workflow.approvals.chain import ApprovalChain, ApprovalChainConfig, ChainLevel
from payroll_workflow.approvals.resolvers import ApproverResolver
from payroll_workflow.approvals.side_effects import SideEffectRegistry
from payroll_workflow.approvals.state_machine import RequestStateMachine
from payroll_workflow.errors import (
    ConcurrentModificationError,
    InvalidTransitionError,
    RequestValidationError,
    ResolutionError,
    UnauthorizedApproverError,
)
from payroll_workflow.events import NotificationEmitter, NotificationEvent, NotificationEventType
from payroll_workflow.models import APPROVABLE_MODELS, ApprovableMixin, RequestStatus, RequestType
from payroll_workflow.providers.base import EmployeeDirectory

logger = logging.getLogger(__name__)


class StepStatus(str, Enum):
    """Status of one chain level in a request timeline."""

    COMPLETED = "COMPLETED"
    PENDING = "PENDING"
    FUTURE = "FUTURE"
    REJECTED = "REJECTED"
    SKIPPED = "SKIPPED"


@dataclass(frozen=True)
class TimelineStep:
    """One level of a request's approval timeline."""

    level_no: int
    label: str
    function: str
    approver_no: int | None
    status: StepStatus
    close_level: bool


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApprovalWorkflowEngine:
    """Drives any approvable request through its configured chain.

    States: pending(level), approved, rejected, cancelled. Every transition
    is a conditional UPDATE guarded on the persisted status, approver and
    level, so two concurrent approvals of the same request cannot both win.

    Operations:
    - submit: resolve level 1 and park the request in pending(1)
    - approve: advance to the next level or finalize and apply side effects
    - reject: terminate with a reason
    - cancel: requester withdraws a pending request
    - timeline / pending_for: read-only views
    """

    def __init__(
        self,
        session: AsyncSession,
        directory: EmployeeDirectory,
        resolver: ApproverResolver,
        chains: ApprovalChainConfig,
        emitter: NotificationEmitter | None = None,
        side_effects: SideEffectRegistry | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.session = session
        self.directory = directory
        self.resolver = resolver
        self.chains = chains
        self.emitter = emitter
        self.side_effects = side_effects or SideEffectRegistry()
        self.clock = clock

    async def submit(self, request: ApprovableMixin) -> ApprovableMixin:
        """Place a new request at level 1 of its chain.

        Raises:
            InvalidTransitionError: the request was already submitted
            ApprovalChainNotConfiguredError: no chain for the type and scope
            ResolutionError: the level-1 approver cannot be resolved
        """
        if request.submitted_at is not None or (
            request.status is not None and request.status != RequestStatus.PENDING.value
        ):
            raise InvalidTransitionError(
                request.status, RequestStatus.PENDING.value, "request was already submitted"
            )

        chain, department_code, project_code = await self._chain_for(request)
        first = chain.first
        approver = await self._resolve(request, first, department_code, project_code)

        request.status = RequestStatus.PENDING.value
        request.next_approval = approver
        request.next_app_level = first.level_no
        request.submitted_at = self.clock()
        self.session.add(request)
        await self.session.flush()

        logger.info(
            "Submitted %s #%s for employee %s -> level %s approver %s",
            request.request_type.value,
            request.request_id,
            request.employee_no,
            first.level_no,
            approver,
        )
        self._notify(
            NotificationEventType.REQUEST_SUBMITTED,
            request,
            approver,
            level_no=first.level_no,
            level_label=first.label,
        )
        return request

    async def approve(self, request: ApprovableMixin, actor_no: int) -> ApprovableMixin:
        """Approve the current level as actor_no.

        Raises:
            InvalidTransitionError: the request is not pending
            UnauthorizedApproverError: actor_no is not the pending approver
            ConcurrentModificationError: the request changed underneath us
            ResolutionError: the next level's approver cannot be resolved
        """
        RequestStateMachine.require_actionable(request, RequestStatus.APPROVED.value)
        self._require_approver(request, actor_no)

        chain, department_code, project_code = await self._chain_for(request)
        level_no = request.next_app_level
        next_level = chain.next_after(level_no)

        if next_level is None:
            values: dict[str, Any] = {
                "status": RequestStatus.APPROVED.value,
                "approved_by": actor_no,
                "approved_date": self.clock(),
                "next_approval": None,
                "next_app_level": None,
                "final_app_level": level_no,
            }
        else:
            approver = await self._resolve(request, next_level, department_code, project_code)
            values = {
                "next_approval": approver,
                "next_app_level": next_level.level_no,
            }

        await self._guarded_update(
            request, values, next_approval=actor_no, next_app_level=level_no
        )

        if next_level is None:
            await self.side_effects.apply(request, actor_no)
            logger.info(
                "%s #%s approved at level %s by %s",
                request.request_type.value,
                request.request_id,
                level_no,
                actor_no,
            )
            self._notify(
                NotificationEventType.REQUEST_APPROVED,
                request,
                request.employee_no,
                level_no=level_no,
                approved_by=actor_no,
            )
        else:
            logger.info(
                "%s #%s advanced from level %s to %s (approver %s)",
                request.request_type.value,
                request.request_id,
                level_no,
                next_level.level_no,
                request.next_approval,
            )
            self._notify(
                NotificationEventType.REQUEST_ADVANCED,
                request,
                request.next_approval,
                level_no=next_level.level_no,
                level_label=next_level.label,
            )
        return request

    async def reject(
        self, request: ApprovableMixin, actor_no: int, reason: str
    ) -> ApprovableMixin:
        """Reject the request at its current level. No side effect is applied."""
        RequestStateMachine.require_actionable(request, RequestStatus.REJECTED.value)
        self._require_approver(request, actor_no)
        if not reason or not reason.strip():
            raise RequestValidationError("A rejection reason is required")

        level_no = request.next_app_level
        await self._guarded_update(
            request,
            {
                "status": RequestStatus.REJECTED.value,
                "rejected_by": actor_no,
                "rejected_date": self.clock(),
                "rejection_reason": reason.strip(),
                "next_approval": None,
                "next_app_level": None,
                "final_app_level": level_no,
            },
            next_approval=actor_no,
            next_app_level=level_no,
        )
        logger.info(
            "%s #%s rejected at level %s by %s",
            request.request_type.value,
            request.request_id,
            level_no,
            actor_no,
        )
        self._notify(
            NotificationEventType.REQUEST_REJECTED,
            request,
            request.employee_no,
            level_no=level_no,
            rejected_by=actor_no,
            reason=request.rejection_reason,
        )
        return request

    async def cancel(
        self, request: ApprovableMixin, requester_no: int | None = None
    ) -> ApprovableMixin:
        """Withdraw a pending request.

        With requester_no the caller must be the employee the request was
        raised for. Without it the cancellation is a system action, used
        when a newer payroll version supersedes a pending one.
        """
        RequestStateMachine.require_actionable(request, RequestStatus.CANCELLED.value)
        conditions: dict[str, Any] = {"next_app_level": request.next_app_level}
        if requester_no is not None:
            if request.request_type == RequestType.PAYROLL:
                raise InvalidTransitionError(
                    request.status,
                    RequestStatus.CANCELLED.value,
                    "payroll versions are superseded by recalculation, not withdrawn",
                )
            if requester_no != request.employee_no:
                raise UnauthorizedApproverError(
                    requester_no, request.employee_no, request.next_app_level
                )
            conditions["employee_no"] = requester_no

        waiting_on = request.next_approval
        level_no = request.next_app_level
        await self._guarded_update(
            request,
            {
                "status": RequestStatus.CANCELLED.value,
                "next_approval": None,
                "next_app_level": None,
                "final_app_level": level_no,
            },
            **conditions,
        )
        logger.info(
            "%s #%s cancelled at level %s%s",
            request.request_type.value,
            request.request_id,
            level_no,
            f" by requester {requester_no}" if requester_no is not None else "",
        )
        self._notify(
            NotificationEventType.REQUEST_CANCELLED,
            request,
            waiting_on,
            level_no=level_no,
        )
        return request

    async def timeline(self, request: ApprovableMixin) -> list[TimelineStep]:
        """Describe every chain level with its approver and step status."""
        chain, department_code, project_code = await self._chain_for(request)
        status = request.status
        if status == RequestStatus.PENDING.value:
            current = request.next_app_level
        else:
            current = request.final_app_level

        steps: list[TimelineStep] = []
        for level in chain.levels:
            step_status = self._step_status(status, level.level_no, current)
            approver = await self._step_approver(
                request, level, step_status, current, department_code, project_code
            )
            steps.append(
                TimelineStep(
                    level_no=level.level_no,
                    label=level.label,
                    function=level.function.value,
                    approver_no=approver,
                    status=step_status,
                    close_level=level.close_level,
                )
            )
        return steps

    async def pending_for(
        self,
        approver_no: int,
        request_type: RequestType | str | None = None,
    ) -> list[ApprovableMixin]:
        """List pending requests waiting on approver_no, oldest first per type."""
        if request_type is not None:
            models = [APPROVABLE_MODELS[RequestType(request_type)]]
        else:
            models = list(APPROVABLE_MODELS.values())

        pending: list[ApprovableMixin] = []
        for model in models:
            result = await self.session.execute(
                select(model)
                .where(
                    model.status == RequestStatus.PENDING.value,
                    model.next_approval == approver_no,
                )
                .order_by(model.submitted_at, model.primary_key_column())
            )
            pending.extend(result.scalars().all())
        return pending

    async def get_request(
        self, request_type: RequestType | str, request_id: int
    ) -> ApprovableMixin | None:
        model = APPROVABLE_MODELS[RequestType(request_type)]
        return await self.session.get(model, request_id)

    # ------------------------------------------------------------------

    async def _chain_for(
        self, request: ApprovableMixin
    ) -> tuple[ApprovalChain, str | None, str | None]:
        profile = await self.directory.get_employee(request.employee_no)
        department_code, project_code = request.approval_scope(profile)
        chain = await self.chains.get_chain(request.request_type, department_code, project_code)
        return chain, department_code, project_code

    async def _resolve(
        self,
        request: ApprovableMixin,
        level: ChainLevel,
        department_code: str | None,
        project_code: str | None,
    ) -> int:
        return await self.resolver.resolve(
            level.function,
            request.employee_no,
            department_code,
            project_code,
            level.specific_employee_no,
        )

    def _require_approver(self, request: ApprovableMixin, actor_no: int) -> None:
        if request.next_approval is None or request.next_approval != actor_no:
            raise UnauthorizedApproverError(actor_no, request.next_approval, request.next_app_level)

    async def _guarded_update(
        self,
        request: ApprovableMixin,
        values: dict[str, Any],
        **expected: Any,
    ) -> None:
        """Apply values only if the persisted row is still pending as expected."""
        await self.session.flush()
        model = type(request)
        criteria = [
            model.primary_key_column() == request.request_id,
            model.status == RequestStatus.PENDING.value,
        ]
        for column, value in expected.items():
            criteria.append(getattr(model, column) == value)

        result = await self.session.execute(
            update(model)
            .where(*criteria)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrentModificationError(
                f"{request.request_type.value} #{request.request_id} changed concurrently; "
                "reload and retry"
            )
        await self.session.refresh(request)

    @staticmethod
    def _step_status(status: str, level_no: int, current: int | None) -> StepStatus:
        if status in (RequestStatus.APPROVED.value, RequestStatus.DELETED.value):
            if current is None or level_no <= current:
                return StepStatus.COMPLETED
            return StepStatus.SKIPPED
        if current is None:
            return StepStatus.SKIPPED
        if level_no < current:
            return StepStatus.COMPLETED
        if status == RequestStatus.PENDING.value:
            return StepStatus.PENDING if level_no == current else StepStatus.FUTURE
        if status == RequestStatus.REJECTED.value and level_no == current:
            return StepStatus.REJECTED
        return StepStatus.SKIPPED

    async def _step_approver(
        self,
        request: ApprovableMixin,
        level: ChainLevel,
        step_status: StepStatus,
        current: int | None,
        department_code: str | None,
        project_code: str | None,
    ) -> int | None:
        if step_status == StepStatus.PENDING:
            return request.next_approval
        if step_status == StepStatus.REJECTED:
            return request.rejected_by
        if step_status == StepStatus.COMPLETED and level.level_no == current:
            return request.approved_by
        try:
            return await self._resolve(request, level, department_code, project_code)
        except ResolutionError as e:
            logger.debug("Timeline level %s unresolved: %s", level.level_no, e)
            return None

    def _notify(
        self,
        event_type: NotificationEventType,
        request: ApprovableMixin,
        recipient_no: int | None,
        **payload: Any,
    ) -> None:
        if self.emitter is None:
            return
        self.emitter.emit(
            NotificationEvent(
                event_type=event_type,
                request_type=request.request_type.value,
                request_id=request.request_id,
                recipient_no=recipient_no,
                payload=payload,
            )
        )
