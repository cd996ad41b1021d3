"""Wiring of the approval engine, its side effects and the domain services."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from payroll_workflow.approvals.chain import ApprovalChainConfig
from payroll_workflow.approvals.engine import ApprovalWorkflowEngine
from payroll_workflow.approvals.resolvers import ApproverResolver
from payroll_workflow.approvals.side_effects import RequestSideEffects, SideEffectRegistry
from payroll_workflow.config import PayrollPolicy, RoleAssignments
from payroll_workflow.events import NotificationEmitter
from payroll_workflow.providers import (
    SqlAttendanceAggregator,
    SqlEmployeeDirectory,
    SqlSalaryBreakdownTable,
    SqlSystemConfigStore,
    load_role_assignments,
)
from payroll_workflow.services.loan_service import LoanInstallmentScheduler, LoanService
from payroll_workflow.services.locking_service import LockRegistry
from payroll_workflow.services.payroll_service import PayrollService
from payroll_workflow.services.request_service import RequestService


@dataclass
class WorkflowServices:
    """Everything bound to one unit of work."""

    session: AsyncSession
    roles: RoleAssignments
    emitter: NotificationEmitter
    engine: ApprovalWorkflowEngine
    requests: RequestService
    loans: LoanService
    payroll: PayrollService

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[WorkflowServices]:
        """Commit on success, roll back on error.

        Notifications raised inside the block are released only after the
        commit went through.
        """
        with self.emitter.batch():
            try:
                yield self
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise


async def build_services(
    session: AsyncSession,
    *,
    policy: PayrollPolicy | None = None,
    emitter: NotificationEmitter | None = None,
    locks: LockRegistry | None = None,
    roles: RoleAssignments | None = None,
) -> WorkflowServices:
    """Build the services for a session.

    Role holders are read once from system configuration unless an
    explicit snapshot is given.
    """
    policy = policy or PayrollPolicy()
    emitter = emitter or NotificationEmitter()
    directory = SqlEmployeeDirectory(session)
    if roles is None:
        roles = await load_role_assignments(SqlSystemConfigStore(session))

    registry = SideEffectRegistry()
    engine = ApprovalWorkflowEngine(
        session,
        directory,
        ApproverResolver(directory, roles),
        ApprovalChainConfig(session),
        emitter=emitter,
        side_effects=registry,
    )
    loans = LoanService(
        session,
        engine,
        scheduler=LoanInstallmentScheduler(policy),
        locks=locks,
        emitter=emitter,
        policy=policy,
    )
    payroll = PayrollService(
        session,
        engine,
        directory,
        SqlAttendanceAggregator(session),
        SqlSalaryBreakdownTable(session),
        loans,
        policy=policy,
        locks=locks,
        emitter=emitter,
    )

    RequestSideEffects(session).register_all(registry)
    loans.register_side_effects(registry)
    payroll.register_side_effects(registry)

    return WorkflowServices(
        session=session,
        roles=roles,
        emitter=emitter,
        engine=engine,
        requests=RequestService(session, engine),
        loans=loans,
        payroll=payroll,
    )
