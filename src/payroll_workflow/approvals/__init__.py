"""Configurable multi-level approval workflow."""

from payroll_workflow.approvals.chain import (
    ApprovalChain,
    ApprovalChainConfig,
    ChainLevel,
    select_chain,
)
from payroll_workflow.approvals.engine import ApprovalWorkflowEngine, StepStatus, TimelineStep
from payroll_workflow.approvals.resolvers import ApproverFunction, ApproverResolver
from payroll_workflow.approvals.side_effects import RequestSideEffects, SideEffectRegistry
from payroll_workflow.approvals.state_machine import RequestStateMachine

__all__ = [
    "ApprovalChain",
    "ApprovalChainConfig",
    "ApprovalWorkflowEngine",
    "ApproverFunction",
    "ApproverResolver",
    "ChainLevel",
    "RequestSideEffects",
    "RequestStateMachine",
    "SideEffectRegistry",
    "StepStatus",
    "TimelineStep",
    "select_chain",
]
