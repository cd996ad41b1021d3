"""Approval and payroll services."""

from payroll_workflow.services.loan_service import (
    LoanInstallmentScheduler,
    LoanService,
    ScheduledInstallment,
)
from payroll_workflow.services.locking_service import LockRegistry, default_locks
from payroll_workflow.services.payroll_service import BatchCalculationResult, PayrollService
from payroll_workflow.services.request_service import LaborLine, RequestService
from payroll_workflow.services.workflow import WorkflowServices, build_services

__all__ = [
    "BatchCalculationResult",
    "LaborLine",
    "LoanInstallmentScheduler",
    "LoanService",
    "LockRegistry",
    "PayrollService",
    "RequestService",
    "ScheduledInstallment",
    "WorkflowServices",
    "build_services",
    "default_locks",
]
