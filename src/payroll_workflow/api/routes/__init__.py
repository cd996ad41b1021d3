"""API routes."""

from payroll_workflow.api.routes.approvals import router as approvals_router
from payroll_workflow.api.routes.health import router as health_router
from payroll_workflow.api.routes.loans import router as loans_router
from payroll_workflow.api.routes.payroll import router as payroll_router

__all__ = ["approvals_router", "health_router", "loans_router", "payroll_router"]
