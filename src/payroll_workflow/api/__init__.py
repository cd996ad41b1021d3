"""HTTP API for the approval and payroll workflow."""

from payroll_workflow.api.app import create_app

__all__ = ["create_app"]
