"""Collaborator interfaces and their SQL implementations."""

from payroll_workflow.providers.base import (
    AttendanceAggregator,
    AttendanceMetric,
    EmployeeDirectory,
    EmployeeProfile,
    ProjectManagers,
    SalaryBreakdownTable,
    SystemConfigStore,
    SystemRole,
    load_role_assignments,
)
from payroll_workflow.providers.sql import (
    SqlAttendanceAggregator,
    SqlEmployeeDirectory,
    SqlSalaryBreakdownTable,
    SqlSystemConfigStore,
)

__all__ = [
    "AttendanceAggregator",
    "AttendanceMetric",
    "EmployeeDirectory",
    "EmployeeProfile",
    "ProjectManagers",
    "SalaryBreakdownTable",
    "SqlAttendanceAggregator",
    "SqlEmployeeDirectory",
    "SqlSalaryBreakdownTable",
    "SqlSystemConfigStore",
    "SystemConfigStore",
    "SystemRole",
    "load_role_assignments",
]
