"""Collaborator protocols consumed by the approval and payroll core.

The core never reaches into HR master data directly. It asks these
narrow interfaces, which makes each one replaceable in tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Protocol

from payroll_workflow.calculators.types import BreakdownShare
from payroll_workflow.config import RoleAssignments


@dataclass(frozen=True)
class EmployeeProfile:
    """Read-only view of an employee."""

    employee_no: int
    name: str
    department_code: str | None
    project_code: str | None
    direct_manager_no: int | None
    category: str
    monthly_salary: Decimal
    hire_date: date | None
    termination_date: date | None
    employment_status: str = "active"

    def is_employed_during(self, start: date, end: date) -> bool:
        if self.hire_date is not None and self.hire_date > end:
            return False
        if self.termination_date is not None and self.termination_date < start:
            return False
        return True


@dataclass(frozen=True)
class ProjectManagers:
    """Managers attached to a project."""

    project_code: str
    project_manager_no: int | None
    regional_manager_no: int | None


class AttendanceMetric(str, Enum):
    """Aggregatable attendance figures."""

    OVERTIME_HOURS = "overtime_hours"
    DELAYED_HOURS = "delayed_hours"
    EARLY_OUT_HOURS = "early_out_hours"
    SHORTAGE_HOURS = "shortage_hours"
    ABSENCE_DAYS = "absence_days"
    UNPAID_LEAVE_DAYS = "unpaid_leave_days"


class SystemRole(str, Enum):
    """Singleton roles stored in system configuration."""

    HR_MANAGER = "HR_MANAGER_EMPLOYEE_NO"
    FINANCE_MANAGER = "FINANCE_MANAGER_EMPLOYEE_NO"
    GENERAL_MANAGER = "GENERAL_MANAGER_EMPLOYEE_NO"


class EmployeeDirectory(Protocol):
    """Employee and organization lookups."""

    async def get_employee(self, employee_no: int) -> EmployeeProfile:
        """Return the employee or raise RecordNotFoundError."""
        ...

    async def get_department_manager(self, department_code: str) -> int | None:
        ...

    async def get_project_managers(self, project_code: str) -> ProjectManagers | None:
        ...

    async def list_payroll_employees(self, start: date, end: date) -> list[EmployeeProfile]:
        """Employees on the payroll at any point between start and end."""
        ...


class AttendanceAggregator(Protocol):
    """Sums closed attendance figures over a date range."""

    async def sum(
        self,
        metric: AttendanceMetric,
        employee_no: int,
        start: date,
        end: date,
    ) -> Decimal:
        ...


class SalaryBreakdownTable(Protocol):
    """Salary component shares by employee category."""

    async def lookup(self, employee_category: str) -> list[BreakdownShare]:
        ...

    async def contract_overrides(self, employee_no: int) -> list[BreakdownShare]:
        ...


class SystemConfigStore(Protocol):
    """Named singleton configuration values."""

    async def get_role_employee_no(self, role: SystemRole) -> int | None:
        ...


async def load_role_assignments(store: SystemConfigStore) -> RoleAssignments:
    """Read the role holders once into an immutable snapshot."""
    return RoleAssignments(
        hr_manager_no=await store.get_role_employee_no(SystemRole.HR_MANAGER),
        finance_manager_no=await store.get_role_employee_no(SystemRole.FINANCE_MANAGER),
        general_manager_no=await store.get_role_employee_no(SystemRole.GENERAL_MANAGER),
    )
