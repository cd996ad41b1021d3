"""SQLAlchemy-backed collaborator implementations."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_workflow.calculators.types import BreakdownShare
from payroll_workflow.errors import RecordNotFoundError
from payroll_workflow.models import (
    AttendanceDay,
    Department,
    Employee,
    EmployeeContractAllowance,
    Project,
    SalaryBreakdownPercentage,
    SystemConfig,
)
from payroll_workflow.providers.base import (
    AttendanceMetric,
    EmployeeProfile,
    ProjectManagers,
    SystemRole,
)

logger = logging.getLogger(__name__)


def _profile(employee: Employee) -> EmployeeProfile:
    return EmployeeProfile(
        employee_no=employee.employee_no,
        name=employee.name,
        department_code=employee.department_code,
        project_code=employee.project_code,
        direct_manager_no=employee.direct_manager_no,
        category=employee.category,
        monthly_salary=employee.monthly_salary,
        hire_date=employee.hire_date,
        termination_date=employee.termination_date,
        employment_status=employee.employment_status,
    )


class SqlEmployeeDirectory:
    """Employee directory reading the employee, department and project tables."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_employee(self, employee_no: int) -> EmployeeProfile:
        employee = await self.session.get(Employee, employee_no)
        if employee is None:
            raise RecordNotFoundError("Employee", employee_no)
        return _profile(employee)

    async def get_department_manager(self, department_code: str) -> int | None:
        department = await self.session.get(Department, department_code)
        return department.manager_no if department else None

    async def get_project_managers(self, project_code: str) -> ProjectManagers | None:
        project = await self.session.get(Project, project_code)
        if project is None:
            return None
        return ProjectManagers(
            project_code=project.project_code,
            project_manager_no=project.project_manager_no,
            regional_manager_no=project.regional_manager_no,
        )

    async def list_payroll_employees(self, start: date, end: date) -> list[EmployeeProfile]:
        result = await self.session.execute(
            select(Employee)
            .where(
                or_(Employee.hire_date.is_(None), Employee.hire_date <= end),
                or_(Employee.termination_date.is_(None), Employee.termination_date >= start),
            )
            .order_by(Employee.employee_no)
        )
        return [_profile(e) for e in result.scalars().all()]


class SqlAttendanceAggregator:
    """Aggregates closed attendance days."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _expression(self, metric: AttendanceMetric):
        if metric == AttendanceMetric.ABSENCE_DAYS:
            return case((AttendanceDay.is_absent.is_(True), 1), else_=0)
        if metric == AttendanceMetric.UNPAID_LEAVE_DAYS:
            return case((AttendanceDay.is_unpaid_leave.is_(True), 1), else_=0)
        return getattr(AttendanceDay, metric.value)

    async def sum(
        self,
        metric: AttendanceMetric,
        employee_no: int,
        start: date,
        end: date,
    ) -> Decimal:
        total = await self.session.scalar(
            select(func.coalesce(func.sum(self._expression(metric)), 0)).where(
                AttendanceDay.employee_no == employee_no,
                AttendanceDay.attendance_date >= start,
                AttendanceDay.attendance_date <= end,
            )
        )
        return Decimal(str(total or 0))


class SqlSalaryBreakdownTable:
    """Category breakdown percentages and per-employee contract overrides."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def lookup(self, employee_category: str) -> list[BreakdownShare]:
        result = await self.session.execute(
            select(SalaryBreakdownPercentage)
            .where(SalaryBreakdownPercentage.employee_category == employee_category)
            .order_by(SalaryBreakdownPercentage.trans_type_code)
        )
        return [
            BreakdownShare(row.trans_type_code, row.salary_percentage)
            for row in result.scalars().all()
        ]

    async def contract_overrides(self, employee_no: int) -> list[BreakdownShare]:
        result = await self.session.execute(
            select(EmployeeContractAllowance)
            .where(
                EmployeeContractAllowance.employee_no == employee_no,
                EmployeeContractAllowance.is_active.is_(True),
            )
            .order_by(EmployeeContractAllowance.trans_type_code)
        )
        return [
            BreakdownShare(row.trans_type_code, row.salary_percentage)
            for row in result.scalars().all()
        ]


class SqlSystemConfigStore:
    """Reads singleton role holders from the system_config table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_role_employee_no(self, role: SystemRole) -> int | None:
        row = await self.session.get(SystemConfig, role.value)
        if row is None or not row.config_value:
            return None
        try:
            return int(row.config_value)
        except ValueError:
            logger.warning("System config %s holds non-numeric value %r", role.value, row.config_value)
            return None
