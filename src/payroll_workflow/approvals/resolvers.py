"""Approver resolution by symbolic function."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Awaitable, Callable

from payroll_workflow.config import RoleAssignments
from payroll_workflow.errors import ResolutionError
from payroll_workflow.providers.base import EmployeeDirectory

logger = logging.getLogger(__name__)


class ApproverFunction(str, Enum):
    """Closed set of approver functions a chain level may name."""

    DIRECT_MANAGER = "GetDirectManager"
    PROJECT_MANAGER = "GetProjectManager"
    REGIONAL_MANAGER = "GetRegionalManager"
    HR_MANAGER = "GetHRManager"
    FINANCE_MANAGER = "GetFinManager"
    GENERAL_MANAGER = "GetGeneralManager"
    SPECIFIC_EMPLOYEE = "SpecificEmployee"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def parse(cls, value: str | ApproverFunction) -> ApproverFunction:
        try:
            return cls(value)
        except ValueError:
            raise ResolutionError(str(value), None, "unknown approver function") from None


_LABELS = {
    ApproverFunction.DIRECT_MANAGER: "Direct Manager",
    ApproverFunction.PROJECT_MANAGER: "Project Manager",
    ApproverFunction.REGIONAL_MANAGER: "Regional Manager",
    ApproverFunction.HR_MANAGER: "HR Manager",
    ApproverFunction.FINANCE_MANAGER: "Finance Manager",
    ApproverFunction.GENERAL_MANAGER: "General Manager",
    ApproverFunction.SPECIFIC_EMPLOYEE: "Designated Approver",
}

_Handler = Callable[..., Awaitable[int | None]]


class ApproverResolver:
    """Maps an approver function to a concrete employee number.

    Role holders come from an explicit RoleAssignments snapshot. A function
    that yields nobody raises ResolutionError; the workflow never skips a
    level or falls back to another approver.
    """

    def __init__(self, directory: EmployeeDirectory, roles: RoleAssignments):
        self.directory = directory
        self.roles = roles
        self._handlers: dict[ApproverFunction, _Handler] = {
            ApproverFunction.DIRECT_MANAGER: self._direct_manager,
            ApproverFunction.PROJECT_MANAGER: self._project_manager,
            ApproverFunction.REGIONAL_MANAGER: self._regional_manager,
            ApproverFunction.HR_MANAGER: self._hr_manager,
            ApproverFunction.FINANCE_MANAGER: self._finance_manager,
            ApproverFunction.GENERAL_MANAGER: self._general_manager,
            ApproverFunction.SPECIFIC_EMPLOYEE: self._specific_employee,
        }

    async def resolve(
        self,
        function: ApproverFunction | str,
        employee_no: int,
        department_code: str | None = None,
        project_code: str | None = None,
        specific_employee_no: int | None = None,
    ) -> int:
        """Resolve the approver for an employee's request.

        Raises:
            ResolutionError: the function yields no employee
            RecordNotFoundError: the employee does not exist
        """
        function = ApproverFunction.parse(function)
        profile = await self.directory.get_employee(employee_no)
        approver = await self._handlers[function](
            profile, department_code, project_code, specific_employee_no
        )
        if approver is None:
            raise ResolutionError(function.value, employee_no, "no employee holds this role")
        logger.debug("Resolved %s for employee %s -> %s", function.value, employee_no, approver)
        return approver

    async def _direct_manager(self, profile, department_code, project_code, specific_no):
        if profile.direct_manager_no is not None:
            return profile.direct_manager_no
        department = department_code or profile.department_code
        if department is None:
            raise ResolutionError(
                ApproverFunction.DIRECT_MANAGER.value, profile.employee_no, "employee has no department"
            )
        return await self.directory.get_department_manager(department)

    async def _project_managers(self, function, profile, project_code):
        project = project_code or profile.project_code
        if project is None:
            raise ResolutionError(function.value, profile.employee_no, "no project in scope")
        managers = await self.directory.get_project_managers(project)
        if managers is None:
            raise ResolutionError(function.value, profile.employee_no, f"project {project} not found")
        return managers

    async def _project_manager(self, profile, department_code, project_code, specific_no):
        managers = await self._project_managers(
            ApproverFunction.PROJECT_MANAGER, profile, project_code
        )
        return managers.project_manager_no

    async def _regional_manager(self, profile, department_code, project_code, specific_no):
        managers = await self._project_managers(
            ApproverFunction.REGIONAL_MANAGER, profile, project_code
        )
        return managers.regional_manager_no

    async def _hr_manager(self, profile, department_code, project_code, specific_no):
        return self.roles.hr_manager_no

    async def _finance_manager(self, profile, department_code, project_code, specific_no):
        return self.roles.finance_manager_no

    async def _general_manager(self, profile, department_code, project_code, specific_no):
        return self.roles.general_manager_no

    async def _specific_employee(self, profile, department_code, project_code, specific_no):
        return specific_no
