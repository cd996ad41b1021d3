"""Submission of HR and project requests into their approval chains."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal
from typing import Callable, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_workflow.approvals.engine import ApprovalWorkflowEngine
from payroll_workflow.errors import RecordNotFoundError, RequestValidationError
from payroll_workflow.models import (
    Employee,
    EmployeeLeave,
    EmpMonthlyAllowance,
    EmpMonthlyDeduction,
    ManualAttendanceRequest,
    Project,
    ProjectLaborRequestDetail,
    ProjectLaborRequestHeader,
    ProjectPaymentRequest,
    ProjectTransferRequest,
    RequestStatus,
)

logger = logging.getLogger(__name__)

OPEN_STATUSES = (RequestStatus.PENDING.value, RequestStatus.APPROVED.value)


@dataclass(frozen=True)
class LaborLine:
    """One requested trade for a labor request."""

    job_title: str
    quantity: int
    daily_rate: Decimal | None = None


class RequestService:
    """Validates request payloads and hands them to the workflow engine.

    Loans and loan postponements are submitted through LoanService, which
    owns their balance rules.
    """

    def __init__(
        self,
        session: AsyncSession,
        workflow: ApprovalWorkflowEngine,
        today: Callable[[], date] = date.today,
    ):
        self.session = session
        self.workflow = workflow
        self.today = today

    async def _employee(self, employee_no: int) -> Employee:
        employee = await self.session.get(Employee, employee_no)
        if employee is None:
            raise RecordNotFoundError("Employee", employee_no)
        return employee

    async def _project(self, project_code: str) -> Project:
        project = await self.session.get(Project, project_code)
        if project is None:
            raise RecordNotFoundError("Project", project_code)
        return project

    async def submit_leave(
        self,
        employee_no: int,
        from_date: date,
        to_date: date,
        leave_type: str = "annual",
        notes: str | None = None,
    ) -> EmployeeLeave:
        if to_date < from_date:
            raise RequestValidationError("Leave end date is before its start date")
        employee = await self._employee(employee_no)
        leave_days = Decimal((to_date - from_date).days + 1)

        if leave_type == "annual" and employee.leave_balance_days < leave_days:
            raise RequestValidationError(
                f"Leave balance {employee.leave_balance_days} is below the {leave_days} days requested"
            )

        overlap = await self.session.scalar(
            select(EmployeeLeave.leave_id).where(
                EmployeeLeave.employee_no == employee_no,
                EmployeeLeave.status.in_(OPEN_STATUSES),
                EmployeeLeave.from_date <= to_date,
                EmployeeLeave.to_date >= from_date,
            ).limit(1)
        )
        if overlap is not None:
            raise RequestValidationError(f"Leave overlaps existing request {overlap}")

        leave = EmployeeLeave(
            employee_no=employee_no,
            leave_type=leave_type,
            from_date=from_date,
            to_date=to_date,
            leave_days=leave_days,
            notes=notes,
        )
        return await self.workflow.submit(leave)

    async def submit_manual_attendance(
        self,
        employee_no: int,
        attendance_date: date,
        entry_time: time,
        exit_time: time,
        reason: str | None = None,
    ) -> ManualAttendanceRequest:
        if exit_time <= entry_time:
            raise RequestValidationError("Exit time must be after entry time")
        if attendance_date > self.today():
            raise RequestValidationError("Manual attendance cannot be requested for a future date")
        await self._employee(employee_no)

        # A rejected request may be raised again as a new one
        existing = await self.session.scalar(
            select(ManualAttendanceRequest.manual_request_id).where(
                ManualAttendanceRequest.employee_no == employee_no,
                ManualAttendanceRequest.attendance_date == attendance_date,
                ManualAttendanceRequest.status.in_(OPEN_STATUSES),
            ).limit(1)
        )
        if existing is not None:
            raise RequestValidationError(
                f"Manual attendance for {attendance_date} already requested ({existing})"
            )

        request = ManualAttendanceRequest(
            employee_no=employee_no,
            attendance_date=attendance_date,
            entry_time=entry_time,
            exit_time=exit_time,
            reason=reason,
        )
        return await self.workflow.submit(request)

    async def submit_allowance(
        self,
        employee_no: int,
        type_code: int,
        amount: Decimal,
        start_date: date,
        end_date: date | None = None,
        is_periodical: bool = False,
        notes: str | None = None,
    ) -> EmpMonthlyAllowance:
        self._check_item(amount, start_date, end_date)
        await self._employee(employee_no)
        allowance = EmpMonthlyAllowance(
            employee_no=employee_no,
            type_code=type_code,
            allowance_amount=Decimal(amount),
            start_date=start_date,
            end_date=end_date,
            is_periodical=is_periodical,
            notes=notes,
        )
        return await self.workflow.submit(allowance)

    async def submit_deduction(
        self,
        employee_no: int,
        type_code: int,
        amount: Decimal,
        start_date: date,
        end_date: date | None = None,
        is_periodical: bool = False,
        notes: str | None = None,
    ) -> EmpMonthlyDeduction:
        self._check_item(amount, start_date, end_date)
        await self._employee(employee_no)
        deduction = EmpMonthlyDeduction(
            employee_no=employee_no,
            type_code=type_code,
            deduction_amount=Decimal(amount),
            start_date=start_date,
            end_date=end_date,
            is_periodical=is_periodical,
            notes=notes,
        )
        return await self.workflow.submit(deduction)

    @staticmethod
    def _check_item(amount: Decimal, start_date: date, end_date: date | None) -> None:
        if Decimal(amount) <= 0:
            raise RequestValidationError("Amount must be positive")
        if end_date is not None and end_date < start_date:
            raise RequestValidationError("End date is before start date")

    async def submit_project_payment(
        self,
        employee_no: int,
        project_code: str,
        supplier_name: str,
        amount: Decimal,
        due_date: date | None = None,
        purpose: str | None = None,
    ) -> ProjectPaymentRequest:
        if Decimal(amount) <= 0:
            raise RequestValidationError("Payment amount must be positive")
        await self._employee(employee_no)
        await self._project(project_code)
        request = ProjectPaymentRequest(
            employee_no=employee_no,
            project_code=project_code,
            supplier_name=supplier_name,
            payment_amount=Decimal(amount),
            due_date=due_date,
            purpose=purpose,
        )
        return await self.workflow.submit(request)

    async def submit_project_transfer(
        self,
        employee_no: int,
        to_project_code: str,
        transfer_date: date,
        reason: str | None = None,
    ) -> ProjectTransferRequest:
        employee = await self._employee(employee_no)
        await self._project(to_project_code)
        if employee.project_code == to_project_code:
            raise RequestValidationError(
                f"Employee {employee_no} is already assigned to project {to_project_code}"
            )
        request = ProjectTransferRequest(
            employee_no=employee_no,
            from_project_code=employee.project_code,
            to_project_code=to_project_code,
            transfer_date=transfer_date,
            reason=reason,
        )
        return await self.workflow.submit(request)

    async def submit_labor_request(
        self,
        employee_no: int,
        project_code: str,
        start_date: date,
        end_date: date,
        lines: Sequence[LaborLine],
        notes: str | None = None,
    ) -> ProjectLaborRequestHeader:
        if not lines:
            raise RequestValidationError("A labor request needs at least one line")
        if end_date < start_date:
            raise RequestValidationError("End date is before start date")
        if any(line.quantity <= 0 for line in lines):
            raise RequestValidationError("Requested quantity must be positive")
        await self._employee(employee_no)
        await self._project(project_code)

        request = ProjectLaborRequestHeader(
            employee_no=employee_no,
            project_code=project_code,
            start_date=start_date,
            end_date=end_date,
            notes=notes,
            lines=[
                ProjectLaborRequestDetail(
                    line_no=n,
                    job_title=line.job_title,
                    quantity=line.quantity,
                    daily_rate=line.daily_rate,
                )
                for n, line in enumerate(lines, start=1)
            ],
        )
        return await self.workflow.submit(request)
