"""Domain effects applied when a request reaches final approval."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_workflow.errors import RecordNotFoundError, RequestValidationError
from payroll_workflow.models import (
    ApprovableMixin,
    AttendanceDay,
    Employee,
    EmployeeLeave,
    ManualAttendanceRequest,
    ProjectTransferRequest,
    RequestType,
)

logger = logging.getLogger(__name__)

SideEffect = Callable[[ApprovableMixin, int], Awaitable[None]]


class SideEffectRegistry:
    """Maps a request type to the effect run on its final approval.

    Request types without an entry (allowances, deductions, project
    payments, labor requests) take effect through their Approved status
    alone.
    """

    def __init__(self) -> None:
        self._effects: dict[RequestType, SideEffect] = {}

    def register(self, request_type: RequestType | str, effect: SideEffect) -> None:
        self._effects[RequestType(request_type)] = effect

    def handles(self, request_type: RequestType | str) -> bool:
        return RequestType(request_type) in self._effects

    async def apply(self, request: ApprovableMixin, actor_no: int) -> None:
        effect = self._effects.get(request.request_type)
        if effect is None:
            return
        await effect(request, actor_no)
        logger.info(
            "Applied %s side effect for #%s approved by %s",
            request.request_type.value,
            request.request_id,
            actor_no,
        )


class RequestSideEffects:
    """Effects that only touch employee and attendance data."""

    HOURS_QUANTUM = Decimal("0.01")

    def __init__(self, session: AsyncSession):
        self.session = session

    def register_all(self, registry: SideEffectRegistry) -> None:
        registry.register(RequestType.LEAVE, self.deduct_leave_balance)
        registry.register(RequestType.MANUAL_ATTENDANCE, self.record_manual_attendance)
        registry.register(RequestType.PROJECT_TRANSFER, self.apply_project_transfer)

    async def _employee_for_update(self, employee_no: int) -> Employee:
        employee = await self.session.get(Employee, employee_no, with_for_update=True)
        if employee is None:
            raise RecordNotFoundError("Employee", employee_no)
        return employee

    async def deduct_leave_balance(self, leave: EmployeeLeave, actor_no: int) -> None:
        if not leave.consumes_balance:
            return
        employee = await self._employee_for_update(leave.employee_no)
        if employee.leave_balance_days < leave.leave_days:
            raise RequestValidationError(
                f"Employee {employee.employee_no} has {employee.leave_balance_days} leave days, "
                f"{leave.leave_days} requested"
            )
        employee.leave_balance_days = employee.leave_balance_days - leave.leave_days
        await self.session.flush()

    async def record_manual_attendance(
        self, request: ManualAttendanceRequest, actor_no: int
    ) -> None:
        start = datetime.combine(request.attendance_date, request.entry_time)
        end = datetime.combine(request.attendance_date, request.exit_time)
        hours = (Decimal((end - start).total_seconds()) / Decimal(3600)).quantize(
            self.HOURS_QUANTUM
        )

        existing = await self.session.scalar(
            select(AttendanceDay).where(
                AttendanceDay.employee_no == request.employee_no,
                AttendanceDay.attendance_date == request.attendance_date,
            )
        )
        if existing is None:
            existing = AttendanceDay(
                employee_no=request.employee_no,
                attendance_date=request.attendance_date,
            )
            self.session.add(existing)
        existing.worked_hours = hours
        existing.is_absent = False
        existing.is_manual = True
        await self.session.flush()

    async def apply_project_transfer(
        self, request: ProjectTransferRequest, actor_no: int
    ) -> None:
        employee = await self._employee_for_update(request.employee_no)
        logger.info(
            "Moving employee %s from project %s to %s",
            employee.employee_no,
            employee.project_code,
            request.to_project_code,
        )
        employee.project_code = request.to_project_code
        await self.session.flush()
