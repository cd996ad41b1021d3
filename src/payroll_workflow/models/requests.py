"""Approvable HR and project requests."""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_workflow.models.approval import ApprovableMixin, RequestType
from payroll_workflow.models.base import Base, Money

if TYPE_CHECKING:
    from payroll_workflow.providers.base import EmployeeProfile


class EmployeeLeave(Base, ApprovableMixin):
    """Leave request; approved annual leave consumes the leave balance."""

    __tablename__ = "employee_leave"
    request_type = RequestType.LEAVE

    leave_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    leave_type: Mapped[str] = mapped_column(String(16), nullable=False, default="annual")
    from_date: Mapped[date] = mapped_column(Date, nullable=False)
    to_date: Mapped[date] = mapped_column(Date, nullable=False)
    leave_days: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("to_date >= from_date", name="employee_leave_dates_check"),
        CheckConstraint(
            "leave_type IN ('annual', 'sick', 'unpaid', 'emergency')",
            name="employee_leave_type_check",
        ),
    )

    @property
    def consumes_balance(self) -> bool:
        return self.leave_type == "annual"


class ManualAttendanceRequest(Base, ApprovableMixin):
    """Request to record attendance for a day the employee could not clock in."""

    __tablename__ = "manual_attendance_request"
    request_type = RequestType.MANUAL_ATTENDANCE

    manual_request_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    attendance_date: Mapped[date] = mapped_column(Date, nullable=False)
    entry_time: Mapped[time] = mapped_column(Time, nullable=False)
    exit_time: Mapped[time] = mapped_column(Time, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("exit_time > entry_time", name="manual_attendance_times_check"),
    )


class EmpMonthlyAllowance(Base, ApprovableMixin):
    """Allowance active from start_date until end_date (open ended if null)."""

    __tablename__ = "emp_monthly_allowance"
    request_type = RequestType.ALLOWANCE

    transaction_no: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type_code: Mapped[int] = mapped_column(Integer, nullable=False)
    allowance_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_periodical: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    applied_salary_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("allowance_amount > 0", name="emp_allowance_amount_positive"),
        CheckConstraint(
            "end_date IS NULL OR end_date >= start_date", name="emp_allowance_dates_check"
        ),
    )


class EmpMonthlyDeduction(Base, ApprovableMixin):
    """Deduction active from start_date until end_date (open ended if null)."""

    __tablename__ = "emp_monthly_deduction"
    request_type = RequestType.DEDUCTION

    transaction_no: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type_code: Mapped[int] = mapped_column(Integer, nullable=False)
    deduction_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_periodical: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    applied_salary_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("deduction_amount > 0", name="emp_deduction_amount_positive"),
        CheckConstraint(
            "end_date IS NULL OR end_date >= start_date", name="emp_deduction_dates_check"
        ),
    )


class ProjectPaymentRequest(Base, ApprovableMixin):
    """Supplier payment raised against a project."""

    __tablename__ = "project_payment_request"
    request_type = RequestType.PROJECT_PAYMENT

    payment_request_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_code: Mapped[str] = mapped_column(
        String(20), ForeignKey("project.project_code"), nullable=False
    )
    supplier_name: Mapped[str] = mapped_column(String, nullable=False)
    payment_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    purpose: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("payment_amount > 0", name="project_payment_amount_positive"),
    )

    def approval_scope(self, profile: EmployeeProfile) -> tuple[str | None, str | None]:
        return profile.department_code, self.project_code


class ProjectTransferRequest(Base, ApprovableMixin):
    """Move an employee from one project to another."""

    __tablename__ = "project_transfer_request"
    request_type = RequestType.PROJECT_TRANSFER

    transfer_no: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    from_project_code: Mapped[str | None] = mapped_column(
        String(20), ForeignKey("project.project_code"), nullable=True
    )
    to_project_code: Mapped[str] = mapped_column(
        String(20), ForeignKey("project.project_code"), nullable=False
    )
    transfer_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    def approval_scope(self, profile: EmployeeProfile) -> tuple[str | None, str | None]:
        # The receiving project signs off
        return profile.department_code, self.to_project_code


class ProjectLaborRequestHeader(Base, ApprovableMixin):
    """Request for additional labor on a project."""

    __tablename__ = "project_labor_request_header"
    request_type = RequestType.LABOR_REQUEST

    labor_request_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_code: Mapped[str] = mapped_column(
        String(20), ForeignKey("project.project_code"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="labor_request_dates_check"),
    )

    lines: Mapped[list[ProjectLaborRequestDetail]] = relationship(
        cascade="all, delete-orphan",
        order_by="ProjectLaborRequestDetail.line_no",
        lazy="selectin",
    )

    def approval_scope(self, profile: EmployeeProfile) -> tuple[str | None, str | None]:
        return profile.department_code, self.project_code


class ProjectLaborRequestDetail(Base):
    """One requested trade and head count within a labor request."""

    __tablename__ = "project_labor_request_detail"

    labor_detail_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    labor_request_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("project_labor_request_header.labor_request_id", ondelete="CASCADE"),
        nullable=False,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    job_title: Mapped[str] = mapped_column(String, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    daily_rate: Mapped[Decimal | None] = mapped_column(Money, nullable=True)

    __table_args__ = (CheckConstraint("quantity > 0", name="labor_detail_quantity_positive"),)
