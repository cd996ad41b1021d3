"""Organization master data consumed by the approval and payroll core."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from payroll_workflow.models.base import Base, Money, TimestampMixin


class Department(Base, TimestampMixin):
    """Department with its manager."""

    __tablename__ = "department"

    department_code: Mapped[str] = mapped_column(String(20), primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    manager_no: Mapped[int | None] = mapped_column(Integer, nullable=True)


class Project(Base, TimestampMixin):
    """Project with its project and regional managers."""

    __tablename__ = "project"

    project_code: Mapped[str] = mapped_column(String(20), primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    project_manager_no: Mapped[int | None] = mapped_column(Integer, nullable=True)
    regional_manager_no: Mapped[int | None] = mapped_column(Integer, nullable=True)


class Employee(Base, TimestampMixin):
    """Employee record (the subset the core reads or updates)."""

    __tablename__ = "employee"

    employee_no: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    department_code: Mapped[str | None] = mapped_column(
        String(20),
        ForeignKey("department.department_code"),
        nullable=True,
    )
    project_code: Mapped[str | None] = mapped_column(
        String(20),
        ForeignKey("project.project_code"),
        nullable=True,
    )
    direct_manager_no: Mapped[int | None] = mapped_column(Integer, nullable=True)
    category: Mapped[str] = mapped_column(String(1), nullable=False, default="S")
    monthly_salary: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    hire_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    termination_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    employment_status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    leave_balance_days: Mapped[Decimal] = mapped_column(
        Numeric(8, 2), nullable=False, default=Decimal("0")
    )

    __table_args__ = (
        CheckConstraint("category IN ('S', 'F')", name="employee_category_check"),
        CheckConstraint(
            "employment_status IN ('active', 'on_leave', 'terminated')",
            name="employee_status_check",
        ),
        CheckConstraint(
            "termination_date IS NULL OR hire_date IS NULL OR termination_date >= hire_date",
            name="employee_dates_check",
        ),
    )


class SystemConfig(Base):
    """Key/value system configuration (singleton role holders and the like)."""

    __tablename__ = "system_config"

    config_key: Mapped[str] = mapped_column(String(64), primary_key=True)
    config_value: Mapped[str | None] = mapped_column(String, nullable=True)


class AttendanceDay(Base, TimestampMixin):
    """Closed attendance figures for one employee and one day."""

    __tablename__ = "attendance_day"

    attendance_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_no: Mapped[int] = mapped_column(
        Integer, ForeignKey("employee.employee_no"), nullable=False
    )
    attendance_date: Mapped[date] = mapped_column(Date, nullable=False)
    worked_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("0"))
    overtime_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("0"))
    delayed_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("0"))
    early_out_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("0"))
    shortage_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("0"))
    is_absent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_unpaid_leave: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_manual: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("employee_no", "attendance_date", name="attendance_day_emp_date_unique"),
    )


class SalaryBreakdownPercentage(Base):
    """Share of gross salary allocated to a component for an employee category."""

    __tablename__ = "salary_breakdown_percentage"

    breakdown_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_category: Mapped[str] = mapped_column(String(1), nullable=False)
    trans_type_code: Mapped[int] = mapped_column(Integer, nullable=False)
    salary_percentage: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "employee_category", "trans_type_code", name="salary_breakdown_cat_type_unique"
        ),
        CheckConstraint(
            "salary_percentage >= 0 AND salary_percentage <= 1",
            name="salary_breakdown_percentage_range",
        ),
    )


class EmployeeContractAllowance(Base, TimestampMixin):
    """Per-employee breakdown share overriding the category default."""

    __tablename__ = "employee_contract_allowance"

    contract_allowance_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    employee_no: Mapped[int] = mapped_column(
        Integer, ForeignKey("employee.employee_no"), nullable=False
    )
    trans_type_code: Mapped[int] = mapped_column(Integer, nullable=False)
    salary_percentage: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "salary_percentage >= 0 AND salary_percentage <= 1",
            name="contract_allowance_percentage_range",
        ),
    )
