"""Versioned salary header and its detail lines."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_workflow.calculators.line_builder import SalaryLineBuilder
from payroll_workflow.models.approval import ApprovableMixin, RequestType
from payroll_workflow.models.base import Base, Money

ZERO = Decimal("0")


class SalaryHeader(Base, ApprovableMixin):
    """One payroll version for an employee and month.

    Exactly one version per (employee, month) carries is_latest. Prior
    versions are kept for audit and never mutated once approved.
    """

    __tablename__ = "salary_header"
    request_type = RequestType.PAYROLL

    salary_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    salary_month: Mapped[str] = mapped_column(String(7), nullable=False)
    salary_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    salary_type: Mapped[str] = mapped_column(String(1), nullable=False, default="W")
    is_latest: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    gross_salary: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    total_allowances: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    total_deductions: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    total_overtime: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    total_absence: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    total_loans: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    net_salary: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    calculated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    recalculation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "employee_no",
            "salary_month",
            "salary_version",
            name="salary_header_emp_month_version_unique",
        ),
        CheckConstraint("salary_type IN ('W', 'F')", name="salary_header_type_check"),
        CheckConstraint("salary_version >= 1", name="salary_header_version_positive"),
    )

    details: Mapped[list[SalaryDetail]] = relationship(
        cascade="all, delete-orphan",
        order_by="SalaryDetail.line_no",
        lazy="selectin",
    )

    def recalculate_totals(self) -> None:
        """Recompute every header total from the detail lines."""
        totals = SalaryLineBuilder.sum_totals(
            (line.trans_category, line.trans_type_code, line.trans_amount) for line in self.details
        )
        self.total_allowances = totals.total_allowances
        self.total_deductions = totals.total_deductions
        self.total_overtime = totals.total_overtime
        self.total_absence = totals.total_absence
        self.total_loans = totals.total_loans
        self.net_salary = totals.net_salary


class SalaryDetail(Base):
    """One allowance or deduction line of a salary header."""

    __tablename__ = "salary_detail"

    detail_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    salary_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("salary_header.salary_id", ondelete="CASCADE"), nullable=False
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    trans_type_code: Mapped[int] = mapped_column(Integer, nullable=False)
    trans_category: Mapped[str] = mapped_column(String(1), nullable=False)
    trans_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    reference_table: Mapped[str | None] = mapped_column(String(40), nullable=True)
    reference_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("salary_id", "line_no", name="salary_detail_line_unique"),
        CheckConstraint("trans_category IN ('A', 'D')", name="salary_detail_category_check"),
        CheckConstraint("trans_amount >= 0", name="salary_detail_amount_non_negative"),
    )
