"""Type definitions for the payroll calculation pipeline."""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any

ZERO = Decimal("0")


class LineCategory(str, Enum):
    """Salary detail categories. Amounts are stored unsigned."""

    ALLOWANCE = "A"
    DEDUCTION = "D"


class TypeCode(IntEnum):
    """Reserved transaction type codes."""

    BASIC = 1
    TRANSPORT = 2
    HOUSING = 3
    OVERTIME = 9
    LATE = 20
    ABSENCE = 21
    EARLY_OUT = 22
    SHORTAGE = 23
    UNPAID_LEAVE = 24
    LOAN_INSTALLMENT = 30


ATTENDANCE_DEDUCTION_CODES = frozenset(range(TypeCode.LATE, TypeCode.UNPAID_LEAVE + 1))

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


def add_months(start: date, months: int) -> date:
    """Shift a date by whole months, clamping the day to the month length."""
    index = start.year * 12 + (start.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


@dataclass(frozen=True, order=True)
class SalaryMonth:
    """A calendar month in ``YYYY-MM`` form."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Invalid month: {self.month}")

    @classmethod
    def parse(cls, value: str | SalaryMonth) -> SalaryMonth:
        if isinstance(value, SalaryMonth):
            return value
        match = _MONTH_RE.match(value.strip())
        if not match:
            raise ValueError(f"Salary month must be YYYY-MM, got {value!r}")
        return cls(int(match.group(1)), int(match.group(2)))

    @classmethod
    def of(cls, day: date) -> SalaryMonth:
        return cls(day.year, day.month)

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def end(self) -> date:
        return date(self.year, self.month, self.days)

    @property
    def days(self) -> int:
        return calendar.monthrange(self.year, self.month)[1]

    def shift(self, months: int) -> SalaryMonth:
        return SalaryMonth.of(add_months(self.start, months))

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class BreakdownShare:
    """Fraction of gross salary allocated to one component."""

    trans_type_code: int
    percentage: Decimal


@dataclass(frozen=True)
class RecurringItem:
    """An approved allowance or deduction active in the month."""

    type_code: int
    amount: Decimal
    reference_table: str
    reference_id: int
    is_periodical: bool = True


@dataclass(frozen=True)
class InstallmentDue:
    """A loan installment falling due in the month."""

    installment_id: int
    loan_id: int
    amount: Decimal


@dataclass(frozen=True)
class AttendanceTotals:
    """Attendance aggregates for one employee and month."""

    overtime_hours: Decimal = ZERO
    delayed_hours: Decimal = ZERO
    early_out_hours: Decimal = ZERO
    shortage_hours: Decimal = ZERO
    absence_days: Decimal = ZERO
    unpaid_leave_days: Decimal = ZERO


@dataclass
class SalaryLine:
    """A calculated salary detail line before persistence."""

    category: LineCategory
    type_code: int
    amount: Decimal
    reference_table: str | None = None
    reference_id: int | None = None
    explanation: str | None = None

    @property
    def is_allowance(self) -> bool:
        return self.category == LineCategory.ALLOWANCE

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "type_code": self.type_code,
            "amount": str(self.amount),
            "reference_table": self.reference_table,
            "reference_id": self.reference_id,
        }


@dataclass
class PayrollInputs:
    """Everything the calculator needs for one employee and one month."""

    employee_no: int
    salary_month: SalaryMonth
    monthly_salary: Decimal
    hire_date: date | None = None
    termination_date: date | None = None
    breakdown: list[BreakdownShare] = field(default_factory=list)
    allowances: list[RecurringItem] = field(default_factory=list)
    deductions: list[RecurringItem] = field(default_factory=list)
    attendance: AttendanceTotals = field(default_factory=AttendanceTotals)
    installments: list[InstallmentDue] = field(default_factory=list)
