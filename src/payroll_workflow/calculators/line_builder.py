"""Salary line builder with fixed-precision rounding."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from payroll_workflow.calculators.types import (
    ATTENDANCE_DEDUCTION_CODES,
    ZERO,
    LineCategory,
    SalaryLine,
    TypeCode,
)


@dataclass(frozen=True)
class LineTotals:
    """Header totals derived from a set of salary lines."""

    total_allowances: Decimal
    total_deductions: Decimal
    total_overtime: Decimal
    total_absence: Decimal
    total_loans: Decimal

    @property
    def net_salary(self) -> Decimal:
        return self.total_allowances - self.total_deductions


class SalaryLineBuilder:
    """Builds salary lines with a single rounding rule.

    Conventions:
    - Amounts are stored unsigned; the category says which way they count
    - Every amount is rounded half-up to 4 decimal places
    - net = Σ allowances − Σ deductions, with no further rounding
    """

    PRECISION = Decimal("0.0001")

    @staticmethod
    def quantize(amount: Decimal, precision: Decimal | None = None) -> Decimal:
        """Round half-up to the given quantum (4 decimal places by default)."""
        return amount.quantize(precision or SalaryLineBuilder.PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def allowance(
        type_code: int,
        amount: Decimal,
        reference_table: str | None = None,
        reference_id: int | None = None,
        explanation: str | None = None,
    ) -> SalaryLine:
        """Create an allowance line."""
        return SalaryLine(
            category=LineCategory.ALLOWANCE,
            type_code=int(type_code),
            amount=SalaryLineBuilder.quantize(abs(amount)),
            reference_table=reference_table,
            reference_id=reference_id,
            explanation=explanation,
        )

    @staticmethod
    def deduction(
        type_code: int,
        amount: Decimal,
        reference_table: str | None = None,
        reference_id: int | None = None,
        explanation: str | None = None,
    ) -> SalaryLine:
        """Create a deduction line."""
        return SalaryLine(
            category=LineCategory.DEDUCTION,
            type_code=int(type_code),
            amount=SalaryLineBuilder.quantize(abs(amount)),
            reference_table=reference_table,
            reference_id=reference_id,
            explanation=explanation,
        )

    @staticmethod
    def totals(lines: Iterable[SalaryLine]) -> LineTotals:
        return SalaryLineBuilder.sum_totals(
            (line.category, line.type_code, line.amount) for line in lines
        )

    @staticmethod
    def sum_totals(entries: Iterable[tuple[str, int, Decimal]]) -> LineTotals:
        """Fold (category, type code, amount) entries into header totals.

        Shared by calculated lines and persisted detail rows.
        """
        allowances = deductions = overtime = absence = loans = ZERO
        for category, type_code, amount in entries:
            if category == LineCategory.ALLOWANCE:
                allowances += amount
            else:
                deductions += amount
            if type_code == TypeCode.OVERTIME:
                overtime += amount
            elif type_code in ATTENDANCE_DEDUCTION_CODES:
                absence += amount
            elif type_code == TypeCode.LOAN_INSTALLMENT:
                loans += amount
        return LineTotals(
            total_allowances=allowances,
            total_deductions=deductions,
            total_overtime=overtime,
            total_absence=absence,
            total_loans=loans,
        )

    @staticmethod
    def reconcile(lines: list[SalaryLine], target: Decimal) -> Decimal:
        """Push any rounding drift between the lines and target onto the last line.

        Returns the drift that was absorbed.
        """
        if not lines:
            return ZERO
        drift = target - sum((line.amount for line in lines), ZERO)
        if drift:
            lines[-1].amount = lines[-1].amount + drift
        return drift
