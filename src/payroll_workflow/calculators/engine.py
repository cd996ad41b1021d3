"""Payroll calculator - pure computation for one employee and month."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from payroll_workflow.calculators.breakdown import split_salary
from payroll_workflow.calculators.line_builder import LineTotals, SalaryLineBuilder
from payroll_workflow.calculators.types import (
    ZERO,
    PayrollInputs,
    SalaryLine,
    SalaryMonth,
    TypeCode,
)
from payroll_workflow.config import PayrollPolicy

logger = logging.getLogger(__name__)


@dataclass
class PayrollResult:
    """Result of calculating one employee's month."""

    employee_no: int
    salary_month: SalaryMonth
    gross_salary: Decimal
    lines: list[SalaryLine] = field(default_factory=list)

    @property
    def totals(self) -> LineTotals:
        return SalaryLineBuilder.totals(self.lines)

    @property
    def net_salary(self) -> Decimal:
        return self.totals.net_salary

    @property
    def installment_ids(self) -> list[int]:
        return [
            line.reference_id
            for line in self.lines
            if line.type_code == TypeCode.LOAN_INSTALLMENT and line.reference_id is not None
        ]


class PayrollCalculator:
    """Monthly payroll calculator.

    Calculation pipeline (stable line order):
    1) Pro-rate the monthly salary over the employed calendar days
    2) Split it into breakdown components (basic, transport, ...)
    3) Approved allowances active in the month
    4) Overtime from attendance: hours x hourly rate x multiplier
    5) Approved deductions active in the month
    6) Attendance deductions: late, absence, early out, shortage, unpaid leave
    7) Loan installments due in the month

    Rates derive from the full monthly salary: daily = salary / day basis,
    hourly = daily / hours per day.
    """

    def __init__(self, policy: PayrollPolicy | None = None):
        self.policy = policy or PayrollPolicy()

    def daily_rate(self, monthly_salary: Decimal) -> Decimal:
        return monthly_salary / Decimal(self.policy.day_rate_basis)

    def hourly_rate(self, monthly_salary: Decimal) -> Decimal:
        return self.daily_rate(monthly_salary) / Decimal(self.policy.hours_per_day)

    def prorated_salary(
        self,
        monthly_salary: Decimal,
        month: SalaryMonth,
        hire_date: date | None = None,
        termination_date: date | None = None,
    ) -> Decimal:
        """Pro-rate linearly by calendar days employed within the month."""
        start, end = month.start, month.end
        if hire_date is not None and hire_date > start:
            start = hire_date
        if termination_date is not None and termination_date < end:
            end = termination_date
        if end < start:
            return ZERO
        if start == month.start and end == month.end:
            return monthly_salary
        days = (end - start).days + 1
        prorated = SalaryLineBuilder.quantize(monthly_salary * days / Decimal(month.days))
        logger.info(
            "Pro-rated %s over %s/%s days of %s -> %s",
            monthly_salary,
            days,
            month.days,
            month,
            prorated,
        )
        return prorated

    def calculate(self, inputs: PayrollInputs) -> PayrollResult:
        """Run the pipeline over already-gathered inputs."""
        month = inputs.salary_month
        gross = self.prorated_salary(
            inputs.monthly_salary, month, inputs.hire_date, inputs.termination_date
        )
        lines: list[SalaryLine] = split_salary(gross, inputs.breakdown)

        for item in inputs.allowances:
            lines.append(
                SalaryLineBuilder.allowance(
                    item.type_code, item.amount, item.reference_table, item.reference_id
                )
            )

        hourly = self.hourly_rate(inputs.monthly_salary)
        daily = self.daily_rate(inputs.monthly_salary)
        attendance = inputs.attendance

        if attendance.overtime_hours > 0:
            lines.append(
                SalaryLineBuilder.allowance(
                    TypeCode.OVERTIME,
                    attendance.overtime_hours * hourly * self.policy.overtime_multiplier,
                    explanation=f"{attendance.overtime_hours}h overtime",
                )
            )

        for item in inputs.deductions:
            lines.append(
                SalaryLineBuilder.deduction(
                    item.type_code, item.amount, item.reference_table, item.reference_id
                )
            )

        for type_code, quantity, rate, unit in (
            (TypeCode.LATE, attendance.delayed_hours, hourly, "h late"),
            (TypeCode.ABSENCE, attendance.absence_days, daily, "d absent"),
            (TypeCode.EARLY_OUT, attendance.early_out_hours, hourly, "h early out"),
            (TypeCode.SHORTAGE, attendance.shortage_hours, hourly, "h short"),
            (TypeCode.UNPAID_LEAVE, attendance.unpaid_leave_days, daily, "d unpaid leave"),
        ):
            if quantity > 0:
                lines.append(
                    SalaryLineBuilder.deduction(
                        type_code, quantity * rate, explanation=f"{quantity}{unit}"
                    )
                )

        for installment in inputs.installments:
            lines.append(
                SalaryLineBuilder.deduction(
                    TypeCode.LOAN_INSTALLMENT,
                    installment.amount,
                    reference_table="loan_installment",
                    reference_id=installment.installment_id,
                )
            )

        for line in lines:
            logger.debug(
                "Employee %s %s line type %s = %s",
                inputs.employee_no,
                line.category.value,
                line.type_code,
                line.amount,
            )

        return PayrollResult(
            employee_no=inputs.employee_no,
            salary_month=month,
            gross_salary=gross,
            lines=lines,
        )
