"""Payroll calculation pipeline."""

from payroll_workflow.calculators.breakdown import merge_shares, split_salary
from payroll_workflow.calculators.engine import PayrollCalculator, PayrollResult
from payroll_workflow.calculators.line_builder import LineTotals, SalaryLineBuilder

__all__ = [
    "LineTotals",
    "PayrollCalculator",
    "PayrollResult",
    "SalaryLineBuilder",
    "merge_shares",
    "split_salary",
]
