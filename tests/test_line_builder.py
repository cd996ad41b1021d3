"""Tests for salary line builder."""

from decimal import Decimal

from payroll_workflow.calculators.line_builder import SalaryLineBuilder
from payroll_workflow.calculators.types import LineCategory, TypeCode
from payroll_workflow.models import SalaryDetail, SalaryHeader


class TestSalaryLineBuilder:
    """Test salary line builder functionality."""

    def test_quantize(self):
        """Test rounding to 4 decimal places, half up."""
        assert SalaryLineBuilder.quantize(Decimal("10.12345")) == Decimal("10.1235")
        assert SalaryLineBuilder.quantize(Decimal("10.12344")) == Decimal("10.1234")
        assert SalaryLineBuilder.quantize(Decimal("0.00005")) == Decimal("0.0001")

    def test_quantize_with_precision(self):
        assert SalaryLineBuilder.quantize(Decimal("3333.335"), Decimal("0.01")) == Decimal("3333.34")

    def test_allowance_line(self):
        line = SalaryLineBuilder.allowance(TypeCode.BASIC, Decimal("4170"), explanation="Basic")

        assert line.category == LineCategory.ALLOWANCE
        assert line.type_code == 1
        assert line.amount == Decimal("4170.0000")
        assert line.is_allowance

    def test_deduction_line_is_unsigned(self):
        """Deductions are stored unsigned; the category gives the direction."""
        line = SalaryLineBuilder.deduction(
            TypeCode.LOAN_INSTALLMENT,
            Decimal("-3000"),
            reference_table="loan_installment",
            reference_id=5,
        )

        assert line.category == LineCategory.DEDUCTION
        assert line.amount == Decimal("3000.0000")
        assert line.reference_id == 5
        assert not line.is_allowance

    def test_totals(self):
        lines = [
            SalaryLineBuilder.allowance(TypeCode.BASIC, Decimal("4170")),
            SalaryLineBuilder.allowance(TypeCode.TRANSPORT, Decimal("830")),
            SalaryLineBuilder.allowance(TypeCode.OVERTIME, Decimal("62.5")),
            SalaryLineBuilder.deduction(TypeCode.LATE, Decimal("20.8333")),
            SalaryLineBuilder.deduction(TypeCode.ABSENCE, Decimal("166.6667")),
            SalaryLineBuilder.deduction(TypeCode.LOAN_INSTALLMENT, Decimal("500")),
        ]

        totals = SalaryLineBuilder.totals(lines)

        assert totals.total_allowances == Decimal("5062.5000")
        assert totals.total_deductions == Decimal("687.5000")
        assert totals.total_overtime == Decimal("62.5000")
        assert totals.total_absence == Decimal("187.5000")
        assert totals.total_loans == Decimal("500.0000")
        assert totals.net_salary == Decimal("4375.0000")

    def test_header_totals_match_line_totals(self):
        lines = [
            SalaryLineBuilder.allowance(TypeCode.BASIC, Decimal("4170")),
            SalaryLineBuilder.allowance(TypeCode.OVERTIME, Decimal("62.5")),
            SalaryLineBuilder.deduction(TypeCode.ABSENCE, Decimal("166.6667")),
            SalaryLineBuilder.deduction(TypeCode.LOAN_INSTALLMENT, Decimal("500")),
        ]
        header = SalaryHeader(
            details=[
                SalaryDetail(
                    line_no=no,
                    trans_type_code=line.type_code,
                    trans_category=line.category.value,
                    trans_amount=line.amount,
                )
                for no, line in enumerate(lines, start=1)
            ]
        )

        header.recalculate_totals()

        expected = SalaryLineBuilder.totals(lines)
        assert header.total_allowances == expected.total_allowances
        assert header.total_deductions == expected.total_deductions
        assert header.total_overtime == expected.total_overtime
        assert header.total_absence == expected.total_absence
        assert header.total_loans == expected.total_loans
        assert header.net_salary == expected.net_salary == Decimal("3565.8333")

    def test_reconcile_pushes_drift_onto_last_line(self):
        lines = [
            SalaryLineBuilder.allowance(TypeCode.BASIC, Decimal("33.3333")),
            SalaryLineBuilder.allowance(TypeCode.TRANSPORT, Decimal("33.3333")),
            SalaryLineBuilder.allowance(TypeCode.HOUSING, Decimal("33.3333")),
        ]

        drift = SalaryLineBuilder.reconcile(lines, Decimal("100"))

        assert drift == Decimal("0.0001")
        assert lines[-1].amount == Decimal("33.3334")
        assert sum(line.amount for line in lines) == Decimal("100")

    def test_reconcile_empty(self):
        assert SalaryLineBuilder.reconcile([], Decimal("100")) == Decimal("0")
