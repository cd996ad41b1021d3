"""Tests for versioned payroll calculation and finalization."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from payroll_workflow.config import RoleAssignments
from payroll_workflow.errors import (
    InvalidTransitionError,
    PriorPayrollUnapprovedError,
    RecordNotFoundError,
    RequestValidationError,
)
from payroll_workflow.events import NotificationEventType
from payroll_workflow.models import Employee, InstallmentStatus, RequestStatus, SalaryHeader
from payroll_workflow.services import LockRegistry, build_services
from tests.conftest import (
    EMPLOYEE,
    EMPLOYEE_NO_MANAGER,
    ENG_MANAGER,
    FIN_EMPLOYEE,
    FINANCE_MANAGER,
    GENERAL_MANAGER,
    HR_MANAGER,
    approve_all,
    attendance,
)

PAYROLL_APPROVERS = [HR_MANAGER, FINANCE_MANAGER, GENERAL_MANAGER]


def lines(header):
    return [(d.trans_type_code, d.trans_category, d.trans_amount) for d in header.details]


class TestCalculate:
    async def test_plain_month(self, services, sink):
        header = await services.payroll.calculate(EMPLOYEE, "2024-03")

        assert header.salary_version == 1
        assert header.is_latest is True
        assert header.salary_type == "W"
        assert header.status == RequestStatus.PENDING.value
        assert header.next_approval == HR_MANAGER
        assert lines(header) == [(1, "A", Decimal("4170")), (2, "A", Decimal("830"))]
        assert header.gross_salary == Decimal("5000")
        assert header.total_allowances == Decimal("5000")
        assert header.total_deductions == Decimal("0")
        assert header.net_salary == Decimal("5000")

        calculated = sink.of_type(NotificationEventType.PAYROLL_CALCULATED)
        assert calculated[0].payload["salary_month"] == "2024-03"
        assert calculated[0].recipient_no == EMPLOYEE

    async def test_attendance_lines(self, services, org):
        org.add_all(
            [
                attendance(EMPLOYEE, date(2024, 3, 4), worked_hours=10, overtime_hours=2),
                attendance(EMPLOYEE, date(2024, 3, 5), is_absent=True),
                attendance(EMPLOYEE, date(2024, 3, 6), worked_hours=7, delayed_hours=1),
                attendance(EMPLOYEE, date(2024, 4, 1), is_absent=True),
            ]
        )
        await org.flush()

        header = await services.payroll.calculate(EMPLOYEE, "2024-03")

        assert lines(header)[2:] == [
            (9, "A", Decimal("62.5")),
            (20, "D", Decimal("20.8333")),
            (21, "D", Decimal("166.6667")),
        ]
        assert header.total_overtime == Decimal("62.5")
        assert header.total_absence == Decimal("187.5")
        assert header.net_salary == Decimal("4875")

    async def test_not_employed(self, services):
        with pytest.raises(RequestValidationError, match="not employed"):
            await services.payroll.calculate(EMPLOYEE_NO_MANAGER, "2021-01")

    async def test_final_settlement(self, services, org):
        employee = await org.get(Employee, EMPLOYEE)
        employee.termination_date = date(2024, 3, 15)
        employee.employment_status = "terminated"
        await org.flush()

        header = await services.payroll.calculate(EMPLOYEE, "2024-03")

        assert header.salary_type == "F"
        assert header.gross_salary == Decimal("2419.3548")
        assert header.net_salary == Decimal("2419.3548")

    async def test_bad_month(self, services):
        with pytest.raises(ValueError):
            await services.payroll.calculate(EMPLOYEE, "March 2024")

    async def test_locks_released_after_calculation(self, org, emitter, policy):
        locks = LockRegistry()
        services = await build_services(org, policy=policy, emitter=emitter, locks=locks)
        services.loans.today = lambda: date(2024, 1, 10)
        loan = await services.loans.submit_loan(EMPLOYEE, Decimal("1000"), 2, date(2024, 3, 1))
        await approve_all(services, loan, [ENG_MANAGER, FINANCE_MANAGER])

        header = await services.payroll.calculate(EMPLOYEE, "2024-03")
        assert len(locks) == 0

        await approve_all(services, header, PAYROLL_APPROVERS)

        assert loan.installments[0].is_paid
        assert len(locks) == 0


class TestVersions:
    async def test_recalculation_supersedes_pending_version(self, services, sink):
        first = await services.payroll.calculate(EMPLOYEE, "2024-03")
        await services.engine.approve(first, HR_MANAGER)

        second = await services.payroll.recalculate(EMPLOYEE, "2024-03", "Missed overtime")

        assert second.salary_version == 2
        assert second.is_latest is True
        assert second.recalculation_reason == "Missed overtime"
        # Approval restarts from level 1
        assert second.next_app_level == 1
        assert first.is_latest is False
        assert first.status == RequestStatus.CANCELLED.value

        versions = await services.payroll.get_versions(EMPLOYEE, "2024-03")
        assert [(v.salary_version, v.is_latest) for v in versions] == [(1, False), (2, True)]
        assert (await services.payroll.get_latest(EMPLOYEE, "2024-03")).salary_id == second.salary_id
        assert len(sink.of_type(NotificationEventType.PAYROLL_RECALCULATED)) == 1

    async def test_calculating_twice_creates_second_version(self, services, sink):
        first = await services.payroll.calculate(EMPLOYEE, "2024-03")
        second = await services.payroll.calculate(EMPLOYEE, "2024-03")

        assert (first.salary_version, second.salary_version) == (1, 2)
        assert second.net_salary == first.net_salary == Decimal("5000")
        assert (first.is_latest, first.status) == (False, RequestStatus.CANCELLED.value)
        assert (second.is_latest, second.status) == (True, RequestStatus.PENDING.value)
        assert second.recalculation_reason is None
        assert [e.request_id for e in sink.of_type(NotificationEventType.REQUEST_CANCELLED)] == [
            first.salary_id
        ]
        latest = await services.payroll.get_latest(EMPLOYEE, "2024-03")
        assert latest.salary_id == second.salary_id

    async def test_recalculate_needs_reason(self, services):
        await services.payroll.calculate(EMPLOYEE, "2024-03")

        with pytest.raises(RequestValidationError):
            await services.payroll.recalculate(EMPLOYEE, "2024-03", " ")

    async def test_recalculate_needs_existing_version(self, services):
        with pytest.raises(RecordNotFoundError):
            await services.payroll.recalculate(EMPLOYEE, "2024-03", "Correction")

    async def test_approved_month_is_frozen(self, services):
        header = await services.payroll.calculate(EMPLOYEE, "2024-03")
        await approve_all(services, header, PAYROLL_APPROVERS)

        assert header.status == RequestStatus.APPROVED.value
        with pytest.raises(InvalidTransitionError, match="already approved"):
            await services.payroll.recalculate(EMPLOYEE, "2024-03", "Late correction")

    async def test_requester_cannot_withdraw_payroll(self, services):
        header = await services.payroll.calculate(EMPLOYEE, "2024-03")

        with pytest.raises(InvalidTransitionError):
            await services.engine.cancel(header, requester_no=EMPLOYEE)


class TestPriorMonthGuard:
    async def test_earlier_month_must_be_approved(self, services):
        march = await services.payroll.calculate(EMPLOYEE, "2024-03")

        with pytest.raises(PriorPayrollUnapprovedError) as exc_info:
            await services.payroll.calculate(EMPLOYEE, "2024-04")
        assert exc_info.value.blocking_month == "2024-03"

        await approve_all(services, march, PAYROLL_APPROVERS)
        april = await services.payroll.calculate(EMPLOYEE, "2024-04")

        assert april.salary_version == 1

    async def test_other_employees_unaffected(self, services):
        await services.payroll.calculate(EMPLOYEE, "2024-03")

        header = await services.payroll.calculate(FIN_EMPLOYEE, "2024-04")

        assert header.salary_version == 1


class TestFinalization:
    async def test_loan_installment_paid_on_approval(self, services, org):
        services.loans.today = lambda: date(2024, 1, 10)
        loan = await services.loans.submit_loan(EMPLOYEE, Decimal("9000"), 3, date(2024, 3, 1))
        await approve_all(services, loan, [ENG_MANAGER, FINANCE_MANAGER])

        header = await services.payroll.calculate(EMPLOYEE, "2024-03")

        assert lines(header)[-1] == (30, "D", Decimal("3000"))
        assert header.total_loans == Decimal("3000")
        assert header.net_salary == Decimal("2000")
        # Calculation alone pays nothing
        assert loan.installments[0].payment_status == InstallmentStatus.UNPAID.value

        await approve_all(services, header, PAYROLL_APPROVERS)

        first = loan.installments[0]
        assert first.payment_status == InstallmentStatus.PAID.value
        assert first.salary_month == "2024-03"
        assert loan.remaining_balance == Decimal("6000")
        assert loan.installments[1].payment_status == InstallmentStatus.UNPAID.value

    async def test_manual_payment_shortens_later_installment(self, services):
        services.loans.today = lambda: date(2024, 1, 10)
        loan = await services.loans.submit_loan(EMPLOYEE, Decimal("1000"), 2, date(2024, 3, 1))
        await approve_all(services, loan, [ENG_MANAGER, FINANCE_MANAGER])
        await services.loans.deduct_payment(loan.loan_id, Decimal("400"))

        march = await services.payroll.calculate(EMPLOYEE, "2024-03")
        await approve_all(services, march, PAYROLL_APPROVERS)
        assert loan.remaining_balance == Decimal("100")

        april = await services.payroll.calculate(EMPLOYEE, "2024-04")
        assert [d.trans_amount for d in header_loans(april)] == [Decimal("100")]

        await approve_all(services, april, PAYROLL_APPROVERS)

        assert april.status == RequestStatus.APPROVED.value
        assert loan.remaining_balance == Decimal("0")
        assert loan.is_active is False
        assert [i.paid_amount for i in loan.installments] == [Decimal("500"), Decimal("100")]

    async def test_payment_after_calculation_caps_installment(self, services):
        services.loans.today = lambda: date(2024, 1, 10)
        loan = await services.loans.submit_loan(EMPLOYEE, Decimal("1000"), 2, date(2024, 3, 1))
        await approve_all(services, loan, [ENG_MANAGER, FINANCE_MANAGER])
        march = await services.payroll.calculate(EMPLOYEE, "2024-03")
        assert [d.trans_amount for d in header_loans(march)] == [Decimal("500")]

        await services.loans.deduct_payment(loan.loan_id, Decimal("800"))
        await approve_all(services, march, PAYROLL_APPROVERS)

        first, second = loan.installments
        assert first.paid_amount == Decimal("200")
        assert first.salary_month == "2024-03"
        assert second.is_paid
        assert loan.remaining_balance == Decimal("0")
        assert loan.is_active is False

    async def test_postponed_installment_follows_new_month(self, services):
        services.loans.today = lambda: date(2024, 1, 10)
        loan = await services.loans.submit_loan(EMPLOYEE, Decimal("9000"), 3, date(2024, 3, 1))
        await approve_all(services, loan, [ENG_MANAGER, FINANCE_MANAGER])
        await services.loans.postpone_month("2024-03", "2024-06")

        march = await services.payroll.calculate(EMPLOYEE, "2024-03")

        assert header_loans(march) == []

    async def test_one_time_allowance_applied_once(self, services, org):
        one_time = await services.requests.submit_allowance(
            EMPLOYEE, 5, Decimal("300"), date(2024, 3, 1)
        )
        monthly = await services.requests.submit_allowance(
            EMPLOYEE, 6, Decimal("150"), date(2024, 1, 1), is_periodical=True
        )
        deduction = await services.requests.submit_deduction(
            EMPLOYEE, 40, Decimal("75"), date(2024, 3, 1), date(2024, 3, 31)
        )
        for request in (one_time, monthly, deduction):
            await services.engine.approve(request, HR_MANAGER)

        march = await services.payroll.calculate(EMPLOYEE, "2024-03")
        assert lines(march)[2:] == [
            (5, "A", Decimal("300")),
            (6, "A", Decimal("150")),
            (40, "D", Decimal("75")),
        ]
        assert march.net_salary == Decimal("5375")

        await approve_all(services, march, PAYROLL_APPROVERS)
        assert one_time.applied_salary_id == march.salary_id
        assert monthly.applied_salary_id is None

        april = await services.payroll.calculate(EMPLOYEE, "2024-04")
        assert lines(april)[2:] == [(6, "A", Decimal("150"))]

    async def test_pending_allowance_ignored(self, services):
        await services.requests.submit_allowance(EMPLOYEE, 5, Decimal("300"), date(2024, 3, 1))

        header = await services.payroll.calculate(EMPLOYEE, "2024-03")

        assert len(header.details) == 2


class TestCalculateAll:
    async def test_failures_isolated_per_employee(self, services):
        await services.payroll.calculate(FIN_EMPLOYEE, "2024-02")

        result = await services.payroll.calculate_all("2024-03")

        assert result.salary_month == "2024-03"
        assert result.calculated == [EMPLOYEE, EMPLOYEE_NO_MANAGER]
        assert list(result.failed) == [FIN_EMPLOYEE]
        assert "2024-02" in result.failed[FIN_EMPLOYEE]

        # Category without breakdown books the salary as basic
        header = await services.payroll.get_latest(EMPLOYEE_NO_MANAGER, "2024-03")
        assert lines(header) == [(1, "A", Decimal("9000"))]
        assert await services.payroll.get_latest(FIN_EMPLOYEE, "2024-03") is None

    async def test_failed_employee_releases_no_events(self, org, services, emitter, sink, policy):
        await services.payroll.calculate(EMPLOYEE, "2024-03")
        sink.clear()
        without_hr = await build_services(
            org,
            policy=policy,
            emitter=emitter,
            locks=LockRegistry(),
            roles=RoleAssignments(finance_manager_no=FINANCE_MANAGER, general_manager_no=GENERAL_MANAGER),
        )

        result = await without_hr.payroll.calculate_all("2024-03")

        assert result.calculated == []
        assert EMPLOYEE in result.failed
        assert sink.events == []
        rows = await org.execute(
            select(SalaryHeader.salary_version, SalaryHeader.status, SalaryHeader.is_latest).where(
                SalaryHeader.employee_no == EMPLOYEE, SalaryHeader.salary_month == "2024-03"
            )
        )
        assert [tuple(row) for row in rows] == [(1, RequestStatus.PENDING.value, True)]


def header_loans(header):
    return [d for d in header.details if d.trans_type_code == 30]
