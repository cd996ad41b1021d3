"""Payroll service - versioned calculation, approval hand-off and finalization."""

from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_workflow.approvals.engine import ApprovalWorkflowEngine
from payroll_workflow.approvals.side_effects import SideEffectRegistry
from payroll_workflow.calculators.breakdown import merge_shares
from payroll_workflow.calculators.engine import PayrollCalculator
from payroll_workflow.calculators.types import (
    AttendanceTotals,
    InstallmentDue,
    PayrollInputs,
    RecurringItem,
    SalaryMonth,
)
from payroll_workflow.config import PayrollPolicy
from payroll_workflow.database import acquire_advisory_lock
from payroll_workflow.errors import (
    ConcurrentModificationError,
    InvalidTransitionError,
    PriorPayrollUnapprovedError,
    RecordNotFoundError,
    RequestValidationError,
    WorkflowError,
)
from payroll_workflow.events import NotificationEmitter, NotificationEvent, NotificationEventType
from payroll_workflow.models import (
    EmpMonthlyAllowance,
    EmpMonthlyDeduction,
    InstallmentStatus,
    Loan,
    LoanInstallment,
    RequestStatus,
    RequestType,
    SalaryDetail,
    SalaryHeader,
)
from payroll_workflow.providers.base import (
    AttendanceAggregator,
    AttendanceMetric,
    EmployeeDirectory,
    EmployeeProfile,
    SalaryBreakdownTable,
)
from payroll_workflow.services.loan_service import LoanService
from payroll_workflow.services.locking_service import LockRegistry, default_locks

logger = logging.getLogger(__name__)

ALLOWANCE_TABLE = EmpMonthlyAllowance.__tablename__
DEDUCTION_TABLE = EmpMonthlyDeduction.__tablename__
INSTALLMENT_TABLE = LoanInstallment.__tablename__


@dataclass
class BatchCalculationResult:
    """Outcome of calculating a month for every eligible employee."""

    salary_month: str
    calculated: list[int] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)


class PayrollService:
    """Service for the payroll lifecycle of one employee and month.

    Operations:
    - calculate: produce a new SalaryHeader version and submit it (PAYROLL)
    - recalculate: same, with a mandatory reason, restarting approval at level 1
    - calculate_all: calculate a month for every eligible employee
    - finalize: on final approval pay consumed installments and mark
      one-time allowances/deductions applied

    Months must be approved in chronological order per employee.
    """

    def __init__(
        self,
        session: AsyncSession,
        workflow: ApprovalWorkflowEngine,
        directory: EmployeeDirectory,
        attendance: AttendanceAggregator,
        breakdown_table: SalaryBreakdownTable,
        loans: LoanService,
        policy: PayrollPolicy | None = None,
        locks: LockRegistry | None = None,
        emitter: NotificationEmitter | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.session = session
        self.workflow = workflow
        self.directory = directory
        self.attendance = attendance
        self.breakdown_table = breakdown_table
        self.loans = loans
        self.policy = policy or PayrollPolicy()
        self.calculator = PayrollCalculator(self.policy)
        self.locks = locks or default_locks
        self.emitter = emitter
        self.clock = clock

    def register_side_effects(self, registry: SideEffectRegistry) -> None:
        registry.register(RequestType.PAYROLL, self.finalize)

    # ----- Queries -----

    async def get_latest(self, employee_no: int, salary_month: str) -> SalaryHeader | None:
        month = SalaryMonth.parse(salary_month)
        return await self.session.scalar(
            select(SalaryHeader).where(
                SalaryHeader.employee_no == employee_no,
                SalaryHeader.salary_month == str(month),
                SalaryHeader.is_latest.is_(True),
            )
        )

    async def get_versions(self, employee_no: int, salary_month: str) -> list[SalaryHeader]:
        month = SalaryMonth.parse(salary_month)
        result = await self.session.execute(
            select(SalaryHeader)
            .where(
                SalaryHeader.employee_no == employee_no,
                SalaryHeader.salary_month == str(month),
            )
            .order_by(SalaryHeader.salary_version)
        )
        return list(result.scalars().all())

    # ----- Calculation -----

    async def calculate(self, employee_no: int, salary_month: str) -> SalaryHeader:
        """Calculate a new payroll version and submit it for approval.

        Raises:
            PriorPayrollUnapprovedError: an earlier month is not approved
            InvalidTransitionError: this month is already approved
            ConcurrentModificationError: another calculation won the race
        """
        return await self._calculate(employee_no, SalaryMonth.parse(salary_month), reason=None)

    async def recalculate(
        self, employee_no: int, salary_month: str, reason: str
    ) -> SalaryHeader:
        """Re-run the calculation for a month that has not been approved yet."""
        if not reason or not reason.strip():
            raise RequestValidationError("A recalculation reason is required")
        month = SalaryMonth.parse(salary_month)
        if await self.get_latest(employee_no, str(month)) is None:
            raise RecordNotFoundError("SalaryHeader", f"{employee_no}/{month}")
        return await self._calculate(employee_no, month, reason=reason.strip())

    async def calculate_all(self, salary_month: str) -> BatchCalculationResult:
        """Calculate the month for every eligible employee.

        Each employee runs in its own savepoint and notification batch; a
        failure is logged and recorded without affecting the others, and the
        events it raised are dropped with its savepoint.
        """
        month = SalaryMonth.parse(salary_month)
        outcome = BatchCalculationResult(salary_month=str(month))
        employees = await self.directory.list_payroll_employees(month.start, month.end)
        for profile in employees:
            try:
                with self._event_batch():
                    async with self.session.begin_nested():
                        await self._calculate(profile.employee_no, month, reason=None)
            except WorkflowError as e:
                logger.warning(
                    "Payroll %s skipped for employee %s: %s", month, profile.employee_no, e
                )
                outcome.failed[profile.employee_no] = str(e)
            else:
                outcome.calculated.append(profile.employee_no)

        logger.info(
            "Batch payroll %s: %s calculated, %s failed",
            month,
            len(outcome.calculated),
            len(outcome.failed),
        )
        return outcome

    async def _calculate(
        self, employee_no: int, month: SalaryMonth, reason: str | None
    ) -> SalaryHeader:
        async with self.locks.payroll(employee_no, str(month)):
            if not await acquire_advisory_lock(self.session, f"payroll:{employee_no}:{month}"):
                raise ConcurrentModificationError(
                    f"Payroll {month} for employee {employee_no} is being calculated elsewhere"
                )

            profile = await self.directory.get_employee(employee_no)
            if not profile.is_employed_during(month.start, month.end):
                raise RequestValidationError(
                    f"Employee {employee_no} is not employed during {month}"
                )
            await self._check_prior_months(employee_no, month)

            latest = await self.get_latest(employee_no, str(month))
            if latest is not None and latest.status == RequestStatus.APPROVED.value:
                raise InvalidTransitionError(
                    latest.status,
                    RequestStatus.PENDING.value,
                    f"payroll {month} for employee {employee_no} is already approved",
                )

            inputs = await self._gather_inputs(profile, month)
            result = self.calculator.calculate(inputs)

            max_version = await self.session.scalar(
                select(func.max(SalaryHeader.salary_version)).where(
                    SalaryHeader.employee_no == employee_no,
                    SalaryHeader.salary_month == str(month),
                )
            )

            if latest is not None:
                if latest.status == RequestStatus.PENDING.value:
                    await self.workflow.cancel(latest)
                latest.is_latest = False

            header = SalaryHeader(
                employee_no=employee_no,
                salary_month=str(month),
                salary_version=(max_version or 0) + 1,
                salary_type=self._salary_type(profile, month),
                is_latest=True,
                gross_salary=result.gross_salary,
                calculated_at=self.clock(),
                recalculation_reason=reason,
                details=[
                    SalaryDetail(
                        line_no=line_no,
                        trans_type_code=line.type_code,
                        trans_category=line.category.value,
                        trans_amount=line.amount,
                        reference_table=line.reference_table,
                        reference_id=line.reference_id,
                        explanation=line.explanation,
                    )
                    for line_no, line in enumerate(result.lines, start=1)
                ],
            )
            header.recalculate_totals()
            self.session.add(header)
            try:
                await self.session.flush()
            except IntegrityError as e:
                raise ConcurrentModificationError(
                    f"Payroll version {header.salary_version} for employee {employee_no} "
                    f"{month} already exists"
                ) from e

            await self.workflow.submit(header)

        logger.info(
            "Payroll %s employee %s version %s: gross %s net %s",
            month,
            employee_no,
            header.salary_version,
            header.gross_salary,
            header.net_salary,
        )
        self._notify(
            NotificationEventType.PAYROLL_RECALCULATED
            if header.salary_version > 1
            else NotificationEventType.PAYROLL_CALCULATED,
            header,
            salary_month=str(month),
            salary_version=header.salary_version,
            net_salary=str(header.net_salary),
            reason=reason,
        )
        return header

    async def _check_prior_months(self, employee_no: int, month: SalaryMonth) -> None:
        blocking = await self.session.scalar(
            select(SalaryHeader.salary_month)
            .where(
                SalaryHeader.employee_no == employee_no,
                SalaryHeader.salary_month < str(month),
                SalaryHeader.is_latest.is_(True),
                SalaryHeader.status != RequestStatus.APPROVED.value,
            )
            .order_by(SalaryHeader.salary_month)
            .limit(1)
        )
        if blocking is not None:
            raise PriorPayrollUnapprovedError(employee_no, str(month), blocking)

    @staticmethod
    def _salary_type(profile: EmployeeProfile, month: SalaryMonth) -> str:
        if profile.termination_date is not None and month.contains(profile.termination_date):
            return "F"
        return "W"

    async def _gather_inputs(self, profile: EmployeeProfile, month: SalaryMonth) -> PayrollInputs:
        shares = merge_shares(
            await self.breakdown_table.lookup(profile.category),
            await self.breakdown_table.contract_overrides(profile.employee_no),
        )

        allowances = await self.session.execute(
            select(EmpMonthlyAllowance)
            .where(*self._active_in_month(EmpMonthlyAllowance, profile.employee_no, month))
            .order_by(EmpMonthlyAllowance.transaction_no)
        )
        deductions = await self.session.execute(
            select(EmpMonthlyDeduction)
            .where(*self._active_in_month(EmpMonthlyDeduction, profile.employee_no, month))
            .order_by(EmpMonthlyDeduction.transaction_no)
        )

        totals = {}
        for metric in AttendanceMetric:
            totals[metric.value] = await self.attendance.sum(
                metric, profile.employee_no, month.start, month.end
            )

        installments = await self.session.execute(
            select(LoanInstallment, Loan.remaining_balance)
            .join(Loan, Loan.loan_id == LoanInstallment.loan_id)
            .where(
                Loan.employee_no == profile.employee_no,
                Loan.status == RequestStatus.APPROVED.value,
                Loan.is_active.is_(True),
                LoanInstallment.payment_status.in_(
                    [InstallmentStatus.UNPAID.value, InstallmentStatus.POSTPONED.value]
                ),
                LoanInstallment.due_date >= month.start,
                LoanInstallment.due_date <= month.end,
            )
            .order_by(LoanInstallment.due_date, LoanInstallment.installment_id)
        )

        return PayrollInputs(
            employee_no=profile.employee_no,
            salary_month=month,
            monthly_salary=profile.monthly_salary,
            hire_date=profile.hire_date,
            termination_date=profile.termination_date,
            breakdown=shares,
            allowances=[
                RecurringItem(a.type_code, a.allowance_amount, ALLOWANCE_TABLE, a.transaction_no, a.is_periodical)
                for a in allowances.scalars().all()
            ],
            deductions=[
                RecurringItem(d.type_code, d.deduction_amount, DEDUCTION_TABLE, d.transaction_no, d.is_periodical)
                for d in deductions.scalars().all()
            ],
            attendance=AttendanceTotals(**totals),
            installments=self._installments_due(installments.all()),
        )

    @staticmethod
    def _installments_due(rows) -> list[InstallmentDue]:
        """Installments due in the month, capped at each loan's remaining balance.

        Rows are (installment, remaining balance) in due order; once a loan's
        balance is used up its later installments are left out.
        """
        left: dict[int, Decimal] = {}
        due = []
        for installment, remaining_balance in rows:
            balance = left.setdefault(installment.loan_id, remaining_balance)
            amount = min(installment.installment_amount, balance)
            if amount <= 0:
                logger.debug(
                    "Installment %s skipped; loan %s has no balance left",
                    installment.installment_id,
                    installment.loan_id,
                )
                continue
            left[installment.loan_id] = balance - amount
            due.append(InstallmentDue(installment.installment_id, installment.loan_id, amount))
        return due

    @staticmethod
    def _active_in_month(model, employee_no: int, month: SalaryMonth) -> list:
        """Approved, overlapping the month, and not already applied if one-time."""
        return [
            model.employee_no == employee_no,
            model.status == RequestStatus.APPROVED.value,
            model.start_date <= month.end,
            (model.end_date.is_(None)) | (model.end_date >= month.start),
            (model.is_periodical.is_(True)) | (model.applied_salary_id.is_(None)),
        ]

    def _event_batch(self):
        return self.emitter.batch() if self.emitter is not None else nullcontext()

    # ----- Finalization -----

    async def finalize(self, header: SalaryHeader, actor_no: int) -> None:
        """Consume the inputs of an approved payroll version."""
        month = SalaryMonth.parse(header.salary_month)
        paid_date: date = self.clock().date()

        for line in header.details:
            if line.reference_id is None:
                continue
            if line.reference_table == INSTALLMENT_TABLE:
                installment = await self.session.get(LoanInstallment, line.reference_id)
                if installment is None or installment.is_paid or not month.contains(installment.due_date):
                    logger.warning(
                        "Installment %s no longer due in %s; left unpaid by payroll %s",
                        line.reference_id,
                        month,
                        header.salary_id,
                    )
                    continue
                await self.loans.pay_installment(
                    installment, str(month), paid_date, amount=line.trans_amount
                )
            elif line.reference_table in (ALLOWANCE_TABLE, DEDUCTION_TABLE):
                model = EmpMonthlyAllowance if line.reference_table == ALLOWANCE_TABLE else EmpMonthlyDeduction
                item = await self.session.get(model, line.reference_id)
                if item is not None and not item.is_periodical:
                    item.applied_salary_id = header.salary_id

        await self.session.flush()
        logger.info(
            "Payroll %s for employee %s finalized (version %s)",
            month,
            header.employee_no,
            header.salary_version,
        )

    def _notify(self, event_type: NotificationEventType, header: SalaryHeader, **payload) -> None:
        if self.emitter is None:
            return
        self.emitter.emit(
            NotificationEvent(
                event_type=event_type,
                request_type=RequestType.PAYROLL.value,
                request_id=header.salary_id,
                recipient_no=header.employee_no,
                payload=payload,
            )
        )
