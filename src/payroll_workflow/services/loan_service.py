"""Loan submission, installment scheduling and repayment."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_DOWN, Decimal
from typing import Callable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_workflow.approvals.engine import ApprovalWorkflowEngine
from payroll_workflow.approvals.side_effects import SideEffectRegistry
from payroll_workflow.calculators.types import SalaryMonth, add_months
from payroll_workflow.config import PayrollPolicy
from payroll_workflow.errors import (
    InvalidTransitionError,
    RecordNotFoundError,
    RequestValidationError,
)
from payroll_workflow.events import NotificationEmitter, NotificationEvent, NotificationEventType
from payroll_workflow.models import (
    InstallmentStatus,
    Loan,
    LoanInstallment,
    LoanPostponementRequest,
    RequestStatus,
    RequestType,
)
from payroll_workflow.services.locking_service import LockRegistry, default_locks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduledInstallment:
    """One row of a generated repayment schedule."""

    installment_no: int
    due_date: date
    amount: Decimal


class LoanInstallmentScheduler:
    """Generates monthly installment schedules.

    Each installment is loan_amount / count truncated to cents; the last
    one absorbs the remainder so the schedule sums to the loan exactly.
    """

    def __init__(self, policy: PayrollPolicy | None = None):
        self.policy = policy or PayrollPolicy()

    def build_schedule(
        self, loan_amount: Decimal, count: int, first_due_date: date
    ) -> list[ScheduledInstallment]:
        if loan_amount <= 0:
            raise ValueError("Loan amount must be positive")
        if count < 1:
            raise ValueError("A loan needs at least one installment")

        base = (loan_amount / count).quantize(self.policy.installment_precision, rounding=ROUND_DOWN)
        last = loan_amount - base * (count - 1)
        return [
            ScheduledInstallment(
                installment_no=n + 1,
                due_date=add_months(first_due_date, n),
                amount=last if n == count - 1 else base,
            )
            for n in range(count)
        ]

    async def generate(self, session: AsyncSession, loan: Loan) -> list[LoanInstallment]:
        """Create the installment rows of an approved loan and activate it."""
        existing = await session.scalar(
            select(func.count()).select_from(LoanInstallment).where(
                LoanInstallment.loan_id == loan.loan_id
            )
        )
        if existing:
            raise InvalidTransitionError(
                "scheduled", "scheduled", f"loan {loan.loan_id} already has installments"
            )

        schedule = self.build_schedule(
            loan.loan_amount, loan.no_of_installments, loan.first_installment_date
        )
        rows = [
            LoanInstallment(
                loan_id=loan.loan_id,
                installment_no=item.installment_no,
                due_date=item.due_date,
                installment_amount=item.amount,
                payment_status=InstallmentStatus.UNPAID.value,
            )
            for item in schedule
        ]
        session.add_all(rows)
        loan.installment_amount = schedule[0].amount
        loan.remaining_balance = loan.loan_amount
        loan.is_active = True
        await session.flush()
        await session.refresh(loan, attribute_names=["installments"])

        logger.info(
            "Generated %s installments of %s for loan %s starting %s",
            len(rows),
            loan.installment_amount,
            loan.loan_id,
            loan.first_installment_date,
        )
        return rows


class LoanService:
    """Loan lifecycle: submission, activation, postponement and repayment."""

    def __init__(
        self,
        session: AsyncSession,
        workflow: ApprovalWorkflowEngine,
        scheduler: LoanInstallmentScheduler | None = None,
        locks: LockRegistry | None = None,
        emitter: NotificationEmitter | None = None,
        policy: PayrollPolicy | None = None,
        today: Callable[[], date] = date.today,
    ):
        self.session = session
        self.workflow = workflow
        self.policy = policy or PayrollPolicy()
        self.scheduler = scheduler or LoanInstallmentScheduler(self.policy)
        self.locks = locks or default_locks
        self.emitter = emitter
        self.today = today

    def register_side_effects(self, registry: SideEffectRegistry) -> None:
        registry.register(RequestType.LOAN, self.activate_loan)
        registry.register(RequestType.LOAN_POSTPONEMENT, self.apply_postponement)

    # ----- Submission -----

    async def submit_loan(
        self,
        employee_no: int,
        loan_amount: Decimal,
        no_of_installments: int,
        first_installment_date: date,
        notes: str | None = None,
    ) -> Loan:
        """Validate and submit a loan request into its approval chain."""
        loan_amount = Decimal(loan_amount)
        if loan_amount <= 0:
            raise RequestValidationError("Loan amount must be positive")
        if not 1 <= no_of_installments <= self.policy.max_installments:
            raise RequestValidationError(
                f"Installments must be between 1 and {self.policy.max_installments}"
            )
        if SalaryMonth.of(first_installment_date) < SalaryMonth.of(self.today()):
            raise RequestValidationError("First installment cannot fall in a past month")

        open_loan = await self.session.scalar(
            select(Loan.loan_id).where(
                Loan.employee_no == employee_no,
                (Loan.status == RequestStatus.PENDING.value)
                | ((Loan.status == RequestStatus.APPROVED.value) & Loan.is_active.is_(True)),
            ).limit(1)
        )
        if open_loan is not None:
            raise RequestValidationError(
                f"Employee {employee_no} already has an open loan ({open_loan})"
            )

        loan = Loan(
            employee_no=employee_no,
            loan_amount=loan_amount,
            no_of_installments=no_of_installments,
            first_installment_date=first_installment_date,
            remaining_balance=loan_amount,
            is_active=False,
            notes=notes,
            installments=[],
        )
        return await self.workflow.submit(loan)

    async def submit_postponement(
        self,
        loan_id: int,
        installment_id: int,
        new_due_date: date,
        reason: str | None = None,
    ) -> LoanPostponementRequest:
        """Validate and submit a request to move one installment."""
        loan = await self.get_loan(loan_id)
        if loan.status != RequestStatus.APPROVED.value or not loan.is_active:
            raise RequestValidationError(f"Loan {loan_id} is not an active approved loan")

        installment = await self.session.get(LoanInstallment, installment_id)
        if installment is None or installment.loan_id != loan_id:
            raise RequestValidationError(
                f"Installment {installment_id} does not belong to loan {loan_id}"
            )
        if installment.is_paid:
            raise RequestValidationError(f"Installment {installment_id} is already paid")
        if new_due_date <= installment.due_date:
            raise RequestValidationError("New due date must be after the current due date")

        duplicate = await self.session.scalar(
            select(LoanPostponementRequest.postponement_id).where(
                LoanPostponementRequest.installment_id == installment_id,
                LoanPostponementRequest.status == RequestStatus.PENDING.value,
            ).limit(1)
        )
        if duplicate is not None:
            raise RequestValidationError(
                f"Installment {installment_id} already has a pending postponement"
            )

        request = LoanPostponementRequest(
            employee_no=loan.employee_no,
            loan_id=loan_id,
            installment_id=installment_id,
            current_due_date=installment.due_date,
            new_due_date=new_due_date,
            reason=reason,
        )
        return await self.workflow.submit(request)

    # ----- Approval side effects -----

    async def activate_loan(self, loan: Loan, actor_no: int) -> None:
        await self.scheduler.generate(self.session, loan)

    async def apply_postponement(self, request: LoanPostponementRequest, actor_no: int) -> None:
        async with self.locks.loan(request.loan_id):
            installment = await self.session.get(
                LoanInstallment, request.installment_id, with_for_update=True
            )
            if installment is None:
                raise RecordNotFoundError("LoanInstallment", request.installment_id)
            if installment.is_paid:
                raise InvalidTransitionError(
                    InstallmentStatus.PAID.value,
                    InstallmentStatus.POSTPONED.value,
                    f"installment {installment.installment_id} was paid before the postponement",
                )
            installment.postpone(request.new_due_date)
            await self.session.flush()
        logger.info(
            "Installment %s of loan %s postponed to %s",
            request.installment_id,
            request.loan_id,
            request.new_due_date,
        )

    # ----- Administration and repayment -----

    async def postpone_month(self, original_month: str, new_month: str) -> int:
        """Move every unpaid installment due in original_month to new_month.

        Returns the number of installments moved.
        """
        source = SalaryMonth.parse(original_month)
        target = SalaryMonth.parse(new_month)
        if target <= source:
            raise RequestValidationError("Target month must be after the original month")
        offset = (target.year - source.year) * 12 + (target.month - source.month)

        result = await self.session.execute(
            select(LoanInstallment)
            .join(Loan, Loan.loan_id == LoanInstallment.loan_id)
            .where(
                Loan.is_active.is_(True),
                LoanInstallment.payment_status == InstallmentStatus.UNPAID.value,
                LoanInstallment.due_date >= source.start,
                LoanInstallment.due_date <= source.end,
            )
            .order_by(LoanInstallment.loan_id, LoanInstallment.installment_no)
        )
        installments = list(result.scalars().all())
        for installment in installments:
            async with self.locks.loan(installment.loan_id):
                installment.postpone(add_months(installment.due_date, offset))
        await self.session.flush()

        logger.info("Postponed %s installments from %s to %s", len(installments), source, target)
        return len(installments)

    async def deduct_payment(self, loan_id: int, amount: Decimal) -> Loan:
        """Reduce a loan's remaining balance outside payroll.

        The payment settles the schedule from the last open installment
        backwards, so the open installments keep summing to the balance.
        """
        amount = Decimal(amount)
        async with self.locks.loan(loan_id):
            loan = await self._loan_for_update(loan_id)
            self._deduct(loan, amount)
            await self.session.refresh(loan, attribute_names=["installments"])
            self._settle_from_end(loan, amount)
            await self.session.flush()
        return loan

    def _settle_from_end(self, loan: Loan, amount: Decimal) -> None:
        open_installments = sorted(
            (i for i in loan.installments if not i.is_paid),
            key=lambda i: (i.due_date, i.installment_no),
            reverse=True,
        )
        for installment in open_installments:
            if amount <= 0:
                break
            if installment.installment_amount <= amount:
                amount -= installment.installment_amount
                installment.mark_paid(self.today(), None)
            else:
                installment.installment_amount -= amount
                amount = Decimal("0")
        logger.debug("Loan %s schedule shortened to match balance %s", loan.loan_id, loan.remaining_balance)

    async def pay_installment(
        self,
        installment: LoanInstallment,
        salary_month: str,
        paid_date: date,
        amount: Decimal | None = None,
    ) -> LoanInstallment:
        """Mark an installment paid through payroll and reduce its loan.

        The payment is the booked payroll amount (the full installment by
        default), never more than the loan's remaining balance.
        """
        async with self.locks.loan(installment.loan_id):
            loan = await self._loan_for_update(installment.loan_id)
            paid = min(
                installment.installment_amount if amount is None else amount,
                loan.remaining_balance,
            )
            installment.mark_paid(paid_date, salary_month, paid)
            if paid > 0:
                self._deduct(loan, paid)
            await self.session.flush()

        logger.info(
            "Installment %s of loan %s paid %s in %s; remaining %s",
            installment.installment_id,
            loan.loan_id,
            paid,
            salary_month,
            loan.remaining_balance,
        )
        self._notify(
            NotificationEventType.LOAN_INSTALLMENT_PAID,
            loan,
            installment_id=installment.installment_id,
            amount=str(paid),
            salary_month=salary_month,
        )
        return installment

    async def get_loan(self, loan_id: int) -> Loan:
        loan = await self.session.get(Loan, loan_id)
        if loan is None:
            raise RecordNotFoundError("Loan", loan_id)
        return loan

    async def _loan_for_update(self, loan_id: int) -> Loan:
        loan = await self.session.get(Loan, loan_id, with_for_update=True)
        if loan is None:
            raise RecordNotFoundError("Loan", loan_id)
        return loan

    def _deduct(self, loan: Loan, amount: Decimal) -> None:
        try:
            loan.deduct_payment(amount)
        except ValueError as e:
            raise RequestValidationError(str(e)) from e
        if not loan.is_active:
            logger.info("Loan %s fully repaid", loan.loan_id)
            self._notify(NotificationEventType.LOAN_FULLY_PAID, loan)

    def _notify(self, event_type: NotificationEventType, loan: Loan, **payload) -> None:
        if self.emitter is None:
            return
        self.emitter.emit(
            NotificationEvent(
                event_type=event_type,
                request_type=RequestType.LOAN.value,
                request_id=loan.loan_id,
                recipient_no=loan.employee_no,
                payload=payload,
            )
        )
