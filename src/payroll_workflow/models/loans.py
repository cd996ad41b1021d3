"""Loan, installment schedule and postponement request models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_workflow.models.approval import ApprovableMixin, RequestType
from payroll_workflow.models.base import Base, Money, TimestampMixin


class InstallmentStatus(str, Enum):
    """Installment payment status."""

    UNPAID = "UNPAID"
    PAID = "PAID"
    POSTPONED = "POSTPONED"


class Loan(Base, ApprovableMixin):
    """Employee loan owning its installment schedule."""

    __tablename__ = "loan"
    request_type = RequestType.LOAN

    loan_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    loan_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    no_of_installments: Mapped[int] = mapped_column(Integer, nullable=False)
    first_installment_date: Mapped[date] = mapped_column(Date, nullable=False)
    installment_amount: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    remaining_balance: Mapped[Decimal] = mapped_column(Money, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("loan_amount > 0", name="loan_amount_positive"),
        CheckConstraint("no_of_installments >= 1", name="loan_installments_positive"),
        CheckConstraint("remaining_balance >= 0", name="loan_balance_non_negative"),
    )

    installments: Mapped[list[LoanInstallment]] = relationship(
        cascade="all, delete-orphan",
        order_by="LoanInstallment.installment_no",
        lazy="selectin",
    )

    def deduct_payment(self, amount: Decimal) -> None:
        """Reduce the remaining balance; the loan closes when it reaches zero."""
        if amount <= 0:
            raise ValueError("Payment amount must be positive")
        if amount > self.remaining_balance:
            raise ValueError(
                f"Payment {amount} exceeds remaining balance {self.remaining_balance}"
            )
        self.remaining_balance = self.remaining_balance - amount
        if self.remaining_balance == 0:
            self.is_active = False


class LoanInstallment(Base, TimestampMixin):
    """One scheduled repayment of a loan."""

    __tablename__ = "loan_installment"

    installment_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    loan_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("loan.loan_id", ondelete="CASCADE"), nullable=False
    )
    installment_no: Mapped[int] = mapped_column(Integer, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    original_due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    installment_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    payment_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=InstallmentStatus.UNPAID.value
    )
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    paid_amount: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    salary_month: Mapped[str | None] = mapped_column(String(7), nullable=True)

    __table_args__ = (
        UniqueConstraint("loan_id", "installment_no", name="loan_installment_no_unique"),
        CheckConstraint(
            "payment_status IN ('UNPAID', 'PAID', 'POSTPONED')",
            name="loan_installment_status_check",
        ),
        CheckConstraint("installment_amount > 0", name="loan_installment_amount_positive"),
    )

    @property
    def is_paid(self) -> bool:
        return self.payment_status == InstallmentStatus.PAID

    def mark_paid(
        self, paid_date: date, salary_month: str | None, amount: Decimal | None = None
    ) -> None:
        """Settle the installment; amount defaults to the full installment."""
        if self.is_paid:
            raise ValueError(f"Installment {self.installment_id} is already paid")
        self.payment_status = InstallmentStatus.PAID.value
        self.paid_date = paid_date
        self.paid_amount = self.installment_amount if amount is None else amount
        self.salary_month = salary_month

    def postpone(self, new_due_date: date) -> None:
        if self.is_paid:
            raise ValueError(f"Installment {self.installment_id} is already paid")
        if self.original_due_date is None:
            self.original_due_date = self.due_date
        self.due_date = new_due_date
        self.payment_status = InstallmentStatus.POSTPONED.value


class LoanPostponementRequest(Base, ApprovableMixin):
    """Request to move one installment to a later due date."""

    __tablename__ = "loan_postponement_request"
    request_type = RequestType.LOAN_POSTPONEMENT

    postponement_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    loan_id: Mapped[int] = mapped_column(Integer, ForeignKey("loan.loan_id"), nullable=False)
    installment_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("loan_installment.installment_id"), nullable=False
    )
    current_due_date: Mapped[date] = mapped_column(Date, nullable=False)
    new_due_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "new_due_date > current_due_date", name="loan_postponement_dates_check"
        ),
    )
