"""Approval chain configuration and the shared shape of approvable requests."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    String,
    Text,
    UniqueConstraint,
    inspect,
)
from sqlalchemy.orm import Mapped, mapped_column

from payroll_workflow.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from payroll_workflow.providers.base import EmployeeProfile


class RequestStatus(str, Enum):
    """Single tagged state for every approvable request."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    DELETED = "deleted"


class RequestType(str, Enum):
    """Request types routed through the approval chain."""

    LEAVE = "VAC"
    LOAN = "LOAN"
    LOAN_POSTPONEMENT = "POSTLOAN"
    MANUAL_ATTENDANCE = "MANUAL_ATTENDANCE"
    ALLOWANCE = "ALLOW"
    DEDUCTION = "DEDUCT"
    PROJECT_PAYMENT = "PROJ_PAYMENT"
    PROJECT_TRANSFER = "PROJ_TRANSFER"
    LABOR_REQUEST = "LABOR_REQ"
    PAYROLL = "PAYROLL"


class ApprovableMixin(TimestampMixin):
    """Columns shared by every request that moves through an approval chain.

    ``employee_no`` is the employee the request is raised for; chain scope
    and resolver lookups start from that employee.
    """

    request_type: ClassVar[RequestType]

    employee_no: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=RequestStatus.PENDING.value, index=True
    )
    next_approval: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    next_app_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    final_app_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    approved_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rejected_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    @classmethod
    def primary_key_column(cls) -> Any:
        """Return the mapped primary key column of the request table."""
        return inspect(cls).primary_key[0]

    @property
    def request_id(self) -> int:
        """Primary key value, whatever the column is called."""
        return getattr(self, self.primary_key_column().key)

    def approval_scope(self, profile: EmployeeProfile) -> tuple[str | None, str | None]:
        """Return (department_code, project_code) used to pick the chain."""
        return profile.department_code, profile.project_code


class ApprovalChainLevel(Base, TimestampMixin):
    """One level of an approval chain for a request type.

    Rows with neither department nor project are global. A department or
    project code narrows the row to that scope.
    """

    __tablename__ = "approval_chain_level"

    chain_level_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_type: Mapped[str] = mapped_column(String(32), nullable=False)
    level_no: Mapped[int] = mapped_column(Integer, nullable=False)
    function_call: Mapped[str] = mapped_column(String(40), nullable=False)
    close_level: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    department_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    project_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    specific_employee_no: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint(
            "request_type",
            "level_no",
            "department_code",
            "project_code",
            name="approval_chain_type_level_scope_unique",
        ),
        CheckConstraint("level_no >= 1", name="approval_chain_level_positive"),
    )
