"""Pydantic schemas for API request/response models."""

from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str


# ============================================================================
# Request submission schemas
# ============================================================================


class LeaveCreate(BaseModel):
    from_date: date
    to_date: date
    leave_type: str = Field(default="annual", pattern="^(annual|sick|unpaid|emergency)$")
    notes: str | None = None


class ManualAttendanceCreate(BaseModel):
    attendance_date: date
    entry_time: time
    exit_time: time
    reason: str | None = None


class MonthlyItemCreate(BaseModel):
    """Schema for an allowance or deduction request."""

    employee_no: int | None = None
    type_code: int
    amount: Decimal = Field(gt=0)
    start_date: date
    end_date: date | None = None
    is_periodical: bool = False
    notes: str | None = None


class ProjectPaymentCreate(BaseModel):
    project_code: str
    supplier_name: str
    amount: Decimal = Field(gt=0)
    due_date: date | None = None
    purpose: str | None = None


class ProjectTransferCreate(BaseModel):
    employee_no: int | None = None
    to_project_code: str
    transfer_date: date
    reason: str | None = None


class LaborLineCreate(BaseModel):
    job_title: str
    quantity: int = Field(gt=0)
    daily_rate: Decimal | None = None


class LaborRequestCreate(BaseModel):
    project_code: str
    start_date: date
    end_date: date
    lines: list[LaborLineCreate] = Field(min_length=1)
    notes: str | None = None


class LoanCreate(BaseModel):
    loan_amount: Decimal = Field(gt=0)
    no_of_installments: int = Field(ge=1)
    first_installment_date: date
    notes: str | None = None


class LoanPostponementCreate(BaseModel):
    installment_id: int
    new_due_date: date
    reason: str | None = None


class PostponeMonthRequest(BaseModel):
    original_month: str = Field(pattern=r"^\d{4}-\d{2}$")
    new_month: str = Field(pattern=r"^\d{4}-\d{2}$")


class PostponeMonthResponse(BaseModel):
    moved: int


# ============================================================================
# Approval schemas
# ============================================================================


class RejectionRequest(BaseModel):
    reason: str = Field(min_length=1)


class RequestResponse(BaseModel):
    """Approval state shared by every request type."""

    model_config = ConfigDict(from_attributes=True)

    request_type: str
    request_id: int
    employee_no: int
    status: str
    next_approval: int | None = None
    next_app_level: int | None = None
    final_app_level: int | None = None
    submitted_at: datetime | None = None
    approved_by: int | None = None
    approved_date: datetime | None = None
    rejected_by: int | None = None
    rejection_reason: str | None = None

    @classmethod
    def from_request(cls, request) -> "RequestResponse":
        return cls(
            request_type=request.request_type.value,
            request_id=request.request_id,
            employee_no=request.employee_no,
            status=request.status,
            next_approval=request.next_approval,
            next_app_level=request.next_app_level,
            final_app_level=request.final_app_level,
            submitted_at=request.submitted_at,
            approved_by=request.approved_by,
            approved_date=request.approved_date,
            rejected_by=request.rejected_by,
            rejection_reason=request.rejection_reason,
        )


class TimelineStepResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    level_no: int
    label: str
    function: str
    approver_no: int | None = None
    status: str
    close_level: bool


class InboxResponse(BaseModel):
    items: list[RequestResponse]
    total: int


# ============================================================================
# Payroll schemas
# ============================================================================


class CalculatePayrollRequest(BaseModel):
    salary_month: str = Field(pattern=r"^\d{4}-\d{2}$")


class RecalculatePayrollRequest(CalculatePayrollRequest):
    reason: str = Field(min_length=1)


class SalaryDetailResponse(BaseModel):
    """Schema for one salary line."""

    model_config = ConfigDict(from_attributes=True)

    line_no: int
    trans_type_code: int
    trans_category: str
    trans_amount: Decimal
    reference_table: str | None = None
    reference_id: int | None = None
    explanation: str | None = None


class SalaryHeaderResponse(BaseModel):
    """Schema for a payroll version."""

    model_config = ConfigDict(from_attributes=True)

    salary_id: int
    employee_no: int
    salary_month: str
    salary_version: int
    salary_type: str
    is_latest: bool
    status: str
    next_approval: int | None = None
    next_app_level: int | None = None
    gross_salary: Decimal
    total_allowances: Decimal
    total_deductions: Decimal
    total_overtime: Decimal
    total_absence: Decimal
    total_loans: Decimal
    net_salary: Decimal
    recalculation_reason: str | None = None
    details: list[SalaryDetailResponse] = []


class BatchCalculationResponse(BaseModel):
    salary_month: str
    calculated: list[int]
    failed: dict[int, str]


# ============================================================================
# Loan schemas
# ============================================================================


class LoanInstallmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    installment_id: int
    installment_no: int
    due_date: date
    original_due_date: date | None = None
    installment_amount: Decimal
    payment_status: str
    paid_date: date | None = None
    salary_month: str | None = None


class LoanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    loan_id: int
    employee_no: int
    status: str
    loan_amount: Decimal
    no_of_installments: int
    first_installment_date: date
    installment_amount: Decimal | None = None
    remaining_balance: Decimal
    is_active: bool
    next_approval: int | None = None
    installments: list[LoanInstallmentResponse] = []
