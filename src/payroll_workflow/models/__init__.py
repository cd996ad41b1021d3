"""SQLAlchemy ORM models."""

from payroll_workflow.models.approval import (
    ApprovableMixin,
    ApprovalChainLevel,
    RequestStatus,
    RequestType,
)
from payroll_workflow.models.base import Base, TimestampMixin
from payroll_workflow.models.loans import (
    InstallmentStatus,
    Loan,
    LoanInstallment,
    LoanPostponementRequest,
)
from payroll_workflow.models.organization import (
    AttendanceDay,
    Department,
    Employee,
    EmployeeContractAllowance,
    Project,
    SalaryBreakdownPercentage,
    SystemConfig,
)
from payroll_workflow.models.payroll import SalaryDetail, SalaryHeader
from payroll_workflow.models.requests import (
    EmployeeLeave,
    EmpMonthlyAllowance,
    EmpMonthlyDeduction,
    ManualAttendanceRequest,
    ProjectLaborRequestDetail,
    ProjectLaborRequestHeader,
    ProjectPaymentRequest,
    ProjectTransferRequest,
)

APPROVABLE_MODELS: dict[RequestType, type[ApprovableMixin]] = {
    model.request_type: model
    for model in (
        EmployeeLeave,
        Loan,
        LoanPostponementRequest,
        ManualAttendanceRequest,
        EmpMonthlyAllowance,
        EmpMonthlyDeduction,
        ProjectPaymentRequest,
        ProjectTransferRequest,
        ProjectLaborRequestHeader,
        SalaryHeader,
    )
}

__all__ = [
    "APPROVABLE_MODELS",
    "ApprovableMixin",
    "ApprovalChainLevel",
    "AttendanceDay",
    "Base",
    "Department",
    "Employee",
    "EmployeeContractAllowance",
    "EmployeeLeave",
    "EmpMonthlyAllowance",
    "EmpMonthlyDeduction",
    "InstallmentStatus",
    "Loan",
    "LoanInstallment",
    "LoanPostponementRequest",
    "ManualAttendanceRequest",
    "Project",
    "ProjectLaborRequestDetail",
    "ProjectLaborRequestHeader",
    "ProjectPaymentRequest",
    "ProjectTransferRequest",
    "RequestStatus",
    "RequestType",
    "SalaryBreakdownPercentage",
    "SalaryDetail",
    "SalaryHeader",
    "SystemConfig",
    "TimestampMixin",
]
