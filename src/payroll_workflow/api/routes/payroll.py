"""Payroll calculation endpoints."""

from typing import Annotated

from fastapi import APIRouter, Path, status

from payroll_workflow.api.dependencies import ActorNo, Services
from payroll_workflow.api.schemas import (
    BatchCalculationResponse,
    CalculatePayrollRequest,
    ErrorResponse,
    RecalculatePayrollRequest,
    SalaryHeaderResponse,
)
from payroll_workflow.errors import RecordNotFoundError

router = APIRouter(prefix="/payroll", tags=["payroll"])

SalaryMonthPath = Annotated[str, Path(pattern=r"^\d{4}-\d{2}$")]
ERRORS = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.post(
    "/{employee_no}/calculate",
    response_model=SalaryHeaderResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
async def calculate_payroll(
    services: Services,
    actor_no: ActorNo,
    employee_no: int,
    payload: CalculatePayrollRequest,
) -> SalaryHeaderResponse:
    """Calculate a new payroll version and submit it for approval."""
    async with services.unit_of_work():
        header = await services.payroll.calculate(employee_no, payload.salary_month)
    return SalaryHeaderResponse.model_validate(header)


@router.post(
    "/{employee_no}/recalculate",
    response_model=SalaryHeaderResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
async def recalculate_payroll(
    services: Services,
    actor_no: ActorNo,
    employee_no: int,
    payload: RecalculatePayrollRequest,
) -> SalaryHeaderResponse:
    """Recalculate a month that has not been approved yet."""
    async with services.unit_of_work():
        header = await services.payroll.recalculate(employee_no, payload.salary_month, payload.reason)
    return SalaryHeaderResponse.model_validate(header)


@router.post("/calculate-all", response_model=BatchCalculationResponse, responses=ERRORS)
async def calculate_all(
    services: Services, actor_no: ActorNo, payload: CalculatePayrollRequest
) -> BatchCalculationResponse:
    async with services.unit_of_work():
        result = await services.payroll.calculate_all(payload.salary_month)
    return BatchCalculationResponse(
        salary_month=result.salary_month,
        calculated=result.calculated,
        failed=result.failed,
    )


@router.get("/{employee_no}/{salary_month}", response_model=SalaryHeaderResponse, responses=ERRORS)
async def get_latest_payroll(
    services: Services, employee_no: int, salary_month: SalaryMonthPath
) -> SalaryHeaderResponse:
    """Get the latest payroll version of a month."""
    header = await services.payroll.get_latest(employee_no, salary_month)
    if header is None:
        raise RecordNotFoundError("SalaryHeader", f"{employee_no}/{salary_month}")
    return SalaryHeaderResponse.model_validate(header)


@router.get(
    "/{employee_no}/{salary_month}/versions",
    response_model=list[SalaryHeaderResponse],
)
async def list_payroll_versions(
    services: Services, employee_no: int, salary_month: SalaryMonthPath
) -> list[SalaryHeaderResponse]:
    versions = await services.payroll.get_versions(employee_no, salary_month)
    return [SalaryHeaderResponse.model_validate(v) for v in versions]
