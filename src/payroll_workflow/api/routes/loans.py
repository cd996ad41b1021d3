"""Loan endpoints."""

from fastapi import APIRouter, status

from payroll_workflow.api.dependencies import ActorNo, Services
from payroll_workflow.api.schemas import (
    ErrorResponse,
    LoanCreate,
    LoanPostponementCreate,
    LoanResponse,
    PostponeMonthRequest,
    PostponeMonthResponse,
    RequestResponse,
)

router = APIRouter(prefix="/loans", tags=["loans"])

ERRORS = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.post("", response_model=LoanResponse, status_code=status.HTTP_201_CREATED, responses=ERRORS)
async def submit_loan(services: Services, actor_no: ActorNo, payload: LoanCreate) -> LoanResponse:
    """Request a loan for the acting employee."""
    async with services.unit_of_work():
        loan = await services.loans.submit_loan(
            actor_no,
            payload.loan_amount,
            payload.no_of_installments,
            payload.first_installment_date,
            payload.notes,
        )
    return LoanResponse.model_validate(loan)


@router.get("/{loan_id}", response_model=LoanResponse, responses=ERRORS)
async def get_loan(services: Services, loan_id: int) -> LoanResponse:
    return LoanResponse.model_validate(await services.loans.get_loan(loan_id))


@router.post(
    "/{loan_id}/postponements",
    response_model=RequestResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
async def submit_postponement(
    services: Services, actor_no: ActorNo, loan_id: int, payload: LoanPostponementCreate
) -> RequestResponse:
    """Request that one unpaid installment be moved to a later date."""
    async with services.unit_of_work():
        request = await services.loans.submit_postponement(
            loan_id, payload.installment_id, payload.new_due_date, payload.reason
        )
    return RequestResponse.from_request(request)


@router.post("/postpone-month", response_model=PostponeMonthResponse, responses=ERRORS)
async def postpone_month(
    services: Services, actor_no: ActorNo, payload: PostponeMonthRequest
) -> PostponeMonthResponse:
    """Move every unpaid installment of a month to another month."""
    async with services.unit_of_work():
        moved = await services.loans.postpone_month(payload.original_month, payload.new_month)
    return PostponeMonthResponse(moved=moved)
