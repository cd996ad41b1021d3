"""Request submission and approval endpoints."""

from fastapi import APIRouter, Query, status

from payroll_workflow.api.dependencies import ActorNo, Services
from payroll_workflow.api.schemas import (
    ErrorResponse,
    InboxResponse,
    LaborRequestCreate,
    LeaveCreate,
    ManualAttendanceCreate,
    MonthlyItemCreate,
    ProjectPaymentCreate,
    ProjectTransferCreate,
    RejectionRequest,
    RequestResponse,
    TimelineStepResponse,
)
from payroll_workflow.errors import RecordNotFoundError
from payroll_workflow.models import ApprovableMixin, RequestType
from payroll_workflow.services.request_service import LaborLine
from payroll_workflow.services.workflow import WorkflowServices

router = APIRouter(prefix="/requests", tags=["requests"])

ERRORS = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


async def _load(
    services: WorkflowServices, request_type: RequestType, request_id: int
) -> ApprovableMixin:
    request = await services.engine.get_request(request_type, request_id)
    if request is None:
        raise RecordNotFoundError(request_type.value, request_id)
    return request


# ============================================================================
# Submission
# ============================================================================


@router.post("/leave", response_model=RequestResponse, status_code=status.HTTP_201_CREATED, responses=ERRORS)
async def submit_leave(services: Services, actor_no: ActorNo, payload: LeaveCreate) -> RequestResponse:
    """Submit a leave request for the acting employee."""
    async with services.unit_of_work():
        leave = await services.requests.submit_leave(
            actor_no, payload.from_date, payload.to_date, payload.leave_type, payload.notes
        )
    return RequestResponse.from_request(leave)


@router.post(
    "/manual-attendance",
    response_model=RequestResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
async def submit_manual_attendance(
    services: Services, actor_no: ActorNo, payload: ManualAttendanceCreate
) -> RequestResponse:
    async with services.unit_of_work():
        request = await services.requests.submit_manual_attendance(
            actor_no, payload.attendance_date, payload.entry_time, payload.exit_time, payload.reason
        )
    return RequestResponse.from_request(request)


@router.post("/allowances", response_model=RequestResponse, status_code=status.HTTP_201_CREATED, responses=ERRORS)
async def submit_allowance(
    services: Services, actor_no: ActorNo, payload: MonthlyItemCreate
) -> RequestResponse:
    """Submit an allowance, for the acting employee unless employee_no is given."""
    async with services.unit_of_work():
        allowance = await services.requests.submit_allowance(
            payload.employee_no or actor_no,
            payload.type_code,
            payload.amount,
            payload.start_date,
            payload.end_date,
            payload.is_periodical,
            payload.notes,
        )
    return RequestResponse.from_request(allowance)


@router.post("/deductions", response_model=RequestResponse, status_code=status.HTTP_201_CREATED, responses=ERRORS)
async def submit_deduction(
    services: Services, actor_no: ActorNo, payload: MonthlyItemCreate
) -> RequestResponse:
    async with services.unit_of_work():
        deduction = await services.requests.submit_deduction(
            payload.employee_no or actor_no,
            payload.type_code,
            payload.amount,
            payload.start_date,
            payload.end_date,
            payload.is_periodical,
            payload.notes,
        )
    return RequestResponse.from_request(deduction)


@router.post(
    "/project-payments",
    response_model=RequestResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
async def submit_project_payment(
    services: Services, actor_no: ActorNo, payload: ProjectPaymentCreate
) -> RequestResponse:
    async with services.unit_of_work():
        request = await services.requests.submit_project_payment(
            actor_no,
            payload.project_code,
            payload.supplier_name,
            payload.amount,
            payload.due_date,
            payload.purpose,
        )
    return RequestResponse.from_request(request)


@router.post(
    "/project-transfers",
    response_model=RequestResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
async def submit_project_transfer(
    services: Services, actor_no: ActorNo, payload: ProjectTransferCreate
) -> RequestResponse:
    async with services.unit_of_work():
        request = await services.requests.submit_project_transfer(
            payload.employee_no or actor_no,
            payload.to_project_code,
            payload.transfer_date,
            payload.reason,
        )
    return RequestResponse.from_request(request)


@router.post("/labor", response_model=RequestResponse, status_code=status.HTTP_201_CREATED, responses=ERRORS)
async def submit_labor_request(
    services: Services, actor_no: ActorNo, payload: LaborRequestCreate
) -> RequestResponse:
    lines = [LaborLine(line.job_title, line.quantity, line.daily_rate) for line in payload.lines]
    async with services.unit_of_work():
        request = await services.requests.submit_labor_request(
            actor_no,
            payload.project_code,
            payload.start_date,
            payload.end_date,
            lines,
            payload.notes,
        )
    return RequestResponse.from_request(request)


# ============================================================================
# Inbox and approval actions
# ============================================================================


@router.get("/inbox", response_model=InboxResponse)
async def inbox(
    services: Services,
    actor_no: ActorNo,
    request_type: RequestType | None = Query(default=None),
) -> InboxResponse:
    """List pending requests waiting on the acting employee."""
    pending = await services.engine.pending_for(actor_no, request_type)
    return InboxResponse(
        items=[RequestResponse.from_request(r) for r in pending],
        total=len(pending),
    )


@router.get("/{request_type}/{request_id}", response_model=RequestResponse, responses=ERRORS)
async def get_request(
    services: Services, request_type: RequestType, request_id: int
) -> RequestResponse:
    return RequestResponse.from_request(await _load(services, request_type, request_id))


@router.get(
    "/{request_type}/{request_id}/timeline",
    response_model=list[TimelineStepResponse],
    responses=ERRORS,
)
async def get_timeline(
    services: Services, request_type: RequestType, request_id: int
) -> list[TimelineStepResponse]:
    """Describe every approval level of the request."""
    request = await _load(services, request_type, request_id)
    steps = await services.engine.timeline(request)
    return [
        TimelineStepResponse(
            level_no=step.level_no,
            label=step.label,
            function=step.function,
            approver_no=step.approver_no,
            status=step.status.value,
            close_level=step.close_level,
        )
        for step in steps
    ]


@router.post("/{request_type}/{request_id}/approve", response_model=RequestResponse, responses=ERRORS)
async def approve_request(
    services: Services, actor_no: ActorNo, request_type: RequestType, request_id: int
) -> RequestResponse:
    """Approve the current level as the acting employee."""
    async with services.unit_of_work():
        request = await _load(services, request_type, request_id)
        await services.engine.approve(request, actor_no)
    return RequestResponse.from_request(request)


@router.post("/{request_type}/{request_id}/reject", response_model=RequestResponse, responses=ERRORS)
async def reject_request(
    services: Services,
    actor_no: ActorNo,
    request_type: RequestType,
    request_id: int,
    payload: RejectionRequest,
) -> RequestResponse:
    async with services.unit_of_work():
        request = await _load(services, request_type, request_id)
        await services.engine.reject(request, actor_no, payload.reason)
    return RequestResponse.from_request(request)


@router.post("/{request_type}/{request_id}/cancel", response_model=RequestResponse, responses=ERRORS)
async def cancel_request(
    services: Services, actor_no: ActorNo, request_type: RequestType, request_id: int
) -> RequestResponse:
    """Withdraw a pending request raised by the acting employee."""
    async with services.unit_of_work():
        request = await _load(services, request_type, request_id)
        await services.engine.cancel(request, requester_no=actor_no)
    return RequestResponse.from_request(request)
