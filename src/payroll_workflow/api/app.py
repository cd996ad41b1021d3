"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from payroll_workflow import __version__
from payroll_workflow.api.routes import (
    approvals_router,
    health_router,
    loans_router,
    payroll_router,
)
from payroll_workflow.config import PayrollPolicy, configure_logging
from payroll_workflow.database import dispose_db, init_db
from payroll_workflow.errors import (
    ApprovalChainNotConfiguredError,
    ConcurrentModificationError,
    InvalidTransitionError,
    PriorPayrollUnapprovedError,
    RecordNotFoundError,
    RequestValidationError,
    ResolutionError,
    UnauthorizedApproverError,
    WorkflowError,
)
from payroll_workflow.events import NotificationEmitter

logger = logging.getLogger(__name__)

# Most specific first; the first isinstance match wins
ERROR_STATUS: list[tuple[type[WorkflowError], int, str]] = [
    (RecordNotFoundError, status.HTTP_404_NOT_FOUND, "NOT_FOUND"),
    (UnauthorizedApproverError, status.HTTP_403_FORBIDDEN, "UNAUTHORIZED_APPROVER"),
    (ConcurrentModificationError, status.HTTP_409_CONFLICT, "CONCURRENT_MODIFICATION"),
    (InvalidTransitionError, status.HTTP_409_CONFLICT, "INVALID_TRANSITION"),
    (PriorPayrollUnapprovedError, status.HTTP_409_CONFLICT, "PRIOR_PAYROLL_UNAPPROVED"),
    (ApprovalChainNotConfiguredError, status.HTTP_422_UNPROCESSABLE_ENTITY, "CHAIN_NOT_CONFIGURED"),
    (ResolutionError, status.HTTP_422_UNPROCESSABLE_ENTITY, "APPROVER_UNRESOLVED"),
    (RequestValidationError, status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR"),
]


def error_status(exc: WorkflowError) -> tuple[int, str]:
    for error_type, code, name in ERROR_STATUS:
        if isinstance(exc, error_type):
            return code, name
    return status.HTTP_400_BAD_REQUEST, "WORKFLOW_ERROR"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    configure_logging()
    init_db()
    yield
    await dispose_db()


def create_app(
    policy: PayrollPolicy | None = None,
    emitter: NotificationEmitter | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="HR Payroll Workflow API",
        description="Approval chains, loans and versioned monthly payroll",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.policy = policy or PayrollPolicy()
    app.state.emitter = emitter or NotificationEmitter()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(WorkflowError)
    async def workflow_exception_handler(
        request: Request, exc: WorkflowError
    ) -> JSONResponse:
        """Map workflow errors onto HTTP status codes."""
        code, name = error_status(exc)
        logger.info("%s %s -> %s: %s", request.method, request.url.path, code, exc)
        return JSONResponse(status_code=code, content={"detail": str(exc), "code": name})

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    app.include_router(health_router)
    app.include_router(approvals_router, prefix="/api/v1")
    app.include_router(payroll_router, prefix="/api/v1")
    app.include_router(loans_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
