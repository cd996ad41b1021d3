"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_workflow.database import init_db
from payroll_workflow.services.workflow import WorkflowServices, build_services


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_actor_no(
    x_employee_no: Annotated[str | None, Header()] = None
) -> int:
    """Extract the acting employee number from header."""
    if not x_employee_no:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Employee-No header is required",
        )
    try:
        return int(x_employee_no)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-Employee-No format",
        )


async def get_services(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> WorkflowServices:
    """Build the workflow services bound to the request's session."""
    return await build_services(
        db,
        policy=request.app.state.policy,
        emitter=request.app.state.emitter,
    )


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
ActorNo = Annotated[int, Depends(get_actor_no)]
Services = Annotated[WorkflowServices, Depends(get_services)]
