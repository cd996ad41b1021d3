"""Pytest fixtures for approval workflow and payroll tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from payroll_workflow.config import PayrollPolicy
from payroll_workflow.events import NotificationEmitter, RecordingSink
from payroll_workflow.models import (
    ApprovalChainLevel,
    AttendanceDay,
    Base,
    Department,
    Employee,
    Project,
    SalaryBreakdownPercentage,
    SystemConfig,
)
from payroll_workflow.providers import SystemRole
from payroll_workflow.services import LockRegistry, build_services

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

HR_MANAGER = 1
FINANCE_MANAGER = 2
GENERAL_MANAGER = 3
ENG_MANAGER = 10
FIN_MANAGER = 20
PROJECT_MANAGER = 30
REGIONAL_MANAGER = 40
PROJECT_MANAGER_2 = 31
REGIONAL_MANAGER_2 = 41

EMPLOYEE = 100
EMPLOYEE_NO_MANAGER = 101
FIN_EMPLOYEE = 102

# (request_type, [(level_no, function_call, close_level)])
GLOBAL_CHAINS = {
    "VAC": [(1, "GetDirectManager", False), (2, "GetProjectManager", False), (3, "GetHRManager", True)],
    "PAYROLL": [(1, "GetHRManager", False), (2, "GetFinManager", False), (3, "GetGeneralManager", True)],
    "LOAN": [(1, "GetDirectManager", False), (2, "GetFinManager", True)],
    "POSTLOAN": [(1, "GetFinManager", True)],
    "MANUAL_ATTENDANCE": [(1, "GetDirectManager", True)],
    "ALLOW": [(1, "GetHRManager", True)],
    "DEDUCT": [(1, "GetHRManager", True)],
    "PROJ_PAYMENT": [(1, "GetProjectManager", False), (2, "GetRegionalManager", False), (3, "GetFinManager", True)],
    "PROJ_TRANSFER": [(1, "GetProjectManager", False), (2, "GetHRManager", True)],
    "LABOR_REQ": [(1, "GetProjectManager", False), (2, "GetRegionalManager", True)],
}


@pytest.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


async def seed_organization(session: AsyncSession) -> None:
    """Departments, projects, employees, roles, breakdowns and chains."""
    session.add_all(
        [
            Department(department_code="ENG", name="Engineering", manager_no=ENG_MANAGER),
            Department(department_code="FIN", name="Finance", manager_no=FIN_MANAGER),
            Project(
                project_code="P1",
                name="Harbor Works",
                project_manager_no=PROJECT_MANAGER,
                regional_manager_no=REGIONAL_MANAGER,
            ),
            Project(
                project_code="P2",
                name="Ring Road",
                project_manager_no=PROJECT_MANAGER_2,
                regional_manager_no=REGIONAL_MANAGER_2,
            ),
        ]
    )
    await session.flush()

    session.add_all(
        [
            Employee(
                employee_no=EMPLOYEE,
                name="Salma Haddad",
                department_code="ENG",
                project_code="P1",
                direct_manager_no=ENG_MANAGER,
                category="S",
                monthly_salary=Decimal("5000"),
                hire_date=date(2020, 1, 1),
                leave_balance_days=Decimal("21"),
            ),
            Employee(
                employee_no=EMPLOYEE_NO_MANAGER,
                name="Omar Nasser",
                department_code="ENG",
                project_code="P1",
                direct_manager_no=None,
                category="F",
                monthly_salary=Decimal("9000"),
                hire_date=date(2021, 6, 1),
                leave_balance_days=Decimal("10"),
            ),
            Employee(
                employee_no=FIN_EMPLOYEE,
                name="Lina Farouk",
                department_code="FIN",
                project_code=None,
                direct_manager_no=FIN_MANAGER,
                category="S",
                monthly_salary=Decimal("6000"),
                hire_date=date(2019, 3, 1),
                leave_balance_days=Decimal("30"),
            ),
            SystemConfig(config_key=SystemRole.HR_MANAGER.value, config_value=str(HR_MANAGER)),
            SystemConfig(config_key=SystemRole.FINANCE_MANAGER.value, config_value=str(FINANCE_MANAGER)),
            SystemConfig(config_key=SystemRole.GENERAL_MANAGER.value, config_value=str(GENERAL_MANAGER)),
            SalaryBreakdownPercentage(employee_category="S", trans_type_code=1, salary_percentage=Decimal("0.834")),
            SalaryBreakdownPercentage(employee_category="S", trans_type_code=2, salary_percentage=Decimal("0.166")),
        ]
    )

    for request_type, levels in GLOBAL_CHAINS.items():
        for level_no, function_call, close_level in levels:
            session.add(
                ApprovalChainLevel(
                    request_type=request_type,
                    level_no=level_no,
                    function_call=function_call,
                    close_level=close_level,
                )
            )
    # Finance department leave goes straight to the finance manager
    session.add(
        ApprovalChainLevel(
            request_type="VAC",
            level_no=1,
            function_call="GetFinManager",
            close_level=True,
            department_code="FIN",
        )
    )
    await session.flush()


@pytest.fixture
async def org(session: AsyncSession) -> AsyncSession:
    """Session seeded with the test organization."""
    await seed_organization(session)
    return session


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def emitter(sink: RecordingSink) -> NotificationEmitter:
    emitter = NotificationEmitter()
    emitter.on_all(sink)
    return emitter


@pytest.fixture
def policy() -> PayrollPolicy:
    return PayrollPolicy()


@pytest.fixture
async def services(org: AsyncSession, emitter: NotificationEmitter, policy: PayrollPolicy):
    """Workflow services over the seeded organization."""
    return await build_services(org, policy=policy, emitter=emitter, locks=LockRegistry())


async def approve_all(services, request, approvers: list[int]):
    """Approve a request level by level."""
    for approver in approvers:
        await services.engine.approve(request, approver)
    return request


def attendance(employee_no: int, day: date, **figures) -> AttendanceDay:
    values = {key: Decimal(str(value)) if not isinstance(value, bool) else value for key, value in figures.items()}
    return AttendanceDay(employee_no=employee_no, attendance_date=day, **values)
