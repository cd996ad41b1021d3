"""Tests for the unit-of-work wrapper around the workflow services."""

from datetime import date

import pytest
from sqlalchemy import select

from payroll_workflow.errors import RequestValidationError
from payroll_workflow.events import NotificationEventType
from payroll_workflow.models import EmployeeLeave
from tests.conftest import EMPLOYEE


class TestUnitOfWork:
    async def test_commit_releases_notifications(self, services, sink):
        async with services.unit_of_work():
            leave = await services.requests.submit_leave(EMPLOYEE, date(2024, 5, 1), date(2024, 5, 2))
            assert sink.events == []

        submitted = sink.of_type(NotificationEventType.REQUEST_SUBMITTED)
        assert [e.request_id for e in submitted] == [leave.leave_id]

    async def test_failure_rolls_back_and_stays_silent(self, services, sink):
        with pytest.raises(RequestValidationError):
            async with services.unit_of_work():
                await services.requests.submit_leave(EMPLOYEE, date(2024, 5, 1), date(2024, 5, 2))
                await services.requests.submit_leave(EMPLOYEE, date(2024, 5, 2), date(2024, 5, 3))

        assert sink.events == []
        assert (await services.session.scalars(select(EmployeeLeave))).all() == []
