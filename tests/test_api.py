"""API endpoint tests.

Exercises the FastAPI routes against the seeded in-memory database.
"""

from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient

from payroll_workflow.api.app import create_app
from payroll_workflow.api.dependencies import get_db_session
from payroll_workflow.events import NotificationEventType
from tests.conftest import EMPLOYEE, ENG_MANAGER, FINANCE_MANAGER, HR_MANAGER, PROJECT_MANAGER


@pytest.fixture
async def client(org, emitter):
    app = create_app(emitter=emitter)

    async def override_session():
        yield org

    app.dependency_overrides[get_db_session] = override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


def as_employee(employee_no: int) -> dict[str, str]:
    return {"X-Employee-No": str(employee_no)}


LEAVE = {"from_date": "2024-05-01", "to_date": "2024-05-03", "leave_type": "annual"}


class TestHealthEndpoints:
    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"

    async def test_readiness_and_liveness(self, client: AsyncClient):
        assert (await client.get("/ready")).json()["status"] == "ready"
        assert (await client.get("/live")).json()["status"] == "alive"


class TestRequestEndpoints:
    async def test_leave_through_full_chain(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/requests/leave", headers=as_employee(EMPLOYEE), json=LEAVE
        )
        assert response.status_code == 201, response.text
        leave = response.json()
        assert leave["request_type"] == "VAC"
        assert leave["next_approval"] == ENG_MANAGER
        path = f"/api/v1/requests/VAC/{leave['request_id']}"

        inbox = await client.get("/api/v1/requests/inbox", headers=as_employee(ENG_MANAGER))
        assert inbox.json()["total"] == 1

        for approver in (ENG_MANAGER, PROJECT_MANAGER, HR_MANAGER):
            response = await client.post(f"{path}/approve", headers=as_employee(approver))
            assert response.status_code == 200, response.text

        data = response.json()
        assert data["status"] == "approved"
        assert data["approved_by"] == HR_MANAGER

        timeline = await client.get(f"{path}/timeline")
        assert [step["status"] for step in timeline.json()] == ["COMPLETED"] * 3

    async def test_submission_notifies_after_commit(self, client: AsyncClient, sink):
        response = await client.post(
            "/api/v1/requests/leave", headers=as_employee(EMPLOYEE), json=LEAVE
        )

        submitted = sink.of_type(NotificationEventType.REQUEST_SUBMITTED)
        assert [e.request_id for e in submitted] == [response.json()["request_id"]]
        assert submitted[0].recipient_no == ENG_MANAGER

    async def test_requires_employee_header(self, client: AsyncClient):
        response = await client.post("/api/v1/requests/leave", json=LEAVE)
        assert response.status_code == 400

    async def test_wrong_approver_forbidden(self, client: AsyncClient):
        leave = (
            await client.post("/api/v1/requests/leave", headers=as_employee(EMPLOYEE), json=LEAVE)
        ).json()

        response = await client.post(
            f"/api/v1/requests/VAC/{leave['request_id']}/approve",
            headers=as_employee(HR_MANAGER),
        )

        assert response.status_code == 403
        assert response.json()["code"] == "UNAUTHORIZED_APPROVER"

    async def test_reject_and_cancel(self, client: AsyncClient):
        leave = (
            await client.post("/api/v1/requests/leave", headers=as_employee(EMPLOYEE), json=LEAVE)
        ).json()
        path = f"/api/v1/requests/VAC/{leave['request_id']}"

        response = await client.post(
            f"{path}/reject", headers=as_employee(ENG_MANAGER), json={"reason": "Team offsite"}
        )
        assert response.json()["status"] == "rejected"

        response = await client.post(f"{path}/cancel", headers=as_employee(EMPLOYEE))
        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_TRANSITION"

    async def test_validation_error(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/requests/leave",
            headers=as_employee(EMPLOYEE),
            json={"from_date": "2024-05-01", "to_date": "2024-06-30"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_unknown_request(self, client: AsyncClient):
        response = await client.get("/api/v1/requests/LOAN/999")

        assert response.status_code == 404


class TestPayrollEndpoints:
    async def test_calculate_and_fetch(self, client: AsyncClient):
        response = await client.post(
            f"/api/v1/payroll/{EMPLOYEE}/calculate",
            headers=as_employee(HR_MANAGER),
            json={"salary_month": "2024-03"},
        )
        assert response.status_code == 201, response.text
        data = response.json()
        assert data["salary_version"] == 1
        assert Decimal(data["net_salary"]) == Decimal("5000")
        assert len(data["details"]) == 2

        response = await client.post(
            f"/api/v1/payroll/{EMPLOYEE}/recalculate",
            headers=as_employee(HR_MANAGER),
            json={"salary_month": "2024-03", "reason": "Overtime sheet arrived"},
        )
        assert response.json()["salary_version"] == 2

        latest = await client.get(f"/api/v1/payroll/{EMPLOYEE}/2024-03")
        assert latest.json()["salary_version"] == 2

        versions = await client.get(f"/api/v1/payroll/{EMPLOYEE}/2024-03/versions")
        assert [v["status"] for v in versions.json()] == ["cancelled", "pending"]

    async def test_prior_month_conflict(self, client: AsyncClient):
        await client.post(
            f"/api/v1/payroll/{EMPLOYEE}/calculate",
            headers=as_employee(HR_MANAGER),
            json={"salary_month": "2024-03"},
        )

        response = await client.post(
            f"/api/v1/payroll/{EMPLOYEE}/calculate",
            headers=as_employee(HR_MANAGER),
            json={"salary_month": "2024-04"},
        )

        assert response.status_code == 409
        assert response.json()["code"] == "PRIOR_PAYROLL_UNAPPROVED"

    async def test_missing_payroll(self, client: AsyncClient):
        response = await client.get(f"/api/v1/payroll/{EMPLOYEE}/2030-01")

        assert response.status_code == 404


class TestLoanEndpoints:
    async def test_loan_approval_creates_installments(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/loans",
            headers=as_employee(EMPLOYEE),
            json={
                "loan_amount": "1200",
                "no_of_installments": 4,
                "first_installment_date": "2099-01-01",
            },
        )
        assert response.status_code == 201, response.text
        loan = response.json()
        assert loan["installments"] == []

        for approver in (ENG_MANAGER, FINANCE_MANAGER):
            response = await client.post(
                f"/api/v1/requests/LOAN/{loan['loan_id']}/approve",
                headers=as_employee(approver),
            )
            assert response.status_code == 200, response.text

        loan = (await client.get(f"/api/v1/loans/{loan['loan_id']}")).json()
        assert loan["is_active"] is True
        assert [Decimal(i["installment_amount"]) for i in loan["installments"]] == [Decimal("300")] * 4

    async def test_postpone_month(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/loans/postpone-month",
            headers=as_employee(FINANCE_MANAGER),
            json={"original_month": "2099-01", "new_month": "2099-02"},
        )

        assert response.status_code == 200
        assert response.json() == {"moved": 0}
