from __future__ import annotations

from collections.abc import Generator
from datetime import date, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlmodel import SQLModel, create_engine

from noor import main as app_main
from noor.infra import audit, auth, db, events
from noor.services import report_service


@pytest.fixture()
def finance_report_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "finance_report_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: object, _connection_record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    monkeypatch.setattr(audit, "engine", test_engine)
    monkeypatch.setattr(events, "engine", test_engine)
    monkeypatch.setattr(auth, "BCRYPT_ROUNDS", 4)
    client = TestClient(app_main.app)
    yield client
    client.close()


def _auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _login(client: TestClient, identifier: str, password: str) -> str:
    response = client.post("/api/auth/login", json={"identifier": identifier, "password": password})
    assert response.status_code == 200
    return response.json()["access_token"]


def _admin_token(client: TestClient) -> str:
    response = client.post(
        "/api/auth/bootstrap-admin",
        json={"name": "Site Admin", "email": "admin@noor.test", "password": "admin-pass"},
    )
    assert response.status_code == 201
    return _login(client, "admin@noor.test", "admin-pass")


def _create_employee(
    client: TestClient,
    token: str,
    name: str,
    email: str,
    role: str = "employee",
) -> str:
    response = client.post(
        "/api/admin/employees",
        json={"name": name, "email": email, "password": "worker-pass", "role": role},
        headers=_auth_header(token),
    )
    assert response.status_code == 201
    return response.json()["id"]


def _create_site(client: TestClient, token: str, name: str, **extra: object) -> str:
    payload: dict[str, object] = {"name": name}
    payload.update(extra)
    response = client.post("/api/sites", json=payload, headers=_auth_header(token))
    assert response.status_code == 201
    return response.json()["id"]


def _add_transaction(client: TestClient, token: str, site_id: str, kind: str, amount: float) -> None:
    response = client.post(
        f"/api/sites/{site_id}/transactions",
        json={"kind": kind, "amount": amount, "description": f"{kind} entry"},
        headers=_auth_header(token),
    )
    assert response.status_code == 201


def test_performance_score() -> None:
    assert report_service.performance_score(0, 0, 0, 0) == 0
    assert report_service.performance_score(4, 4, 4, 0) == 100
    assert report_service.performance_score(4, 2, 1, 1) == 48
    assert report_service.performance_score(2, 1, 1, 30) == 45


def test_parse_project_ids() -> None:
    assert report_service.parse_project_ids(None) == []
    assert report_service.parse_project_ids(" a, ,b ,") == ["a", "b"]


def test_site_financials(finance_report_client: TestClient) -> None:
    token = _admin_token(finance_report_client)
    site_id = _create_site(finance_report_client, token, "Palm Court", budget=100000)
    _add_transaction(finance_report_client, token, site_id, "income", 200000)
    _add_transaction(finance_report_client, token, site_id, "expense", 30000)
    _add_transaction(finance_report_client, token, site_id, "expense", 20000)

    financials = finance_report_client.get(
        f"/api/sites/{site_id}/financials",
        headers=_auth_header(token),
    ).json()
    assert financials == {
        "site_id": site_id,
        "budget": 100000.0,
        "received": 200000.0,
        "spent": 50000.0,
        "balance": 150000.0,
        "utilization_percentage": 50.0,
    }

    expenses = finance_report_client.get(
        f"/api/sites/{site_id}/transactions",
        params={"kind": "expense"},
        headers=_auth_header(token),
    ).json()
    assert sorted(item["amount"] for item in expenses) == [20000.0, 30000.0]


def test_finance_permissions_and_missing_site(finance_report_client: TestClient) -> None:
    token = _admin_token(finance_report_client)
    _create_employee(finance_report_client, token, "Sara", "sara@noor.test", role="supervisor")
    supervisor_token = _login(finance_report_client, "sara@noor.test", "worker-pass")
    site_id = _create_site(finance_report_client, token, "Palm Court")

    readable = finance_report_client.get(
        f"/api/sites/{site_id}/financials",
        headers=_auth_header(supervisor_token),
    )
    assert readable.status_code == 200
    assert readable.json()["utilization_percentage"] == 0.0

    denied = finance_report_client.post(
        f"/api/sites/{site_id}/transactions",
        json={"kind": "expense", "amount": 10},
        headers=_auth_header(supervisor_token),
    )
    assert denied.status_code == 403

    missing = finance_report_client.get("/api/sites/missing/financials", headers=_auth_header(token))
    assert missing.status_code == 404


def test_overall_report(finance_report_client: TestClient) -> None:
    token = _admin_token(finance_report_client)
    worker_id = _create_employee(finance_report_client, token, "Rahim", "rahim@noor.test")
    late_site = _create_site(
        finance_report_client,
        token,
        "Alpha Tower",
        budget=1000,
        status="active",
        end_date=(date.today() - timedelta(days=3)).isoformat(),
    )
    other_site = _create_site(finance_report_client, token, "Beta Villa", budget=5000)
    _add_transaction(finance_report_client, token, late_site, "expense", 1500)
    _add_transaction(finance_report_client, token, other_site, "income", 2000)

    phase = finance_report_client.post(
        f"/api/sites/{late_site}/phases",
        json={"name": "Foundation Work"},
        headers=_auth_header(token),
    ).json()
    task = finance_report_client.post(
        f"/api/phases/{phase['id']}/tasks",
        json={"name": "Pour footing", "assignee_ids": [worker_id]},
        headers=_auth_header(token),
    ).json()
    finance_report_client.post(f"/api/tasks/{task['id']}/submit", headers=_auth_header(token))
    finance_report_client.post(f"/api/tasks/{task['id']}/approve", headers=_auth_header(token))
    finance_report_client.post(
        f"/api/sites/{other_site}/milestones",
        json={"name": "Boundary wall", "planned_end_date": (date.today() + timedelta(days=10)).isoformat()},
        headers=_auth_header(token),
    )

    response = finance_report_client.get("/api/admin/overall-report", headers=_auth_header(token))
    assert response.status_code == 200
    report = response.json()

    overview = report["company_overview"]
    assert overview["total_projects"] == 2
    assert overview["active_projects"] == 1
    assert overview["projects_with_delays"] == 1
    assert overview["active_employees_today"] == 1

    assert report["financial_summary"]["total_allocated"] == 6000.0
    assert report["financial_summary"]["total_expenses"] == 1500.0
    assert report["financial_summary"]["total_received"] == 2000.0
    assert report["financial_summary"]["balance"] == 500.0

    projects = {item["name"]: item for item in report["project_summary"]}
    assert projects["Alpha Tower"]["status"] == "delayed"
    assert projects["Alpha Tower"]["days_behind"] == 3
    assert projects["Alpha Tower"]["completed_tasks"] == 1
    assert projects["Beta Villa"]["status"] == "on_track"

    assert report["milestones"]["stats"]["pending"] == 1
    assert [item["name"] for item in report["milestones"]["list"]] == ["Boundary wall"]
    assert report["task_statistics"]["completed_tasks"] == 1

    performance = report["employee_performance"]
    assert [item["name"] for item in performance] == ["Rahim"]
    assert performance[0]["completed_tasks"] == 1
    assert performance[0]["performance_score"] == 100
    assert performance[0]["last_activity"] == date.today().isoformat()

    assert "Alpha Tower has exceeded its budget" in report["action_items"]
    assert "Alpha Tower is 3 day(s) behind schedule" in report["action_items"]
    assert [item["name"] for item in report["top_expense_projects"]] == ["Alpha Tower"]
    assert report["top_expense_projects"][0]["utilization_percentage"] == 150.0

    filtered = finance_report_client.get(
        "/api/admin/overall-report",
        params={"project_ids": other_site},
        headers=_auth_header(token),
    ).json()
    assert [item["name"] for item in filtered["project_summary"]] == ["Beta Villa"]


def test_overall_report_validation_and_access(finance_report_client: TestClient) -> None:
    token = _admin_token(finance_report_client)
    _create_employee(finance_report_client, token, "Sara", "sara@noor.test", role="supervisor")
    supervisor_token = _login(finance_report_client, "sara@noor.test", "worker-pass")

    bad_range = finance_report_client.get(
        "/api/admin/overall-report",
        params={"from_date": "2026-05-01", "to_date": "2026-04-01"},
        headers=_auth_header(token),
    )
    assert bad_range.status_code == 400

    denied = finance_report_client.get("/api/admin/overall-report", headers=_auth_header(supervisor_token))
    assert denied.status_code == 403
