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


@pytest.fixture()
def milestones_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "milestones_materials_test.db"
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


def _create_site(client: TestClient, token: str, name: str = "Ocean Heights") -> str:
    response = client.post("/api/sites", json={"name": name}, headers=_auth_header(token))
    assert response.status_code == 201
    return response.json()["id"]


def test_milestone_delay_and_completion(milestones_client: TestClient) -> None:
    token = _admin_token(milestones_client)
    site_id = _create_site(milestones_client, token)
    planned = date.today() - timedelta(days=5)

    created = milestones_client.post(
        f"/api/sites/{site_id}/milestones",
        json={"name": "Roof slab", "floor": "First Floor", "planned_end_date": planned.isoformat()},
        headers=_auth_header(token),
    )
    assert created.status_code == 201
    milestone = created.json()
    assert milestone["status"] == "delayed"
    assert milestone["delay_days"] == 5
    assert milestone["project_name"] == "Ocean Heights"

    completed = milestones_client.patch(
        f"/api/milestones/{milestone['id']}",
        json={"status": "completed"},
        headers=_auth_header(token),
    )
    assert completed.status_code == 200
    body = completed.json()
    assert body["status"] == "completed"
    assert body["progress"] == 100
    assert body["actual_completion_date"] == date.today().isoformat()
    assert body["delay_days"] == 5

    completion = milestones_client.get(f"/api/sites/{site_id}/completion", headers=_auth_header(token)).json()
    assert completion["breakdown"]["milestones"] == {"total": 1, "completed": 1}
    assert completion["status"] == "COMPLETED"

    listed = milestones_client.get(f"/api/sites/{site_id}/milestones", headers=_auth_header(token)).json()
    assert [item["id"] for item in listed] == [milestone["id"]]

    deleted = milestones_client.delete(f"/api/milestones/{milestone['id']}", headers=_auth_header(token))
    assert deleted.status_code == 204
    assert milestones_client.get(f"/api/milestones/{milestone['id']}", headers=_auth_header(token)).status_code == 404


def test_reopened_milestone_clears_completion_date(milestones_client: TestClient) -> None:
    token = _admin_token(milestones_client)
    site_id = _create_site(milestones_client, token)
    planned = date.today() - timedelta(days=5)
    milestone = milestones_client.post(
        f"/api/sites/{site_id}/milestones",
        json={"name": "Plinth beam", "planned_end_date": planned.isoformat()},
        headers=_auth_header(token),
    ).json()

    finished_early = milestones_client.patch(
        f"/api/milestones/{milestone['id']}",
        json={"status": "completed", "actual_completion_date": (planned - timedelta(days=2)).isoformat()},
        headers=_auth_header(token),
    ).json()
    assert finished_early["delay_days"] == 0

    reopened = milestones_client.patch(
        f"/api/milestones/{milestone['id']}",
        json={"status": "in_progress"},
        headers=_auth_header(token),
    )
    assert reopened.status_code == 200
    body = reopened.json()
    assert body["actual_completion_date"] is None
    assert body["delay_days"] == 5
    assert body["status"] == "delayed"

    null_name = milestones_client.patch(
        f"/api/milestones/{milestone['id']}",
        json={"name": None},
        headers=_auth_header(token),
    )
    assert null_name.status_code == 422


def test_future_milestone_stays_pending(milestones_client: TestClient) -> None:
    token = _admin_token(milestones_client)
    site_id = _create_site(milestones_client, token)
    response = milestones_client.post(
        f"/api/sites/{site_id}/milestones",
        json={"name": "Handover", "planned_end_date": (date.today() + timedelta(days=30)).isoformat()},
        headers=_auth_header(token),
    ).json()
    assert response["status"] == "pending"
    assert response["delay_days"] == 0


def test_employee_cannot_write_milestones(milestones_client: TestClient) -> None:
    token = _admin_token(milestones_client)
    _create_employee(milestones_client, token, "Rahim", "rahim@noor.test")
    worker_token = _login(milestones_client, "rahim@noor.test", "worker-pass")
    site_id = _create_site(milestones_client, token)
    response = milestones_client.post(
        f"/api/sites/{site_id}/milestones",
        json={"name": "Roof slab"},
        headers=_auth_header(worker_token),
    )
    assert response.status_code == 403


def test_material_request_flow(milestones_client: TestClient) -> None:
    token = _admin_token(milestones_client)
    worker_id = _create_employee(milestones_client, token, "Rahim", "rahim@noor.test")
    worker_token = _login(milestones_client, "rahim@noor.test", "worker-pass")
    site_id = _create_site(milestones_client, token)

    requested = milestones_client.post(
        f"/api/sites/{site_id}/material-requests",
        json={"material_name": "Cement", "quantity": 40, "unit": "bag"},
        headers=_auth_header(worker_token),
    )
    assert requested.status_code == 201
    material = requested.json()
    assert material["status"] == "pending"
    assert material["requested_by"] == worker_id

    denied = milestones_client.post(
        f"/api/material-requests/{material['id']}/status",
        json={"status": "approved"},
        headers=_auth_header(worker_token),
    )
    assert denied.status_code == 403

    approved = milestones_client.post(
        f"/api/material-requests/{material['id']}/status",
        json={"status": "approved", "note": "order from usual supplier"},
        headers=_auth_header(token),
    )
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert approved.json()["decided_by"] is not None
    assert approved.json()["note"] == "order from usual supplier"

    completion = milestones_client.get(f"/api/sites/{site_id}/completion", headers=_auth_header(token)).json()
    assert completion["breakdown"]["materials"] == {"total": 1, "completed": 1}

    received = milestones_client.post(
        f"/api/material-requests/{material['id']}/status",
        json={"status": "received"},
        headers=_auth_header(token),
    )
    assert received.json()["status"] == "received"

    illegal = milestones_client.post(
        f"/api/material-requests/{material['id']}/status",
        json={"status": "rejected"},
        headers=_auth_header(token),
    )
    assert illegal.status_code == 409

    pending = milestones_client.get(
        f"/api/sites/{site_id}/material-requests",
        params={"status": "pending"},
        headers=_auth_header(token),
    ).json()
    assert pending == []
    everything = milestones_client.get(
        f"/api/sites/{site_id}/material-requests",
        headers=_auth_header(worker_token),
    ).json()
    assert [item["material_name"] for item in everything] == ["Cement"]


def test_material_request_for_unknown_site(milestones_client: TestClient) -> None:
    token = _admin_token(milestones_client)
    response = milestones_client.post(
        "/api/sites/missing/material-requests",
        json={"material_name": "Sand", "quantity": 2},
        headers=_auth_header(token),
    )
    assert response.status_code == 404
