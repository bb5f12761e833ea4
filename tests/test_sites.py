from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlmodel import SQLModel, create_engine

from noor import main as app_main
from noor.infra import audit, auth, db, events


@pytest.fixture()
def sites_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "sites_test.db"
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


def _create_site(client: TestClient, token: str, **extra: object) -> dict[str, object]:
    payload: dict[str, object] = {"name": "Green Tower", "location": "Dhaka", "budget": 500000}
    payload.update(extra)
    response = client.post("/api/sites", json=payload, headers=_auth_header(token))
    assert response.status_code == 201
    return response.json()


def test_site_crud_and_soft_delete(sites_client: TestClient) -> None:
    token = _admin_token(sites_client)
    site = _create_site(sites_client, token)
    assert site["status"] == "planning"
    assert site["completion_status"] == "IN_PROGRESS"
    assert site["completion_percentage"] == 0.0

    updated = sites_client.patch(
        f"/api/sites/{site['id']}",
        json={"status": "active", "budget": 750000},
        headers=_auth_header(token),
    )
    assert updated.status_code == 200
    assert updated.json()["status"] == "active"
    assert updated.json()["budget"] == 750000

    deleted = sites_client.delete(f"/api/sites/{site['id']}", headers=_auth_header(token))
    assert deleted.status_code == 204
    assert sites_client.get(f"/api/sites/{site['id']}", headers=_auth_header(token)).status_code == 404
    assert sites_client.get("/api/sites", headers=_auth_header(token)).json() == []


def test_site_created_from_template(sites_client: TestClient) -> None:
    token = _admin_token(sites_client)
    site = _create_site(sites_client, token, use_template=True)

    phases = sites_client.get(f"/api/sites/{site['id']}/phases", headers=_auth_header(token)).json()
    assert len(phases) == 42
    assert phases[0]["name"] == "Site Preparation"
    assert phases[0]["floor_name"] == "Basement"
    assert phases[0]["floor_number"] == -1
    assert phases[14]["serial_number"] == 15
    assert phases[14]["floor_name"] == "Ground Floor"
    assert phases[-1]["name"] == "Final Inspection"
    assert phases[-1]["floor_name"] == "First Floor"

    again = sites_client.post(f"/api/sites/{site['id']}/apply-template", headers=_auth_header(token))
    assert again.status_code == 200
    assert again.json() == {"site_id": site["id"], "applied": False, "phase_count": 42}


def test_apply_template_replaces_custom_phases(sites_client: TestClient) -> None:
    token = _admin_token(sites_client)
    site = _create_site(sites_client, token)
    phase = sites_client.post(
        f"/api/sites/{site['id']}/phases",
        json={"name": "Custom Work"},
        headers=_auth_header(token),
    ).json()
    task = sites_client.post(
        f"/api/phases/{phase['id']}/tasks",
        json={"name": "Clear rubble"},
        headers=_auth_header(token),
    ).json()

    applied = sites_client.post(f"/api/sites/{site['id']}/apply-template", headers=_auth_header(token))
    assert applied.status_code == 200
    assert applied.json()["applied"] is True

    phases = sites_client.get(f"/api/sites/{site['id']}/phases", headers=_auth_header(token)).json()
    assert len(phases) == 42
    assert "Custom Work" not in {item["name"] for item in phases}

    detached = sites_client.get(f"/api/tasks/{task['id']}", headers=_auth_header(token)).json()
    assert detached["phase_id"] is None
    assert detached["site_id"] == site["id"]


def test_phase_numbering_and_completion_flag(sites_client: TestClient) -> None:
    token = _admin_token(sites_client)
    site = _create_site(sites_client, token)
    first = sites_client.post(
        f"/api/sites/{site['id']}/phases",
        json={"name": "Foundation Work"},
        headers=_auth_header(token),
    ).json()
    second = sites_client.post(
        f"/api/sites/{site['id']}/phases",
        json={"name": "Slab Work"},
        headers=_auth_header(token),
    ).json()
    assert (first["serial_number"], first["order_num"]) == (1, 1)
    assert (second["serial_number"], second["order_num"]) == (2, 2)

    completed = sites_client.patch(
        f"/api/phases/{first['id']}",
        json={"status": "completed"},
        headers=_auth_header(token),
    )
    assert completed.status_code == 200
    assert completed.json()["progress"] == 100

    completion = sites_client.get(f"/api/sites/{site['id']}/completion", headers=_auth_header(token)).json()
    assert completion["breakdown"]["phases"] == {"total": 2, "completed": 1}
    assert completion["percentage"] == 50.0
    assert completion["status"] == "IN_PROGRESS"

    stored = sites_client.get(f"/api/sites/{site['id']}", headers=_auth_header(token)).json()
    assert stored["completion_percentage"] == 50.0

    sites_client.patch(f"/api/phases/{second['id']}", json={"status": "completed"}, headers=_auth_header(token))
    stored = sites_client.get(f"/api/sites/{site['id']}", headers=_auth_header(token)).json()
    assert stored["completion_status"] == "COMPLETED"
    assert stored["completion_percentage"] == 100.0
    assert stored["completed_at"] is not None

    deleted = sites_client.delete(f"/api/phases/{second['id']}", headers=_auth_header(token))
    assert deleted.status_code == 204
    recalculated = sites_client.post(
        f"/api/sites/{site['id']}/completion/recalculate",
        headers=_auth_header(token),
    ).json()
    assert recalculated["breakdown"]["phases"] == {"total": 1, "completed": 1}
    assert recalculated["status"] == "COMPLETED"


def test_employee_can_read_but_not_write_sites(sites_client: TestClient) -> None:
    token = _admin_token(sites_client)
    _create_employee(sites_client, token, "Rahim", "rahim@noor.test")
    worker_token = _login(sites_client, "rahim@noor.test", "worker-pass")
    site = _create_site(sites_client, token)

    assert sites_client.get(f"/api/sites/{site['id']}", headers=_auth_header(worker_token)).status_code == 200
    denied = sites_client.post("/api/sites", json={"name": "Nope"}, headers=_auth_header(worker_token))
    assert denied.status_code == 403


def test_completion_for_unknown_site(sites_client: TestClient) -> None:
    token = _admin_token(sites_client)
    response = sites_client.get("/api/sites/missing/completion", headers=_auth_header(token))
    assert response.status_code == 404


def test_patch_rejects_null_for_required_fields(sites_client: TestClient) -> None:
    token = _admin_token(sites_client)
    site = _create_site(sites_client, token)
    phase = sites_client.post(
        f"/api/sites/{site['id']}/phases",
        json={"name": "Foundation Work"},
        headers=_auth_header(token),
    ).json()

    null_name = sites_client.patch(f"/api/sites/{site['id']}", json={"name": None}, headers=_auth_header(token))
    assert null_name.status_code == 422
    null_status = sites_client.patch(
        f"/api/phases/{phase['id']}",
        json={"status": None},
        headers=_auth_header(token),
    )
    assert null_status.status_code == 422

    cleared = sites_client.patch(
        f"/api/sites/{site['id']}",
        json={"location": None, "end_date": None},
        headers=_auth_header(token),
    )
    assert cleared.status_code == 200
    assert cleared.json()["location"] is None
    assert cleared.json()["name"] == site["name"]
