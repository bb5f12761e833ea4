from __future__ import annotations

from collections.abc import Generator
from datetime import date, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlmodel import Session, SQLModel, create_engine, select

from noor import main as app_main
from noor.domain.models import Task, WorkerDailyActivity
from noor.infra import audit, auth, db, events
from noor.services.task_service import GANTT_LIMIT


@pytest.fixture()
def tasks_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "tasks_test.db"
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


def _site_with_phase(client: TestClient, token: str) -> tuple[str, str]:
    site = client.post("/api/sites", json={"name": "River View"}, headers=_auth_header(token)).json()
    phase = client.post(
        f"/api/sites/{site['id']}/phases",
        json={"name": "Foundation Work"},
        headers=_auth_header(token),
    ).json()
    return site["id"], phase["id"]


def _create_task(
    client: TestClient,
    token: str,
    phase_id: str,
    name: str,
    **extra: object,
) -> dict[str, object]:
    payload: dict[str, object] = {"name": name}
    payload.update(extra)
    response = client.post(f"/api/phases/{phase_id}/tasks", json=payload, headers=_auth_header(token))
    assert response.status_code == 201
    return response.json()


def _activity_rows(worker_id: str) -> dict[str, WorkerDailyActivity]:
    with Session(db.get_engine()) as session:
        rows = session.exec(select(WorkerDailyActivity).where(WorkerDailyActivity.worker_id == worker_id)).all()
    return {row.metric_type.value: row for row in rows}


def test_task_lifecycle_with_approval(tasks_client: TestClient) -> None:
    token = _admin_token(tasks_client)
    worker_id = _create_employee(tasks_client, token, "Rahim", "rahim@noor.test")
    worker_token = _login(tasks_client, "rahim@noor.test", "worker-pass")
    site_id, phase_id = _site_with_phase(tasks_client, token)

    task = _create_task(tasks_client, token, phase_id, "Pour footing", assignee_ids=[worker_id])
    assert task["status"] == "pending"
    assert task["assignee_ids"] == [worker_id]
    assert task["site_id"] == site_id

    rows = _activity_rows(worker_id)
    assert rows["tasks_assigned"].is_checked is True
    assert rows["tasks_assigned"].activity_date == date.today()

    assigned = tasks_client.get("/api/tasks/assigned", headers=_auth_header(worker_token)).json()
    assert [item["id"] for item in assigned] == [task["id"]]

    early = tasks_client.post(f"/api/tasks/{task['id']}/approve", headers=_auth_header(token))
    assert early.status_code == 409

    started = tasks_client.post(f"/api/tasks/{task['id']}/start", headers=_auth_header(worker_token))
    assert started.status_code == 200
    assert started.json()["status"] == "in_progress"

    submitted = tasks_client.post(f"/api/tasks/{task['id']}/submit", headers=_auth_header(worker_token))
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "waiting_approval"

    not_allowed = tasks_client.post(f"/api/tasks/{task['id']}/approve", headers=_auth_header(worker_token))
    assert not_allowed.status_code == 403

    approved = tasks_client.post(f"/api/tasks/{task['id']}/approve", headers=_auth_header(token))
    assert approved.status_code == 200
    body = approved.json()
    assert body["status"] == "completed"
    assert body["completed_at"] is not None
    assert body["approved_by"] is not None

    rows = _activity_rows(worker_id)
    assert rows["tasks_completed"].is_checked is True
    assert rows["attendance"].is_checked is True
    assert rows["attendance"].is_locked is True
    assert rows["tasks_completed"].locked_by == body["approved_by"]

    stats = tasks_client.get("/api/employee/dashboard-stats", headers=_auth_header(worker_token)).json()
    assert stats["assigned_tasks"] == 1
    assert stats["completed_tasks"] == 1
    assert stats["pending_tasks"] == 0
    assert stats["attendance_today"] is True

    completion = tasks_client.get(f"/api/sites/{site_id}/completion", headers=_auth_header(token)).json()
    assert completion["breakdown"]["tasks"] == {"total": 1, "completed": 1}
    assert completion["percentage"] == 50.0


def test_reject_and_resubmit(tasks_client: TestClient) -> None:
    token = _admin_token(tasks_client)
    worker_id = _create_employee(tasks_client, token, "Rahim", "rahim@noor.test")
    worker_token = _login(tasks_client, "rahim@noor.test", "worker-pass")
    _, phase_id = _site_with_phase(tasks_client, token)
    task = _create_task(tasks_client, token, phase_id, "Lay bricks", assignee_ids=[worker_id])

    tasks_client.post(f"/api/tasks/{task['id']}/submit", headers=_auth_header(worker_token))
    rejected = tasks_client.post(
        f"/api/tasks/{task['id']}/reject",
        json={"note": "uneven rows"},
        headers=_auth_header(token),
    )
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "rejected"
    assert rejected.json()["rejection_count"] == 1

    resubmitted = tasks_client.post(f"/api/tasks/{task['id']}/submit", headers=_auth_header(worker_token))
    assert resubmitted.json()["status"] == "waiting_approval"
    assert resubmitted.json()["rejection_count"] == 1


def test_only_assignee_can_submit(tasks_client: TestClient) -> None:
    token = _admin_token(tasks_client)
    worker_id = _create_employee(tasks_client, token, "Rahim", "rahim@noor.test")
    _create_employee(tasks_client, token, "Karim", "karim@noor.test")
    other_token = _login(tasks_client, "karim@noor.test", "worker-pass")
    _, phase_id = _site_with_phase(tasks_client, token)
    task = _create_task(tasks_client, token, phase_id, "Fix rebar", assignee_ids=[worker_id])

    response = tasks_client.post(f"/api/tasks/{task['id']}/submit", headers=_auth_header(other_token))
    assert response.status_code == 403

    supervisor_override = tasks_client.post(f"/api/tasks/{task['id']}/submit", headers=_auth_header(token))
    assert supervisor_override.status_code == 200


def test_assign_reorder_and_delete(tasks_client: TestClient) -> None:
    token = _admin_token(tasks_client)
    worker_id = _create_employee(tasks_client, token, "Rahim", "rahim@noor.test")
    site_id, phase_id = _site_with_phase(tasks_client, token)
    first = _create_task(tasks_client, token, phase_id, "First")
    second = _create_task(tasks_client, token, phase_id, "Second")
    assert (first["order_index"], second["order_index"]) == (0, 1)

    assigned = tasks_client.post(
        f"/api/tasks/{first['id']}/assign",
        json={"employee_ids": [worker_id, worker_id]},
        headers=_auth_header(token),
    )
    assert assigned.status_code == 200
    assert assigned.json()["assignee_ids"] == [worker_id]

    missing = tasks_client.post(
        f"/api/tasks/{first['id']}/assign",
        json={"employee_ids": ["nobody"]},
        headers=_auth_header(token),
    )
    assert missing.status_code == 404

    reordered = tasks_client.post(
        f"/api/phases/{phase_id}/tasks/reorder",
        json={"task_ids": [second["id"], first["id"]]},
        headers=_auth_header(token),
    )
    assert reordered.status_code == 200
    assert [item["name"] for item in reordered.json()] == ["Second", "First"]

    deleted = tasks_client.delete(f"/api/tasks/{second['id']}", headers=_auth_header(token))
    assert deleted.status_code == 204
    assert tasks_client.get(f"/api/tasks/{second['id']}", headers=_auth_header(token)).status_code == 404
    remaining = tasks_client.get("/api/tasks", params={"site_id": site_id}, headers=_auth_header(token)).json()
    assert [item["id"] for item in remaining] == [first["id"]]


def test_task_stats_and_gantt(tasks_client: TestClient) -> None:
    token = _admin_token(tasks_client)
    worker_id = _create_employee(tasks_client, token, "Rahim", "rahim@noor.test")
    site_id, phase_id = _site_with_phase(tasks_client, token)
    done = _create_task(
        tasks_client,
        token,
        phase_id,
        "Excavate",
        assignee_ids=[worker_id],
        start_date="2026-01-05",
        due_date="2026-01-10",
    )
    _create_task(tasks_client, token, phase_id, "Backfill")
    tasks_client.post(f"/api/tasks/{done['id']}/submit", headers=_auth_header(token))
    tasks_client.post(f"/api/tasks/{done['id']}/approve", headers=_auth_header(token))

    overview = tasks_client.get("/api/tasks/stats", headers=_auth_header(token)).json()
    assert overview["total_tasks"] == 2
    assert overview["completed_tasks"] == 1
    assert overview["completed_percent"] == 50.0

    project = tasks_client.get(f"/api/tasks/stats/project/{site_id}", headers=_auth_header(token)).json()
    assert project["project_id"] == site_id
    assert project["pending_tasks"] == 1

    by_status = tasks_client.get("/api/tasks/stats/by-status", headers=_auth_header(token)).json()
    assert by_status["total"] == 2
    assert {item["status"] for item in by_status["by_status"]} == {"completed", "pending"}

    gantt = tasks_client.get("/api/tasks/gantt", headers=_auth_header(token)).json()
    assert gantt["success"] is True
    assert gantt["count"] == 2
    by_name = {item["task_name"]: item for item in gantt["data"]}
    assert by_name["Excavate"]["start_date"] == "2026-01-05"
    assert by_name["Excavate"]["end_date"] == "2026-01-10"
    assert by_name["Excavate"]["assigned_to"] == "Rahim"
    assert by_name["Excavate"]["project_name"] == "River View"
    assert by_name["Backfill"]["assigned_to"] is None
    assert by_name["Backfill"]["start_date"] == date.today().isoformat()
    assert gantt["data"][0]["task_name"] == "Backfill"


def test_task_and_site_messages(tasks_client: TestClient) -> None:
    token = _admin_token(tasks_client)
    site_id, phase_id = _site_with_phase(tasks_client, token)
    task = _create_task(tasks_client, token, phase_id, "Inspect slab")

    posted = tasks_client.post(
        f"/api/tasks/{task['id']}/messages",
        json={"type": "image", "media_url": "https://cdn.noor.test/slab.jpg"},
        headers=_auth_header(token),
    )
    assert posted.status_code == 201
    assert posted.json()["sender_role"] == "admin"

    messages = tasks_client.get(f"/api/tasks/{task['id']}/messages", headers=_auth_header(token)).json()
    assert [item["type"] for item in messages] == ["image"]

    tasks_client.post(
        f"/api/sites/{site_id}/messages",
        json={"content": "Crane arrives Monday"},
        headers=_auth_header(token),
    )
    site_messages = tasks_client.get(f"/api/sites/{site_id}/messages", headers=_auth_header(token)).json()
    assert [item["content"] for item in site_messages] == ["Crane arrives Monday"]


def test_gantt_orders_undated_first_and_caps_rows(tasks_client: TestClient) -> None:
    token = _admin_token(tasks_client)
    site_id, phase_id = _site_with_phase(tasks_client, token)
    _create_task(tasks_client, token, phase_id, "Curing", start_date="2026-03-05")
    _create_task(tasks_client, token, phase_id, "Survey")
    _create_task(tasks_client, token, phase_id, "Shuttering", start_date="2026-03-01")

    ordered = tasks_client.get("/api/tasks/gantt", params={"site_id": site_id}, headers=_auth_header(token)).json()
    assert [item["task_name"] for item in ordered["data"]] == ["Survey", "Shuttering", "Curing"]

    with Session(db.get_engine()) as session:
        session.add_all(
            Task(
                site_id=site_id,
                phase_id=phase_id,
                name=f"Bulk {index:03d}",
                start_date=date(2026, 4, 1) + timedelta(days=index % 30),
            )
            for index in range(GANTT_LIMIT)
        )
        session.commit()

    capped = tasks_client.get("/api/tasks/gantt", headers=_auth_header(token)).json()
    assert capped["count"] == GANTT_LIMIT
    assert [item["task_name"] for item in capped["data"][:3]] == ["Survey", "Shuttering", "Curing"]


def test_task_patch_rejects_null_name(tasks_client: TestClient) -> None:
    token = _admin_token(tasks_client)
    _, phase_id = _site_with_phase(tasks_client, token)
    task = _create_task(tasks_client, token, phase_id, "Pour footing", due_date="2026-05-01")

    null_name = tasks_client.patch(f"/api/tasks/{task['id']}", json={"name": None}, headers=_auth_header(token))
    assert null_name.status_code == 422

    cleared = tasks_client.patch(f"/api/tasks/{task['id']}", json={"due_date": None}, headers=_auth_header(token))
    assert cleared.status_code == 200
    assert cleared.json()["due_date"] is None
    assert cleared.json()["name"] == "Pour footing"
