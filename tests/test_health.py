from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, create_engine

from noor import main as app_main
from noor.infra import audit, db, events


@pytest.fixture()
def health_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "health_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    monkeypatch.setattr(audit, "engine", test_engine)
    monkeypatch.setattr(events, "engine", test_engine)
    client = TestClient(app_main.app)
    yield client
    client.close()


def test_healthz(health_client: TestClient) -> None:
    response = health_client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_readyz_reports_db(health_client: TestClient) -> None:
    response = health_client.get("/readyz")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ready"
    assert body["checks"] == {"db": "ok"}


def test_readyz_not_ready_when_db_down(
    health_client: TestClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(app_main, "check_db_ready", lambda: False)
    response = health_client.get("/readyz")
    assert response.status_code == 503
    assert response.json()["detail"]["checks"]["db"] == "fail"


def test_protected_route_requires_token(health_client: TestClient) -> None:
    response = health_client.get("/api/sites")
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid token"

    response = health_client.get("/api/sites", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
