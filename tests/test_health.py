from fastapi.testclient import TestClient

from triage.core.config import Settings, get_settings
from triage.main import app


def test_healthz() -> None:
    client = TestClient(app)
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_provider_health_reports_missing_configuration() -> None:
    app.dependency_overrides[get_settings] = lambda: Settings(airtable_token="token", airtable_base_id=None)
    try:
        response = TestClient(app).get("/api/health")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "config": {"hasToken": True, "hasBaseId": False, "hasTableName": True, "ready": False},
    }


def test_provider_health_ready_when_configured() -> None:
    app.dependency_overrides[get_settings] = lambda: Settings(airtable_token="token", airtable_base_id="appBase")
    try:
        response = TestClient(app).get("/api/health")
    finally:
        app.dependency_overrides.clear()

    assert response.json()["config"]["ready"] is True
