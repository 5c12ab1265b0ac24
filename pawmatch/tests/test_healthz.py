from fastapi.testclient import TestClient

import pawmatch.api.health as health_api
from pawmatch.main import app

client = TestClient(app)


def test_healthz_always_ok():
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json().get("status") == "ok"


def test_readyz_ok_with_schema():
    resp = client.get("/readyz")
    assert resp.status_code == 200
    assert resp.json().get("status") == "ok"


def test_readyz_reports_missing_tables(monkeypatch):
    class FakeInspector:
        def has_table(self, name):
            return name != "boost_sessions"

    monkeypatch.setattr(health_api, "inspect", lambda engine: FakeInspector())

    resp = client.get("/readyz")
    assert resp.status_code == 503
    assert "boost_sessions" in resp.json().get("detail", "")


def test_readyz_handles_db_down(monkeypatch):
    monkeypatch.setattr(health_api, "check_connection", lambda: False)

    resp = client.get("/readyz")
    body = resp.json()
    assert resp.status_code == 503
    assert body.get("status") == "error"
    assert "database" in body.get("detail", "")
