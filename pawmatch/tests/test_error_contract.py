"""Tests for normalized error responses."""

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from pawmatch.core.errors import database_unavailable_handler, error_from_result, unhandled_exception_handler
from pawmatch.core.middleware.request_id import RequestIdMiddleware
from pawmatch.main import app


def test_validation_error_has_standard_shape():
    client = TestClient(app)
    resp = client.get("/v1/feed", params={"lane": "work"}, headers={"X-User-Id": "alice"})
    assert resp.status_code == 400
    body = resp.json()
    rid = resp.headers.get("x-request-id")
    assert body["error"]["code"] == "invalid_lane"
    assert body["error"]["request_id"] == rid
    assert body["detail"] == "invalid lane"


def test_request_body_validation_is_422():
    client = TestClient(app)
    resp = client.post("/v1/swipes", headers={"X-User-Id": "alice"}, json={"lane": "romantic"})
    assert resp.status_code == 422
    assert any(item["loc"][-1] == "candidate_id" for item in resp.json()["detail"])


def test_unauthenticated_error_code():
    client = TestClient(app)
    resp = client.get("/v1/boosts/status")
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "not_authenticated"


def test_result_codes_map_to_http_status():
    assert error_from_result("daily_limit_reached").status_code == 429
    assert error_from_result("insufficient_compliments").status_code == 402
    assert error_from_result("not_authorized").status_code == 403
    assert error_from_result("already_resolved").status_code == 409
    assert error_from_result("expired").status_code == 410
    assert error_from_result("something_new").status_code == 500


def test_database_down_is_503_and_unexpected_is_500():
    test_app = FastAPI()
    test_app.add_middleware(RequestIdMiddleware)
    test_app.add_exception_handler(OperationalError, database_unavailable_handler)
    test_app.add_exception_handler(Exception, unhandled_exception_handler)

    @test_app.get("/db")
    async def db():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    @test_app.get("/boom")
    async def boom():
        raise RuntimeError("boom")

    client = TestClient(test_app, raise_server_exceptions=False)

    down = client.get("/db")
    assert down.status_code == 503
    assert down.json()["error"]["code"] == "service_unavailable"

    crash = client.get("/boom")
    assert crash.status_code == 500
    assert crash.json()["error"]["code"] == "internal_error"
