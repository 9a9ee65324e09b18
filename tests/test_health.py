"""Health endpoints."""
from fastapi.testclient import TestClient


def test_health_returns_ok(client: TestClient):
    r = client.get("/health")
    assert r.status_code == 200
    j = r.json()
    assert j["status"] == "ok"
    assert j["inference_configured"] is True
    assert j["storage_configured"] is False
    assert r.headers.get("X-Request-ID")


def test_request_id_is_echoed(client: TestClient):
    r = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert r.headers["X-Request-ID"] == "req-123"


def test_health_ai_pings_inference(client: TestClient):
    r = client.get("/health/ai")
    assert r.status_code == 200
    j = r.json()
    assert j["status"] == "ok"
    assert j["error"] is None


def test_unknown_route_uses_error_envelope(client: TestClient):
    r = client.get("/api/nope")
    assert r.status_code == 404
    j = r.json()
    assert j["success"] is False
    assert j["status_code"] == 404
