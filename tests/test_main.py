"""
Tests for the main application endpoints.
"""
from fastapi.testclient import TestClient


def test_root_endpoint(client):
    """
    Test the root endpoint returns a welcome message.
    """
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "message" in data
    assert data["version"] == "1.0.0"


def test_health_check(client):
    """
    Test the health check endpoint reports status and database connectivity.
    """
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["database"] == "connected"
    assert data["uptime"] >= 0
    assert "timestamp" in data


def test_request_logging_headers(client):
    response = client.get("/health")
    assert response.headers["X-Request-ID"]
    assert float(response.headers["X-Process-Time"]) >= 0


def test_request_id_is_propagated(client):
    response = client.get("/", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/v1/nothing-here")
    assert response.status_code == 404
    assert response.json() == {"status": "error", "message": "Route not found"}


def test_unhandled_error_returns_generic_message(app):
    @app.get("/boom")
    def boom():
        raise RuntimeError("internal detail")

    client = TestClient(app, raise_server_exceptions=False)
    response = client.get("/boom")
    assert response.status_code == 500
    assert response.json() == {"status": "error", "message": "Something went wrong!"}
