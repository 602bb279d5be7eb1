"""Tests for the request lifecycle log lines."""

import pytest
from fastapi.routing import APIRoute
from starlette.requests import Request
from structlog.testing import capture_logs

from oneshot.middleware.logging import route_template


def events(logs, name):
    return [entry for entry in logs if entry["event"] == name]


def endpoint():
    return None


def request_for(path: str, route_path: str) -> Request:
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": path,
            "headers": [],
            "route": APIRoute(route_path, endpoint),
        }
    )


@pytest.mark.parametrize(
    ("path", "route_path"),
    [
        ("/api/v1/secrets/abc123", "/secrets/{secret_id}"),
        ("/api/v1/secrets/abc123", "/api/v1/secrets/{secret_id}"),
    ],
)
def test_route_template_includes_router_prefix(path, route_path):
    assert route_template(request_for(path, route_path)) == "/api/v1/secrets/{secret_id}"


def test_route_template_without_route_is_raw_path():
    request = Request({"type": "http", "method": "GET", "path": "/nowhere", "headers": []})
    assert route_template(request) == "/nowhere"


def test_completed_requests_log_full_route_template(client):
    with capture_logs() as logs:
        response = client.post("/api/v1/secrets", json={"text": "hello"})
        secret_id = response.json()["id"]
        client.get(f"/api/v1/secrets/{secret_id}")

    paths = [entry["path"] for entry in events(logs, "request_completed")]
    assert paths == ["/api/v1/secrets", "/api/v1/secrets/{secret_id}"]
    requests = events(logs, "request_started") + events(logs, "request_completed")
    assert all(secret_id not in str(entry) for entry in requests)


def test_failed_requests_log_full_route_template(failing_client):
    with capture_logs() as logs:
        response = failing_client.get("/api/v1/secrets/some-id")

    assert response.status_code == 500
    [failed] = events(logs, "request_failed")
    assert failed["path"] == "/api/v1/secrets/{secret_id}"
    assert failed["error"] == "RuntimeError"
    assert "some-id" not in str(failed)
