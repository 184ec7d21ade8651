from __future__ import annotations

import pytest
from starlette.testclient import TestClient

from apple_mcp.transport.http_server import create_http_app

_PING = {"jsonrpc": "2.0", "id": 1, "method": "ping"}


@pytest.fixture
def secured_client(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("MCP_AUTH_TOKEN", "s3cret")
    with TestClient(create_http_app()) as client:
        yield client


def test_health_and_ready_skip_authentication(secured_client: TestClient) -> None:
    assert secured_client.get("/health").json() == {"status": "healthy"}
    assert secured_client.get("/ready").json() == {"status": "ready"}


def test_missing_token_is_rejected(secured_client: TestClient) -> None:
    response = secured_client.post("/mcp", json=_PING)

    assert response.status_code == 401
    assert response.json()["error"] == "authentication_failed"
    assert response.headers["WWW-Authenticate"].startswith("Bearer")


@pytest.mark.parametrize("header", ["Bearer wrong", "Basic s3cret", "s3cret"])
def test_wrong_token_is_rejected(secured_client: TestClient, header: str) -> None:
    response = secured_client.post("/mcp", json=_PING, headers={"Authorization": header})

    assert response.status_code == 401
    assert "s3cret" not in response.text


def test_valid_token_reaches_handler(secured_client: TestClient) -> None:
    response = secured_client.post(
        "/mcp", json=_PING, headers={"Authorization": "Bearer s3cret"}
    )

    assert response.status_code == 200
    assert response.json() == {"jsonrpc": "2.0", "id": 1, "result": {}}


def test_no_configured_token_allows_requests() -> None:
    with TestClient(create_http_app()) as client:
        response = client.post("/mcp", json=_PING)

    assert response.status_code == 200


def test_options_preflight_is_not_authenticated(secured_client: TestClient) -> None:
    assert secured_client.options("/mcp").status_code == 204
