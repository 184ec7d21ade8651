from __future__ import annotations

from unittest.mock import patch

import pytest
from starlette.testclient import TestClient

from apple_mcp import __version__
from apple_mcp.mcp_runtime import ToolResult, ToolSpec
from apple_mcp.tools.base import result_from_payload
from apple_mcp.transport.http_server import create_http_app


@pytest.fixture
def client():
    with TestClient(create_http_app()) as test_client:
        yield test_client


async def _echo(payload: dict[str, object]) -> ToolResult:
    return result_from_payload({"echo": payload})


def _broken(payload: dict[str, object]) -> ToolResult:
    raise RuntimeError("kaboom")


_REGISTRY = {
    "echo": ToolSpec(name="echo", description="Echo", input_schema={"type": "object"}, handler=_echo),
    "broken": ToolSpec(name="broken", description="Broken", input_schema={"type": "object"}, handler=_broken),
}


def _rpc(method: str, params: dict[str, object] | None = None, request_id: int = 1) -> dict[str, object]:
    body: dict[str, object] = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        body["params"] = params
    return body


def test_initialize_negotiates_protocol(client: TestClient) -> None:
    response = client.post("/mcp", json=_rpc("initialize", {"protocolVersion": "2025-06-18"}))

    result = response.json()["result"]
    assert result["protocolVersion"] == "2025-06-18"
    assert result["serverInfo"] == {"name": "apple-mcp", "version": __version__}
    assert result["capabilities"] == {"tools": {"listChanged": False}}


def test_initialize_falls_back_to_latest_version(client: TestClient) -> None:
    response = client.post("/mcp", json=_rpc("initialize", {"protocolVersion": "1999-01-01"}))
    assert response.json()["result"]["protocolVersion"] == "2025-11-25"


def test_tools_list_includes_input_schemas(client: TestClient) -> None:
    tools = client.post("/mcp", json=_rpc("tools/list")).json()["result"]["tools"]

    by_name = {tool["name"]: tool for tool in tools}
    assert "mail_send" in by_name
    assert by_name["mail_send"]["inputSchema"]["required"] == ["to", "subject", "body"]


@patch("apple_mcp.transport.mcp_handler.get_tool_registry", return_value=_REGISTRY)
def test_tools_call_runs_handler(_registry, client: TestClient) -> None:
    response = client.post(
        "/mcp", json=_rpc("tools/call", {"name": "echo", "arguments": {"a": 1}})
    )

    result = response.json()["result"]
    assert result["structuredContent"] == {"echo": {"a": 1}}
    assert result["content"][0]["type"] == "text"


@patch("apple_mcp.transport.mcp_handler.get_tool_registry", return_value=_REGISTRY)
def test_tools_call_hides_internal_errors(_registry, client: TestClient) -> None:
    response = client.post("/mcp", json=_rpc("tools/call", {"name": "broken"}))

    error = response.json()["error"]
    assert error["message"] == "Internal tool error"
    assert "kaboom" not in response.text


@patch("apple_mcp.transport.mcp_handler.get_tool_registry", return_value=_REGISTRY)
def test_tools_call_rejects_unknown_tool_and_bad_arguments(_registry, client: TestClient) -> None:
    unknown = client.post("/mcp", json=_rpc("tools/call", {"name": "nope"})).json()
    bad_args = client.post(
        "/mcp", json=_rpc("tools/call", {"name": "echo", "arguments": [1, 2]})
    ).json()

    assert unknown["error"]["message"] == "Unknown tool: nope"
    assert bad_args["error"]["code"] == "invalid_params"


def test_notification_gets_202(client: TestClient) -> None:
    response = client.post(
        "/mcp", json={"jsonrpc": "2.0", "method": "notifications/initialized"}
    )
    assert response.status_code == 202


def test_invalid_json_is_400(client: TestClient) -> None:
    response = client.post(
        "/mcp", content=b"{not json", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Invalid JSON"


def test_batch_requests(client: TestClient) -> None:
    response = client.post(
        "/mcp",
        json=[_rpc("ping", request_id=1), {"jsonrpc": "2.0", "method": "notifications/x"}, "junk"],
    )

    body = response.json()
    assert body[0] == {"jsonrpc": "2.0", "id": 1, "result": {}}
    assert body[1]["error"]["code"] == "invalid_request"


def test_empty_batch_is_invalid(client: TestClient) -> None:
    assert client.post("/mcp", json=[]).status_code == 400


def test_unsupported_method(client: TestClient) -> None:
    body = client.post("/mcp", json=_rpc("resources/list")).json()
    assert body["error"]["message"] == "Unsupported method: resources/list"


def test_protocol_header_is_echoed(client: TestClient) -> None:
    response = client.post(
        "/mcp", json=_rpc("ping"), headers={"MCP-Protocol-Version": "2025-06-18"}
    )
    assert response.headers["MCP-Protocol-Version"] == "2025-06-18"
