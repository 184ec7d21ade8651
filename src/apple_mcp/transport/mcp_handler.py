"""JSON-RPC endpoint exposing the tool registry over HTTP."""

from __future__ import annotations

import inspect
import json
import logging
from collections.abc import Awaitable, Callable

from starlette.requests import Request
from starlette.responses import Response

from apple_mcp import __version__
from apple_mcp.config import load_settings
from apple_mcp.mcp_runtime import ToolResult
from apple_mcp.tools import get_tool_registry
from apple_mcp.utils.serialization import json_default

logger = logging.getLogger(__name__)

SUPPORTED_PROTOCOL_VERSIONS = ("2025-03-26", "2025-06-18", "2025-11-25")
DEFAULT_PROTOCOL_VERSION = "2025-03-26"
MAX_BATCH_REQUESTS = 50

_SERVER_ERROR = -32000
_MAX_ECHOED_NAME = 256

Params = dict[str, object]
Message = dict[str, object]


class RpcError(Exception):
    """Raised by a method handler; becomes the ``error`` member of the reply."""

    def __init__(self, message: str, code: str | int = _SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


def _rpc_error(request_id: object, message: str, code: str | int = _SERVER_ERROR) -> Message:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


def _rpc_result(request_id: object, result: object) -> Message:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


async def _initialize(params: Params) -> Message:
    requested = params.get("protocolVersion")
    if isinstance(requested, str) and requested in SUPPORTED_PROTOCOL_VERSIONS:
        version = requested
    else:
        version = SUPPORTED_PROTOCOL_VERSIONS[-1]
    return {
        "protocolVersion": version,
        "serverInfo": {"name": "apple-mcp", "version": __version__},
        "instructions": load_settings().server.instructions,
        "capabilities": {"tools": {"listChanged": False}},
    }


async def _ping(params: Params) -> Message:
    return {}


async def _list_tools(params: Params) -> Message:
    return {
        "tools": [
            {"name": spec.name, "description": spec.description, "inputSchema": spec.input_schema}
            for spec in get_tool_registry().values()
        ]
    }


async def _call_tool(params: Params) -> Message:
    name = params.get("name")
    if not isinstance(name, str):
        raise RpcError("Invalid tool name")
    arguments = params.get("arguments", {})
    if not isinstance(arguments, dict):
        raise RpcError("Invalid tool arguments", code="invalid_params")
    spec = get_tool_registry().get(name)
    if spec is None:
        raise RpcError(f"Unknown tool: {name[:_MAX_ECHOED_NAME]}")

    try:
        result = spec.handler(arguments)
        if inspect.isawaitable(result):
            result = await result
        if not isinstance(result, ToolResult):
            raise TypeError("Tool handler did not return ToolResult")
    except (KeyboardInterrupt, SystemExit):
        raise
    except Exception as exc:
        # Handler internals stay in the server log.
        logger.exception("Tool handler error: %s", name)
        raise RpcError("Internal tool error") from exc

    return {"content": result.content, "structuredContent": result.structured_content}


_METHODS: dict[str, Callable[[Params], Awaitable[Message]]] = {
    "initialize": _initialize,
    "ping": _ping,
    "tools/list": _list_tools,
    "tools/call": _call_tool,
}


async def _dispatch(message: Message) -> Message | None:
    """Answer one JSON-RPC message; ``None`` means no reply is due."""
    request_id = message.get("id")
    method = message.get("method")
    if request_id is None:
        return None  # notification
    if method is None and ("result" in message or "error" in message):
        return None  # a client's reply to us
    if not isinstance(method, str):
        return _rpc_error(request_id, "Invalid JSON-RPC method", code="invalid_request")

    handler = _METHODS.get(method)
    if handler is None:
        return _rpc_error(request_id, f"Unsupported method: {method[:_MAX_ECHOED_NAME]}")

    raw_params = message.get("params", {})
    params = raw_params if isinstance(raw_params, dict) else {}
    try:
        return _rpc_result(request_id, await handler(params))
    except RpcError as exc:
        return _rpc_error(request_id, exc.message, code=exc.code)


def _negotiated_version(request: Request) -> str:
    version = request.headers.get("MCP-Protocol-Version")
    return version if version in SUPPORTED_PROTOCOL_VERSIONS else DEFAULT_PROTOCOL_VERSION


def _reply(request: Request, body: object | None, status_code: int = 200) -> Response:
    headers = {"MCP-Protocol-Version": _negotiated_version(request)}
    if body is None:
        return Response(status_code=202, headers=headers)
    return Response(
        content=json.dumps(body, default=json_default, ensure_ascii=False),
        status_code=status_code,
        media_type="application/json",
        headers=headers,
    )


def _reject(request: Request, message: str, status_code: int = 400, code: str | int = _SERVER_ERROR) -> Response:
    return _reply(request, _rpc_error(None, message, code=code), status_code=status_code)


async def handle_mcp_request(request: Request) -> Response:
    if request.method == "OPTIONS":
        return Response(status_code=204)
    if request.method != "POST":
        return _reject(request, "Method not allowed", status_code=405, code="method_not_allowed")

    try:
        payload = await request.json()
    except (json.JSONDecodeError, ValueError, UnicodeDecodeError):
        return _reject(request, "Invalid JSON")

    if isinstance(payload, dict):
        return _reply(request, await _dispatch(payload))
    if not isinstance(payload, list):
        return _reject(request, "Invalid JSON-RPC request", code="invalid_request")

    if not payload:
        return _reject(request, "Invalid JSON-RPC batch request", code="invalid_request")
    if len(payload) > MAX_BATCH_REQUESTS:
        return _reject(
            request,
            f"Batch request too large (max {MAX_BATCH_REQUESTS})",
            code="batch_too_large",
        )

    replies: list[Message] = []
    for entry in payload:
        if not isinstance(entry, dict):
            replies.append(_rpc_error(None, "Invalid JSON-RPC batch entry", code="invalid_request"))
            continue
        reply = await _dispatch(entry)
        if reply is not None:
            replies.append(reply)
    return _reply(request, replies or None)
