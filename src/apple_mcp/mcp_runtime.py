"""MCP runtime adapter over FastMCP."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from fastmcp import FastMCP
from fastmcp.tools import FunctionTool
from fastmcp.tools.tool import ToolResult as FastToolResult
from pydantic import BaseModel

logger = logging.getLogger(__name__)


@dataclass
class ToolSpec:
    name: str
    description: str
    input_schema: dict[str, object]
    handler: Callable[[dict[str, object]], "ToolResult | Awaitable[ToolResult]"]


class ToolResult(BaseModel):
    content: list[dict[str, object]]
    structured_content: dict[str, object] | None = None


def _schema_parameters(schema: dict[str, object]) -> inspect.Signature:
    """Keyword-only parameters named after the schema's top-level properties."""
    properties = schema.get("properties")
    names = [key for key in properties if isinstance(key, str)] if isinstance(properties, dict) else []
    return inspect.Signature(
        [
            inspect.Parameter(key, inspect.Parameter.KEYWORD_ONLY, default=None, annotation=object)
            for key in names
        ]
    )


def _bridge_handler(tool: ToolSpec) -> Callable[..., Awaitable[object]]:
    """Wrap a payload-style handler as a keyword-argument coroutine for FastMCP.

    FastMCP passes absent optional arguments as ``None``; they are dropped so
    the handler sees the same payload the HTTP transport would send.
    """

    async def bridge(**arguments: object) -> object:
        payload = {key: value for key, value in arguments.items() if value is not None}
        outcome = tool.handler(payload)
        if _is_awaitable(outcome):
            outcome = await outcome  # type: ignore[misc]
        if not isinstance(outcome, ToolResult):
            raise TypeError("Tool handler did not return ToolResult")
        return FastToolResult(content=outcome.content, structured_content=outcome.structured_content)

    bridge.__signature__ = _schema_parameters(tool.input_schema)  # type: ignore[attr-defined]
    bridge.__name__ = "_handler_" + tool.name.replace("-", "_").replace(".", "_")
    return bridge


class MCPServer:
    """Registers ``ToolSpec`` handlers on a FastMCP server (stdio transport)."""

    def __init__(self, name: str, version: str, instructions: str) -> None:
        self._server = FastMCP(name=name, version=version, instructions=instructions)
        self._tool_names: list[str] = []

    @property
    def tool_names(self) -> list[str]:
        return list(self._tool_names)

    def add_tool(self, tool: ToolSpec) -> None:
        fast_tool = FunctionTool.from_function(
            _bridge_handler(tool),
            name=tool.name,
            description=tool.description,
        )
        # Advertise the hand-written schema instead of the one derived from the signature.
        if "parameters" in getattr(type(fast_tool), "model_fields", {}):
            fast_tool = fast_tool.model_copy(update={"parameters": tool.input_schema})
        self._server.add_tool(fast_tool)
        self._tool_names.append(tool.name)
        logger.debug("Registered tool %s", tool.name)

    def run(self) -> None:
        self._server.run()


def _is_awaitable(value: object) -> bool:
    try:
        return inspect.isawaitable(value)
    except TypeError:
        return False
