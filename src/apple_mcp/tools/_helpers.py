"""Shared helpers for the tool handlers."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from apple_mcp.errors import AppleMCPError
from apple_mcp.execution.executor import ExecutionOutcome
from apple_mcp.mcp_runtime import ToolResult
from apple_mcp.tools.base import result_from_error, result_from_payload, validate_or_raise

logger = logging.getLogger(__name__)


async def run_tool(
    schema: dict[str, object],
    payload: dict[str, object],
    run: Callable[[], Awaitable[ExecutionOutcome]],
    on_success: Callable[[dict[str, object]], dict[str, object]] | None = None,
) -> ToolResult:
    """Validate ``payload``, run the operation and shape the response.

    Known errors become structured error payloads; anything else propagates
    to the transport, which reports a generic internal error.
    """
    try:
        validate_or_raise(schema, payload)
        outcome = await run()
    except AppleMCPError as exc:
        logger.info("Tool call rejected: %s", exc.error_type)
        return result_from_error(exc)

    body = outcome.to_payload()
    if outcome.ok and on_success is not None:
        body = on_success(body)
    return result_from_payload(body)
