"""Audit trail tool."""

from __future__ import annotations

from apple_mcp.app import get_app_context
from apple_mcp.errors import AppleMCPError
from apple_mcp.mcp_runtime import ToolResult, ToolSpec
from apple_mcp.security.audit import DEFAULT_RECENT_COUNT
from apple_mcp.tools._schemas import AUDIT_RECENT_SCHEMA
from apple_mcp.tools.base import (
    error_response,
    result_from_error,
    result_from_payload,
    validate_or_raise,
)


def audit_recent(payload: dict[str, object]) -> ToolResult:
    ctx = get_app_context()
    if not ctx.settings.security.enable_audit_logging:
        return error_response(
            "audit_disabled",
            "Audit logging is disabled",
            hint="Set ENABLE_AUDIT_LOGGING=true to record operations.",
        )
    try:
        validate_or_raise(AUDIT_RECENT_SCHEMA, payload)
    except AppleMCPError as exc:
        return result_from_error(exc)

    count = payload.get("count", DEFAULT_RECENT_COUNT)
    if not isinstance(count, int):
        count = DEFAULT_RECENT_COUNT
    entries = ctx.audit_logger.get_recent_logs(count)
    return result_from_payload(
        {"entries": [entry.to_dict() for entry in entries], "count": len(entries)}
    )


audit_recent_tool = ToolSpec(
    name="audit_recent",
    description="Return the most recent audit entries, oldest first. Optional: 'count' (int).",
    input_schema=AUDIT_RECENT_SCHEMA,
    handler=audit_recent,
)
