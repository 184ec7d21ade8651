"""Tool helpers."""

from __future__ import annotations

import json

from apple_mcp.errors import AppleMCPError, ValidationError
from apple_mcp.mcp_runtime import ToolResult
from apple_mcp.utils.jsonschema import validate_payload
from apple_mcp.utils.serialization import json_default


def validate_or_raise(schema: dict[str, object], payload: dict[str, object]) -> None:
    errors = validate_payload(schema, payload)
    if errors:
        raise ValidationError("Input validation failed: " + "; ".join(errors))


def result_from_payload(payload: dict[str, object]) -> ToolResult:
    text = json.dumps(payload, ensure_ascii=True, indent=2, default=json_default)
    content = [{"type": "text", "text": text}]
    return ToolResult(content=content, structured_content=payload)


def result_from_error(exc: AppleMCPError) -> ToolResult:
    return result_from_payload(exc.to_dict())


def error_response(
    error_type: str,
    message: str,
    hint: str | None = None,
    retryable: bool = False,
) -> ToolResult:
    """Create a standardized error response."""
    error: dict[str, object] = {
        "type": error_type,
        "message": message,
    }
    if hint:
        error["hint"] = hint
    error["retryable"] = retryable
    return result_from_payload({"error": error})
