"""Messages tools."""

from __future__ import annotations

from apple_mcp.app import get_app_context
from apple_mcp.mcp_runtime import ToolResult, ToolSpec
from apple_mcp.tools._helpers import run_tool
from apple_mcp.tools._schemas import MESSAGES_READ_SCHEMA, MESSAGES_SEND_SCHEMA


async def messages_send(payload: dict[str, object]) -> ToolResult:
    ctx = get_app_context()
    return await run_tool(
        MESSAGES_SEND_SCHEMA,
        payload,
        lambda: ctx.executor.execute(ctx.send_message, payload),
        on_success=lambda body: {**body, "message": "Message sent"},
    )


async def messages_read(payload: dict[str, object]) -> ToolResult:
    ctx = get_app_context()
    return await run_tool(
        MESSAGES_READ_SCHEMA,
        payload,
        lambda: ctx.message_reader.read(payload),
    )


messages_send_tool = ToolSpec(
    name="messages_send",
    description=(
        "Send an iMessage. Required: 'phoneNumber', 'message'. "
        "Sending is rate limited and audited."
    ),
    input_schema=MESSAGES_SEND_SCHEMA,
    handler=messages_send,
)

messages_read_tool = ToolSpec(
    name="messages_read",
    description=(
        "Read the most recent messages exchanged with 'phoneNumber'. "
        "Optional: 'limit' (int). Needs Full Disk Access to the Messages database."
    ),
    input_schema=MESSAGES_READ_SCHEMA,
    handler=messages_read,
)
