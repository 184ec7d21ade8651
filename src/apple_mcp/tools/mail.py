"""Mail tools."""

from __future__ import annotations

from apple_mcp.app import get_app_context
from apple_mcp.mcp_runtime import ToolResult, ToolSpec
from apple_mcp.tools._helpers import run_tool
from apple_mcp.tools._schemas import (
    MAIL_ACCOUNT_MAILBOXES_SCHEMA,
    MAIL_LATEST_SCHEMA,
    MAIL_NO_ARGS_SCHEMA,
    MAIL_SEARCH_SCHEMA,
    MAIL_SEND_SCHEMA,
    MAIL_UNREAD_SCHEMA,
)


async def mail_unread(payload: dict[str, object]) -> ToolResult:
    ctx = get_app_context()
    return await run_tool(
        MAIL_UNREAD_SCHEMA,
        payload,
        lambda: ctx.executor.execute(ctx.mail.unread, payload),
    )


async def mail_search(payload: dict[str, object]) -> ToolResult:
    ctx = get_app_context()
    return await run_tool(
        MAIL_SEARCH_SCHEMA,
        payload,
        lambda: ctx.executor.execute(ctx.mail.search, payload),
    )


async def mail_send(payload: dict[str, object]) -> ToolResult:
    ctx = get_app_context()

    def _confirmation(body: dict[str, object]) -> dict[str, object]:
        to = str(payload.get("to", "")).strip()
        subject = str(payload.get("subject", "")).strip()
        return {**body, "message": f'Email sent to {to} with subject "{subject}"'}

    return await run_tool(
        MAIL_SEND_SCHEMA,
        payload,
        lambda: ctx.executor.execute(ctx.mail.send, payload),
        on_success=_confirmation,
    )


async def mail_mailboxes(payload: dict[str, object]) -> ToolResult:
    ctx = get_app_context()
    return await run_tool(
        MAIL_NO_ARGS_SCHEMA,
        payload,
        lambda: ctx.executor.execute(ctx.mail.mailboxes, payload),
    )


async def mail_accounts(payload: dict[str, object]) -> ToolResult:
    ctx = get_app_context()
    return await run_tool(
        MAIL_NO_ARGS_SCHEMA,
        payload,
        lambda: ctx.executor.execute(ctx.mail.accounts, payload),
    )


async def mail_account_mailboxes(payload: dict[str, object]) -> ToolResult:
    ctx = get_app_context()
    return await run_tool(
        MAIL_ACCOUNT_MAILBOXES_SCHEMA,
        payload,
        lambda: ctx.executor.execute(ctx.mail.account_mailboxes, payload),
    )


async def mail_latest(payload: dict[str, object]) -> ToolResult:
    ctx = get_app_context()
    return await run_tool(
        MAIL_LATEST_SCHEMA,
        payload,
        lambda: ctx.executor.execute(ctx.mail.latest, payload),
    )


mail_unread_tool = ToolSpec(
    name="mail_unread",
    description="List unread messages across all Mail mailboxes. Optional: 'limit' (int).",
    input_schema=MAIL_UNREAD_SCHEMA,
    handler=mail_unread,
)

mail_search_tool = ToolSpec(
    name="mail_search",
    description=(
        "Search Mail messages whose subject or body contains 'searchTerm'. "
        "Optional: 'limit' (int)."
    ),
    input_schema=MAIL_SEARCH_SCHEMA,
    handler=mail_search,
)

mail_send_tool = ToolSpec(
    name="mail_send",
    description=(
        "Send an email through Mail. Required: 'to', 'subject', 'body'. "
        "Optional: 'cc', 'bcc'. Sending is rate limited and audited."
    ),
    input_schema=MAIL_SEND_SCHEMA,
    handler=mail_send,
)

mail_mailboxes_tool = ToolSpec(
    name="mail_mailboxes",
    description="List the names of all Mail mailboxes.",
    input_schema=MAIL_NO_ARGS_SCHEMA,
    handler=mail_mailboxes,
)

mail_accounts_tool = ToolSpec(
    name="mail_accounts",
    description="List the names of all Mail accounts.",
    input_schema=MAIL_NO_ARGS_SCHEMA,
    handler=mail_accounts,
)

mail_account_mailboxes_tool = ToolSpec(
    name="mail_account_mailboxes",
    description="List the mailboxes of one Mail account. Required: 'account'.",
    input_schema=MAIL_ACCOUNT_MAILBOXES_SCHEMA,
    handler=mail_account_mailboxes,
)

mail_latest_tool = ToolSpec(
    name="mail_latest",
    description=(
        "List the most recent messages of one Mail account. Required: 'account'. "
        "Optional: 'limit' (int, default 5)."
    ),
    input_schema=MAIL_LATEST_SCHEMA,
    handler=mail_latest,
)
