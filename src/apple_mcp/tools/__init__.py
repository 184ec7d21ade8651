"""Tool registration helpers.

Tools are grouped by application:
- mail_*: Mail.app (unread, search, send, mailboxes, accounts, latest)
- messages_*: Messages.app (send, read)
- audit_recent: the in-process audit trail
"""

from __future__ import annotations

from apple_mcp.logging_utils import get_logger
from apple_mcp.mcp_runtime import MCPServer, ToolSpec
from apple_mcp.tools.audit import audit_recent_tool
from apple_mcp.tools.mail import (
    mail_account_mailboxes_tool,
    mail_accounts_tool,
    mail_latest_tool,
    mail_mailboxes_tool,
    mail_search_tool,
    mail_send_tool,
    mail_unread_tool,
)
from apple_mcp.tools.messages import messages_read_tool, messages_send_tool

__all__ = ["get_tool_registry", "get_tool_specs", "register_tools"]


def get_tool_specs() -> list[ToolSpec]:
    return [
        mail_unread_tool,
        mail_search_tool,
        mail_send_tool,
        mail_mailboxes_tool,
        mail_accounts_tool,
        mail_account_mailboxes_tool,
        mail_latest_tool,
        messages_send_tool,
        messages_read_tool,
        audit_recent_tool,
    ]


def get_tool_registry() -> dict[str, ToolSpec]:
    return {tool.name: tool for tool in get_tool_specs()}


def register_tools(server: MCPServer) -> None:
    """Register every mail, messages and audit tool with the MCP server."""
    logger = get_logger(__name__)
    tools = get_tool_specs()
    for tool in tools:
        server.add_tool(tool)
    logger.info("Registered %d tools: %s", len(tools), ", ".join(t.name for t in tools))
