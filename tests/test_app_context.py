from __future__ import annotations

from apple_mcp.app import build_app_context, get_app_context
from apple_mcp.config import ExecutionSettings, Settings


def test_build_app_context_wires_shared_state() -> None:
    settings = Settings(execution=ExecutionSettings(messages_db_path="/tmp/chat.db"))

    ctx = build_app_context(settings)

    assert ctx.settings is settings
    assert ctx.mail.send.name == "mail.send"
    assert ctx.send_message.name == "messages.send"
    assert ctx.executor._rate_limiters is ctx.rate_limiters
    assert ctx.executor._audit_logger is ctx.audit_logger
    assert ctx.message_reader._audit_logger is ctx.audit_logger
    assert ctx.message_reader._db_path == "/tmp/chat.db"


def test_get_app_context_is_cached() -> None:
    assert get_app_context() is get_app_context()
