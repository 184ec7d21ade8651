"""Application context assembly."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from apple_mcp.config import Settings, load_settings
from apple_mcp.execution.executor import AutomationOperation, ResilientExecutor
from apple_mcp.execution.osascript import AppleScriptRunner, JXARunner
from apple_mcp.execution.process import SafeProcessInvoker
from apple_mcp.execution.sqlite import SqliteQueryEngine
from apple_mcp.operations.mail import MailOperations, build_mail_operations
from apple_mcp.operations.messages import (
    MessageReader,
    SendMessageArgs,
    build_send_message_operation,
)
from apple_mcp.security.audit import AuditLogger
from apple_mcp.security.rate_limit import RateLimiterRegistry


@dataclass
class AppContext:
    """Application-wide dependency container.

    Owns the only mutable shared state in the process (rate-limiter tables and
    the audit store). Built once at startup; tests build their own.
    """

    settings: Settings
    rate_limiters: RateLimiterRegistry
    audit_logger: AuditLogger
    executor: ResilientExecutor
    mail: MailOperations
    send_message: AutomationOperation[SendMessageArgs]
    message_reader: MessageReader


def build_app_context(settings: Settings) -> AppContext:
    invoker = SafeProcessInvoker()
    execution = settings.execution
    script_runner = AppleScriptRunner(
        invoker, execution.osascript_path, execution.script_timeout_seconds
    )
    object_runner = JXARunner(
        invoker, execution.osascript_path, execution.script_timeout_seconds
    )
    query_engine = SqliteQueryEngine(
        invoker, execution.sqlite_path, execution.query_timeout_seconds
    )

    rate_limiters = RateLimiterRegistry.from_settings(settings.rate_limits)
    audit_logger = AuditLogger()
    executor = ResilientExecutor(
        settings.security,
        rate_limiters,
        audit_logger,
        script_runner,
        object_runner,
    )
    return AppContext(
        settings=settings,
        rate_limiters=rate_limiters,
        audit_logger=audit_logger,
        executor=executor,
        mail=build_mail_operations(settings.security),
        send_message=build_send_message_operation(settings.security),
        message_reader=MessageReader(
            settings.security,
            rate_limiters,
            audit_logger,
            query_engine,
            execution.messages_db_path,
        ),
    )


@lru_cache(maxsize=1)
def get_app_context() -> AppContext:
    """Get or create the application context.

    Returns a cached singleton instance of AppContext with all
    dependencies initialized.
    """
    return build_app_context(load_settings())
