"""Messages.app operations: sending through automation, reading from chat.db."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from apple_mcp.config import SecuritySettings
from apple_mcp.errors import ExecutionFailure, Stage
from apple_mcp.execution.executor import (
    AutomationOperation,
    ExecutionOutcome,
    ExecutionState,
    SecondaryCall,
)
from apple_mcp.execution.parsing import AutomationRecord, ParseStrategy, RecordSchema
from apple_mcp.execution.sqlite import SqliteQueryEngine, build_safe_in_clause
from apple_mcp.operations.mail import RECEIPT_SCHEMA
from apple_mcp.security.audit import AuditLogger
from apple_mcp.security.escaping import AppleScriptBuilder, escape_script_string, quote_script_string
from apple_mcp.security.rate_limit import DEFAULT_KEY, OperationClass, RateLimiterRegistry
from apple_mcp.security.validation import (
    MessageContent,
    PhoneNumber,
    sanitize_limit,
    validate_message_content,
    validate_phone_number,
)
from apple_mcp.utils.masking import truncate_preview

logger = logging.getLogger(__name__)

MESSAGES_APP = "Messages"

# chat.db stores dates as nanoseconds since 2001-01-01.
_READ_QUERY = """SELECT
    m.ROWID AS message_id,
    m.text AS text,
    datetime(m.date / 1000000000 + strftime('%s', '2001-01-01'), 'unixepoch', 'localtime') AS date,
    m.is_from_me AS is_from_me,
    h.id AS sender
FROM message m
JOIN handle h ON m.handle_id = h.ROWID
WHERE h.id IN {handles}
    AND m.text IS NOT NULL
ORDER BY m.date DESC
LIMIT ?"""

_SEND_JXA = """function (phone, text) {
    var Messages = Application("Messages");
    var service = Messages.accounts.whose({serviceType: "iMessage"})()[0];
    var buddy = service.participants.whose({handle: phone})()[0];
    Messages.send(text, {to: buddy});
    return {status: "sent"};
}"""


class ChatMessage(AutomationRecord):
    message_id: str
    text: str
    date: str
    is_from_me: bool
    sender: str


CHAT_MESSAGE_SCHEMA = RecordSchema(
    model=ChatMessage,
    defaults={
        "message_id": lambda: "",
        "text": lambda: "",
        "date": lambda: "",
        "is_from_me": lambda: False,
        "sender": lambda: "Unknown sender",
    },
    required_keys=frozenset({"text"}),
)


@dataclass(frozen=True)
class SendMessageArgs:
    phone: PhoneNumber
    text: MessageContent


@dataclass(frozen=True)
class ReadMessagesArgs:
    phone: PhoneNumber
    limit: int


def send_message_script(args: SendMessageArgs) -> str:
    return (
        AppleScriptBuilder()
        .tell(escape_script_string(MESSAGES_APP))
        .raw("set targetService to 1st account whose service type = iMessage")
        .line(
            "set targetBuddy to participant $phone of targetService",
            phone=quote_script_string(args.phone.value),
        )
        .line("send $text to targetBuddy", text=quote_script_string(args.text.value))
        .end_tell()
        .raw('return "{status:sent}"')
        .build()
    )


def handle_variants(phone: PhoneNumber) -> list[str]:
    """Handle ids chat.db may store for ``phone`` (with and without ``+``)."""
    value = phone.value
    if value.startswith("+"):
        return [value, value[1:]]
    return [value, f"+{value}"]


def build_send_message_operation(
    security: SecuritySettings,
) -> AutomationOperation[SendMessageArgs]:
    def validate(raw: Mapping[str, object]) -> SendMessageArgs:
        return SendMessageArgs(
            phone=validate_phone_number(raw.get("phoneNumber")),
            text=validate_message_content(raw.get("message"), security.max_message_length),
        )

    return AutomationOperation(
        name="messages.send",
        schema=RECEIPT_SCHEMA,
        validate=validate,
        build_script=send_message_script,
        operation_class=OperationClass.MESSAGES,
        secondary=lambda args: SecondaryCall(_SEND_JXA, (args.phone.value, args.text.value)),
        audit_details=lambda args: {
            "phone": args.phone.value,
            "message": truncate_preview(args.text.value),
        },
        application=MESSAGES_APP,
    )


class MessageReader:
    """Reads recent conversation history straight from the Messages database."""

    def __init__(
        self,
        security: SecuritySettings,
        rate_limiters: RateLimiterRegistry,
        audit_logger: AuditLogger,
        query_engine: SqliteQueryEngine,
        db_path: str,
    ) -> None:
        self._security = security
        self._rate_limiters = rate_limiters
        self._audit_logger = audit_logger
        self._query_engine = query_engine
        self._db_path = db_path

    def validate(self, raw: Mapping[str, object]) -> ReadMessagesArgs:
        return ReadMessagesArgs(
            phone=validate_phone_number(raw.get("phoneNumber")),
            limit=sanitize_limit(raw.get("limit"), self._security.max_search_results),
        )

    async def read(self, raw: Mapping[str, object], user: str | None = None) -> ExecutionOutcome:
        states = [ExecutionState.VALIDATING]
        args = self.validate(raw)

        states.append(ExecutionState.RATE_CHECK)
        if self._security.enable_rate_limiting:
            self._rate_limiters.enforce(OperationClass.MESSAGES, DEFAULT_KEY)

        states.append(ExecutionState.PRIMARY_ATTEMPT)
        outcome = await self._query(args, states)
        if self._security.enable_audit_logging:
            self._audit_logger.log(
                "messages.read",
                {"limit": args.limit, "count": len(outcome.records)},
                success=outcome.ok,
                user=user,
                error=None if outcome.ok else outcome.reason,
            )
        return outcome

    async def _query(
        self,
        args: ReadMessagesArgs,
        states: list[ExecutionState],
    ) -> ExecutionOutcome:
        if not Path(self._db_path).exists():
            states.append(ExecutionState.FAILED)
            return ExecutionOutcome.failure(
                "Messages database not found. Grant Full Disk Access or set MESSAGES_DB_PATH.",
                Stage.QUERY,
                states,
            )

        handles_clause, handles = build_safe_in_clause(handle_variants(args.phone))
        try:
            rows = await self._query_engine.query(
                self._db_path,
                _READ_QUERY.format(handles=handles_clause),
                [*handles, args.limit],
            )
        except ExecutionFailure as exc:
            logger.error("Reading messages failed: %s", exc.reason)
            states.append(ExecutionState.FAILED)
            return ExecutionOutcome.failure(exc.reason, Stage.QUERY, states)

        states.append(ExecutionState.PRIMARY_PARSE)
        if not rows:
            states.append(ExecutionState.DONE)
            return ExecutionOutcome.empty(states)
        records = CHAT_MESSAGE_SCHEMA.project_all(rows)
        states.append(ExecutionState.DONE)
        return ExecutionOutcome.success(records, ParseStrategy.QUERY, states)
