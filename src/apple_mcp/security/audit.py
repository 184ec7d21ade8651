"""In-process audit trail of operation outcomes."""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType

from apple_mcp.logging_utils import sanitize_log_value
from apple_mcp.utils.masking import redact_sensitive_fields

logger = logging.getLogger("apple_mcp.audit")

DEFAULT_RECENT_COUNT = 100


@dataclass(frozen=True)
class AuditLogEntry:
    timestamp: datetime
    operation: str
    success: bool
    details: Mapping[str, object] = field(default_factory=lambda: MappingProxyType({}))
    user: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "operation": self.operation,
            "user": self.user,
            "details": dict(self.details),
            "success": self.success,
            "error": self.error,
        }


class AuditLogger:
    """Append-only audit store.

    Whether auditing is enabled is decided by the caller: when it is disabled,
    callers skip ``log`` altogether.
    """

    def __init__(self) -> None:
        self._entries: list[AuditLogEntry] = []
        self._lock = threading.Lock()

    def log(
        self,
        operation: str,
        details: Mapping[str, object] | None = None,
        *,
        success: bool,
        user: str | None = None,
        error: str | None = None,
    ) -> AuditLogEntry:
        try:
            safe_details = redact_sensitive_fields(dict(details or {}))
        except Exception as exc:
            # A broken details mapping must not cost us the entry itself.
            safe_details = {"details_error": type(exc).__name__}
        entry = AuditLogEntry(
            timestamp=datetime.now(tz=timezone.utc),
            operation=operation,
            success=success,
            details=MappingProxyType(dict(safe_details)),  # type: ignore[arg-type]
            user=user,
            error=error,
        )
        with self._lock:
            self._entries.append(entry)

        if success:
            logger.info(
                "AUDIT operation=%s success=true user=%s details=%s",
                sanitize_log_value(operation),
                sanitize_log_value(user or "-"),
                sanitize_log_value(dict(entry.details)),
            )
        else:
            logger.warning(
                "AUDIT operation=%s success=false user=%s details=%s error=%s",
                sanitize_log_value(operation),
                sanitize_log_value(user or "-"),
                sanitize_log_value(dict(entry.details)),
                sanitize_log_value(error or "-"),
            )
        return entry

    def get_recent_logs(self, count: int = DEFAULT_RECENT_COUNT) -> list[AuditLogEntry]:
        if count <= 0:
            return []
        with self._lock:
            return list(self._entries[-count:])

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
