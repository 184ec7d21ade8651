from __future__ import annotations

import logging

import pytest

from apple_mcp.security.audit import AuditLogger


def test_log_records_entry_fields() -> None:
    audit = AuditLogger()

    entry = audit.log("mail.send", {"to": "a@example.com"}, success=True, user="local")

    assert entry.operation == "mail.send"
    assert entry.success is True
    assert entry.user == "local"
    assert entry.error is None
    assert entry.timestamp.tzinfo is not None
    assert dict(entry.details) == {"to": "a@example.com"}
    assert len(audit) == 1


def test_sensitive_details_are_redacted() -> None:
    audit = AuditLogger()

    entry = audit.log(
        "messages.send",
        {"authToken": "abc", "nested": {"password": "pw", "phone": "+15551234567"}},
        success=True,
    )

    assert entry.details["authToken"] == "***"
    assert entry.details["nested"] == {"password": "***", "phone": "+15551234567"}


def test_entries_cannot_be_mutated() -> None:
    audit = AuditLogger()
    details = {"count": 1}
    entry = audit.log("mail.search", details, success=True)

    details["count"] = 2
    assert entry.details["count"] == 1
    with pytest.raises(TypeError):
        entry.details["count"] = 3  # type: ignore[index]


def test_get_recent_logs_returns_newest_last() -> None:
    audit = AuditLogger()
    for index in range(5):
        audit.log(f"op.{index}", success=True)

    recent = audit.get_recent_logs(3)

    assert [entry.operation for entry in recent] == ["op.2", "op.3", "op.4"]
    assert audit.get_recent_logs(0) == []
    assert len(audit.get_recent_logs()) == 5


def test_failure_is_logged_at_warning(caplog: pytest.LogCaptureFixture) -> None:
    audit = AuditLogger()

    with caplog.at_level(logging.INFO, logger="apple_mcp.audit"):
        audit.log("mail.send", {"subject": "line\nbreak"}, success=False, error="timeout")

    record = caplog.records[-1]
    assert record.levelno == logging.WARNING
    assert "success=false" in record.getMessage()
    assert "\n" not in record.getMessage()


def test_to_dict_is_json_friendly() -> None:
    entry = AuditLogger().log("mail.latest", {"count": 2}, success=False, error="boom")

    payload = entry.to_dict()

    assert payload["operation"] == "mail.latest"
    assert payload["details"] == {"count": 2}
    assert payload["error"] == "boom"
    assert isinstance(payload["timestamp"], str)
