from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, SecretStr

from apple_mcp.utils.jsonschema import validate_payload
from apple_mcp.utils.masking import redact_sensitive_fields, truncate_preview
from apple_mcp.utils.serialization import json_default


class _Color(Enum):
    RED = "red"


class _Model(BaseModel):
    name: str


def test_json_default_handles_common_types() -> None:
    payload = {
        "when": datetime(2025, 3, 1, tzinfo=timezone.utc),
        "token": SecretStr("hidden"),
        "model": _Model(name="x"),
        "color": _Color.RED,
        "raw": b"bytes",
        "items": (1, 2),
    }

    decoded = json.loads(json.dumps(payload, default=json_default))

    assert decoded == {
        "when": "2025-03-01T00:00:00+00:00",
        "token": "***",
        "model": {"name": "x"},
        "color": "red",
        "raw": "bytes",
        "items": [1, 2],
    }


def test_validate_payload_returns_sorted_messages() -> None:
    schema = {
        "type": "object",
        "properties": {"limit": {"type": "integer"}, "name": {"type": "string"}},
        "required": ["name"],
    }

    errors = validate_payload(schema, {"limit": "x"})

    assert len(errors) == 2
    assert errors == sorted(errors)
    assert any(error.startswith("limit: ") for error in errors)


def test_redact_sensitive_fields_recurses() -> None:
    value = {"Authorization": "Bearer x", "items": [{"api_secret": "s"}, {"ok": 1}]}

    assert redact_sensitive_fields(value) == {
        "Authorization": "***",
        "items": [{"api_secret": "***"}, {"ok": 1}],
    }


def test_redact_sensitive_fields_caps_depth() -> None:
    assert redact_sensitive_fields({"a": {"b": 1}}, max_depth=1) == {"a": "***"}


def test_truncate_preview() -> None:
    assert truncate_preview(None) is None
    assert truncate_preview("x" * 60) == "x" * 50
    assert truncate_preview("short", 3) == "sho"
