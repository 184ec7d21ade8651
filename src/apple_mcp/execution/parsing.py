"""Parsing of loosely formatted automation output.

Parsing happens in two separate steps:

1. *Loose* parsing turns text into flat ``dict`` records with no type
   guarantees (``parse_structured``, ``scan_brace_records``).
2. *Projection* (``RecordSchema.project``) fills per-field defaults and
   validates the record into a typed pydantic model.

``parse_primary_output`` chains the loose strategies in a fixed order; the
first one that yields records wins.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from apple_mcp.errors import ParseFailure
from apple_mcp.security.escaping import unescape_script_string

logger = logging.getLogger(__name__)

_MIN_EXPECTED_TOKENS = 2


class AutomationRecord(BaseModel):
    """Base for typed records returned by automation operations."""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    diagnostic: bool = False


class ParseStrategy(str, Enum):
    STRUCTURED = "structured"
    BRACE_SCAN = "brace_scan"
    RAW_DUMP = "raw_dump"
    OBJECT_AUTOMATION = "object_automation"
    QUERY = "query"


@dataclass(frozen=True)
class RecordSchema:
    """How raw key/value records map onto a typed model.

    ``defaults`` maps every model field to a zero-argument factory used when
    the raw record lacks the field (or holds an empty value). ``aliases`` maps
    raw keys onto model field names. A brace-scanned group is only accepted
    when it carries at least one of ``required_keys`` (raw names).
    ``expected_tokens`` and ``raw_record`` drive the raw-dump fallback, which
    is skipped when ``raw_record`` is not set.
    """

    model: type[AutomationRecord]
    defaults: Mapping[str, Callable[[], object]]
    required_keys: frozenset[str]
    expected_tokens: tuple[str, ...] = ()
    aliases: Mapping[str, str] | None = None
    raw_record: Callable[[str], Mapping[str, object]] | None = None

    def field_name(self, raw_key: str) -> str:
        if self.aliases and raw_key in self.aliases:
            return self.aliases[raw_key]
        return raw_key

    def project(self, raw: Mapping[str, object]) -> AutomationRecord:
        values: dict[str, object] = {}
        for raw_key, value in raw.items():
            name = self.field_name(str(raw_key))
            if name in self.defaults:
                values[name] = value
        for name, factory in self.defaults.items():
            current = values.get(name)
            if current is None or current == "":
                values[name] = factory()
        return self.model.model_validate(values)

    def project_all(self, raws: Sequence[Mapping[str, object]]) -> list[AutomationRecord]:
        return [self.project(raw) for raw in raws]


@dataclass(frozen=True)
class ParseResult:
    strategy: ParseStrategy
    records: list[AutomationRecord]


def parse_structured(text: str) -> list[dict[str, object]] | None:
    """Parse JSON-shaped output into a list of records, or ``None``."""
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    if isinstance(data, dict):
        return [data]
    if isinstance(data, list):
        records = [item for item in data if isinstance(item, dict)]
        return records or None
    return None


def _split_top_level(text: str, separator: str = ",") -> list[str]:
    """Split on ``separator`` outside double-quoted strings and brackets."""
    pieces: list[str] = []
    current: list[str] = []
    depth = 0
    in_quotes = False
    escaped = False
    for char in text:
        if escaped:
            current.append(char)
            escaped = False
            continue
        if char == "\\" and in_quotes:
            current.append(char)
            escaped = True
            continue
        if char == '"':
            in_quotes = not in_quotes
        elif not in_quotes:
            if char in "([":
                depth += 1
            elif char in ")]" and depth > 0:
                depth -= 1
            elif char == separator and depth == 0:
                pieces.append("".join(current))
                current = []
                continue
        current.append(char)
    pieces.append("".join(current))
    return pieces


def _clean_value(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        return unescape_script_string(value[1:-1])
    return value


def parse_record_group(body: str) -> dict[str, str]:
    """Parse ``key:value, key:value`` into a dict.

    The first colon of a piece separates key from value. A piece without a
    colon is a continuation of the previous value (dates such as
    ``Monday, 3 March 2025`` contain commas).
    """
    record: dict[str, str] = {}
    last_key: str | None = None
    for piece in _split_top_level(body):
        key, sep, value = piece.partition(":")
        key = key.strip()
        if sep and key and " " not in key:
            record[key] = _clean_value(value)
            last_key = key
        elif last_key is not None:
            record[last_key] = f"{record[last_key]},{piece}".strip()
    return record


def _innermost_brace_groups(text: str) -> list[str]:
    groups: list[str] = []
    start: int | None = None
    in_quotes = False
    escaped = False
    for index, char in enumerate(text):
        if escaped:
            escaped = False
        elif char == "\\" and in_quotes:
            escaped = True
        elif char == '"':
            in_quotes = not in_quotes
        elif in_quotes:
            continue
        elif char == "{":
            start = index + 1
        elif char == "}" and start is not None:
            groups.append(text[start:index])
            start = None
    return groups


def scan_brace_records(text: str) -> list[dict[str, str]]:
    """Extract every innermost ``{...}`` group from ``text`` as a record.

    Braces inside double-quoted values do not open or close a group.
    """
    return [parse_record_group(body) for body in _innermost_brace_groups(text)]


def count_expected_tokens(text: str, tokens: Sequence[str]) -> int:
    return sum(1 for token in tokens if token in text)


def parse_primary_output(raw_text: str, schema: RecordSchema) -> ParseResult:
    """Run the parsing cascade against primary-path output.

    Raises ``ParseFailure`` carrying the raw text when nothing matches.
    """
    text = raw_text.strip()

    if text.startswith(("{", "[")):
        structured = parse_structured(text)
        if structured:
            try:
                return ParseResult(ParseStrategy.STRUCTURED, schema.project_all(structured))
            except PydanticValidationError as exc:
                logger.debug("Structured output failed projection: %s", exc)

    accepted: list[AutomationRecord] = []
    for group in scan_brace_records(text):
        if not schema.required_keys.intersection(group):
            continue
        try:
            accepted.append(schema.project(group))
        except PydanticValidationError as exc:
            logger.debug("Skipping record group that failed projection: %s", exc)
    if accepted:
        return ParseResult(ParseStrategy.BRACE_SCAN, accepted)

    if (
        schema.raw_record is not None
        and count_expected_tokens(text, schema.expected_tokens) >= _MIN_EXPECTED_TOKENS
    ):
        logger.warning("Returning raw automation output as a diagnostic record")
        values = dict(schema.raw_record(raw_text))
        values["diagnostic"] = True
        return ParseResult(ParseStrategy.RAW_DUMP, [schema.model.model_validate(values)])

    raise ParseFailure(raw_text)
