"""Validation and normalization of untrusted tool inputs.

Every value that reaches script or query construction goes through one of the
``validate_*`` functions first. They are pure: no rate limiting, no audit, no
process access. Escaping still happens at construction time; the dangerous
pattern scan here is an additional layer, not a replacement.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

from apple_mcp.errors import ValidationError

PHONE_MIN_LENGTH = 10
PHONE_MAX_LENGTH = 20
EMAIL_MAX_LENGTH = 254
SEARCH_QUERY_MAX_LENGTH = 500
DEFAULT_MESSAGE_MAX_LENGTH = 10_000
NOTE_MAX_LENGTH = 50_000
FOLDER_NAME_MAX_LENGTH = 255
FILE_PATH_MAX_LENGTH = 1024

DEFAULT_LIMIT = 10
DEFAULT_MAX_RESULTS = 100

_PHONE_RE = re.compile(r"\+?[0-9\s\-().]+")
_PHONE_STRIP_RE = re.compile(r"[^0-9+]")
_EMAIL_RE = re.compile(
    r"(?!\.)(?!.*\.\.)[A-Z0-9_'+\-.]*[A-Z0-9_+\-]@(?:[A-Z0-9][A-Z0-9\-]*\.)+[A-Z]{2,}",
    re.IGNORECASE,
)
_FOLDER_NAME_RE = re.compile(r'[^/\\:*?"<>|]+')
# C0 controls and DEL, except tab, newline and carriage return.
_CONTROL_CHAR_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

DANGEROUS_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r'tell\s+application\s+"System\s+Events"',  # UI scripting of other apps
        r"do\s+shell\s+script",
        r"osascript",
        r"eval",
        r"exec",
        r"system\(",
        r"DELETE\s+FROM",
        r"DROP\s+TABLE",
        r"UPDATE\s+(?:\S+\s+)?SET\b",
        r"INSERT\s+INTO",
    )
)


@dataclass(frozen=True)
class ValidatedInput:
    """A value that passed the validation rule of its kind.

    Only the ``validate_*`` functions in this module create instances.
    """

    value: str

    def __str__(self) -> str:
        return self.value


class PhoneNumber(ValidatedInput):
    pass


class EmailAddress(ValidatedInput):
    pass


class SearchQuery(ValidatedInput):
    pass


class MessageContent(ValidatedInput):
    pass


class FolderName(ValidatedInput):
    pass


class FilePath(ValidatedInput):
    pass


def contains_dangerous_pattern(text: str) -> bool:
    return any(pattern.search(text) for pattern in DANGEROUS_PATTERNS)


def _require_str(value: object, field: str, message: str) -> str:
    if not isinstance(value, str):
        raise ValidationError(message, field)
    return value


def validate_phone_number(raw: object) -> PhoneNumber:
    """Validate a phone number and strip everything but digits and ``+``."""
    phone = _require_str(raw, "phoneNumber", "Invalid phone number")
    if not PHONE_MIN_LENGTH <= len(phone) <= PHONE_MAX_LENGTH:
        raise ValidationError("Invalid phone number", "phoneNumber")
    if not _PHONE_RE.fullmatch(phone):
        raise ValidationError("Invalid phone number", "phoneNumber")
    return PhoneNumber(_PHONE_STRIP_RE.sub("", phone))


def validate_email(raw: object, field: str = "email") -> EmailAddress:
    email = _require_str(raw, field, "Invalid email address").strip()
    if len(email) > EMAIL_MAX_LENGTH or not _EMAIL_RE.fullmatch(email):
        raise ValidationError("Invalid email address", field)
    return EmailAddress(email)


def validate_search_query(raw: object) -> SearchQuery:
    query = _require_str(raw, "searchQuery", "Invalid search query").strip()
    if not query or len(query) > SEARCH_QUERY_MAX_LENGTH:
        raise ValidationError("Invalid search query", "searchQuery")
    if _CONTROL_CHAR_RE.search(query):
        raise ValidationError("Search query contains control characters", "searchQuery")
    if contains_dangerous_pattern(query):
        raise ValidationError("Search query contains forbidden patterns", "searchQuery")
    return SearchQuery(query)


def validate_message_content(
    raw: object,
    max_length: int = DEFAULT_MESSAGE_MAX_LENGTH,
    field: str = "message",
) -> MessageContent:
    content = _require_str(raw, field, "Invalid message content").strip()
    if not content or len(content) > max_length:
        raise ValidationError("Invalid message content", field)
    if _CONTROL_CHAR_RE.search(content):
        raise ValidationError("Message contains control characters", field)
    if contains_dangerous_pattern(content):
        raise ValidationError("Message contains forbidden patterns", field)
    return MessageContent(content)


def validate_note_content(raw: object) -> MessageContent:
    """Notes allow long free text and skip the pattern scan; escaping still applies."""
    content = _require_str(raw, "note", "Invalid note content")
    if len(content) > NOTE_MAX_LENGTH:
        raise ValidationError("Note content too long", "note")
    return MessageContent(content)


def validate_folder_name(raw: object, field: str = "folder") -> FolderName:
    name = _require_str(raw, field, "Invalid folder name").strip()
    if len(name) > FOLDER_NAME_MAX_LENGTH or not _FOLDER_NAME_RE.fullmatch(name):
        raise ValidationError("Invalid folder name", field)
    return FolderName(name)


def validate_file_path(raw: object) -> FilePath:
    path = _require_str(raw, "filePath", "Invalid file path")
    if len(path) > FILE_PATH_MAX_LENGTH:
        raise ValidationError("File path too long", "filePath")
    if ".." in path:
        raise ValidationError("Path traversal detected", "filePath")
    return FilePath(path)


def sanitize_limit(value: object, maximum: int = DEFAULT_MAX_RESULTS) -> int:
    """Clamp a caller-supplied result limit.

    Non-numeric, NaN and non-positive values map to ``DEFAULT_LIMIT``; anything
    else is floored and capped at ``maximum``.
    """
    if isinstance(value, bool) or value is None:
        return DEFAULT_LIMIT
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return DEFAULT_LIMIT
    else:
        return DEFAULT_LIMIT

    if math.isnan(number):
        return DEFAULT_LIMIT
    if math.isinf(number):
        return maximum if number > 0 else DEFAULT_LIMIT
    parsed = math.floor(number)
    if parsed < 1:
        return DEFAULT_LIMIT
    return min(parsed, maximum)
