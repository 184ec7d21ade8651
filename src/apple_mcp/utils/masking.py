"""Redaction helpers applied to audit details before they are stored or logged.

``redact_sensitive_fields`` replaces values whose keys look like credentials;
``truncate_preview`` caps free-text fields (message bodies, subjects) so the
audit trail never holds full message content.
"""

from __future__ import annotations

AUDIT_PREVIEW_LENGTH = 50
REDACTION_MASK = "***"

_MAX_REDACT_DEPTH = 20

# Matched as case-insensitive substrings of the key.
SENSITIVE_KEY_MARKERS: tuple[str, ...] = (
    "password",
    "passcode",
    "secret",
    "token",
    "apikey",
    "api_key",
    "credential",
    "authorization",
    "cookie",
)


def is_sensitive_key(key: object) -> bool:
    lowered = str(key).lower()
    return any(marker in lowered for marker in SENSITIVE_KEY_MARKERS)


def redact_sensitive_fields(
    value: object,
    *,
    mask: str = REDACTION_MASK,
    depth: int = 0,
    max_depth: int = _MAX_REDACT_DEPTH,
) -> object:
    """Return a copy of ``value`` with sensitive mapping values masked.

    Nesting beyond ``max_depth`` collapses to ``mask`` as a whole.
    """
    if depth >= max_depth:
        return mask
    if isinstance(value, dict):
        return {
            key: mask
            if is_sensitive_key(key)
            else redact_sensitive_fields(item, mask=mask, depth=depth + 1, max_depth=max_depth)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [
            redact_sensitive_fields(item, mask=mask, depth=depth + 1, max_depth=max_depth)
            for item in value
        ]
    return value


def truncate_preview(value: str | None, length: int = AUDIT_PREVIEW_LENGTH) -> str | None:
    if value is None:
        return None
    return value[:length]
