"""JSON Schema definitions for the mail, messages and audit tools.

These schemas are a first, structural gate. The validators in
``apple_mcp.security.validation`` still run on every value.
"""

from __future__ import annotations

_LIMIT = {
    "type": "integer",
    "minimum": 1,
    "description": "Maximum number of results to return (capped by MAX_SEARCH_RESULTS).",
}

_ACCOUNT = {
    "type": "string",
    "minLength": 1,
    "maxLength": 255,
    "description": "Mail account name as shown in Mail > Settings > Accounts.",
}

_PHONE = {
    "type": "string",
    "minLength": 10,
    "maxLength": 20,
    "description": "Recipient phone number, e.g. '+1 (555) 123-4567'.",
}

MAIL_UNREAD_SCHEMA = {
    "type": "object",
    "properties": {"limit": {**_LIMIT, "default": 10}},
    "additionalProperties": False,
}

MAIL_SEARCH_SCHEMA = {
    "type": "object",
    "properties": {
        "searchTerm": {
            "type": "string",
            "minLength": 1,
            "maxLength": 500,
            "description": "Text to look for in message subjects and bodies.",
        },
        "limit": {**_LIMIT, "default": 10},
    },
    "required": ["searchTerm"],
    "additionalProperties": False,
}

MAIL_SEND_SCHEMA = {
    "type": "object",
    "properties": {
        "to": {"type": "string", "maxLength": 254, "description": "Recipient address."},
        "subject": {"type": "string", "minLength": 1},
        "body": {"type": "string", "minLength": 1},
        "cc": {"type": "string", "maxLength": 254},
        "bcc": {"type": "string", "maxLength": 254},
    },
    "required": ["to", "subject", "body"],
    "additionalProperties": False,
}

MAIL_NO_ARGS_SCHEMA = {
    "type": "object",
    "properties": {},
    "additionalProperties": False,
}

MAIL_ACCOUNT_MAILBOXES_SCHEMA = {
    "type": "object",
    "properties": {"account": _ACCOUNT},
    "required": ["account"],
    "additionalProperties": False,
}

MAIL_LATEST_SCHEMA = {
    "type": "object",
    "properties": {"account": _ACCOUNT, "limit": {**_LIMIT, "default": 5}},
    "required": ["account"],
    "additionalProperties": False,
}

MESSAGES_SEND_SCHEMA = {
    "type": "object",
    "properties": {
        "phoneNumber": _PHONE,
        "message": {"type": "string", "minLength": 1},
    },
    "required": ["phoneNumber", "message"],
    "additionalProperties": False,
}

MESSAGES_READ_SCHEMA = {
    "type": "object",
    "properties": {"phoneNumber": _PHONE, "limit": {**_LIMIT, "default": 10}},
    "required": ["phoneNumber"],
    "additionalProperties": False,
}

AUDIT_RECENT_SCHEMA = {
    "type": "object",
    "properties": {
        "count": {
            "type": "integer",
            "minimum": 1,
            "maximum": 1000,
            "default": 100,
            "description": "Number of most recent audit entries to return.",
        },
    },
    "additionalProperties": False,
}
