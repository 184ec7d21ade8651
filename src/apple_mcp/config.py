"""Configuration management for the Apple MCP server."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError

_config_logger = logging.getLogger(__name__)


class LoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")


class SecuritySettings(BaseModel):
    """Security toggles and input limits shared by every operation."""

    model_config = ConfigDict(frozen=True)

    enable_rate_limiting: bool = Field(default=True)
    enable_audit_logging: bool = Field(default=True)
    auth_token: SecretStr | None = Field(
        default=None,
        description="Bearer token required on the HTTP transport when set.",
    )
    max_message_length: int = Field(default=10_000, ge=1)
    max_search_results: int = Field(default=100, ge=1)


class RateLimitSettings(BaseModel):
    """Requests allowed per window for each operation class."""

    model_config = ConfigDict(frozen=True)

    messages: int = Field(default=10, ge=1)
    emails: int = Field(default=20, ge=1)
    search: int = Field(default=30, ge=1)
    write: int = Field(default=5, ge=1)
    global_: int = Field(default=100, ge=1)
    window_ms: int = Field(default=60_000, ge=1)


class ExecutionSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    osascript_path: str = Field(default="/usr/bin/osascript")
    sqlite_path: str = Field(default="sqlite3")
    script_timeout_seconds: float = Field(default=30.0, gt=0, le=600)
    query_timeout_seconds: float = Field(default=10.0, gt=0, le=600)
    messages_db_path: str = Field(default="~/Library/Messages/chat.db")


class ServerSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000, ge=1024, le=65535)
    instructions: str = Field(
        default=(
            "Use these tools to read and send mail and messages on this Mac. "
            "Inputs are validated and rate limited; write operations are audited."
        )
    )
    transport_mode: Literal["stdio", "http"] = Field(default="stdio")


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    rate_limits: RateLimitSettings = Field(default_factory=RateLimitSettings)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)


ENV_KEYS = {
    "auth_token": "MCP_AUTH_TOKEN",
    "enable_rate_limiting": "ENABLE_RATE_LIMITING",
    "enable_audit_logging": "ENABLE_AUDIT_LOGGING",
    "max_message_length": "MAX_MESSAGE_LENGTH",
    "max_search_results": "MAX_SEARCH_RESULTS",
    "rate_limit_messages": "RATE_LIMIT_MESSAGES",
    "rate_limit_emails": "RATE_LIMIT_EMAILS",
    "rate_limit_search": "RATE_LIMIT_SEARCH",
    "rate_limit_write": "RATE_LIMIT_WRITE",
    "rate_limit_global": "RATE_LIMIT_GLOBAL",
    "host": "MCP_HOST",
    "port": "MCP_PORT",
    "instructions": "MCP_INSTRUCTIONS",
    "transport_mode": "TRANSPORT_MODE",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "osascript_path": "OSASCRIPT_PATH",
    "sqlite_path": "SQLITE3_PATH",
    "script_timeout": "SCRIPT_TIMEOUT_SECONDS",
    "query_timeout": "QUERY_TIMEOUT_SECONDS",
    "messages_db_path": "MESSAGES_DB_PATH",
}

_TRUE_VALUES = frozenset({"1", "true", "yes"})
_FALSE_VALUES = frozenset({"0", "false", "no"})


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _config_logger.warning(
            "Invalid integer value for %s: %r, using default %d", key, value, default
        )
        return default


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        _config_logger.warning(
            "Invalid float value for %s: %r, using default %s", key, value, default
        )
        return default


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=_project_root() / ".env")
    auth_token = os.getenv(ENV_KEYS["auth_token"], "")
    log_file = os.getenv(ENV_KEYS["log_file"], "").strip()

    settings_data: dict[str, object] = {
        "server": {
            "host": os.getenv(ENV_KEYS["host"], ServerSettings().host),
            "port": _env_int(ENV_KEYS["port"], ServerSettings().port),
            "instructions": os.getenv(ENV_KEYS["instructions"], ServerSettings().instructions),
            "transport_mode": os.getenv(
                ENV_KEYS["transport_mode"], ServerSettings().transport_mode
            ),
        },
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": log_file or None,
        },
        "security": {
            "enable_rate_limiting": _env_bool(
                ENV_KEYS["enable_rate_limiting"],
                SecuritySettings().enable_rate_limiting,
            ),
            "enable_audit_logging": _env_bool(
                ENV_KEYS["enable_audit_logging"],
                SecuritySettings().enable_audit_logging,
            ),
            "auth_token": auth_token or None,
            "max_message_length": _env_int(
                ENV_KEYS["max_message_length"],
                SecuritySettings().max_message_length,
            ),
            "max_search_results": _env_int(
                ENV_KEYS["max_search_results"],
                SecuritySettings().max_search_results,
            ),
        },
        "rate_limits": {
            "messages": _env_int(ENV_KEYS["rate_limit_messages"], RateLimitSettings().messages),
            "emails": _env_int(ENV_KEYS["rate_limit_emails"], RateLimitSettings().emails),
            "search": _env_int(ENV_KEYS["rate_limit_search"], RateLimitSettings().search),
            "write": _env_int(ENV_KEYS["rate_limit_write"], RateLimitSettings().write),
            "global_": _env_int(ENV_KEYS["rate_limit_global"], RateLimitSettings().global_),
        },
        "execution": {
            "osascript_path": os.getenv(
                ENV_KEYS["osascript_path"], ExecutionSettings().osascript_path
            ),
            "sqlite_path": os.getenv(ENV_KEYS["sqlite_path"], ExecutionSettings().sqlite_path),
            "script_timeout_seconds": _env_float(
                ENV_KEYS["script_timeout"],
                ExecutionSettings().script_timeout_seconds,
            ),
            "query_timeout_seconds": _env_float(
                ENV_KEYS["query_timeout"],
                ExecutionSettings().query_timeout_seconds,
            ),
            "messages_db_path": str(
                Path(
                    os.getenv(
                        ENV_KEYS["messages_db_path"], ExecutionSettings().messages_db_path
                    )
                ).expanduser()
            ),
        },
    }

    try:
        settings = Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

    if settings.server.transport_mode == "http" and settings.security.auth_token is None:
        _config_logger.warning(
            "HTTP transport enabled without %s; requests will not be authenticated",
            ENV_KEYS["auth_token"],
        )

    return settings
