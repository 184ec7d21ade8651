"""Process-wide logging setup.

Records go to stderr (stdout is the stdio protocol stream) and, when
``MCP_LOG_FILE`` is set, to that file as well.
"""

from __future__ import annotations

import logging
import re
import sys
import threading
from pathlib import Path

from apple_mcp.config import load_settings

_logger = logging.getLogger(__name__)

_formatter = logging.Formatter(
    "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)

# Tabs are kept; every other C0 control character and DEL is replaced.
_UNSAFE_CHARS = re.compile(r"[\x00-\x08\x0a-\x1f\x7f]")

_logging_configured = False
_logging_lock = threading.Lock()


def sanitize_log_value(value: object) -> str:
    """Flatten ``value`` to a single log-safe line."""
    return _UNSAFE_CHARS.sub("_", str(value))


def _file_handler(location: str) -> logging.Handler | None:
    path = Path(location).expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(path)
    except OSError as exc:
        _logger.warning("Failed to open log file %s: %s", location, exc)
        return None


def configure_logging() -> None:
    global _logging_configured

    config = load_settings().logging
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.file:
        extra = _file_handler(config.file)
        if extra is not None:
            handlers.append(extra)
    for handler in handlers:
        handler.setFormatter(_formatter)

    level = logging.getLevelName(config.level.upper())
    logging.basicConfig(
        level=level if isinstance(level, int) else logging.INFO,
        handlers=handlers,
        force=True,
    )
    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    """``logging.getLogger`` that configures logging on first use."""
    if not _logging_configured:
        with _logging_lock:
            if not _logging_configured:
                configure_logging()
    return logging.getLogger(name)
