from __future__ import annotations

import logging
import sys
from types import SimpleNamespace
from unittest.mock import patch

from apple_mcp import logging_utils
from apple_mcp.logging_utils import configure_logging, get_logger, sanitize_log_value


def _settings(level: str = "INFO", file: str | None = None) -> SimpleNamespace:
    return SimpleNamespace(logging=SimpleNamespace(level=level, file=file))


def test_sanitize_log_value_replaces_control_characters() -> None:
    assert sanitize_log_value("a\nb\rc\x00d") == "a_b_c_d"
    assert sanitize_log_value("tab\tkept") == "tab\tkept"
    assert sanitize_log_value({"k": 1}) == "{'k': 1}"


@patch("apple_mcp.logging_utils.load_settings")
def test_configure_logging_uses_stderr(mock_settings) -> None:
    mock_settings.return_value = _settings(level="debug")

    configure_logging()

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    stream_handlers = [h for h in root.handlers if isinstance(h, logging.StreamHandler)]
    assert any(getattr(h, "stream", None) is sys.stderr for h in stream_handlers)


@patch("apple_mcp.logging_utils.load_settings")
def test_configure_logging_writes_file(mock_settings, tmp_path) -> None:
    log_file = tmp_path / "logs" / "server.log"
    mock_settings.return_value = _settings(file=str(log_file))

    configure_logging()
    logging.getLogger("apple_mcp.test").info("hello file")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert log_file.exists()
    assert "hello file" in log_file.read_text()
    for handler in list(logging.getLogger().handlers):
        if isinstance(handler, logging.FileHandler):
            handler.close()
            logging.getLogger().removeHandler(handler)


@patch("apple_mcp.logging_utils.load_settings")
def test_unknown_level_falls_back_to_info(mock_settings) -> None:
    mock_settings.return_value = _settings(level="chatty")

    configure_logging()

    assert logging.getLogger().level == logging.INFO


@patch("apple_mcp.logging_utils.configure_logging")
def test_get_logger_configures_once(mock_configure, monkeypatch) -> None:
    monkeypatch.setattr(logging_utils, "_logging_configured", False)

    def _mark_configured() -> None:
        logging_utils._logging_configured = True

    mock_configure.side_effect = _mark_configured

    logger = get_logger("apple_mcp.sample")
    get_logger("apple_mcp.sample")

    assert logger.name == "apple_mcp.sample"
    mock_configure.assert_called_once()
