from __future__ import annotations

import asyncio
import contextlib
import os

import pytest

from apple_mcp.app import get_app_context
from apple_mcp.config import _load_settings_cached

_ENV_PREFIXES = ("MCP_", "ENABLE_", "RATE_LIMIT_", "MAX_", "LOG_", "TRANSPORT_MODE")


def pytest_sessionstart(session: pytest.Session) -> None:
    # Tests must not pick up a developer's local configuration.
    for key in list(os.environ):
        if key.startswith(_ENV_PREFIXES):
            del os.environ[key]


@pytest.fixture(autouse=True)
def _clear_cached_singletons() -> None:
    _load_settings_cached.cache_clear()
    get_app_context.cache_clear()
    yield
    _load_settings_cached.cache_clear()
    get_app_context.cache_clear()


@pytest.fixture(autouse=True)
def _close_default_event_loop() -> None:
    yield
    policy = asyncio.get_event_loop_policy()
    local = getattr(policy, "_local", None)
    loop = getattr(local, "_loop", None) if local is not None else None
    if loop is not None and not loop.is_running() and not loop.is_closed():
        with contextlib.suppress(Exception):
            loop.close()
    if loop is not None:
        with contextlib.suppress(Exception):
            policy.set_event_loop(None)
