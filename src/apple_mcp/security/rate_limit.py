"""Fixed-window rate limiting keyed by operation class."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from apple_mcp.config import RateLimitSettings
from apple_mcp.errors import RateLimitExceeded

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_MS = 60_000

# The server is single-tenant, so every check uses the same key.
DEFAULT_KEY = "global"


class OperationClass(str, Enum):
    MESSAGES = "messages"
    EMAILS = "emails"
    SEARCH = "search"
    WRITE = "write"


@dataclass
class RateLimitEntry:
    count: int
    window_reset_at: float


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class RateLimiter:
    """Fixed-window counter.

    A burst straddling a window boundary can get up to twice ``max_requests``
    through; that is accepted in exchange for O(1) state per key.
    """

    def __init__(
        self,
        max_requests: int,
        window_ms: int = DEFAULT_WINDOW_MS,
        clock: Callable[[], float] = _monotonic_ms,
    ) -> None:
        self.max_requests = max_requests
        self.window_ms = window_ms
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def check(self, key: str = DEFAULT_KEY) -> bool:
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is None or now >= entry.window_reset_at:
                self._entries[key] = RateLimitEntry(count=1, window_reset_at=now + self.window_ms)
                return True
            if entry.count >= self.max_requests:
                return False
            entry.count += 1
            return True

    def reset(self, key: str = DEFAULT_KEY) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def entry(self, key: str = DEFAULT_KEY) -> RateLimitEntry | None:
        with self._lock:
            current = self._entries.get(key)
            if current is None:
                return None
            return RateLimitEntry(count=current.count, window_reset_at=current.window_reset_at)


class RateLimiterRegistry:
    """One limiter per operation class plus the shared global budget."""

    def __init__(
        self,
        limiters: dict[OperationClass, RateLimiter],
        global_limiter: RateLimiter,
    ) -> None:
        self._limiters = dict(limiters)
        self.global_limiter = global_limiter

    @classmethod
    def from_settings(
        cls,
        settings: RateLimitSettings,
        clock: Callable[[], float] = _monotonic_ms,
    ) -> RateLimiterRegistry:
        window = settings.window_ms
        return cls(
            limiters={
                OperationClass.MESSAGES: RateLimiter(settings.messages, window, clock),
                OperationClass.EMAILS: RateLimiter(settings.emails, window, clock),
                OperationClass.SEARCH: RateLimiter(settings.search, window, clock),
                OperationClass.WRITE: RateLimiter(settings.write, window, clock),
            },
            global_limiter=RateLimiter(settings.global_, window, clock),
        )

    def limiter(self, operation_class: OperationClass) -> RateLimiter:
        return self._limiters[operation_class]

    def check(self, operation_class: OperationClass, key: str = DEFAULT_KEY) -> bool:
        # Class first: an exhausted class must not consume the global budget.
        if not self._limiters[operation_class].check(key):
            logger.warning("Rate limit exceeded for class: %s", operation_class.value)
            return False
        if not self.global_limiter.check(key):
            logger.warning("Global rate limit exceeded (class: %s)", operation_class.value)
            return False
        return True

    def enforce(self, operation_class: OperationClass, key: str = DEFAULT_KEY) -> None:
        if not self.check(operation_class, key):
            raise RateLimitExceeded(operation_class.value)

    def reset(self, key: str = DEFAULT_KEY) -> None:
        for limiter in self._limiters.values():
            limiter.reset(key)
        self.global_limiter.reset(key)
