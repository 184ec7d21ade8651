"""Error taxonomy shared by the validation, rate limiting and execution layers.

Every error carries a stable ``error_type`` so tool handlers can turn it into a
structured payload without inspecting the exception class.
"""

from __future__ import annotations

from enum import Enum


class Stage(str, Enum):
    """Executor stage at which an execution failure happened."""

    PRIMARY = "primary"
    SECONDARY = "secondary"
    QUERY = "query"


class AppleMCPError(Exception):
    """Base exception for all errors surfaced to a tool caller."""

    error_type = "internal_error"
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def _extra_fields(self) -> dict[str, object]:
        return {}

    def to_dict(self) -> dict[str, object]:
        """Convert error to the payload returned by tools."""
        error: dict[str, object] = {
            "type": self.error_type,
            "message": self.message,
        }
        error.update(self._extra_fields())
        error["retryable"] = self.retryable
        return {"error": error}


class ValidationError(AppleMCPError):
    """Caller input was rejected before any external call was made."""

    error_type = "validation_error"

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field

    def _extra_fields(self) -> dict[str, object]:
        return {"field": self.field} if self.field else {}


class RateLimitExceeded(AppleMCPError):
    """An operation class (or the global budget) is exhausted for this window."""

    error_type = "rate_limit_exceeded"
    retryable = True

    def __init__(self, operation_class: str) -> None:
        super().__init__("Rate limit exceeded. Please try again later.")
        self.operation_class = operation_class

    def _extra_fields(self) -> dict[str, object]:
        return {"hint": "Wait for the current one-minute window to end."}


class ExecutionFailure(AppleMCPError):
    """An external interpreter or process failed, timed out or could not start."""

    error_type = "execution_failure"

    def __init__(
        self,
        reason: str,
        stage: Stage | None = None,
        raw_text: str | None = None,
    ) -> None:
        super().__init__(reason)
        self.reason = reason
        self.stage = stage
        self.raw_text = raw_text

    @property
    def timed_out(self) -> bool:
        return self.reason == "timeout"

    def _extra_fields(self) -> dict[str, object]:
        extra: dict[str, object] = {}
        if self.stage is not None:
            extra["stage"] = self.stage.value
        if self.raw_text:
            extra["raw_output"] = self.raw_text
        return extra


class ParseFailure(AppleMCPError):
    """Primary output could not be interpreted by any parsing strategy."""

    error_type = "parse_failure"

    def __init__(self, raw_text: str) -> None:
        super().__init__("Could not parse automation output")
        self.raw_text = raw_text


class AuthenticationError(AppleMCPError):
    """The presented credential did not match the configured token."""

    error_type = "authentication_failed"

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)
