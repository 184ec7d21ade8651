"""Resilient execution of automation operations.

Each call walks a small state machine::

    VALIDATING -> RATE_CHECK -> PRIMARY_ATTEMPT -> PRIMARY_PARSE -> DONE
                                      |                 |
                                      +-----------------+--> SECONDARY_ATTEMPT
                                                              -> SECONDARY_PARSE -> DONE
                                                              -> FAILED

Validation and rate-limit rejections are raised before any process is
started. Everything after that is reported through ``ExecutionOutcome``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Generic, Protocol, TypeVar

from pydantic import ValidationError as PydanticValidationError

from apple_mcp.config import SecuritySettings
from apple_mcp.errors import ExecutionFailure, ParseFailure, Stage
from apple_mcp.execution.osascript import ensure_app_running
from apple_mcp.execution.parsing import (
    AutomationRecord,
    ParseStrategy,
    RecordSchema,
    parse_primary_output,
)
from apple_mcp.security.audit import AuditLogger
from apple_mcp.security.rate_limit import DEFAULT_KEY, OperationClass, RateLimiterRegistry

logger = logging.getLogger(__name__)

ArgsT = TypeVar("ArgsT")


class ScriptRunner(Protocol):
    def __call__(self, script: str) -> Awaitable[str]: ...


class ObjectRunner(Protocol):
    def __call__(self, function_source: str, *args: object) -> Awaitable[object]: ...


class ExecutionState(str, Enum):
    VALIDATING = "validating"
    RATE_CHECK = "rate_check"
    PRIMARY_ATTEMPT = "primary_attempt"
    PRIMARY_PARSE = "primary_parse"
    SECONDARY_ATTEMPT = "secondary_attempt"
    SECONDARY_PARSE = "secondary_parse"
    DONE = "done"
    FAILED = "failed"


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    EMPTY_RESULT = "empty_result"
    PARSE_FAILURE = "parse_failure"
    EXECUTION_FAILURE = "execution_failure"


@dataclass(frozen=True)
class ExecutionOutcome:
    kind: OutcomeKind
    records: tuple[AutomationRecord, ...] = ()
    raw_text: str | None = None
    reason: str | None = None
    stage: Stage | None = None
    strategy: ParseStrategy | None = None
    states: tuple[ExecutionState, ...] = ()

    @classmethod
    def success(
        cls,
        records: Sequence[AutomationRecord],
        strategy: ParseStrategy,
        states: Sequence[ExecutionState],
    ) -> ExecutionOutcome:
        return cls(
            OutcomeKind.SUCCESS,
            records=tuple(records),
            strategy=strategy,
            states=tuple(states),
        )

    @classmethod
    def empty(cls, states: Sequence[ExecutionState]) -> ExecutionOutcome:
        return cls(OutcomeKind.EMPTY_RESULT, states=tuple(states))

    @classmethod
    def parse_failure(cls, raw_text: str, states: Sequence[ExecutionState]) -> ExecutionOutcome:
        return cls(
            OutcomeKind.PARSE_FAILURE,
            raw_text=raw_text,
            reason="Could not parse automation output",
            stage=Stage.PRIMARY,
            states=tuple(states),
        )

    @classmethod
    def failure(
        cls,
        reason: str,
        stage: Stage,
        states: Sequence[ExecutionState],
        raw_text: str | None = None,
    ) -> ExecutionOutcome:
        return cls(
            OutcomeKind.EXECUTION_FAILURE,
            raw_text=raw_text,
            reason=reason,
            stage=stage,
            states=tuple(states),
        )

    @property
    def ok(self) -> bool:
        return self.kind in (OutcomeKind.SUCCESS, OutcomeKind.EMPTY_RESULT)

    def to_payload(self) -> dict[str, object]:
        """Serialize for a tool response."""
        if self.ok:
            return {
                "records": [record.model_dump() for record in self.records],
                "count": len(self.records),
            }
        error: dict[str, object] = {
            "type": self.kind.value,
            "message": self.reason,
            "stage": self.stage.value if self.stage else None,
            "retryable": False,
        }
        if self.raw_text:
            error["raw_output"] = self.raw_text
        return {"error": error}


@dataclass(frozen=True)
class SecondaryCall:
    """A structured-automation function plus its JSON-serializable arguments."""

    function_source: str
    args: tuple[object, ...] = ()


@dataclass(frozen=True)
class AutomationOperation(Generic[ArgsT]):
    """Everything the executor needs to run one named operation.

    ``validate`` turns the caller's raw arguments into a typed value (raising
    ``ValidationError``); every other callable only ever sees that value.
    """

    name: str
    schema: RecordSchema
    validate: Callable[[Mapping[str, object]], ArgsT]
    build_script: Callable[[ArgsT], str]
    operation_class: OperationClass | None = None
    secondary: Callable[[ArgsT], SecondaryCall] | None = None
    audit_details: Callable[[ArgsT], Mapping[str, object]] | None = None
    limit: Callable[[ArgsT], int | None] | None = None
    application: str | None = None
    audited: bool = True


@dataclass
class _Run:
    states: list[ExecutionState] = field(default_factory=list)

    def enter(self, state: ExecutionState) -> None:
        self.states.append(state)


class ResilientExecutor:
    def __init__(
        self,
        security: SecuritySettings,
        rate_limiters: RateLimiterRegistry,
        audit_logger: AuditLogger,
        script_runner: ScriptRunner,
        object_runner: ObjectRunner,
    ) -> None:
        self._security = security
        self._rate_limiters = rate_limiters
        self._audit_logger = audit_logger
        self._script_runner = script_runner
        self._object_runner = object_runner

    async def execute(
        self,
        operation: AutomationOperation[ArgsT],
        raw_args: Mapping[str, object],
        user: str | None = None,
    ) -> ExecutionOutcome:
        run = _Run()

        run.enter(ExecutionState.VALIDATING)
        args = operation.validate(raw_args)

        run.enter(ExecutionState.RATE_CHECK)
        if operation.operation_class is not None and self._security.enable_rate_limiting:
            self._rate_limiters.enforce(operation.operation_class, DEFAULT_KEY)

        outcome = await self._attempt(operation, args, run)
        limit = operation.limit(args) if operation.limit else None
        if limit is not None and len(outcome.records) > limit:
            outcome = replace(outcome, records=outcome.records[:limit])
        self._audit(operation, args, outcome, user)
        return outcome

    async def _attempt(
        self,
        operation: AutomationOperation[ArgsT],
        args: ArgsT,
        run: _Run,
    ) -> ExecutionOutcome:
        run.enter(ExecutionState.PRIMARY_ATTEMPT)
        if operation.application:
            await ensure_app_running(self._script_runner, operation.application)

        primary_raw: str | None = None
        primary_error: str
        try:
            primary_raw = await self._script_runner(operation.build_script(args))
        except ExecutionFailure as exc:
            primary_error = exc.reason
            logger.warning(
                "Primary path failed for %s: %s",
                operation.name,
                "timeout" if exc.timed_out else exc.reason,
            )
        else:
            run.enter(ExecutionState.PRIMARY_PARSE)
            try:
                parsed = parse_primary_output(primary_raw, operation.schema)
            except ParseFailure:
                primary_error = "Could not parse automation output"
                logger.warning("Primary output for %s did not parse", operation.name)
            else:
                run.enter(ExecutionState.DONE)
                return ExecutionOutcome.success(parsed.records, parsed.strategy, run.states)

        if operation.secondary is None:
            run.enter(ExecutionState.FAILED)
            if primary_raw is not None:
                return ExecutionOutcome.parse_failure(primary_raw, run.states)
            return ExecutionOutcome.failure(primary_error, Stage.PRIMARY, run.states)

        return await self._attempt_secondary(operation, args, run, primary_raw)

    async def _attempt_secondary(
        self,
        operation: AutomationOperation[ArgsT],
        args: ArgsT,
        run: _Run,
        primary_raw: str | None,
    ) -> ExecutionOutcome:
        assert operation.secondary is not None
        call = operation.secondary(args)

        run.enter(ExecutionState.SECONDARY_ATTEMPT)
        try:
            result = await self._object_runner(call.function_source, *call.args)
        except ExecutionFailure as exc:
            logger.error("Secondary path failed for %s: %s", operation.name, exc.reason)
            run.enter(ExecutionState.FAILED)
            return ExecutionOutcome.failure(
                exc.reason, Stage.SECONDARY, run.states, raw_text=primary_raw
            )

        run.enter(ExecutionState.SECONDARY_PARSE)
        if result is None or result == []:
            run.enter(ExecutionState.DONE)
            return ExecutionOutcome.empty(run.states)

        items = result if isinstance(result, list) else [result]
        if not all(isinstance(item, dict) for item in items):
            run.enter(ExecutionState.FAILED)
            return ExecutionOutcome.failure(
                "Object automation returned an unexpected result",
                Stage.SECONDARY,
                run.states,
                raw_text=primary_raw,
            )
        try:
            records = operation.schema.project_all(items)
        except PydanticValidationError as exc:
            logger.error("Secondary records for %s failed validation: %s", operation.name, exc)
            run.enter(ExecutionState.FAILED)
            return ExecutionOutcome.failure(
                "Object automation returned malformed records",
                Stage.SECONDARY,
                run.states,
                raw_text=primary_raw,
            )
        run.enter(ExecutionState.DONE)
        return ExecutionOutcome.success(records, ParseStrategy.OBJECT_AUTOMATION, run.states)

    def _audit(
        self,
        operation: AutomationOperation[ArgsT],
        args: ArgsT,
        outcome: ExecutionOutcome,
        user: str | None,
    ) -> None:
        if not (operation.audited and self._security.enable_audit_logging):
            return
        details: dict[str, object] = dict(operation.audit_details(args)) if operation.audit_details else {}
        details["count"] = len(outcome.records)
        if outcome.strategy is not None:
            details["strategy"] = outcome.strategy.value
        self._audit_logger.log(
            operation.name,
            details,
            success=outcome.ok,
            user=user,
            error=None if outcome.ok else outcome.reason,
        )
