"""One-shot ``sqlite3`` invocations with textual parameter substitution.

The engine runs as a separate process with no persistent connection, so
engine-level bound parameters are not available. ``substitute_parameters``
renders each operand as a literal instead; only pass values that already went
through validation.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Sequence

from apple_mcp.errors import ExecutionFailure, Stage
from apple_mcp.execution.process import SafeProcessInvoker
from apple_mcp.security.escaping import escape_sql_string

logger = logging.getLogger(__name__)

SqlParam = str | int | float


def _render_literal(param: SqlParam) -> str:
    if isinstance(param, bool):
        raise TypeError("Boolean query parameters are not supported; use 0 or 1")
    if isinstance(param, float) and not math.isfinite(param):
        raise TypeError("Non-finite float query parameters are not supported")
    if isinstance(param, (int, float)):
        return repr(param)
    if isinstance(param, str):
        return f"'{escape_sql_string(param)}'"
    raise TypeError(f"Unsupported query parameter type: {type(param).__name__}")


def substitute_parameters(template: str, params: Sequence[SqlParam]) -> str:
    """Replace each ``?`` in ``template`` left to right with a rendered literal.

    The template must not contain ``?`` anywhere except as a placeholder.
    """
    pieces = template.split("?")
    placeholders = len(pieces) - 1
    if placeholders != len(params):
        raise ValueError(
            f"Query expects {placeholders} parameter(s), got {len(params)}"
        )
    rendered = [pieces[0]]
    for param, tail in zip(params, pieces[1:]):
        rendered.append(_render_literal(param))
        rendered.append(tail)
    return "".join(rendered)


def build_safe_in_clause(values: Sequence[str]) -> tuple[str, list[str]]:
    if not values:
        return "(NULL)", []
    return f"({','.join('?' for _ in values)})", list(values)


class SqliteQueryEngine:
    def __init__(
        self,
        invoker: SafeProcessInvoker,
        sqlite_path: str = "sqlite3",
        timeout_seconds: float = 10.0,
    ) -> None:
        self._invoker = invoker
        self._sqlite_path = sqlite_path
        self._timeout_seconds = timeout_seconds

    async def query(
        self,
        db_path: str,
        template: str,
        params: Sequence[SqlParam] = (),
    ) -> list[dict[str, object]]:
        query = substitute_parameters(template, params)
        try:
            result = await self._invoker.run(
                self._sqlite_path,
                ["-json", "-readonly", db_path, query],
                self._timeout_seconds,
            )
        except ExecutionFailure as exc:
            raise ExecutionFailure(exc.reason, stage=Stage.QUERY) from exc

        output = result.stdout.strip()
        if not output:
            return []
        try:
            rows = json.loads(output)
        except json.JSONDecodeError as exc:
            logger.warning("sqlite3 returned non-JSON output: %.200s", output)
            raise ExecutionFailure(
                "Query engine returned invalid JSON", stage=Stage.QUERY, raw_text=output
            ) from exc
        if not isinstance(rows, list):
            raise ExecutionFailure("Query engine returned unexpected output", stage=Stage.QUERY)
        return [row for row in rows if isinstance(row, dict)]
