"""Runners for the two automation interfaces exposed by ``osascript``.

* ``AppleScriptRunner`` executes AppleScript source text and returns its
  printed result (the primary, text-producing path).
* ``JXARunner`` executes a JavaScript for Automation function and returns its
  JSON-decoded result (the secondary, structured path). Call arguments travel
  as a JSON document in argv, never inside the program text.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable

from apple_mcp.errors import ExecutionFailure
from apple_mcp.execution.process import SafeProcessInvoker
from apple_mcp.security.escaping import AppleScriptBuilder, quote_script_string

logger = logging.getLogger(__name__)

_JXA_WRAPPER = """function run(argv) {
    var fn = (%s);
    var result = fn.apply(null, JSON.parse(argv[0]));
    return JSON.stringify(result === undefined ? null : result);
}"""

_PERMISSION_MARKERS = ("not authorized", "not allowed to send apple events", "(-1743)")
_NOT_RUNNING_MARKERS = ("application isn't running", "(-600)")


def describe_osascript_error(reason: str) -> str:
    """Turn common osascript failures into actionable messages."""
    lowered = reason.lower().replace("\u2018", "'").replace("\u2019", "'")
    if any(marker in lowered for marker in _PERMISSION_MARKERS):
        return (
            "Automation permission denied. Grant access in System Settings > "
            "Privacy & Security > Automation."
        )
    if any(marker in lowered for marker in _NOT_RUNNING_MARKERS):
        return "The target application is not running."
    return reason


class AppleScriptRunner:
    def __init__(
        self,
        invoker: SafeProcessInvoker,
        osascript_path: str = "/usr/bin/osascript",
        timeout_seconds: float = 30.0,
    ) -> None:
        self._invoker = invoker
        self._osascript_path = osascript_path
        self._timeout_seconds = timeout_seconds

    async def __call__(self, script: str) -> str:
        return await self.run(script)

    async def run(self, script: str) -> str:
        try:
            result = await self._invoker.run(
                self._osascript_path,
                ["-e", script],
                self._timeout_seconds,
            )
        except ExecutionFailure as exc:
            raise ExecutionFailure(describe_osascript_error(exc.reason)) from exc
        return result.stdout.strip()


class JXARunner:
    def __init__(
        self,
        invoker: SafeProcessInvoker,
        osascript_path: str = "/usr/bin/osascript",
        timeout_seconds: float = 30.0,
    ) -> None:
        self._invoker = invoker
        self._osascript_path = osascript_path
        self._timeout_seconds = timeout_seconds

    async def __call__(self, function_source: str, *args: object) -> object:
        return await self.run(function_source, *args)

    async def run(self, function_source: str, *args: object) -> object:
        """Call ``function_source`` (a JS function expression) with ``args``."""
        program = _JXA_WRAPPER % function_source
        encoded_args = json.dumps(list(args), ensure_ascii=True)
        try:
            result = await self._invoker.run(
                self._osascript_path,
                ["-l", "JavaScript", "-e", program, encoded_args],
                self._timeout_seconds,
            )
        except ExecutionFailure as exc:
            raise ExecutionFailure(describe_osascript_error(exc.reason)) from exc

        output = result.stdout.strip()
        if not output:
            return None
        try:
            return json.loads(output)
        except json.JSONDecodeError as exc:
            logger.warning("JXA returned non-JSON output: %.200s", output)
            raise ExecutionFailure("Object automation returned invalid JSON") from exc


def activation_script(application: str) -> str:
    app = quote_script_string(application)
    return (
        AppleScriptBuilder()
        .line("if application $app is not running then", app=app)
        .line("    tell application $app to activate", app=app)
        .raw("    delay 2")
        .raw("end if")
        .build()
    )


async def ensure_app_running(
    runner: Callable[[str], Awaitable[str]],
    application: str,
) -> bool:
    """Launch ``application`` if needed. Failures are logged, never raised."""
    try:
        await runner(activation_script(application))
    except ExecutionFailure as exc:
        logger.warning("Could not activate %s: %s", application, exc.reason)
        return False
    return True
