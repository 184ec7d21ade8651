from __future__ import annotations

import sys

import pytest

from apple_mcp.errors import ExecutionFailure
from apple_mcp.execution.process import SafeProcessInvoker


@pytest.mark.asyncio
async def test_run_returns_stdout() -> None:
    result = await SafeProcessInvoker().run(
        sys.executable, ["-c", "print('hello')"], timeout_seconds=10
    )

    assert result.stdout.strip() == "hello"
    assert result.returncode == 0


@pytest.mark.asyncio
async def test_arguments_are_not_interpreted_by_a_shell() -> None:
    hostile = "x; echo pwned $(whoami) `id`"

    result = await SafeProcessInvoker().run(
        sys.executable, ["-c", "import sys; print(sys.argv[1])", hostile], timeout_seconds=10
    )

    assert result.stdout.strip() == hostile


@pytest.mark.asyncio
async def test_non_zero_exit_raises_with_stderr() -> None:
    with pytest.raises(ExecutionFailure) as exc_info:
        await SafeProcessInvoker().run(
            sys.executable,
            ["-c", "import sys; sys.stderr.write('boom'); sys.exit(3)"],
            timeout_seconds=10,
        )

    assert "exited with code 3" in exc_info.value.reason
    assert "boom" in exc_info.value.reason
    assert not exc_info.value.timed_out


@pytest.mark.asyncio
async def test_timeout_kills_process() -> None:
    with pytest.raises(ExecutionFailure) as exc_info:
        await SafeProcessInvoker().run(
            sys.executable, ["-c", "import time; time.sleep(30)"], timeout_seconds=0.5
        )

    assert exc_info.value.timed_out


@pytest.mark.asyncio
async def test_missing_executable_raises(tmp_path) -> None:
    missing = tmp_path / "no-such-binary"

    with pytest.raises(ExecutionFailure, match="Failed to start no-such-binary"):
        await SafeProcessInvoker().run(str(missing), [], timeout_seconds=1)


@pytest.mark.asyncio
async def test_large_output_is_fully_drained() -> None:
    result = await SafeProcessInvoker().run(
        sys.executable, ["-c", "print('x' * 300000)"], timeout_seconds=10
    )

    assert len(result.stdout.strip()) == 300000


@pytest.mark.asyncio
async def test_argument_with_nul_byte_raises_execution_failure() -> None:
    with pytest.raises(ExecutionFailure, match="Failed to start"):
        await SafeProcessInvoker().run(sys.executable, ["-c", "print('a\x00b')"], timeout_seconds=10)
