"""Subprocess invocation with argument-vector isolation."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from apple_mcp.errors import ExecutionFailure

logger = logging.getLogger(__name__)

_READ_CHUNK_SIZE = 64 * 1024
_STDERR_PREVIEW_LEN = 2000


@dataclass(frozen=True)
class ProcessResult:
    stdout: str
    stderr: str
    returncode: int


async def _drain(stream: asyncio.StreamReader | None, chunks: list[bytes]) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(_READ_CHUNK_SIZE)
        if not chunk:
            return
        chunks.append(chunk)


def _decode(chunks: list[bytes]) -> str:
    return b"".join(chunks).decode("utf-8", errors="replace")


class SafeProcessInvoker:
    """Run an executable with a discrete argument vector and a hard timeout.

    Arguments are handed to the OS as-is; no shell is involved at any point.
    Retries are the caller's business.
    """

    async def run(
        self,
        executable: str,
        args: Sequence[str],
        timeout_seconds: float,
    ) -> ProcessResult:
        name = Path(executable).name
        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (OSError, ValueError) as exc:
            # FileNotFoundError, PermissionError, or an argument with an embedded NUL.
            logger.error("Failed to start %s: %s", name, exc)
            detail = getattr(exc, "strerror", None) or exc
            raise ExecutionFailure(f"Failed to start {name}: {detail}") from exc

        stdout_chunks: list[bytes] = []
        stderr_chunks: list[bytes] = []
        try:
            await asyncio.wait_for(
                asyncio.gather(
                    _drain(process.stdout, stdout_chunks),
                    _drain(process.stderr, stderr_chunks),
                    process.wait(),
                ),
                timeout=timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            logger.warning("%s timed out after %s seconds", name, timeout_seconds)
            raise ExecutionFailure("timeout") from exc
        finally:
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()

        stdout = _decode(stdout_chunks)
        stderr = _decode(stderr_chunks)
        returncode = process.returncode if process.returncode is not None else -1
        if returncode != 0:
            detail = stderr.strip()[:_STDERR_PREVIEW_LEN]
            raise ExecutionFailure(f"{name} exited with code {returncode}: {detail}")
        return ProcessResult(stdout=stdout, stderr=stderr, returncode=returncode)
