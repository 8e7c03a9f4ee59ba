"""Async process execution for external diagnostic tools."""

from __future__ import annotations

import asyncio
import os
import time

import structlog
from pydantic import BaseModel

from forensics.sources.exceptions import (
    CommandFailedError,
    CommandTimeoutError,
    ToolNotFoundError,
)

logger = structlog.stdlib.get_logger()

# Tool output is parsed positionally; pin the locale so decimals and
# timestamps are predictable.
_C_LOCALE_ENV = {**os.environ, "LC_ALL": "C"}


class CommandResult(BaseModel):
    """Captured output of one external command."""

    argv: list[str]
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0
    elapsed_secs: float = 0.0

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Runs external tools with a per-command timeout.

    A command that overruns its timeout, or whose awaiting task is
    cancelled, is killed and reaped before the error propagates; it is
    never retried.

    Usage::

        runner = CommandRunner(default_timeout=15.0)
        result = await runner.run(["vmstat", "1", "5"], timeout=10.0)
    """

    def __init__(self, default_timeout: float = 15.0) -> None:
        self._default_timeout = default_timeout

    async def run(
        self,
        argv: list[str],
        timeout: float | None = None,
        check: bool = False,
        stdin_data: str | None = None,
    ) -> CommandResult:
        """Run *argv* and return its output.

        *stdin_data*, when given, is written to the command's stdin.

        Raises:
            ToolNotFoundError: the executable does not exist.
            CommandTimeoutError: the command exceeded *timeout*.
            CommandFailedError: *check* is set and the exit status is non-zero.
        """
        limit = timeout if timeout is not None else self._default_timeout
        started = time.monotonic()
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=(
                    asyncio.subprocess.DEVNULL
                    if stdin_data is None
                    else asyncio.subprocess.PIPE
                ),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=_C_LOCALE_ENV,
            )
        except FileNotFoundError as exc:
            raise ToolNotFoundError(f"tool not installed: {argv[0]}") from exc
        except PermissionError as exc:
            raise ToolNotFoundError(f"tool not executable: {argv[0]}") from exc

        try:
            payload = stdin_data.encode() if stdin_data is not None else None
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(payload), timeout=limit,
            )
        except asyncio.TimeoutError as exc:
            await _kill(proc)
            logger.warning("command_timeout", argv=argv, timeout=limit)
            raise CommandTimeoutError(
                f"{argv[0]} did not finish within {limit:.1f}s"
            ) from exc
        except asyncio.CancelledError:
            await _kill(proc)
            raise

        result = CommandResult(
            argv=list(argv),
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
            returncode=proc.returncode if proc.returncode is not None else -1,
            elapsed_secs=time.monotonic() - started,
        )
        logger.debug(
            "command_finished",
            argv=argv,
            returncode=result.returncode,
            elapsed_secs=round(result.elapsed_secs, 3),
        )
        if check and not result.ok:
            raise CommandFailedError(result.argv, result.returncode, result.stderr)
        return result


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    try:
        proc.kill()
    except ProcessLookupError:
        return
    await proc.wait()
