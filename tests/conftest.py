"""Shared fixtures: a scripted CommandRunner so sources never touch the host."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator

import pytest
import structlog

from forensics.core.config import reset_settings
from forensics.sources.exceptions import CommandFailedError, ToolNotFoundError
from forensics.sources.exec import CommandResult, CommandRunner


class FakeRunner(CommandRunner):
    """Answers commands from canned output, matched by longest argv prefix.

    Usage::

        runner.on(["mpstat"], stdout=MPSTAT_OUTPUT)
        runner.on(["dmesg"], exc=CommandFailedError(["dmesg"], 1, "denied"))
    """

    def __init__(self) -> None:
        super().__init__(default_timeout=5.0)
        self._scripts: list[tuple[tuple[str, ...], dict]] = []
        self.calls: list[list[str]] = []
        self.stdin: list[str | None] = []

    def on(
        self,
        prefix: list[str],
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
        delay: float = 0.0,
        exc: Exception | None = None,
    ) -> None:
        self._scripts.append((tuple(prefix), {
            "stdout": stdout,
            "stderr": stderr,
            "returncode": returncode,
            "delay": delay,
            "exc": exc,
        }))

    async def run(
        self,
        argv: list[str],
        timeout: float | None = None,
        check: bool = False,
        stdin_data: str | None = None,
    ) -> CommandResult:
        self.calls.append(list(argv))
        self.stdin.append(stdin_data)
        matches = [
            (prefix, script) for prefix, script in self._scripts
            if tuple(argv[: len(prefix)]) == prefix
        ]
        if not matches:
            raise ToolNotFoundError(f"tool not installed: {argv[0]}")
        _prefix, script = max(matches, key=lambda m: len(m[0]))
        if script["delay"]:
            await asyncio.sleep(script["delay"])
        if script["exc"] is not None:
            raise script["exc"]
        result = CommandResult(
            argv=list(argv),
            stdout=script["stdout"],
            stderr=script["stderr"],
            returncode=script["returncode"],
        )
        if check and not result.ok:
            raise CommandFailedError(result.argv, result.returncode, result.stderr)
        return result


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture(autouse=True)
def _clean_settings() -> None:
    reset_settings()


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
    root.handlers[:] = handlers
    root.setLevel(level)
