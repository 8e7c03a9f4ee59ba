"""Tests for forensics/sources/exec.py — real subprocesses via the interpreter."""

from __future__ import annotations

import sys

import pytest

from forensics.sources.exceptions import (
    CommandFailedError,
    CommandTimeoutError,
    ToolNotFoundError,
)
from forensics.sources.exec import CommandRunner

PY = sys.executable


class TestCommandRunner:
    async def test_captures_stdout(self) -> None:
        result = await CommandRunner().run([PY, "-c", "print('hello')"])
        assert result.ok
        assert result.stdout.strip() == "hello"
        assert result.elapsed_secs >= 0

    async def test_runs_in_c_locale(self) -> None:
        result = await CommandRunner().run(
            [PY, "-c", "import os; print(os.environ['LC_ALL'])"]
        )
        assert result.stdout.strip() == "C"

    async def test_nonzero_exit_without_check(self) -> None:
        result = await CommandRunner().run([PY, "-c", "import sys; sys.exit(3)"])
        assert result.returncode == 3
        assert not result.ok

    async def test_nonzero_exit_with_check(self) -> None:
        with pytest.raises(CommandFailedError) as info:
            await CommandRunner().run(
                [PY, "-c", "import sys; sys.stderr.write('boom\\n'); sys.exit(2)"],
                check=True,
            )
        assert info.value.returncode == 2
        assert "boom" in str(info.value)

    async def test_missing_tool(self) -> None:
        with pytest.raises(ToolNotFoundError, match="tool not installed"):
            await CommandRunner().run(["definitely-not-a-real-tool-xyz"])

    async def test_timeout_kills_process(self) -> None:
        with pytest.raises(CommandTimeoutError):
            await CommandRunner().run([PY, "-c", "import time; time.sleep(30)"], timeout=0.2)

    async def test_stdin_data(self) -> None:
        result = await CommandRunner().run(
            [PY, "-c", "import sys; print(sys.stdin.read().upper())"],
            stdin_data="select 1",
        )
        assert result.stdout.strip() == "SELECT 1"
