"""Exception hierarchy for metric sources.

None of these escape a source's ``collect()``: they are converted into an
unavailable SourceResult at the source boundary.
"""

from __future__ import annotations


class SourceError(Exception):
    """Base exception for all metric source errors."""


class ToolNotFoundError(SourceError):
    """The external tool a source needs is not installed."""


class CommandFailedError(SourceError):
    """An external tool exited with a non-zero status."""

    def __init__(self, argv: list[str], returncode: int, stderr: str = "") -> None:
        self.argv = argv
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else ""
        msg = f"{argv[0]} exited with status {returncode}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class CommandTimeoutError(SourceError):
    """An external tool did not finish within its timeout."""


class SourceParseError(SourceError):
    """Tool output did not have the expected shape."""
