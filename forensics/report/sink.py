"""Append-only report writer with flush-on-write durability."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from pathlib import Path
from types import TracebackType
from typing import TextIO

import structlog

from forensics.core.types import DiagnosticRun, SystemInfo
from forensics.report.formatters import (
    render_header,
    render_summary,
    render_system_info,
    timestamp,
)

logger = structlog.stdlib.get_logger()


class ReportSink:
    """Writes report lines to a plain-text file, optionally echoing them.

    Every write is flushed before returning, so a crash mid-run still leaves
    the diagnostics gathered so far on disk. Writes are serialised by a
    lock; concurrent categories never interleave within a line.

    Usage::

        with ReportSink(path, echo=sys.stdout) as sink:
            sink.header("CPU FORENSICS")
            sink.line("Load Average: 0.52, 0.58, 0.59")
    """

    def __init__(self, path: Path, echo: TextIO | None = None) -> None:
        self._path = path
        self._echo = echo
        self._lock = threading.Lock()
        self._file: TextIO | None = None
        self._lines_written = 0

    @property
    def path(self) -> Path:
        return self._path

    @property
    def lines_written(self) -> int:
        return self._lines_written

    def open(self) -> None:
        if self._file is None:
            self._file = open(self._path, "a", encoding="utf-8")
            logger.debug("report_opened", path=str(self._path))

    def close(self) -> None:
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None

    # ── Writing ─────────────────────────────────────────────────

    def line(self, text: str = "") -> None:
        with self._lock:
            self.open()
            assert self._file is not None
            self._file.write(text + "\n")
            self._file.flush()
            self._lines_written += 1
            if self._echo is not None:
                self._echo.write(text + "\n")
                self._echo.flush()

    def lines(self, texts: Iterable[str]) -> None:
        for text in texts:
            self.line(text)

    def header(self, title: str) -> None:
        self.lines(render_header(title))

    def info(self, message: str) -> None:
        """A timestamped progress line."""
        self.line(f"{timestamp()} {message}")

    def write_system_info(self, info: SystemInfo) -> None:
        self.header("SYSTEM INFORMATION")
        self.lines(render_system_info(info))

    def write_summary(self, run: DiagnosticRun) -> None:
        self.header("FORENSICS SUMMARY")
        self.lines(render_summary(run))

    # ── Lifecycle ───────────────────────────────────────────────

    def __enter__(self) -> ReportSink:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
