"""Tests for forensics/report/sink.py."""

from __future__ import annotations

import io
from pathlib import Path

from forensics.core.types import Category, Finding, Severity, SystemInfo
from forensics.report.formatters import render_finding
from forensics.report.sink import ReportSink


class TestReportSink:
    def test_each_line_is_on_disk_immediately(self, tmp_path: Path) -> None:
        path = tmp_path / "report.txt"
        with ReportSink(path) as sink:
            sink.line("first")
            assert path.read_text() == "first\n"
            sink.lines(["second", "third"])
            assert path.read_text().splitlines() == ["first", "second", "third"]
            assert sink.lines_written == 3

    def test_appends_to_existing_file(self, tmp_path: Path) -> None:
        path = tmp_path / "report.txt"
        path.write_text("earlier\n")
        with ReportSink(path) as sink:
            sink.line("later")
        assert path.read_text() == "earlier\nlater\n"

    def test_echo(self, tmp_path: Path) -> None:
        echo = io.StringIO()
        with ReportSink(tmp_path / "r.txt", echo=echo) as sink:
            sink.header("MEMORY FORENSICS")
        assert "  MEMORY FORENSICS\n" in echo.getvalue()

    def test_opens_lazily_and_reopens(self, tmp_path: Path) -> None:
        path = tmp_path / "r.txt"
        sink = ReportSink(path)
        assert not path.exists()
        sink.line("a")
        sink.close()
        sink.line("b")
        sink.close()
        assert path.read_text() == "a\nb\n"

    def test_info_and_finding_are_timestamped(self, tmp_path: Path) -> None:
        path = tmp_path / "r.txt"
        finding = Finding(
            severity=Severity.HIGH,
            category=Category.NETWORK,
            metric="time_wait_count",
            issue="Excessive TIME_WAIT connections",
            current="6000",
            threshold="5000",
        )
        with ReportSink(path) as sink:
            sink.info("Analyzing Network performance...")
            sink.info(render_finding(finding))
        lines = path.read_text().splitlines()
        assert lines[0].startswith("[")
        assert lines[0].endswith("] Analyzing Network performance...")
        assert lines[1].endswith(
            "BOTTLENECK FOUND: Network - Excessive TIME_WAIT connections"
            " (Current: 6000, Threshold: 5000)"
        )

    def test_system_info_section(self, tmp_path: Path) -> None:
        path = tmp_path / "r.txt"
        with ReportSink(path) as sink:
            sink.write_system_info(SystemInfo(hostname="web-3"))
        text = path.read_text()
        assert "  SYSTEM INFORMATION" in text
        assert "Hostname: web-3" in text
