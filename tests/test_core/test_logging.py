"""Tests for forensics/core/logging.py."""

from __future__ import annotations

import io
import json
import logging

import structlog

from forensics.core.logging import bind_run_context, setup_logging


class TestSetupLogging:
    def test_json_events_carry_run_context(self) -> None:
        buf = io.StringIO()
        setup_logging(level="INFO", fmt="json", stream=buf)
        bind_run_context("quick", "linux-forensics-20240101-000000.txt")

        structlog.stdlib.get_logger("test").info("source_timeout", source="cpu_usage")

        record = json.loads(buf.getvalue().splitlines()[-1])
        assert record["event"] == "source_timeout"
        assert record["source"] == "cpu_usage"
        assert record["level"] == "info"
        assert record["mode"] == "quick"
        assert record["report"] == "linux-forensics-20240101-000000.txt"

    def test_level_filters(self) -> None:
        buf = io.StringIO()
        setup_logging(level="WARNING", fmt="json", stream=buf)
        structlog.stdlib.get_logger("test").info("finding_detected")
        assert buf.getvalue() == ""

    def test_http_client_loggers_quieted(self) -> None:
        setup_logging(level="DEBUG", fmt="console", stream=io.StringIO())
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger().level == logging.DEBUG
