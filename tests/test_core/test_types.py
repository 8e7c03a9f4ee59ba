"""Tests for forensics/core/types.py — enums, readings, findings, runs."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from pydantic import ValidationError

from forensics.core.exceptions import ConfigError
from forensics.core.types import (
    Category,
    Comparator,
    CoverageGap,
    DiagnosticMode,
    DiagnosticRun,
    Finding,
    MetricReading,
    Severity,
    SourceResult,
    SourceStatus,
    SystemInfo,
    ThresholdRule,
    TicketSeverity,
    display_number,
)


def _finding(
    category: Category,
    metric: str,
    severity: Severity = Severity.HIGH,
    entity: str = "",
) -> Finding:
    return Finding(
        severity=severity,
        category=category,
        metric=metric,
        entity=entity,
        issue=f"{metric} issue",
        current="1",
        threshold="0",
    )


class TestEnums:
    def test_category_rank_follows_declaration(self) -> None:
        assert Category.CPU.rank == 0
        assert Category.DATABASE.rank == len(Category) - 1
        assert Category.MEMORY.rank < Category.DISK.rank

    def test_severity_ordering(self) -> None:
        assert Severity.CRITICAL > Severity.HIGH > Severity.MEDIUM > Severity.LOW
        assert Severity.HIGH.label == "High"

    @pytest.mark.parametrize("raw", ["quick", "QUICK", " Deep "])
    def test_mode_parse_is_case_insensitive(self, raw: str) -> None:
        assert DiagnosticMode.parse(raw) == DiagnosticMode(raw.strip().lower())

    def test_mode_parse_rejects_unknown(self) -> None:
        with pytest.raises(ConfigError, match="Invalid mode"):
            DiagnosticMode.parse("turbo")

    def test_ticket_severity_parse(self) -> None:
        assert TicketSeverity.parse("Urgent") == TicketSeverity.URGENT
        with pytest.raises(ConfigError, match="Invalid severity"):
            TicketSeverity.parse("panic")


class TestDisplayNumber:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(91.0, "91"), (1.5, "1.5"), (23.456, "23.46"), (0.0, "0"), (10.10, "10.1")],
    )
    def test_rendering(self, value: float, expected: str) -> None:
        assert display_number(value) == expected


class TestMetricReading:
    def test_numeric_reading_is_available(self) -> None:
        r = MetricReading.numeric(Category.CPU, "usage_pct", 85, "%")
        assert r.available
        assert r.value == 85.0
        assert r.display_value() == "85%"
        assert r.collected_at > 0

    def test_flag_reading_displays_yes_no(self) -> None:
        assert MetricReading.flag(Category.MEMORY, "oom_event_seen", True).display_value() == "Yes"
        assert MetricReading.flag(Category.MEMORY, "oom_event_seen", False).display_value() == "No"

    def test_unavailable_reading(self) -> None:
        r = MetricReading.unavailable(Category.CPU, "usage_pct", "timeout", timed_out=True)
        assert not r.available
        assert r.value is None
        assert r.timed_out
        assert r.display_value() == "unavailable"

    def test_reading_is_frozen(self) -> None:
        r = MetricReading.numeric(Category.CPU, "usage_pct", 1.0)
        with pytest.raises(ValidationError):
            r.value = 2.0  # type: ignore[misc]


class TestThresholdRule:
    def test_render_threshold_prefers_display(self) -> None:
        rule = ThresholdRule(
            category=Category.CPU,
            name="load_per_core",
            comparator=Comparator.GT,
            threshold=1.0,
            severity=Severity.HIGH,
            message_template="High load average",
            threshold_display="1.0 per core",
        )
        assert rule.render_threshold() == "1.0 per core"
        assert rule.key == (Category.CPU, "load_per_core")

    def test_render_threshold_falls_back_to_number(self) -> None:
        rule = ThresholdRule(
            category=Category.DISK,
            name="x",
            comparator=Comparator.GT,
            threshold=90.0,
            severity=Severity.HIGH,
            message_template="x",
        )
        assert rule.render_threshold() == "90"


class TestSystemInfo:
    def test_on_ec2_requires_instance_id(self) -> None:
        assert not SystemInfo(hostname="h").on_ec2
        assert SystemInfo(hostname="h", instance_id="i-123").on_ec2


class TestDiagnosticRun:
    def _run(self, concurrent: bool = False) -> DiagnosticRun:
        return DiagnosticRun(
            mode=DiagnosticMode.STANDARD,
            output_path=Path("/tmp/report.txt"),
            concurrent=concurrent,
        )

    async def test_findings_keep_detection_order(self) -> None:
        run = self._run()
        await run.add_finding(_finding(Category.MEMORY, "available_pct"))
        await run.add_finding(_finding(Category.CPU, "usage_pct"))
        assert [f.metric for f in run.display_findings()] == ["available_pct", "usage_pct"]

    async def test_concurrent_run_normalises_order(self) -> None:
        run = self._run(concurrent=True)
        await run.add_finding(_finding(Category.DISK, "filesystem_used_pct", entity="/var"))
        await run.add_finding(_finding(Category.CPU, "usage_pct"))
        await run.add_finding(_finding(Category.DISK, "filesystem_used_pct", entity="/data"))
        ordered = [(f.category, f.entity) for f in run.display_findings()]
        assert ordered == [
            (Category.CPU, ""),
            (Category.DISK, "/data"),
            (Category.DISK, "/var"),
        ]

    async def test_findings_by_severity_groups_critical_first(self) -> None:
        run = self._run()
        await run.add_finding(_finding(Category.CPU, "usage_pct", Severity.HIGH))
        await run.add_finding(_finding(Category.MEMORY, "available_pct", Severity.CRITICAL))
        grouped = run.findings_by_severity()
        assert list(grouped) == [Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW]
        assert [f.metric for f in grouped[Severity.CRITICAL]] == ["available_pct"]
        assert grouped[Severity.LOW] == []

    async def test_unavailable_sources(self) -> None:
        run = self._run()
        await run.add_source_result(SourceResult(source="a", category=Category.CPU))
        await run.add_source_result(SourceResult(
            source="b", category=Category.CPU, status=SourceStatus.TIMED_OUT, reason="timeout",
        ))
        assert [r.source for r in run.unavailable_sources] == ["b"]

    async def test_record_folds_result_findings_and_gaps(self) -> None:
        run = self._run()
        result = SourceResult(source="cpu_usage", category=Category.CPU)
        gap = CoverageGap(category=Category.MEMORY, metric="swap_used_pct", reason="timeout")
        await run.record(result, [_finding(Category.CPU, "usage_pct")], [gap])
        assert run.source_results == [result]
        assert [f.metric for f in run.findings] == ["usage_pct"]
        assert run.coverage_gaps == [gap]

    async def test_concurrent_appends_all_land(self) -> None:
        run = self._run(concurrent=True)
        await asyncio.gather(*(
            run.add_finding(_finding(Category.DISK, "filesystem_used_pct", entity=f"/m{i}"))
            for i in range(20)
        ))
        assert len(run.findings) == 20

    def test_duration_after_finish(self) -> None:
        run = self._run()
        run.start_time = 100.0
        run.finish()
        assert run.finished_at is not None
        assert run.duration_secs > 0
