"""CPU metric sources."""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path

import structlog

from forensics.core.types import Category, MetricReading, display_number
from forensics.sources.base import CollectionContext, MetricSource
from forensics.sources.exceptions import SourceParseError
from forensics.sources.parsing import mean, read_text, right_aligned, to_float

logger = structlog.stdlib.get_logger()

_DEFAULT_PROC = Path("/proc")


# ── Parsers ──────────────────────────────────────────────────────


def parse_loadavg(text: str) -> tuple[float, float, float]:
    """Parse /proc/loadavg into the 1, 5 and 15 minute load averages."""
    parts = text.split()
    if len(parts) < 3:
        raise SourceParseError(f"unexpected /proc/loadavg: {text!r}")
    return (
        to_float(parts[0], "load average"),
        to_float(parts[1], "load average"),
        to_float(parts[2], "load average"),
    )


def parse_mpstat_average(text: str) -> dict[str, dict[str, float]]:
    """Parse the ``Average:`` rows of mpstat output.

    Returns a mapping of CPU label ("all", "0", "1", ...) to its columns
    (``%idle``, ``%steal``, ...).
    """
    header: list[str] | None = None
    rows: dict[str, dict[str, float]] = {}
    for line in text.splitlines():
        fields = line.split()
        if not fields:
            continue
        if "%idle" in fields and "CPU" in fields:
            header = fields
            continue
        if fields[0] != "Average:" or header is None:
            continue
        cpu = right_aligned(header, fields, "CPU")
        values: dict[str, float] = {}
        for column in header:
            if column.startswith("%"):
                values[column] = to_float(right_aligned(header, fields, column), column)
        rows[cpu] = values
    if "all" not in rows:
        raise SourceParseError("mpstat output has no 'Average: all' row")
    return rows


def parse_vmstat_column(text: str, column: str) -> list[float]:
    """Return every sample of *column* from ``vmstat <delay> <count>`` output."""
    header: list[str] | None = None
    samples: list[float] = []
    for line in text.splitlines():
        fields = line.split()
        if not fields:
            continue
        if column in fields and "r" in fields:
            header = fields
            continue
        if header is None or not fields[0].isdigit():
            continue
        if len(fields) != len(header):
            continue
        samples.append(to_float(fields[header.index(column)], f"vmstat {column}"))
    if not samples:
        raise SourceParseError(f"vmstat output has no {column!r} samples")
    return samples


def interval_samples(samples: list[float]) -> list[float]:
    """Drop vmstat's first row, which averages since boot."""
    return samples[1:] if len(samples) > 1 else samples


# ── Sources ──────────────────────────────────────────────────────


class LoadAverageSource(MetricSource):
    """1-minute load average normalised by core count."""

    category = Category.CPU
    name = "load_average"
    metrics = ("load_per_core",)

    def __init__(
        self,
        timeout: float = 5.0,
        proc_root: Path = _DEFAULT_PROC,
        cpu_count: Callable[[], int | None] = os.cpu_count,
    ) -> None:
        super().__init__(timeout=timeout)
        self._proc_root = proc_root
        self._cpu_count = cpu_count

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        load1, load5, load15 = parse_loadavg(read_text(self._proc_root / "loadavg"))
        cores = self._cpu_count() or 1
        per_core = round(load1 / cores, 2)
        ctx.line(
            "Load Average: "
            f"{load1:.2f}, {load5:.2f}, {load15:.2f}"
        )
        ctx.line(f"Load per Core: {display_number(per_core)} ({cores} cores)")
        return [MetricReading.numeric(self.category, "load_per_core", per_core, " per core")]


class CpuUsageSource(MetricSource):
    """CPU utilisation sampled over a window with mpstat."""

    category = Category.CPU
    name = "cpu_usage"
    metrics = ("usage_pct",)
    required_tools = ("mpstat",)
    windowed = True

    def __init__(self, window_secs: int = 10, timeout: float = 15.0) -> None:
        super().__init__(timeout=timeout)
        self._window_secs = window_secs

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        ctx.line(f"Sampling CPU usage ({self._window_secs} seconds)...")
        result = await ctx.runner.run(
            ["mpstat", "1", str(self._window_secs)],
            timeout=self.timeout,
            check=True,
        )
        idle = parse_mpstat_average(result.stdout)["all"]["%idle"]
        usage = round(100.0 - idle, 2)
        ctx.line(f"CPU Usage: {display_number(usage)}%")
        return [MetricReading.numeric(self.category, "usage_pct", usage, "%")]


class ContextSwitchSource(MetricSource):
    """Context switches per second from vmstat."""

    category = Category.CPU
    name = "context_switches"
    metrics = ("context_switches_per_sec",)
    required_tools = ("vmstat",)
    windowed = True

    def __init__(self, window_secs: int = 5, timeout: float = 10.0) -> None:
        super().__init__(timeout=timeout)
        self._window_secs = window_secs

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        result = await ctx.runner.run(
            ["vmstat", "1", str(self._window_secs)],
            timeout=self.timeout,
            check=True,
        )
        rate = round(mean(interval_samples(parse_vmstat_column(result.stdout, "cs"))))
        ctx.line(f"Context Switches: {rate}/sec")
        return [
            MetricReading.numeric(self.category, "context_switches_per_sec", rate, "/sec")
        ]


class CpuStealSource(MetricSource):
    """Hypervisor steal time from mpstat."""

    category = Category.CPU
    name = "cpu_steal"
    metrics = ("steal_pct",)
    required_tools = ("mpstat",)
    windowed = True

    def __init__(self, window_secs: int = 5, timeout: float = 10.0) -> None:
        super().__init__(timeout=timeout)
        self._window_secs = window_secs

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        result = await ctx.runner.run(
            ["mpstat", "1", str(self._window_secs)],
            timeout=self.timeout,
            check=True,
        )
        steal = parse_mpstat_average(result.stdout)["all"].get("%steal")
        if steal is None:
            raise SourceParseError("mpstat output has no %steal column")
        ctx.line(f"CPU Steal Time: {display_number(steal)}%")
        return [MetricReading.numeric(self.category, "steal_pct", steal, "%")]


class PerCpuSource(MetricSource):
    """Per-core utilisation breakdown (deep mode only, informational)."""

    category = Category.CPU
    name = "per_cpu_usage"
    metrics = ("per_cpu_usage_pct",)
    required_tools = ("mpstat",)
    windowed = True
    deep_only = True

    def __init__(self, window_secs: int = 5, timeout: float = 10.0) -> None:
        super().__init__(timeout=timeout)
        self._window_secs = window_secs

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        result = await ctx.runner.run(
            ["mpstat", "-P", "ALL", "1", str(self._window_secs)],
            timeout=self.timeout,
            check=True,
        )
        rows = parse_mpstat_average(result.stdout)
        ctx.line("")
        ctx.line("Per-CPU utilisation:")
        readings: list[MetricReading] = []
        for cpu, columns in rows.items():
            if cpu == "all":
                continue
            usage = round(100.0 - columns.get("%idle", 100.0), 2)
            ctx.line(
                f"  cpu{cpu:<4} usage: {display_number(usage):>6}%"
                f"  iowait: {display_number(columns.get('%iowait', 0.0)):>6}%"
            )
            readings.append(MetricReading.numeric(
                self.category, "per_cpu_usage_pct", usage, "%", entity=f"cpu{cpu}",
            ))
        return readings
