"""Memory metric sources backed by /proc/meminfo, /proc/vmstat and dmesg."""

from __future__ import annotations

import asyncio
import re
from pathlib import Path

from forensics.core.types import Category, MetricReading, display_number
from forensics.sources.base import CollectionContext, MetricSource
from forensics.sources.exceptions import SourceParseError
from forensics.sources.parsing import read_text

_DEFAULT_PROC = Path("/proc")

_OOM_PATTERN = re.compile(r"out of memory", re.IGNORECASE)


def parse_meminfo(text: str) -> dict[str, int]:
    """Parse /proc/meminfo into kB values keyed by field name."""
    values: dict[str, int] = {}
    for line in text.splitlines():
        if ":" not in line:
            continue
        key, rest = line.split(":", 1)
        parts = rest.split()
        if parts and parts[0].isdigit():
            values[key.strip()] = int(parts[0])
    if "MemTotal" not in values:
        raise SourceParseError("/proc/meminfo has no MemTotal")
    return values


def available_kb(meminfo: dict[str, int]) -> int:
    """MemAvailable, estimated on kernels older than 3.14 that lack it."""
    if "MemAvailable" in meminfo:
        return meminfo["MemAvailable"]
    return (
        meminfo.get("MemFree", 0)
        + meminfo.get("Buffers", 0)
        + meminfo.get("Cached", 0)
    )


def parse_vmstat_counter(text: str, counter: str) -> int:
    """Read one counter from /proc/vmstat."""
    for line in text.splitlines():
        parts = line.split()
        if len(parts) == 2 and parts[0] == counter:
            return int(parts[1])
    raise SourceParseError(f"/proc/vmstat has no {counter}")


class MemoryUsageSource(MetricSource):
    """Available memory and swap usage from /proc/meminfo."""

    category = Category.MEMORY
    name = "memory_usage"
    metrics = ("available_pct", "swap_used_pct")

    def __init__(self, timeout: float = 5.0, proc_root: Path = _DEFAULT_PROC) -> None:
        super().__init__(timeout=timeout)
        self._proc_root = proc_root

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        info = parse_meminfo(read_text(self._proc_root / "meminfo"))
        total = info["MemTotal"]
        if total <= 0:
            raise SourceParseError("MemTotal is zero")
        available = available_kb(info)
        used = total - info.get("MemFree", 0) - info.get("Buffers", 0) - info.get("Cached", 0)
        used_pct = round(used / total * 100, 2)
        available_pct = round(available / total * 100, 2)

        ctx.line(f"Total Memory: {total // 1024} MB")
        ctx.line(f"Used Memory: {used // 1024} MB ({display_number(used_pct)}%)")
        ctx.line(
            f"Available Memory: {available // 1024} MB ({display_number(available_pct)}%)"
        )
        readings = [
            MetricReading.numeric(self.category, "available_pct", available_pct, "%"),
        ]

        swap_total = info.get("SwapTotal", 0)
        if swap_total > 0:
            swap_used = swap_total - info.get("SwapFree", 0)
            swap_pct = round(swap_used / swap_total * 100, 2)
            ctx.line(
                f"Swap Usage: {swap_used // 1024} MB / {swap_total // 1024} MB"
                f" ({display_number(swap_pct)}%)"
            )
            readings.append(
                MetricReading.numeric(self.category, "swap_used_pct", swap_pct, "%")
            )
        else:
            ctx.line("Swap: Not configured")
        return readings


class PageFaultSource(MetricSource):
    """Page fault rate sampled from /proc/vmstat over a window."""

    category = Category.MEMORY
    name = "page_faults"
    metrics = ("page_faults_per_sec",)
    windowed = True

    def __init__(
        self,
        window_secs: float = 5,
        timeout: float = 10.0,
        proc_root: Path = _DEFAULT_PROC,
    ) -> None:
        super().__init__(timeout=timeout)
        if window_secs <= 0:
            raise ValueError("window_secs must be positive")
        self._window_secs = window_secs
        self._proc_root = proc_root

    def _read_faults(self) -> int:
        return parse_vmstat_counter(read_text(self._proc_root / "vmstat"), "pgfault")

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        ctx.line(f"Sampling page faults ({display_number(self._window_secs)} seconds)...")
        before = self._read_faults()
        await asyncio.sleep(self._window_secs)
        after = self._read_faults()
        rate = round(max(0, after - before) / self._window_secs)
        ctx.line(f"Page Faults: {rate}/sec")
        return [MetricReading.numeric(self.category, "page_faults_per_sec", rate, "/sec")]


class OomEventSource(MetricSource):
    """Recent OOM-killer activity from the kernel ring buffer."""

    category = Category.MEMORY
    name = "oom_events"
    metrics = ("oom_event_seen",)
    required_tools = ("dmesg",)

    def __init__(self, timeout: float = 10.0, max_lines: int = 5) -> None:
        super().__init__(timeout=timeout)
        self._max_lines = max_lines

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        result = await ctx.runner.run(["dmesg"], timeout=self.timeout, check=True)
        events = [line for line in result.stdout.splitlines() if _OOM_PATTERN.search(line)]
        if events:
            ctx.line("")
            ctx.line("Recent OOM (Out of Memory) events detected:")
            for line in events[-self._max_lines:]:
                ctx.line(line)
        return [MetricReading.flag(self.category, "oom_event_seen", bool(events))]
