"""Disk I/O metric sources — filesystem fill, I/O latency, blocked processes, dd benchmark."""

from __future__ import annotations

import contextlib
import os
import re
import tempfile
from collections.abc import Iterator
from pathlib import Path

import structlog
from pydantic import BaseModel

from forensics.core.types import Category, MetricReading, display_number
from forensics.sources.base import CollectionContext, MetricSource
from forensics.sources.exceptions import SourceParseError
from forensics.sources.parsing import mean, read_text, to_float

logger = structlog.stdlib.get_logger()

_DEFAULT_PROC = Path("/proc")

_PSEUDO_FILESYSTEMS = ("tmpfs", "devtmpfs")

_IGNORED_DEVICE_PREFIXES = ("loop", "ram", "zram")

_DD_RATE = re.compile(r"([\d.]+)\s*([kMGT]?B)/s")

_RATE_TO_MB: dict[str, float] = {
    "B": 1e-6,
    "kB": 1e-3,
    "MB": 1.0,
    "GB": 1e3,
    "TB": 1e6,
}


class DfRow(BaseModel):
    """One line of ``df -P`` (or ``df -P -i``) output."""

    filesystem: str
    used_pct: float
    mount: str


# ── Parsers ──────────────────────────────────────────────────────


def parse_df(text: str) -> list[DfRow]:
    """Parse POSIX df output, skipping tmpfs and rows without a percentage."""
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines or not lines[0].startswith("Filesystem"):
        raise SourceParseError("df output has no header")
    rows: list[DfRow] = []
    for line in lines[1:]:
        fields = line.split()
        if len(fields) < 6:
            continue
        filesystem = fields[0]
        if filesystem in _PSEUDO_FILESYSTEMS:
            continue
        pct = fields[4]
        if not pct.endswith("%"):
            continue
        rows.append(DfRow(
            filesystem=filesystem,
            used_pct=to_float(pct, "df capacity"),
            mount=" ".join(fields[5:]),
        ))
    return rows


def parse_iostat_await(text: str) -> tuple[float, list[str]]:
    """Average per-device I/O wait (ms) from ``iostat -x <delay> <count>``.

    The first report averages since boot, so it is dropped when later
    reports exist. Uses the ``await`` column where present, otherwise the
    mean of ``r_await`` and ``w_await``. Returns the average and the lines
    of the last report.
    """
    reports: list[tuple[list[str], list[list[str]], list[str]]] = []
    for line in text.splitlines():
        fields = line.split()
        if not fields:
            continue
        if fields[0].rstrip(":") == "Device":
            reports.append(([f.rstrip(":") for f in fields], [], [line]))
            continue
        if reports and not line.startswith(("avg-cpu", " ")):
            header, rows, raw = reports[-1]
            if len(fields) == len(header):
                rows.append(fields)
                raw.append(line)
    if not reports:
        raise SourceParseError("iostat output has no Device header")

    sampled = reports[1:] if len(reports) > 1 else reports
    waits: list[float] = []
    for header, rows, _raw in sampled:
        for row in rows:
            if row[0].startswith(_IGNORED_DEVICE_PREFIXES):
                continue
            if "await" in header:
                waits.append(to_float(row[header.index("await")], "iostat await"))
            elif "r_await" in header and "w_await" in header:
                r_wait = to_float(row[header.index("r_await")], "iostat r_await")
                w_wait = to_float(row[header.index("w_await")], "iostat w_await")
                waits.append((r_wait + w_wait) / 2)
            else:
                raise SourceParseError("iostat output has no await columns")
    if not waits:
        return 0.0, reports[-1][2]
    return mean(waits), reports[-1][2]


def parse_procs_blocked(text: str) -> int:
    """Processes in uninterruptible (I/O) sleep, from /proc/stat."""
    for line in text.splitlines():
        parts = line.split()
        if len(parts) == 2 and parts[0] == "procs_blocked":
            return int(parts[1])
    raise SourceParseError("/proc/stat has no procs_blocked")


def parse_dd_rate(text: str) -> float:
    """Throughput in MB/s from dd's summary line."""
    matches = _DD_RATE.findall(text)
    if not matches:
        raise SourceParseError("dd output has no throughput")
    value, unit = matches[-1]
    return round(to_float(value, "dd rate") * _RATE_TO_MB[unit], 2)


@contextlib.contextmanager
def scoped_test_file(directory: Path) -> Iterator[Path]:
    """Create a temp file for I/O testing; it is removed on every exit path."""
    fd, name = tempfile.mkstemp(prefix="forensics_disk_test_", dir=directory)
    os.close(fd)
    path = Path(name)
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)
        logger.debug("disk_test_file_removed", path=str(path))


# ── Sources ──────────────────────────────────────────────────────


class FilesystemUsageSource(MetricSource):
    """Used capacity per mounted filesystem."""

    category = Category.DISK
    name = "filesystem_usage"
    metrics = ("filesystem_used_pct",)
    required_tools = ("df",)

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        result = await ctx.runner.run(["df", "-P", "-h"], timeout=self.timeout, check=True)
        ctx.line("Disk Usage:")
        for line in result.stdout.splitlines():
            if line.split() and line.split()[0] not in _PSEUDO_FILESYSTEMS:
                ctx.line(line)

        result = await ctx.runner.run(["df", "-P"], timeout=self.timeout, check=True)
        return [
            MetricReading.numeric(
                self.category, "filesystem_used_pct", row.used_pct, "%", entity=row.mount,
            )
            for row in parse_df(result.stdout)
        ]


class IoStatSource(MetricSource):
    """Average device I/O wait sampled with iostat."""

    category = Category.DISK
    name = "iostat"
    metrics = ("avg_io_wait_ms",)
    required_tools = ("iostat",)
    windowed = True

    def __init__(self, window_secs: int = 10, timeout: float = 15.0) -> None:
        super().__init__(timeout=timeout)
        self._window_secs = window_secs

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        ctx.line("")
        ctx.line(f"Sampling I/O statistics ({self._window_secs} seconds)...")
        result = await ctx.runner.run(
            ["iostat", "-x", "1", str(self._window_secs)],
            timeout=self.timeout,
            check=True,
        )
        avg_wait, report = parse_iostat_await(result.stdout)
        avg_wait = round(avg_wait, 2)
        ctx.line("I/O Statistics:")
        for line in report:
            ctx.line(line)
        ctx.line("")
        ctx.line(f"Average I/O Wait Time: {display_number(avg_wait)} ms")
        return [MetricReading.numeric(self.category, "avg_io_wait_ms", avg_wait, "ms")]


class BlockedProcessSource(MetricSource):
    """Count of processes blocked waiting on I/O."""

    category = Category.DISK
    name = "blocked_processes"
    metrics = ("io_wait_process_count",)

    def __init__(self, timeout: float = 5.0, proc_root: Path = _DEFAULT_PROC) -> None:
        super().__init__(timeout=timeout)
        self._proc_root = proc_root

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        blocked = parse_procs_blocked(read_text(self._proc_root / "stat"))
        ctx.line(f"Processes blocked on I/O: {blocked}")
        return [MetricReading.numeric(self.category, "io_wait_process_count", blocked)]


class DiskBenchmarkSource(MetricSource):
    """Sequential write/read throughput test with dd (deep mode only).

    Writes a real file of ``size_mb`` under ``directory``; the file is
    removed even when the source times out or is cancelled.
    """

    category = Category.DISK
    name = "disk_benchmark"
    metrics = ("write_mb_per_sec", "read_mb_per_sec")
    required_tools = ("dd",)
    deep_only = True

    def __init__(
        self,
        directory: Path = Path("/tmp"),
        size_mb: int = 1024,
        timeout: float = 300.0,
        proc_root: Path = _DEFAULT_PROC,
    ) -> None:
        super().__init__(timeout=timeout)
        self._directory = directory
        self._size_mb = size_mb
        self._proc_root = proc_root

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        with scoped_test_file(self._directory) as path:
            ctx.line("")
            ctx.line("Running disk write performance test...")
            write = await ctx.runner.run(
                [
                    "dd", "if=/dev/zero", f"of={path}", "bs=1M",
                    f"count={self._size_mb}", "oflag=direct",
                ],
                timeout=self.timeout,
                check=True,
            )
            write_rate = parse_dd_rate(write.stderr)
            ctx.line(f"Disk Write Speed: {display_number(write_rate)} MB/s")

            ctx.line("Running disk read performance test...")
            self._drop_caches()
            read = await ctx.runner.run(
                ["dd", f"if={path}", "of=/dev/null", "bs=1M"],
                timeout=self.timeout,
                check=True,
            )
            read_rate = parse_dd_rate(read.stderr)
            ctx.line(f"Disk Read Speed: {display_number(read_rate)} MB/s")

        return [
            MetricReading.numeric(self.category, "write_mb_per_sec", write_rate, " MB/s"),
            MetricReading.numeric(self.category, "read_mb_per_sec", read_rate, " MB/s"),
        ]

    def _drop_caches(self) -> None:
        os.sync()
        try:
            (self._proc_root / "sys" / "vm" / "drop_caches").write_text("3\n")
        except OSError as exc:
            logger.debug("drop_caches_failed", error=str(exc))
