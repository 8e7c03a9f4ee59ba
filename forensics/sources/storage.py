"""Storage topology probes read from sysfs, lsblk, mdstat and smartctl."""

from __future__ import annotations

import asyncio
import re
from pathlib import Path

import structlog
from pydantic import BaseModel

from forensics.core.types import Category, MetricReading, display_number
from forensics.sources.base import CollectionContext, MetricSource
from forensics.sources.disk import parse_df
from forensics.sources.exceptions import CommandTimeoutError, SourceParseError
from forensics.sources.parsing import read_int, read_text

logger = structlog.stdlib.get_logger()

_DEFAULT_SYS_BLOCK = Path("/sys/block")
_DEFAULT_PROC = Path("/proc")

# sysfs reports partition starts in 512-byte sectors regardless of the
# device's logical sector size.
_SYSFS_SECTOR = 512
_ALIGNMENT_BYTES = 4096
_MBR_LIMIT_BYTES = 2 * 1024**4

_VIRTUAL_DEVICE_PREFIXES = ("loop", "ram", "zram", "sr", "fd", "dm-", "md")

_MDSTAT_ARRAY = re.compile(r"^(md\S*)\s*:\s*(\S+)")
_MDSTAT_STATUS = re.compile(r"\[([U_]+)\]")


class BlockDevice(BaseModel):
    """A whole disk as reported by lsblk."""

    name: str
    size_bytes: int
    pttype: str = ""


# ── Parsers ──────────────────────────────────────────────────────


def parse_lsblk(text: str) -> list[BlockDevice]:
    """Parse ``lsblk -b -d -n -o NAME,SIZE,PTTYPE`` output."""
    devices: list[BlockDevice] = []
    for line in text.splitlines():
        fields = line.split()
        if len(fields) < 2:
            continue
        if not fields[1].isdigit():
            raise SourceParseError(f"unexpected lsblk row: {line!r}")
        devices.append(BlockDevice(
            name=fields[0],
            size_bytes=int(fields[1]),
            pttype=fields[2] if len(fields) > 2 else "",
        ))
    return devices


def parse_mdstat(text: str) -> dict[str, bool]:
    """Map each md array to whether it is degraded."""
    arrays: dict[str, bool] = {}
    current: str | None = None
    for line in text.splitlines():
        match = _MDSTAT_ARRAY.match(line)
        if match:
            current = match.group(1)
            arrays[current] = "(F)" in line
            continue
        if current is None:
            continue
        status = _MDSTAT_STATUS.search(line)
        if status and "_" in status.group(1):
            arrays[current] = True
    return arrays


def parse_smart_health(text: str) -> bool | None:
    """True when SMART reports failure, False when healthy, None if unsupported."""
    for line in text.splitlines():
        if "self-assessment test result" in line or "SMART Health Status" in line:
            verdict = line.split(":", 1)[-1].strip().upper()
            return not (verdict.startswith("PASSED") or verdict.startswith("OK"))
    return None


def is_physical(name: str) -> bool:
    return not name.startswith(_VIRTUAL_DEVICE_PREFIXES)


# ── Sources ──────────────────────────────────────────────────────


class PartitionAlignmentSource(MetricSource):
    """Partitions whose start offset is not 4 KiB aligned.

    The metric name carries the media type so SSD and HDD misalignment
    map to rules of different severity.
    """

    category = Category.STORAGE
    name = "partition_alignment"
    metrics = ("misaligned_partition_ssd", "misaligned_partition_hdd")

    def __init__(self, timeout: float = 5.0, sys_block: Path = _DEFAULT_SYS_BLOCK) -> None:
        super().__init__(timeout=timeout)
        self._sys_block = sys_block

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        readings: list[MetricReading] = []
        ctx.line("Partition alignment:")
        for disk in sorted(self._sys_block.iterdir()):
            if not is_physical(disk.name):
                continue
            rotational_file = disk / "queue" / "rotational"
            rotational = rotational_file.exists() and read_int(rotational_file) == 1
            media = "hdd" if rotational else "ssd"
            for part in sorted(disk.iterdir()):
                if not (part / "partition").exists():
                    continue
                start = read_int(part / "start")
                misaligned = (start * _SYSFS_SECTOR) % _ALIGNMENT_BYTES != 0
                state = "MISALIGNED" if misaligned else "aligned"
                ctx.line(
                    f"  /dev/{part.name:<12} start sector {start:<10}"
                    f" {media.upper()} {state}"
                )
                readings.append(MetricReading.flag(
                    self.category,
                    f"misaligned_partition_{media}",
                    misaligned,
                    entity=f"/dev/{part.name}",
                ))
        if not readings:
            ctx.line("  No partitions found")
        return readings


class PartitionTableSource(MetricSource):
    """MBR (dos) partition tables on disks too large for MBR addressing."""

    category = Category.STORAGE
    name = "partition_table"
    metrics = ("mbr_on_large_disk",)
    required_tools = ("lsblk",)

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        result = await ctx.runner.run(
            ["lsblk", "-b", "-d", "-n", "-o", "NAME,SIZE,PTTYPE"],
            timeout=self.timeout,
            check=True,
        )
        readings: list[MetricReading] = []
        ctx.line("")
        ctx.line("Partition tables:")
        for dev in parse_lsblk(result.stdout):
            if not is_physical(dev.name):
                continue
            size_tb = dev.size_bytes / 1024**4
            ctx.line(
                f"  /dev/{dev.name:<12} {display_number(round(size_tb, 2))} TiB"
                f" table: {dev.pttype or 'none'}"
            )
            large_mbr = dev.pttype == "dos" and dev.size_bytes > _MBR_LIMIT_BYTES
            readings.append(MetricReading.flag(
                self.category, "mbr_on_large_disk", large_mbr, entity=f"/dev/{dev.name}",
            ))
        return readings


class RaidStatusSource(MetricSource):
    """Software RAID health from /proc/mdstat."""

    category = Category.STORAGE
    name = "raid_status"
    metrics = ("raid_degraded",)

    def __init__(self, timeout: float = 5.0, proc_root: Path = _DEFAULT_PROC) -> None:
        super().__init__(timeout=timeout)
        self._proc_root = proc_root

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        mdstat = self._proc_root / "mdstat"
        ctx.line("")
        if not mdstat.exists():
            ctx.line("Software RAID: md driver not loaded")
            return []
        arrays = parse_mdstat(read_text(mdstat))
        if not arrays:
            ctx.line("Software RAID: no arrays configured")
            return []
        ctx.line("Software RAID arrays:")
        readings: list[MetricReading] = []
        for name, degraded in arrays.items():
            ctx.line(f"  /dev/{name}: {'DEGRADED' if degraded else 'healthy'}")
            readings.append(MetricReading.flag(
                self.category, "raid_degraded", degraded, entity=f"/dev/{name}",
            ))
        return readings


class SmartHealthSource(MetricSource):
    """SMART overall health per physical disk.

    Disks are queried one at a time. A disk whose ``smartctl`` call times
    out, or that is never reached before the source timeout, gets an
    unavailable reading; verdicts already read for other disks are kept.
    """

    category = Category.STORAGE
    name = "smart_health"
    metrics = ("smart_failing",)
    required_tools = ("lsblk", "smartctl")

    # Left unused at the end of the source timeout so gather() returns
    # its partial readings before collect() cancels it.
    reserve_secs = 0.05

    def __init__(self, timeout: float = 30.0, command_timeout: float = 10.0) -> None:
        super().__init__(timeout=timeout)
        self._command_timeout = command_timeout

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        listing = await ctx.runner.run(
            ["lsblk", "-b", "-d", "-n", "-o", "NAME,SIZE,PTTYPE"],
            timeout=self._command_timeout,
            check=True,
        )
        readings: list[MetricReading] = []
        ctx.line("")
        ctx.line("SMART health:")
        for dev in parse_lsblk(listing.stdout):
            if not is_physical(dev.name):
                continue
            device = f"/dev/{dev.name}"
            readings.append(await self._check(ctx, device))
        return readings

    async def _check(self, ctx: CollectionContext, device: str) -> MetricReading:
        budget = self._command_timeout
        remaining = ctx.remaining()
        if remaining is not None:
            budget = min(budget, remaining - self.reserve_secs)
        if budget <= 0:
            ctx.line(f"  {device}: not checked, source timeout reached")
            return MetricReading.unavailable(
                self.category, "smart_failing", "timeout", entity=device, timed_out=True,
            )
        try:
            # smartctl's exit status is a bitmask of findings, not a failure flag.
            result = await asyncio.wait_for(
                ctx.runner.run(["smartctl", "-H", device], timeout=budget),
                timeout=budget,
            )
        except (asyncio.TimeoutError, CommandTimeoutError):
            logger.warning("smart_device_timeout", device=device, timeout=budget)
            ctx.line(f"  {device}: smartctl timed out")
            return MetricReading.unavailable(
                self.category, "smart_failing", "timeout", entity=device, timed_out=True,
            )
        failing = parse_smart_health(result.stdout)
        if failing is None:
            ctx.line(f"  {device}: SMART not supported")
            return MetricReading.unavailable(
                self.category, "smart_failing", "SMART not supported", entity=device,
            )
        ctx.line(f"  {device}: {'FAILING' if failing else 'PASSED'}")
        return MetricReading.flag(self.category, "smart_failing", failing, entity=device)


class InodeUsageSource(MetricSource):
    """Inode consumption per mounted filesystem."""

    category = Category.STORAGE
    name = "inode_usage"
    metrics = ("inode_used_pct",)
    required_tools = ("df",)

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        result = await ctx.runner.run(["df", "-P", "-i"], timeout=self.timeout, check=True)
        readings: list[MetricReading] = []
        ctx.line("")
        ctx.line("Inode usage:")
        for row in parse_df(result.stdout):
            ctx.line(f"  {row.mount:<30} {display_number(row.used_pct)}%")
            readings.append(MetricReading.numeric(
                self.category, "inode_used_pct", row.used_pct, "%", entity=row.mount,
            ))
        return readings
