"""Tests for forensics/sources/disk.py."""

from __future__ import annotations

from pathlib import Path

import pytest

from forensics.core.types import SourceStatus
from forensics.sources.base import CollectionContext
from forensics.sources.disk import (
    BlockedProcessSource,
    DiskBenchmarkSource,
    FilesystemUsageSource,
    IoStatSource,
    parse_dd_rate,
    parse_df,
    parse_iostat_await,
    parse_procs_blocked,
    scoped_test_file,
)
from forensics.sources.exceptions import CommandTimeoutError, SourceParseError

DF = """\
Filesystem     1024-blocks      Used Available Capacity Mounted on
/dev/nvme0n1p1    20134592   8000000  12134592      40% /
tmpfs              4000000         0   4000000       0% /dev/shm
/dev/nvme1n1     100000000  91000000   9000000      91% /data
/dev/nvme2n1      50000000  47500000   2500000      95% /var
"""

IOSTAT = """\
Linux 5.15.0 (host)  01/15/2024  _x86_64_  (4 CPU)

avg-cpu:  %user   %nice %system %iowait  %steal   %idle
           5.00    0.00    2.00    1.00    0.00   92.00

Device            r/s     w/s     rkB/s     wkB/s   rrqm/s   wrqm/s  %rrqm  %wrqm r_await w_await aqu-sz rareq-sz wareq-sz  svctm  %util
nvme0n1          1.00    2.00     10.00     20.00     0.00     0.00   0.00   0.00    1.00    1.00   0.00    10.00    10.00   0.50   0.10
loop0            0.00    0.00      0.00      0.00     0.00     0.00   0.00   0.00   99.00   99.00   0.00     0.00     0.00   0.00   0.00

avg-cpu:  %user   %nice %system %iowait  %steal   %idle
          20.00    0.00    5.00   30.00    0.00   45.00

Device            r/s     w/s     rkB/s     wkB/s   rrqm/s   wrqm/s  %rrqm  %wrqm r_await w_await aqu-sz rareq-sz wareq-sz  svctm  %util
nvme0n1        100.00  200.00   1000.00   2000.00     0.00     0.00   0.00   0.00   20.00   40.00   5.00    10.00    10.00   0.50  90.00
nvme1n1         50.00   50.00    500.00    500.00     0.00     0.00   0.00   0.00   10.00   10.00   1.00    10.00    10.00   0.50  50.00
loop0            0.00    0.00      0.00      0.00     0.00     0.00   0.00   0.00  500.00  500.00   0.00     0.00     0.00   0.00   0.00
"""

IOSTAT_OLD = """\
Device:         rrqm/s   wrqm/s     r/s     w/s    rkB/s    wkB/s avgrq-sz avgqu-sz   await r_await w_await  svctm  %util
xvda              0.00     1.00    2.00    3.00    10.00    20.00    12.00     0.10   25.00   20.00   30.00   1.00   0.50
"""

DD_WRITE = """\
1024+0 records in
1024+0 records out
1073741824 bytes (1.1 GB, 1.0 GiB) copied, 4.5 s, 239 MB/s
"""

DD_READ_GB = """\
1073741824 bytes (1.1 GB, 1.0 GiB) copied, 0.5 s, 2.1 GB/s
"""


class TestParsers:
    def test_parse_df_skips_tmpfs(self) -> None:
        rows = parse_df(DF)
        assert [(r.mount, r.used_pct) for r in rows] == [
            ("/", 40.0),
            ("/data", 91.0),
            ("/var", 95.0),
        ]

    def test_parse_df_requires_header(self) -> None:
        with pytest.raises(SourceParseError):
            parse_df("")

    def test_parse_iostat_drops_boot_report(self) -> None:
        avg, lines = parse_iostat_await(IOSTAT)
        # (30 + 10) / 2, loop devices ignored
        assert avg == 20.0
        assert lines[0].startswith("Device")
        assert any(line.startswith("nvme1n1") for line in lines)

    def test_parse_iostat_single_report_with_await(self) -> None:
        avg, _lines = parse_iostat_await(IOSTAT_OLD)
        assert avg == 25.0

    def test_parse_procs_blocked(self) -> None:
        assert parse_procs_blocked("cpu 1 2 3\nprocs_running 2\nprocs_blocked 7\n") == 7

    def test_parse_dd_rate_units(self) -> None:
        assert parse_dd_rate(DD_WRITE) == 239.0
        assert parse_dd_rate(DD_READ_GB) == 2100.0
        with pytest.raises(SourceParseError):
            parse_dd_rate("dd: error writing")


class TestScopedTestFile:
    def test_removed_on_success(self, tmp_path: Path) -> None:
        with scoped_test_file(tmp_path) as path:
            assert path.exists()
        assert not path.exists()

    def test_removed_on_error(self, tmp_path: Path) -> None:
        with pytest.raises(RuntimeError), scoped_test_file(tmp_path) as path:
            raise RuntimeError("boom")
        assert not path.exists()
        assert list(tmp_path.iterdir()) == []


class TestFilesystemUsageSource:
    async def test_two_full_filesystems(self, runner) -> None:
        runner.on(["df", "-P", "-h"], stdout=DF)
        runner.on(["df", "-P"], stdout=DF)
        result = await FilesystemUsageSource().collect(CollectionContext(runner))
        assert [(r.entity, r.value) for r in result.readings] == [
            ("/", 40.0),
            ("/data", 91.0),
            ("/var", 95.0),
        ]
        assert result.lines[0] == "Disk Usage:"
        assert not any(line.startswith("tmpfs") for line in result.lines)


class TestIoStatSource:
    async def test_average_wait(self, runner) -> None:
        runner.on(["iostat"], stdout=IOSTAT)
        result = await IoStatSource(window_secs=2).collect(CollectionContext(runner))
        assert result.readings[0].name == "avg_io_wait_ms"
        assert result.readings[0].value == 20.0
        assert "Average I/O Wait Time: 20 ms" in result.lines

    async def test_timeout(self, runner) -> None:
        runner.on(["iostat"], exc=CommandTimeoutError("iostat did not finish"))
        result = await IoStatSource().collect(CollectionContext(runner))
        assert result.status == SourceStatus.TIMED_OUT


class TestBlockedProcessSource:
    async def test_reads_proc_stat(self, runner, tmp_path: Path) -> None:
        (tmp_path / "stat").write_text("procs_running 1\nprocs_blocked 9\n")
        result = await BlockedProcessSource(proc_root=tmp_path).collect(
            CollectionContext(runner)
        )
        assert result.readings[0].value == 9.0


class TestDiskBenchmarkSource:
    async def test_write_then_read(self, runner, tmp_path: Path) -> None:
        runner.on(["dd", "if=/dev/zero"], stderr=DD_WRITE)
        runner.on(["dd"], stderr=DD_READ_GB)
        source = DiskBenchmarkSource(directory=tmp_path, size_mb=8, proc_root=tmp_path)
        result = await source.collect(CollectionContext(runner, deep=True))

        values = {r.name: r.value for r in result.readings}
        assert values == {"write_mb_per_sec": 239.0, "read_mb_per_sec": 2100.0}
        assert "count=8" in runner.calls[0]
        assert list(tmp_path.iterdir()) == []

    async def test_test_file_removed_on_timeout(self, runner, tmp_path: Path) -> None:
        runner.on(["dd"], delay=5.0)
        source = DiskBenchmarkSource(directory=tmp_path, size_mb=8, timeout=0.05,
                                     proc_root=tmp_path)
        result = await source.collect(CollectionContext(runner, deep=True))
        assert result.status == SourceStatus.TIMED_OUT
        assert list(tmp_path.iterdir()) == []
