"""Builds the ordered list of metric sources for a run."""

from __future__ import annotations

from pathlib import Path

from forensics.core.config import CollectionConfig
from forensics.sources import (
    BlockedProcessSource,
    ContextSwitchSource,
    CpuStealSource,
    CpuUsageSource,
    DiskBenchmarkSource,
    FilesystemUsageSource,
    InodeUsageSource,
    InterfaceErrorSource,
    IoStatSource,
    LoadAverageSource,
    MemoryUsageSource,
    MetricSource,
    MongoSource,
    MySqlSource,
    OomEventSource,
    OracleSource,
    PageFaultSource,
    PartitionAlignmentSource,
    PartitionTableSource,
    PerCpuSource,
    PostgresSource,
    RaidStatusSource,
    SmartHealthSource,
    SqlServerSource,
    TcpRetransmitSource,
    TcpStateSource,
    TopCpuProcessesSource,
    TopMemoryProcessesSource,
)

# Probed once per run; sources missing a tool become unavailable.
PROBED_TOOLS: tuple[str, ...] = (
    "mpstat",
    "vmstat",
    "iostat",
    "ps",
    "dmesg",
    "df",
    "dd",
    "lsblk",
    "smartctl",
    "ss",
    "netstat",
    "ip",
    "mysql",
    "psql",
    "mongosh",
    "sqlplus",
    "sqlcmd",
    "runuser",
)


def build_sources(
    config: CollectionConfig,
    as_root: bool = True,
    can_switch_user: bool = False,
) -> list[MetricSource]:
    """Every source the collector knows about, in report order.

    Windowed sources get a timeout of window plus the configured grace.
    PostgreSQL and Oracle clients run as their service accounts when the
    process is root and ``runuser`` is available.
    """
    cmd = config.command_timeout_secs
    cpu_window = config.cpu_sample_secs
    short_window = config.short_sample_secs
    io_window = config.io_sample_secs
    switch = as_root and can_switch_user

    return [
        # CPU
        LoadAverageSource(timeout=cmd),
        CpuUsageSource(window_secs=cpu_window, timeout=config.window_timeout(cpu_window)),
        TopCpuProcessesSource(timeout=cmd),
        ContextSwitchSource(
            window_secs=short_window, timeout=config.window_timeout(short_window),
        ),
        CpuStealSource(window_secs=short_window, timeout=config.window_timeout(short_window)),
        PerCpuSource(window_secs=short_window, timeout=config.window_timeout(short_window)),
        # Memory
        MemoryUsageSource(timeout=cmd),
        TopMemoryProcessesSource(timeout=cmd),
        PageFaultSource(window_secs=short_window, timeout=config.window_timeout(short_window)),
        OomEventSource(timeout=cmd),
        # Disk
        FilesystemUsageSource(timeout=cmd),
        IoStatSource(window_secs=io_window, timeout=config.window_timeout(io_window)),
        BlockedProcessSource(timeout=cmd),
        DiskBenchmarkSource(
            directory=Path(config.disk_test_dir),
            size_mb=config.disk_test_size_mb,
            timeout=300.0,
        ),
        # Storage
        PartitionAlignmentSource(timeout=cmd),
        PartitionTableSource(timeout=cmd),
        RaidStatusSource(timeout=cmd),
        SmartHealthSource(timeout=cmd * 2, command_timeout=cmd),
        InodeUsageSource(timeout=cmd),
        # Network
        TcpStateSource(timeout=cmd),
        TcpRetransmitSource(timeout=cmd),
        InterfaceErrorSource(timeout=cmd),
        # Database
        MySqlSource(timeout=cmd * 2),
        PostgresSource(timeout=cmd * 2, run_as="postgres" if switch else None),
        MongoSource(timeout=cmd * 2),
        OracleSource(timeout=cmd * 2, run_as="oracle" if switch else None),
        SqlServerSource(timeout=cmd * 2),
    ]
