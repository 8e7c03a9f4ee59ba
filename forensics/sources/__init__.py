"""Metric sources — probes that turn OS tools and /proc into typed readings."""

from forensics.sources.base import CollectionContext, MetricSource
from forensics.sources.capabilities import Capabilities
from forensics.sources.cpu import (
    ContextSwitchSource,
    CpuStealSource,
    CpuUsageSource,
    LoadAverageSource,
    PerCpuSource,
)
from forensics.sources.database import (
    MongoSource,
    MySqlSource,
    OracleSource,
    PostgresSource,
    SqlServerSource,
)
from forensics.sources.disk import (
    BlockedProcessSource,
    DiskBenchmarkSource,
    FilesystemUsageSource,
    IoStatSource,
)
from forensics.sources.exceptions import (
    CommandFailedError,
    CommandTimeoutError,
    SourceError,
    SourceParseError,
    ToolNotFoundError,
)
from forensics.sources.exec import CommandResult, CommandRunner
from forensics.sources.memory import MemoryUsageSource, OomEventSource, PageFaultSource
from forensics.sources.network import (
    InterfaceErrorSource,
    TcpRetransmitSource,
    TcpStateSource,
)
from forensics.sources.processes import TopCpuProcessesSource, TopMemoryProcessesSource
from forensics.sources.storage import (
    InodeUsageSource,
    PartitionAlignmentSource,
    PartitionTableSource,
    RaidStatusSource,
    SmartHealthSource,
)
from forensics.sources.system import InstanceMetadataClient, SystemInfoCollector

__all__ = [
    "BlockedProcessSource",
    "Capabilities",
    "CollectionContext",
    "CommandFailedError",
    "CommandResult",
    "CommandRunner",
    "CommandTimeoutError",
    "ContextSwitchSource",
    "CpuStealSource",
    "CpuUsageSource",
    "DiskBenchmarkSource",
    "FilesystemUsageSource",
    "InodeUsageSource",
    "InstanceMetadataClient",
    "InterfaceErrorSource",
    "IoStatSource",
    "LoadAverageSource",
    "MemoryUsageSource",
    "MetricSource",
    "MongoSource",
    "MySqlSource",
    "OomEventSource",
    "OracleSource",
    "PageFaultSource",
    "PartitionAlignmentSource",
    "PartitionTableSource",
    "PerCpuSource",
    "PostgresSource",
    "RaidStatusSource",
    "SmartHealthSource",
    "SourceError",
    "SourceParseError",
    "SqlServerSource",
    "SystemInfoCollector",
    "TcpRetransmitSource",
    "TcpStateSource",
    "ToolNotFoundError",
    "TopCpuProcessesSource",
    "TopMemoryProcessesSource",
]
