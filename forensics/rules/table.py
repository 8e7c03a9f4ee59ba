"""Threshold rule table — the fixed registry every reading is judged against."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from forensics.core.types import Category, Comparator, Severity, ThresholdRule
from forensics.rules.exceptions import DuplicateRuleError

_CDC = "required for DMS change data capture"


def _rule(
    category: Category,
    name: str,
    comparator: Comparator,
    threshold: bool | float,
    severity: Severity,
    message: str,
    threshold_display: str,
) -> ThresholdRule:
    return ThresholdRule(
        category=category,
        name=name,
        comparator=comparator,
        threshold=threshold,
        severity=severity,
        message_template=message,
        threshold_display=threshold_display,
    )


# ── Default rules ───────────────────────────────────────────────

DEFAULT_RULES: tuple[ThresholdRule, ...] = (
    # CPU
    _rule(Category.CPU, "load_per_core", Comparator.GT, 1.0, Severity.HIGH,
          "High load average", "1.0 per core"),
    _rule(Category.CPU, "usage_pct", Comparator.GT, 80.0, Severity.HIGH,
          "High CPU utilization", "80%"),
    _rule(Category.CPU, "context_switches_per_sec", Comparator.GT, 15000.0, Severity.MEDIUM,
          "Excessive context switches", "15000/sec"),
    _rule(Category.CPU, "steal_pct", Comparator.GT, 10.0, Severity.HIGH,
          "High CPU steal time (hypervisor contention)", "10%"),
    # Memory
    _rule(Category.MEMORY, "available_pct", Comparator.LT, 10.0, Severity.CRITICAL,
          "Low available memory", "10%"),
    _rule(Category.MEMORY, "swap_used_pct", Comparator.GT, 50.0, Severity.HIGH,
          "High swap usage", "50%"),
    _rule(Category.MEMORY, "page_faults_per_sec", Comparator.GT, 1000.0, Severity.MEDIUM,
          "High page fault rate", "1000/sec"),
    _rule(Category.MEMORY, "oom_event_seen", Comparator.BOOL_TRUE, True, Severity.CRITICAL,
          "OOM killer invoked recently", "No"),
    # Disk
    _rule(Category.DISK, "filesystem_used_pct", Comparator.GT, 90.0, Severity.HIGH,
          "Filesystem nearly full: {entity}", "90%"),
    _rule(Category.DISK, "avg_io_wait_ms", Comparator.GT, 20.0, Severity.HIGH,
          "High I/O wait time", "20ms"),
    _rule(Category.DISK, "io_wait_process_count", Comparator.GT, 5.0, Severity.HIGH,
          "Processes blocked on I/O", "5"),
    # Storage
    _rule(Category.STORAGE, "misaligned_partition_ssd", Comparator.BOOL_TRUE, True,
          Severity.HIGH, "Misaligned partition on SSD: {entity}", "4 KiB aligned"),
    _rule(Category.STORAGE, "misaligned_partition_hdd", Comparator.BOOL_TRUE, True,
          Severity.MEDIUM, "Misaligned partition on HDD: {entity}", "4 KiB aligned"),
    _rule(Category.STORAGE, "mbr_on_large_disk", Comparator.BOOL_TRUE, True, Severity.HIGH,
          "MBR partition table on disk larger than 2TB: {entity}", "GPT above 2TB"),
    _rule(Category.STORAGE, "raid_degraded", Comparator.BOOL_TRUE, True, Severity.CRITICAL,
          "Degraded RAID array: {entity}", "No"),
    _rule(Category.STORAGE, "smart_failing", Comparator.BOOL_TRUE, True, Severity.CRITICAL,
          "SMART health check failing: {entity}", "No"),
    _rule(Category.STORAGE, "inode_used_pct", Comparator.GT, 90.0, Severity.HIGH,
          "Inode usage high: {entity}", "90%"),
    # Network
    _rule(Category.NETWORK, "time_wait_count", Comparator.GT, 5000.0, Severity.MEDIUM,
          "Excessive TIME_WAIT connections", "5000"),
    _rule(Category.NETWORK, "close_wait_count", Comparator.GT, 1000.0, Severity.MEDIUM,
          "Excessive CLOSE_WAIT connections", "1000"),
    _rule(Category.NETWORK, "tcp_retransmissions", Comparator.GT, 100.0, Severity.MEDIUM,
          "High TCP retransmissions detected", "100"),
    _rule(Category.NETWORK, "rx_errors", Comparator.GT, 100.0, Severity.MEDIUM,
          "Receive errors on interface {entity}", "100"),
    _rule(Category.NETWORK, "tx_errors", Comparator.GT, 100.0, Severity.MEDIUM,
          "Transmit errors on interface {entity}", "100"),
    # Database
    _rule(Category.DATABASE, "connection_count", Comparator.GT, 500.0, Severity.MEDIUM,
          "High MySQL connection count", "500"),
    _rule(Category.DATABASE, "postgresql_connection_count", Comparator.GT, 1000.0,
          Severity.MEDIUM, "High PostgreSQL connection count", "1000"),
    _rule(Category.DATABASE, "mongodb_connection_count", Comparator.GT, 10000.0,
          Severity.MEDIUM, "High MongoDB connection count", "10000"),
    _rule(Category.DATABASE, "long_running_query_seconds", Comparator.GT, 30.0,
          Severity.HIGH, "Long-running query on {entity}", "30s"),
    # DMS readiness: the finding fires when the prerequisite is off.
    _rule(Category.DATABASE, "binlog_enabled", Comparator.EQ, False, Severity.HIGH,
          f"MySQL binary logging disabled ({_CDC})", "Yes"),
    _rule(Category.DATABASE, "wal_logical", Comparator.EQ, False, Severity.HIGH,
          f"PostgreSQL wal_level is not logical ({_CDC})", "Yes"),
    _rule(Category.DATABASE, "archivelog", Comparator.EQ, False, Severity.HIGH,
          f"Oracle ARCHIVELOG mode disabled ({_CDC})", "Yes"),
    _rule(Category.DATABASE, "agent_running", Comparator.EQ, False, Severity.HIGH,
          f"SQL Server Agent not running ({_CDC})", "Yes"),
)


class ThresholdRuleTable:
    """Immutable lookup of rules keyed by (category, metric name).

    Usage::

        table = default_rule_table()
        rule = table.lookup(Category.CPU, "load_per_core")
    """

    def __init__(self, rules: Iterable[ThresholdRule]) -> None:
        self._rules: dict[tuple[Category, str], ThresholdRule] = {}
        for rule in rules:
            if rule.key in self._rules:
                raise DuplicateRuleError(
                    f"duplicate rule for {rule.category.value}/{rule.name}"
                )
            self._rules[rule.key] = rule

    def lookup(self, category: Category, name: str) -> ThresholdRule | None:
        return self._rules.get((category, name))

    def for_category(self, category: Category) -> list[ThresholdRule]:
        return [r for r in self._rules.values() if r.category == category]

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[ThresholdRule]:
        return iter(self._rules.values())

    def __contains__(self, key: object) -> bool:
        return key in self._rules


_default_table: ThresholdRuleTable | None = None


def default_rule_table() -> ThresholdRuleTable:
    """The built-in rule table, constructed once per process."""
    global _default_table  # noqa: PLW0603
    if _default_table is None:
        _default_table = ThresholdRuleTable(DEFAULT_RULES)
    return _default_table
