"""Domain types for diagnostic runs — readings, rules, findings, and the run itself."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from enum import IntEnum, StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from forensics.core.exceptions import ConfigError

# ── Enums ────────────────────────────────────────────────────────


class Category(StrEnum):
    """Metric category. Declaration order is the report display order."""

    CPU = "CPU"
    MEMORY = "Memory"
    DISK = "Disk"
    STORAGE = "Storage"
    NETWORK = "Network"
    DATABASE = "Database"

    @property
    def rank(self) -> int:
        return list(Category).index(self)


class Severity(IntEnum):
    """Finding severity, ordered Low < Medium < High < Critical."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3

    @property
    def label(self) -> str:
        return self.name.capitalize()


class DiagnosticMode(StrEnum):
    """Which categories a run collects, and how deeply."""

    QUICK = "quick"
    STANDARD = "standard"
    DEEP = "deep"
    DISK = "disk"
    CPU = "cpu"
    MEMORY = "memory"

    @classmethod
    def parse(cls, value: str) -> DiagnosticMode:
        """Parse a CLI mode string. Raises ConfigError on unknown modes."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            choices = ", ".join(m.value for m in cls)
            raise ConfigError(f"Invalid mode: {value!r} (choose from {choices})") from None


class TicketSeverity(StrEnum):
    """AWS Support case severity codes."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"
    CRITICAL = "critical"

    @classmethod
    def parse(cls, value: str) -> TicketSeverity:
        try:
            return cls(value.strip().lower())
        except ValueError:
            choices = ", ".join(s.value for s in cls)
            raise ConfigError(
                f"Invalid severity: {value!r} (choose from {choices})"
            ) from None


class Comparator(StrEnum):
    """How a reading is compared against its rule threshold."""

    GT = "GT"
    LT = "LT"
    GTE = "GTE"
    LTE = "LTE"
    EQ = "EQ"
    BOOL_TRUE = "BOOL_TRUE"


class SourceStatus(StrEnum):
    """Outcome of a single metric source execution."""

    SUCCEEDED = "SUCCEEDED"
    UNAVAILABLE = "UNAVAILABLE"
    TIMED_OUT = "TIMED_OUT"


# ── Display helpers ──────────────────────────────────────────────


def display_number(value: float) -> str:
    """Render a number the way the report shows it: 91, 1.5, 23.47."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


# ── Readings, rules, findings ───────────────────────────────────


class MetricReading(BaseModel):
    """A single observation produced by a metric source.

    ``value`` is numeric, a boolean presence flag, or None when the
    reading is unavailable (``unavailable_reason`` is then set).
    """

    model_config = ConfigDict(frozen=True)

    category: Category
    name: str
    value: bool | float | None = None
    unit: str = ""
    entity: str = ""
    unavailable_reason: str | None = None
    timed_out: bool = False
    collected_at: float = 0.0

    @classmethod
    def numeric(
        cls,
        category: Category,
        name: str,
        value: float,
        unit: str = "",
        entity: str = "",
    ) -> MetricReading:
        return cls(
            category=category,
            name=name,
            value=float(value),
            unit=unit,
            entity=entity,
            collected_at=time.time(),
        )

    @classmethod
    def flag(
        cls,
        category: Category,
        name: str,
        value: bool,
        entity: str = "",
    ) -> MetricReading:
        return cls(
            category=category,
            name=name,
            value=bool(value),
            entity=entity,
            collected_at=time.time(),
        )

    @classmethod
    def unavailable(
        cls,
        category: Category,
        name: str,
        reason: str,
        timed_out: bool = False,
        entity: str = "",
    ) -> MetricReading:
        return cls(
            category=category,
            name=name,
            entity=entity,
            unavailable_reason=reason,
            timed_out=timed_out,
            collected_at=time.time(),
        )

    @property
    def available(self) -> bool:
        return self.unavailable_reason is None and self.value is not None

    def display_value(self) -> str:
        if self.value is None:
            return "unavailable"
        if isinstance(self.value, bool):
            return "Yes" if self.value else "No"
        return f"{display_number(self.value)}{self.unit}"


class ThresholdRule(BaseModel):
    """Static threshold for one (category, metric) pair."""

    model_config = ConfigDict(frozen=True)

    category: Category
    name: str
    comparator: Comparator
    threshold: bool | float
    severity: Severity
    message_template: str
    threshold_display: str = ""

    @property
    def key(self) -> tuple[Category, str]:
        return (self.category, self.name)

    def render_threshold(self) -> str:
        if self.threshold_display:
            return self.threshold_display
        if isinstance(self.threshold, bool):
            return "Yes" if self.threshold else "No"
        return display_number(self.threshold)


class Finding(BaseModel):
    """A metric that breached its rule's threshold."""

    model_config = ConfigDict(frozen=True)

    severity: Severity
    category: Category
    metric: str
    entity: str = ""
    issue: str
    current: str
    threshold: str
    detected_at: float = 0.0

    def sort_key(self) -> tuple[int, str, str]:
        return (self.category.rank, self.metric, self.entity)


class CoverageGap(BaseModel):
    """A ruled metric for which no reading could be obtained."""

    model_config = ConfigDict(frozen=True)

    category: Category
    metric: str
    entity: str = ""
    reason: str
    timed_out: bool = False


class SourceResult(BaseModel):
    """Everything one metric source produced during a run."""

    source: str
    category: Category
    status: SourceStatus = SourceStatus.SUCCEEDED
    readings: list[MetricReading] = Field(default_factory=list)
    lines: list[str] = Field(default_factory=list)
    reason: str = ""
    elapsed_secs: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status == SourceStatus.SUCCEEDED


class SystemInfo(BaseModel):
    """Host identity gathered at the start of a run."""

    hostname: str = ""
    kernel: str = ""
    os_name: str = ""
    architecture: str = ""
    uptime: str = ""
    cpu_model: str = ""
    cpu_cores: int = 0
    total_memory_mb: int = 0
    instance_id: str | None = None
    instance_type: str | None = None
    availability_zone: str | None = None

    @property
    def on_ec2(self) -> bool:
        return self.instance_id is not None


# ── Aggregate root ───────────────────────────────────────────────


class DiagnosticRun(BaseModel):
    """One invocation of the collector — owns every finding it produces.

    Appends from concurrently running categories are serialised by an
    internal lock; insertion order is detection order.
    """

    mode: DiagnosticMode
    output_path: Path
    start_time: float = Field(default_factory=time.time)
    finished_at: float | None = None
    concurrent: bool = False
    system_info: SystemInfo = Field(default_factory=SystemInfo)
    findings: list[Finding] = Field(default_factory=list)
    coverage_gaps: list[CoverageGap] = Field(default_factory=list)
    source_results: list[SourceResult] = Field(default_factory=list)

    _lock: asyncio.Lock = PrivateAttr(default_factory=asyncio.Lock)

    async def add_finding(self, finding: Finding) -> None:
        async with self._lock:
            self.findings.append(finding)

    async def add_gap(self, gap: CoverageGap) -> None:
        async with self._lock:
            self.coverage_gaps.append(gap)

    async def add_source_result(self, result: SourceResult) -> None:
        async with self._lock:
            self.source_results.append(result)

    async def record(
        self,
        result: SourceResult,
        findings: Sequence[Finding] = (),
        gaps: Sequence[CoverageGap] = (),
    ) -> None:
        """Fold one source's result with its findings and gaps into the run."""
        async with self._lock:
            self.source_results.append(result)
            self.findings.extend(findings)
            self.coverage_gaps.extend(gaps)

    def finish(self) -> None:
        self.finished_at = time.time()

    @property
    def duration_secs(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.time()
        return max(0.0, end - self.start_time)

    @property
    def unavailable_sources(self) -> list[SourceResult]:
        return [r for r in self.source_results if not r.succeeded]

    def normalized_findings(self) -> list[Finding]:
        """Findings sorted by category, then metric, then entity."""
        return sorted(self.findings, key=Finding.sort_key)

    def display_findings(self) -> list[Finding]:
        """Findings in the order the report presents them.

        Sequential runs keep detection order; concurrent runs are
        normalised because cross-category order is not deterministic.
        """
        if self.concurrent:
            return self.normalized_findings()
        return list(self.findings)

    def findings_by_severity(self) -> dict[Severity, list[Finding]]:
        """Group findings Critical → Low, keeping display order within a group."""
        grouped: dict[Severity, list[Finding]] = {
            sev: [] for sev in sorted(Severity, reverse=True)
        }
        for finding in self.display_findings():
            grouped[finding.severity].append(finding)
        return grouped
