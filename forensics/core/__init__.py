"""Core config, types, logging and startup errors."""

from forensics.core.config import Settings, get_settings, load_settings, reset_settings
from forensics.core.exceptions import ConfigError, ForensicsError, PrivilegeError
from forensics.core.logging import setup_logging
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
)

__all__ = [
    "Category",
    "Comparator",
    "ConfigError",
    "CoverageGap",
    "DiagnosticMode",
    "DiagnosticRun",
    "Finding",
    "ForensicsError",
    "MetricReading",
    "PrivilegeError",
    "Settings",
    "Severity",
    "SourceResult",
    "SourceStatus",
    "SystemInfo",
    "ThresholdRule",
    "TicketSeverity",
    "get_settings",
    "load_settings",
    "reset_settings",
    "setup_logging",
]
