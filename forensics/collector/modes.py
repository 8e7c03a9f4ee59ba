"""Static mapping of diagnostic modes to metric categories."""

from __future__ import annotations

from forensics.core.types import Category, DiagnosticMode

_ALL_CATEGORIES: tuple[Category, ...] = (
    Category.CPU,
    Category.MEMORY,
    Category.DISK,
    Category.STORAGE,
    Category.NETWORK,
    Category.DATABASE,
)

MODE_CATEGORIES: dict[DiagnosticMode, tuple[Category, ...]] = {
    DiagnosticMode.QUICK: (Category.CPU, Category.MEMORY),
    DiagnosticMode.STANDARD: _ALL_CATEGORIES,
    DiagnosticMode.DEEP: _ALL_CATEGORIES,
    DiagnosticMode.DISK: (Category.DISK, Category.STORAGE),
    DiagnosticMode.CPU: (Category.CPU,),
    DiagnosticMode.MEMORY: (Category.MEMORY,),
}

SECTION_TITLES: dict[Category, str] = {
    Category.CPU: "CPU FORENSICS",
    Category.MEMORY: "MEMORY FORENSICS",
    Category.DISK: "DISK I/O FORENSICS",
    Category.STORAGE: "STORAGE FORENSICS",
    Category.NETWORK: "NETWORK FORENSICS",
    Category.DATABASE: "DATABASE FORENSICS",
}


def categories_for(mode: DiagnosticMode) -> tuple[Category, ...]:
    return MODE_CATEGORIES[mode]


def is_deep(mode: DiagnosticMode) -> bool:
    """Deep mode enables the expensive sub-probes (per-CPU, dd benchmark)."""
    return mode == DiagnosticMode.DEEP
