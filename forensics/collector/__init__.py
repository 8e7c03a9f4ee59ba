"""Collection pipeline — mode selection, source registry and orchestration."""

from forensics.collector.modes import MODE_CATEGORIES, SECTION_TITLES, categories_for, is_deep
from forensics.collector.pipeline import DEADLINE_REASON, CollectorPipeline, PipelineState
from forensics.collector.registry import PROBED_TOOLS, build_sources

__all__ = [
    "DEADLINE_REASON",
    "MODE_CATEGORIES",
    "PROBED_TOOLS",
    "SECTION_TITLES",
    "CollectorPipeline",
    "PipelineState",
    "build_sources",
    "categories_for",
    "is_deep",
]
