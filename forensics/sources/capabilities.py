"""One-shot probe of which external tools exist on this host."""

from __future__ import annotations

import shutil
from collections.abc import Callable, Iterable

import structlog

logger = structlog.stdlib.get_logger()

WhichFn = Callable[[str], str | None]


class Capabilities:
    """Immutable snapshot of tool availability, taken before collection starts."""

    def __init__(self, available: dict[str, str | None]) -> None:
        self._available = dict(available)

    @classmethod
    def probe(cls, tools: Iterable[str], which: WhichFn = shutil.which) -> Capabilities:
        """Look up every tool once on PATH."""
        found = {tool: which(tool) for tool in sorted(set(tools))}
        missing = [tool for tool, path in found.items() if path is None]
        if missing:
            logger.info("tools_missing", tools=missing)
        return cls(found)

    @classmethod
    def assume_all(cls) -> Capabilities:
        """Capabilities that report every tool as present (for tests and fakes)."""
        return _AllCapabilities({})

    def has(self, tool: str) -> bool:
        return self._available.get(tool) is not None

    def missing(self, tools: Iterable[str]) -> list[str]:
        return [tool for tool in tools if not self.has(tool)]


class _AllCapabilities(Capabilities):
    def has(self, tool: str) -> bool:
        return True
