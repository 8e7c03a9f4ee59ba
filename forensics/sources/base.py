"""Abstract metric source — timeout handling and failure containment."""

from __future__ import annotations

import abc
import asyncio
import time
from typing import ClassVar

import structlog

from forensics.core.types import Category, MetricReading, SourceResult, SourceStatus
from forensics.sources.capabilities import Capabilities
from forensics.sources.exceptions import CommandTimeoutError, SourceError
from forensics.sources.exec import CommandRunner

logger = structlog.stdlib.get_logger()


class CollectionContext:
    """Per-source execution context.

    Each source gets its own context, so the ``buffer`` of report lines is
    never shared between concurrently running sources.
    """

    def __init__(
        self,
        runner: CommandRunner,
        capabilities: Capabilities | None = None,
        deep: bool = False,
    ) -> None:
        self.runner = runner
        if capabilities is None:
            capabilities = Capabilities.assume_all()
        self.capabilities = capabilities
        self.deep = deep
        self.buffer: list[str] = []
        # Monotonic time at which collect() gives up on this source.
        self.deadline: float | None = None

    def line(self, text: str = "") -> None:
        """Append a line to this source's report output."""
        self.buffer.append(text)

    def remaining(self) -> float | None:
        """Seconds left before the source timeout, or None if unbounded."""
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()


class MetricSource(abc.ABC):
    """Base class for everything that turns a probe into MetricReadings.

    Subclasses implement ``gather()``. The base class enforces the timeout
    and converts every failure (missing tool, bad exit status, unparseable
    output, timeout) into an unavailable SourceResult, so ``collect()``
    never raises for those conditions.

    Usage::

        source = LoadAverageSource(timeout=5.0)
        result = await source.collect(CollectionContext(runner))
        for reading in result.readings:
            ...
    """

    category: ClassVar[Category]
    name: ClassVar[str]
    # Metric names this source produces; unavailable results emit one
    # unavailable reading per name.
    metrics: ClassVar[tuple[str, ...]] = ()
    required_tools: ClassVar[tuple[str, ...]] = ()
    windowed: ClassVar[bool] = False
    deep_only: ClassVar[bool] = False

    def __init__(self, timeout: float = 15.0) -> None:
        self._timeout = timeout

    @property
    def timeout(self) -> float:
        return self._timeout

    @abc.abstractmethod
    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        """Run the probe and parse its output.

        May raise SourceError or OSError; the base class handles both.
        """

    async def collect(
        self,
        ctx: CollectionContext,
        budget: float | None = None,
    ) -> SourceResult:
        """Run the source within its timeout, capped by *budget* if given."""
        timeout = self._timeout if budget is None else min(self._timeout, budget)
        started = time.monotonic()
        ctx.deadline = started + timeout

        missing = ctx.capabilities.missing(self.required_tools)
        if missing:
            reason = f"tool not installed: {', '.join(missing)}"
            logger.info("source_unavailable", source=self.name, reason=reason)
            return self._unavailable(ctx, reason, started)

        try:
            readings = await asyncio.wait_for(self.gather(ctx), timeout=timeout)
        except (asyncio.TimeoutError, CommandTimeoutError):
            logger.warning(
                "source_timeout",
                source=self.name,
                category=self.category.value,
                timeout=timeout,
            )
            return self._unavailable(ctx, "timeout", started, timed_out=True)
        except (SourceError, OSError, ValueError) as exc:
            logger.warning(
                "source_unavailable",
                source=self.name,
                category=self.category.value,
                reason=str(exc),
            )
            return self._unavailable(ctx, str(exc) or type(exc).__name__, started)
        except Exception as exc:
            logger.exception("source_error", source=self.name)
            return self._unavailable(ctx, f"unexpected error: {exc}", started)

        return SourceResult(
            source=self.name,
            category=self.category,
            status=SourceStatus.SUCCEEDED,
            readings=readings,
            lines=list(ctx.buffer),
            elapsed_secs=time.monotonic() - started,
        )

    def skipped(self, reason: str) -> SourceResult:
        """Unavailable result for a source that was never started."""
        return self.unavailable_result(reason)

    def unavailable_result(
        self,
        reason: str,
        timed_out: bool = False,
        lines: list[str] | None = None,
        elapsed_secs: float = 0.0,
    ) -> SourceResult:
        readings = [
            MetricReading.unavailable(self.category, metric, reason, timed_out=timed_out)
            for metric in self.metrics
        ]
        return SourceResult(
            source=self.name,
            category=self.category,
            status=SourceStatus.TIMED_OUT if timed_out else SourceStatus.UNAVAILABLE,
            readings=readings,
            lines=lines or [],
            reason=reason,
            elapsed_secs=elapsed_secs,
        )

    def _unavailable(
        self,
        ctx: CollectionContext,
        reason: str,
        started: float,
        timed_out: bool = False,
    ) -> SourceResult:
        return self.unavailable_result(
            reason,
            timed_out=timed_out,
            lines=list(ctx.buffer),
            elapsed_secs=time.monotonic() - started,
        )
