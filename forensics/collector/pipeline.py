"""CollectorPipeline — orchestrates the source→evaluate→report flow."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from enum import StrEnum

import structlog

from forensics.collector.modes import SECTION_TITLES, categories_for, is_deep
from forensics.core.types import Category, DiagnosticRun, SourceResult
from forensics.report.formatters import render_finding, render_header, timestamp
from forensics.report.sink import ReportSink
from forensics.rules.evaluator import BottleneckEvaluator
from forensics.sources.base import CollectionContext, MetricSource
from forensics.sources.capabilities import Capabilities
from forensics.sources.exec import CommandRunner

logger = structlog.stdlib.get_logger()

DEADLINE_REASON = "run deadline exceeded"


class PipelineState(StrEnum):
    INIT = "INIT"
    SELECT_SOURCES = "SELECT_SOURCES"
    RUNNING = "RUNNING"
    DRAINING = "DRAINING"
    FINALIZED = "FINALIZED"


class _SectionOutput:
    """Report output for one category section.

    Sequential runs write straight through to the sink. Concurrent runs
    buffer each section and write it in one piece when the category
    completes, so sections never interleave.
    """

    def __init__(self, sink: ReportSink, buffered: bool) -> None:
        self._sink = sink
        self._buffer: list[str] | None = [] if buffered else None

    def line(self, text: str = "") -> None:
        if self._buffer is None:
            self._sink.line(text)
        else:
            self._buffer.append(text)

    def lines(self, texts: Sequence[str]) -> None:
        for text in texts:
            self.line(text)

    def info(self, message: str) -> None:
        self.line(f"{timestamp()} {message}")

    def flush(self) -> None:
        if self._buffer:
            self._sink.lines(self._buffer)
            self._buffer.clear()


class CollectorPipeline:
    """Runs the selected metric sources and turns readings into findings.

    A run moves INIT → SELECT_SOURCES → RUNNING → DRAINING → FINALIZED.
    Categories run in display order unless ``concurrent`` is set, in which
    case each category is an independent task. Within a category sources
    always run one after another. A failing source never aborts the run:
    it contributes unavailable readings, which the evaluator records as
    coverage gaps.

    Usage::

        pipeline = CollectorPipeline(build_sources(cfg), sink, CommandRunner())
        run = await pipeline.run(DiagnosticRun(mode=mode, output_path=path))
    """

    def __init__(
        self,
        sources: Sequence[MetricSource],
        sink: ReportSink,
        runner: CommandRunner,
        evaluator: BottleneckEvaluator | None = None,
        capabilities: Capabilities | None = None,
        deadline_secs: float | None = None,
        concurrent: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sources = list(sources)
        self._sink = sink
        self._runner = runner
        if evaluator is None:
            evaluator = BottleneckEvaluator()
        if capabilities is None:
            capabilities = Capabilities.assume_all()
        self._evaluator = evaluator
        self._capabilities = capabilities
        self._deadline_secs = deadline_secs
        self._concurrent = concurrent
        self._clock = clock
        self._deadline_at: float | None = None
        self._state = PipelineState.INIT

    # ── Properties ────────────────────────────────────────────────

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def evaluator(self) -> BottleneckEvaluator:
        return self._evaluator

    # ── Source selection ─────────────────────────────────────────

    def select_sources(self, run: DiagnosticRun) -> dict[Category, list[MetricSource]]:
        """Group the sources the run's mode enables by category."""
        deep = is_deep(run.mode)
        plan: dict[Category, list[MetricSource]] = {}
        for category in categories_for(run.mode):
            plan[category] = [
                s for s in self._sources
                if s.category == category and (deep or not s.deep_only)
            ]
        return plan

    # ── Run ───────────────────────────────────────────────────────

    async def run(self, run: DiagnosticRun) -> DiagnosticRun:
        """Collect, evaluate and report every category the mode selects."""
        self._set_state(PipelineState.INIT)
        run.concurrent = self._concurrent
        if self._deadline_secs is not None:
            self._deadline_at = self._clock() + self._deadline_secs

        self._set_state(PipelineState.SELECT_SOURCES)
        plan = self.select_sources(run)
        for category in Category:
            if category not in plan:
                self._sink.info(
                    f"Skipping {category.value} forensics in {run.mode.value} mode"
                )

        self._set_state(PipelineState.RUNNING)
        deep = is_deep(run.mode)
        if self._concurrent:
            await asyncio.gather(*(
                self._run_category(run, category, sources, deep)
                for category, sources in plan.items()
            ))
        else:
            for category, sources in plan.items():
                await self._run_category(run, category, sources, deep)

        self._set_state(PipelineState.DRAINING)
        run.finish()
        self._set_state(PipelineState.FINALIZED)
        logger.info(
            "collection_complete",
            mode=run.mode.value,
            findings=len(run.findings),
            coverage_gaps=len(run.coverage_gaps),
            duration_secs=round(run.duration_secs, 2),
        )
        return run

    async def _run_category(
        self,
        run: DiagnosticRun,
        category: Category,
        sources: list[MetricSource],
        deep: bool,
    ) -> None:
        out = _SectionOutput(self._sink, buffered=self._concurrent)
        out.lines(render_header(SECTION_TITLES[category]))
        out.info(f"Analyzing {category.value} performance...")

        for source in sources:
            result = await self._run_source(source, deep)
            await self._record(run, result, out)

        out.info(f"{category.value} forensics completed")
        out.flush()

    async def _run_source(self, source: MetricSource, deep: bool) -> SourceResult:
        remaining = self._remaining()
        if remaining is not None and remaining <= 0:
            logger.warning("source_skipped", source=source.name, reason=DEADLINE_REASON)
            return source.skipped(DEADLINE_REASON)
        ctx = CollectionContext(self._runner, self._capabilities, deep=deep)
        return await source.collect(ctx, budget=remaining)

    async def _record(
        self, run: DiagnosticRun, result: SourceResult, out: _SectionOutput,
    ) -> None:
        gaps_before = self._evaluator.coverage_gap_count
        findings = [
            finding for finding in map(self._evaluator.evaluate, result.readings)
            if finding is not None
        ]
        gaps = self._evaluator.coverage_gaps[gaps_before:]
        await run.record(result, findings, gaps)

        out.lines(result.lines)
        if not result.succeeded:
            out.info(f"{result.source} unavailable: {result.reason}")
        for finding in findings:
            out.info(render_finding(finding))

    def _remaining(self) -> float | None:
        if self._deadline_at is None:
            return None
        return self._deadline_at - self._clock()

    def _set_state(self, state: PipelineState) -> None:
        self._state = state
        logger.debug("pipeline_state", state=state.value)
