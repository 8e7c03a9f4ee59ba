"""Judges metric readings against the threshold rule table."""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from forensics.core.types import (
    Comparator,
    CoverageGap,
    Finding,
    MetricReading,
    ThresholdRule,
)
from forensics.rules.table import ThresholdRuleTable, default_rule_table

logger = structlog.stdlib.get_logger()


def compare(comparator: Comparator, value: bool | float, threshold: bool | float) -> bool:
    """Apply *comparator* to a reading value and a rule threshold.

    Boundary values do not trigger strict comparators. Booleans only ever
    match BOOL_TRUE (exactly True) or EQ against a boolean threshold.
    """
    if comparator == Comparator.BOOL_TRUE:
        return value is True

    if isinstance(value, bool) or isinstance(threshold, bool):
        if comparator == Comparator.EQ and isinstance(value, bool) and isinstance(threshold, bool):
            return value == threshold
        return False

    current = float(value)
    limit = float(threshold)
    if comparator == Comparator.GT:
        return current > limit
    if comparator == Comparator.LT:
        return current < limit
    if comparator == Comparator.GTE:
        return current >= limit
    if comparator == Comparator.LTE:
        return current <= limit
    if comparator == Comparator.EQ:
        return current == limit
    return False


def render_finding(rule: ThresholdRule, reading: MetricReading) -> Finding:
    """Build the Finding for a reading that breached *rule*."""
    current = reading.display_value()
    threshold = rule.render_threshold()
    issue = rule.message_template.format(
        entity=reading.entity,
        current=current,
        threshold=threshold,
    )
    return Finding(
        severity=rule.severity,
        category=rule.category,
        metric=rule.name,
        entity=reading.entity,
        issue=issue,
        current=current,
        threshold=threshold,
        detected_at=reading.collected_at,
    )


class BottleneckEvaluator:
    """Turns readings into findings, one reading at a time.

    - Readings without a rule are informational: no finding.
    - Unavailable readings with a rule are recorded as coverage gaps.
    - Severity always comes from the rule, never from the reading.

    The evaluator performs no cross-metric correlation; every finding
    stands on its own.
    """

    def __init__(self, table: ThresholdRuleTable | None = None) -> None:
        self._table = table if table is not None else default_rule_table()
        self._gaps: list[CoverageGap] = []

    @property
    def table(self) -> ThresholdRuleTable:
        return self._table

    @property
    def coverage_gaps(self) -> list[CoverageGap]:
        return list(self._gaps)

    @property
    def coverage_gap_count(self) -> int:
        return len(self._gaps)

    def evaluate(self, reading: MetricReading) -> Finding | None:
        rule = self._table.lookup(reading.category, reading.name)
        if rule is None:
            return None

        if not reading.available:
            self._gaps.append(CoverageGap(
                category=reading.category,
                metric=reading.name,
                entity=reading.entity,
                reason=reading.unavailable_reason or "no value",
                timed_out=reading.timed_out,
            ))
            logger.debug(
                "coverage_gap",
                category=reading.category.value,
                metric=reading.name,
                reason=reading.unavailable_reason,
            )
            return None

        assert reading.value is not None
        if not compare(rule.comparator, reading.value, rule.threshold):
            return None

        finding = render_finding(rule, reading)
        logger.info(
            "finding_detected",
            severity=finding.severity.label,
            category=finding.category.value,
            metric=finding.metric,
            entity=finding.entity,
            current=finding.current,
        )
        return finding

    def evaluate_all(self, readings: Iterable[MetricReading]) -> list[Finding]:
        """Evaluate readings in order, returning findings in detection order."""
        findings: list[Finding] = []
        for reading in readings:
            finding = self.evaluate(reading)
            if finding is not None:
                findings.append(finding)
        return findings
