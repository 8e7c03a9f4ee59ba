"""Threshold rules and the bottleneck evaluator."""

from forensics.rules.evaluator import BottleneckEvaluator, compare, render_finding
from forensics.rules.exceptions import DuplicateRuleError, RuleError
from forensics.rules.table import DEFAULT_RULES, ThresholdRuleTable, default_rule_table

__all__ = [
    "DEFAULT_RULES",
    "BottleneckEvaluator",
    "DuplicateRuleError",
    "RuleError",
    "ThresholdRuleTable",
    "compare",
    "default_rule_table",
    "render_finding",
]
