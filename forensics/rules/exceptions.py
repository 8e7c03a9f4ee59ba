"""Threshold rule errors."""

from __future__ import annotations


class RuleError(Exception):
    """Base exception for rule table errors."""


class DuplicateRuleError(RuleError):
    """Two rules were registered for the same (category, metric) pair."""
