"""Errors that abort a diagnostic run before collection starts."""

from __future__ import annotations


class ForensicsError(Exception):
    """Base exception for fatal forensics errors."""


class ConfigError(ForensicsError):
    """Invalid command-line argument or configuration value."""


class PrivilegeError(ForensicsError):
    """The process lacks the elevated access collection requires."""
