"""Exception hierarchy for support case dispatch."""

from __future__ import annotations


class DispatchError(Exception):
    """Base exception for all support case errors."""


class CaseCreationError(DispatchError):
    """The support case could not be created."""


class AttachmentError(DispatchError):
    """The report could not be uploaded or linked to a created case."""


class SupportCliMissingError(DispatchError):
    """The AWS CLI is not installed."""
