"""
Exception hierarchy for SOP revision control.

Validation and not-found conditions are raised as exceptions. Conflicts and
approval requirements are returned as data and never raised.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class RevisionError(Exception):
    """Base exception for all revision-control errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ValidationError(RevisionError):
    """Raised when input is malformed and rejected before any mutation."""


class FeedbackValidationError(ValidationError):
    """Raised when a feedback record cannot be turned into change requests."""


class ChangeValidationError(ValidationError):
    """Raised when a change request batch cannot be applied to a document."""


class NotFoundError(RevisionError):
    """Raised when a requested version or restore point does not exist."""


class VersionNotFoundError(NotFoundError):
    pass


class RestorePointNotFoundError(NotFoundError):
    pass


class RollbackError(RevisionError):
    """Raised when a rollback cannot be completed."""

    def __init__(
        self,
        message: str,
        operation: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.operation = operation


class RollbackValidationError(RollbackError):
    """Raised when a rollback pre-check or post-check fails."""


class ConfigurationError(RevisionError):
    """Raised when configuration values are invalid."""


class StorageError(RevisionError):
    """Raised when persisted version data cannot be read."""
