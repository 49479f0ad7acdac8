"""
Error taxonomy for the progress engine.

ValidationError and NotFoundError are caller mistakes and are surfaced as-is.
PersistenceError aborts the whole review unit. ComputationError signals an
internal invariant violation and is never clamped away.
"""

from __future__ import annotations


class CodeMemoryError(Exception):
    """Base class for all progress engine errors."""

    pass


class ValidationError(CodeMemoryError):
    """Raised for invalid caller input (bad rating, unknown item)."""

    pass


class NotFoundError(CodeMemoryError):
    """Raised when an expected memory state does not exist."""

    pass


class PersistenceError(CodeMemoryError):
    """Raised when a progress store read or write fails."""

    pass


class ConcurrentReviewError(PersistenceError):
    """Raised when another writer updated the same learner/item row first."""

    pass


class ComputationError(CodeMemoryError):
    """Raised when the scheduler produces or receives an impossible state."""

    pass
