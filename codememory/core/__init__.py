"""
Core Module - shared errors, logging and time policy.

Components:
- exceptions: Error taxonomy (ValidationError, NotFoundError, ...)
- logging: Loguru sink configuration
- timeutils: UTC instants, calendar-day arithmetic, DB timestamp codec
"""

from codememory.core.exceptions import (
    CodeMemoryError,
    ComputationError,
    ConcurrentReviewError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from codememory.core.timeutils import Clock, activity_date, ensure_utc, utc_now

__all__ = [
    # Errors
    "CodeMemoryError",
    "ValidationError",
    "NotFoundError",
    "PersistenceError",
    "ConcurrentReviewError",
    "ComputationError",
    # Time
    "Clock",
    "activity_date",
    "ensure_utc",
    "utc_now",
]
