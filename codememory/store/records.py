"""
Records persisted alongside memory states.

Both backends store exactly these shapes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from codememory.scheduling.models import MemoryState, Rating


@dataclass(frozen=True)
class ReviewEvent:
    """A single committed review."""

    item_id: str
    concept_id: str
    rating: Rating
    reviewed_at: datetime
    result: MemoryState

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "concept_id": self.concept_id,
            "rating": int(self.rating),
            "reviewed_at": self.reviewed_at.isoformat(),
            "state": self.result.to_dict(),
        }


@dataclass(frozen=True)
class ConceptMasteryRecord:
    """Mastery summary for one learner x concept (0-100 scales)."""

    learner_id: str
    concept_id: str
    mastery_level: float
    retention_rate: float
    total_reviews: int
    last_reviewed_at: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "learner_id": self.learner_id,
            "concept_id": self.concept_id,
            "mastery_level": self.mastery_level,
            "retention_rate": self.retention_rate,
            "total_reviews": self.total_reviews,
            "last_reviewed_at": self.last_reviewed_at.isoformat()
            if self.last_reviewed_at
            else None,
        }


@dataclass(frozen=True)
class StreakRecord:
    """Daily activity streak for one learner."""

    learner_id: str
    current_streak: int = 0
    longest_streak: int = 0
    last_active_date: date | None = None
    total_active_days: int = 0

    @classmethod
    def empty(cls, learner_id: str) -> StreakRecord:
        """Zero-value record returned before any activity."""
        return cls(learner_id=learner_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "learner_id": self.learner_id,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_active_date": self.last_active_date.isoformat()
            if self.last_active_date
            else None,
            "total_active_days": self.total_active_days,
        }
