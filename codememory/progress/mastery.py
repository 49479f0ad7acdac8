"""
Concept Mastery Aggregation.

Summarizes a learner's memory states for every item in one concept:
- mastery_level: stability and practice combined, 0-100
- retention_rate: average stability in days, capped at 100
- total_reviews: reviews performed across the concept's items

The aggregate is a pure function of the states passed in, so recomputing it
after any review (or after a reset) always agrees with the stored rows.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from enum import Enum

from codememory.scheduling.models import MemoryState
from codememory.store.records import ConceptMasteryRecord

MAX_SCORE = 100.0


class MasteryLevel(str, Enum):
    """Mastery level categorization for display."""

    NOT_STARTED = "not_started"  # 0
    NOVICE = "novice"  # 1-39
    DEVELOPING = "developing"  # 40-69
    PROFICIENT = "proficient"  # 70-89
    MASTERED = "mastered"  # 90-100

    @classmethod
    def from_score(cls, score: float) -> MasteryLevel:
        """
        Convert a 0-100 mastery level to a category.

        Args:
            score: Mastery level between 0 and 100

        Returns:
            Corresponding MasteryLevel
        """
        if score <= 0:
            return cls.NOT_STARTED
        elif score < 40:
            return cls.NOVICE
        elif score < 70:
            return cls.DEVELOPING
        elif score < 90:
            return cls.PROFICIENT
        else:
            return cls.MASTERED

    @property
    def display_name(self) -> str:
        """Human-readable name."""
        return self.value.replace("_", " ").title()

    @property
    def color(self) -> str:
        """Rich color for CLI display."""
        return {
            MasteryLevel.NOT_STARTED: "dim",
            MasteryLevel.NOVICE: "red",
            MasteryLevel.DEVELOPING: "yellow",
            MasteryLevel.PROFICIENT: "cyan",
            MasteryLevel.MASTERED: "green",
        }[self]


def _clamp_score(value: float) -> float:
    return min(MAX_SCORE, max(0.0, value))


class MasteryAggregator:
    """Derives ConceptMasteryRecord values from memory states."""

    def recompute(
        self,
        learner_id: str,
        concept_id: str,
        states: Sequence[MemoryState],
        reviewed_at: datetime,
    ) -> ConceptMasteryRecord | None:
        """
        Aggregate all of a learner's states in a concept.

        Formula:
            mastery_level  = clamp(avg_stability / 2 + avg_reps * 5)
            retention_rate = clamp(avg_stability)
            total_reviews  = sum(reps)

        Args:
            learner_id: Learner the states belong to
            concept_id: Concept being summarized
            states: Every state the learner holds for items in the concept
            reviewed_at: Instant of the review that triggered the recompute

        Returns:
            The new record, or None when the learner holds no states in the concept
        """
        if not states:
            return None

        count = len(states)
        avg_stability = sum(s.stability for s in states) / count
        avg_reps = sum(s.reps for s in states) / count

        return ConceptMasteryRecord(
            learner_id=learner_id,
            concept_id=concept_id,
            mastery_level=_clamp_score(avg_stability / 2 + avg_reps * 5),
            retention_rate=_clamp_score(avg_stability),
            total_reviews=sum(s.reps for s in states),
            last_reviewed_at=reviewed_at,
        )
