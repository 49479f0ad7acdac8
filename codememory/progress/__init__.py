"""Aggregates derived from memory states: mastery, streaks, statistics."""

from codememory.progress.mastery import MasteryAggregator, MasteryLevel
from codememory.progress.stats import (
    ActivitySummary,
    LearnerStats,
    build_activity_summary,
    build_learner_stats,
)
from codememory.progress.streak import StreakTracker

__all__ = [
    "ActivitySummary",
    "LearnerStats",
    "MasteryAggregator",
    "MasteryLevel",
    "StreakTracker",
    "build_activity_summary",
    "build_learner_stats",
]
