"""
Learner statistics for dashboards.

Read-only summaries built from what the store already holds: memory states,
mastery records, the streak and the review history.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

from codememory.core.timeutils import activity_date, calendar_days_between
from codememory.scheduling import fsrs
from codememory.scheduling.models import CardState, MemoryState, Rating
from codememory.store.records import ConceptMasteryRecord, ReviewEvent, StreakRecord


@dataclass(frozen=True)
class LearnerStats:
    """Headline numbers for one learner."""

    learner_id: str
    total_items: int
    due_now: int
    reviewed_today: int
    current_streak: int
    longest_streak: int
    total_active_days: int
    average_retention: float | None  # predicted recall now, 0-100
    concepts_tracked: int
    concepts_mastered: int
    total_reviews: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "learner_id": self.learner_id,
            "total_items": self.total_items,
            "due_now": self.due_now,
            "reviewed_today": self.reviewed_today,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "total_active_days": self.total_active_days,
            "average_retention": self.average_retention,
            "concepts_tracked": self.concepts_tracked,
            "concepts_mastered": self.concepts_mastered,
            "total_reviews": self.total_reviews,
        }


@dataclass(frozen=True)
class DailyCount:
    day: date
    count: int


@dataclass(frozen=True)
class RatingShare:
    rating: Rating
    count: int
    percentage: int


@dataclass(frozen=True)
class ActivitySummary:
    """Review activity over a trailing window."""

    daily: list[DailyCount] = field(default_factory=list)
    ratings: list[RatingShare] = field(default_factory=list)
    states: dict[CardState, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "daily": [{"date": d.day.isoformat(), "count": d.count} for d in self.daily],
            "ratings": [
                {"rating": r.rating.label, "count": r.count, "percentage": r.percentage}
                for r in self.ratings
            ],
            "states": {state.label: count for state, count in self.states.items()},
        }


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def average_retention(states: Sequence[MemoryState], now: datetime) -> float | None:
    """
    Mean predicted recall probability (0-100) over reviewed items.

    Returns:
        None when nothing has been reviewed yet
    """
    reviewed = [s for s in states if not s.is_new and s.last_reviewed_at is not None]
    if not reviewed:
        return None
    total = sum(
        fsrs.retrievability(calendar_days_between(s.last_reviewed_at, now), s.stability)
        for s in reviewed
    )
    return round(total / len(reviewed) * 100, 1)


def build_learner_stats(
    learner_id: str,
    states: Sequence[MemoryState],
    mastery: Sequence[ConceptMasteryRecord],
    streak: StreakRecord,
    now: datetime,
    timezone: str = "UTC",
    mastery_threshold: float = 80.0,
) -> LearnerStats:
    """
    Summarize a learner's progress at `now`.

    Args:
        learner_id: Learner being summarized
        states: Every memory state the learner holds
        mastery: Every concept mastery record
        streak: Current streak record (zero record before any activity)
        now: Reference instant for "due" and "today"
        timezone: Activity time zone defining "today"
        mastery_threshold: Level at which a concept counts as mastered
    """
    today = activity_date(now, timezone)
    return LearnerStats(
        learner_id=learner_id,
        total_items=len(states),
        due_now=sum(1 for s in states if s.is_due(now)),
        reviewed_today=sum(
            1
            for s in states
            if s.last_reviewed_at is not None
            and activity_date(s.last_reviewed_at, timezone) == today
        ),
        current_streak=streak.current_streak,
        longest_streak=streak.longest_streak,
        total_active_days=streak.total_active_days,
        average_retention=average_retention(states, now),
        concepts_tracked=len(mastery),
        concepts_mastered=sum(1 for m in mastery if m.mastery_level >= mastery_threshold),
        total_reviews=sum(s.reps for s in states),
    )


def build_activity_summary(
    history: Sequence[ReviewEvent],
    states: Sequence[MemoryState],
    now: datetime,
    days: int = 30,
    timezone: str = "UTC",
) -> ActivitySummary:
    """
    Daily review counts, rating mix and state mix.

    Args:
        history: Review events (any order)
        states: Current memory states
        now: End of the window (today is included)
        days: Window length in calendar days
        timezone: Activity time zone used to bucket reviews into days
    """
    if days < 1:
        raise ValueError("days must be >= 1")

    today = activity_date(now, timezone)
    per_day = Counter(activity_date(e.reviewed_at, timezone) for e in history)
    daily = [
        DailyCount(day=day, count=per_day.get(day, 0))
        for day in (today - timedelta(days=offset) for offset in range(days - 1, -1, -1))
    ]

    per_rating = Counter(e.rating for e in history)
    total = len(history) or 1
    ratings = [
        RatingShare(
            rating=rating,
            count=per_rating.get(rating, 0),
            percentage=_round_half_up(per_rating.get(rating, 0) / total * 100),
        )
        for rating in Rating
    ]

    per_state = Counter(s.state for s in states)
    return ActivitySummary(
        daily=daily,
        ratings=ratings,
        states={state: per_state.get(state, 0) for state in CardState},
    )
