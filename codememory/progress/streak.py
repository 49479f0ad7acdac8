"""
Daily activity streaks.

A day counts once no matter how many reviews happen in it. Consecutive
calendar days extend the streak; any gap restarts it at 1.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta

from codememory.store.records import StreakRecord


class StreakTracker:
    """Folds activity dates into a StreakRecord."""

    def record_activity(
        self,
        learner_id: str,
        calendar_date: date,
        current: StreakRecord | None,
    ) -> StreakRecord:
        """
        Record activity on `calendar_date`.

        Args:
            learner_id: Learner the streak belongs to
            calendar_date: Activity date in the configured activity time zone
            current: Stored record, or None before the first activity

        Returns:
            Updated record (the same record when the date was already counted)
        """
        record = current or StreakRecord.empty(learner_id)
        last = record.last_active_date

        if last == calendar_date:
            return record

        if last is not None and calendar_date - last == timedelta(days=1):
            streak = record.current_streak + 1
        else:
            # First activity, a gap, or a date before the last one
            streak = 1

        return replace(
            record,
            current_streak=streak,
            longest_streak=max(record.longest_streak, streak),
            last_active_date=calendar_date,
            total_active_days=record.total_active_days + 1,
        )
