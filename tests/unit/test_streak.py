"""
Unit tests for daily streak tracking.
"""

from datetime import date, timedelta

import pytest

from codememory.progress.streak import StreakTracker
from codememory.store.records import StreakRecord

DAY = date(2025, 3, 3)


@pytest.fixture
def tracker():
    return StreakTracker()


def fold(tracker, dates):
    record = None
    for d in dates:
        record = tracker.record_activity("learner-1", d, record)
    return record


class TestRecordActivity:
    def test_first_activity(self, tracker):
        record = tracker.record_activity("learner-1", DAY, None)
        assert record == StreakRecord("learner-1", 1, 1, DAY, 1)

    def test_same_day_counts_once(self, tracker):
        first = tracker.record_activity("learner-1", DAY, None)
        assert tracker.record_activity("learner-1", DAY, first) is first

    def test_consecutive_days(self, tracker):
        record = fold(tracker, [DAY, DAY + timedelta(days=1), DAY + timedelta(days=2)])
        assert record.current_streak == 3
        assert record.longest_streak == 3
        assert record.total_active_days == 3

    def test_repeat_then_next_day(self, tracker):
        """Three reviews over two days make a streak of two."""
        record = fold(tracker, [DAY, DAY, DAY + timedelta(days=1)])
        assert record.current_streak == 2
        assert record.total_active_days == 2

    def test_gap_resets(self, tracker):
        record = fold(
            tracker,
            [DAY, DAY + timedelta(days=1), DAY + timedelta(days=2), DAY + timedelta(days=5)],
        )
        assert record.current_streak == 1
        assert record.longest_streak == 3
        assert record.total_active_days == 4
        assert record.last_active_date == DAY + timedelta(days=5)

    def test_earlier_date_resets(self, tracker):
        record = fold(tracker, [DAY, DAY + timedelta(days=1), DAY - timedelta(days=4)])
        assert record.current_streak == 1
        assert record.longest_streak == 2
        assert record.last_active_date == DAY - timedelta(days=4)

    def test_longest_never_decreases(self, tracker):
        dates = [DAY + timedelta(days=n) for n in (0, 1, 2, 3, 10, 11, 30)]
        longest = 0
        record = None
        for d in dates:
            record = tracker.record_activity("learner-1", d, record)
            assert record.longest_streak >= longest
            assert record.longest_streak >= record.current_streak
            longest = record.longest_streak
        assert longest == 4
