"""
Unit tests for scheduling models, parameters and time helpers.
"""

from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from codememory.core.exceptions import ValidationError
from codememory.core.timeutils import (
    activity_date,
    calendar_days_between,
    ensure_utc,
    from_db_timestamp,
    to_db_timestamp,
)
from codememory.scheduling.models import CardState, MemoryState, Rating
from codememory.scheduling.parameters import PARAMETER_VERSION, SchedulerParameters


class TestRating:
    def test_values(self):
        assert [int(r) for r in Rating] == [1, 2, 3, 4]

    def test_labels(self):
        assert Rating.AGAIN.label == "Again"
        assert CardState.RELEARNING.label == "Relearning"

    def test_parse_rejects_bool(self):
        """True == 1 in Python, but it is not a rating."""
        with pytest.raises(ValidationError):
            Rating.parse(True)

    def test_parse_name(self):
        assert Rating.parse("easy") is Rating.EASY


class TestMemoryState:
    def test_new_state(self, now):
        state = MemoryState.new("item-1", now)
        assert state.is_new
        assert state.reps == 0
        assert state.due_at == now
        assert state.is_due(now)
        assert not state.is_due(now - timedelta(seconds=1))

    def test_new_normalizes_naive_instant(self):
        state = MemoryState.new("item-1", datetime(2025, 1, 1, 12, 0))
        assert state.due_at.tzinfo is not None

    def test_to_dict(self, now):
        data = MemoryState.new("item-1", now).to_dict()
        assert data["state"] == "New"
        assert data["last_reviewed_at"] is None
        assert data["due_at"] == now.isoformat()


class TestSchedulerParameters:
    def test_defaults(self):
        params = SchedulerParameters()
        assert params.version == PARAMETER_VERSION
        assert len(params.w) == 19
        assert params.request_retention == 0.9

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"w": (1.0,) * 18},
            {"request_retention": 1.0},
            {"request_retention": 0.0},
            {"minimum_interval": 0},
            {"minimum_interval": 10, "maximum_interval": 5},
            {"learning_again_minutes": 0},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            SchedulerParameters(**kwargs)


class TestTimeUtils:
    def test_ensure_utc_converts_offsets(self):
        plus_two = datetime(2025, 1, 1, 1, 0, tzinfo=timezone(timedelta(hours=2)))
        assert ensure_utc(plus_two) == datetime(2024, 12, 31, 23, 0, tzinfo=UTC)

    def test_calendar_days_between(self):
        late = datetime(2025, 1, 1, 23, 59, tzinfo=UTC)
        early = datetime(2025, 1, 2, 0, 1, tzinfo=UTC)
        assert calendar_days_between(late, early) == 1
        assert calendar_days_between(early, late) == 0

    def test_activity_date_in_zone(self):
        instant = datetime(2025, 1, 2, 3, 0, tzinfo=UTC)
        assert activity_date(instant) == date(2025, 1, 2)
        assert activity_date(instant, "America/New_York") == date(2025, 1, 1)

    def test_db_timestamp_keeps_microseconds(self, now):
        text = to_db_timestamp(now)
        assert from_db_timestamp(text) == now
        assert from_db_timestamp(None) is None

    def test_db_timestamps_sort_chronologically(self, now):
        stamps = [to_db_timestamp(now + timedelta(microseconds=n)) for n in (0, 1, 999_999)]
        assert stamps == sorted(stamps)
