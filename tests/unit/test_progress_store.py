"""
Contract tests run against both progress store backends.
"""

from dataclasses import replace
from datetime import date, timedelta

import pytest

from codememory.core.exceptions import PersistenceError
from codememory.scheduling.models import CardState, MemoryState, Rating
from codememory.store.records import ConceptMasteryRecord, ReviewEvent, StreakRecord


def reviewed(scheduler, item_id, now, rating=Rating.GOOD):
    return scheduler.schedule(MemoryState.new(item_id, now), rating, now)


class TestMemoryStates:
    def test_get_missing(self, store):
        assert store.get("nope") is None

    def test_upsert_roundtrip_exact(self, store, scheduler, now):
        """Floats and instants come back bit-identical."""
        state = reviewed(scheduler, "item-1", now)
        store.upsert("item-1", state)
        assert store.get("item-1") == state

    def test_upsert_replaces(self, store, scheduler, now):
        first = reviewed(scheduler, "item-1", now)
        store.upsert("item-1", first)
        second = scheduler.schedule(first, Rating.EASY, first.due_at)
        store.upsert("item-1", second)
        assert store.get("item-1") == second
        assert len(store.list_states()) == 1

    def test_get_with_lock(self, store, scheduler, now):
        state = reviewed(scheduler, "item-1", now)
        store.upsert("item-1", state)
        with store.transaction():
            assert store.get("item-1", lock=True) == state


class TestInitializeUnknown:
    def test_creates_new_rows(self, store, now):
        created = store.initialize_unknown(["a", "b", "c"], now)
        assert created == 3
        states = store.list_states()
        assert [s.item_id for s in states] == ["a", "b", "c"]
        assert all(s.state == CardState.NEW and s.due_at == now for s in states)

    def test_idempotent(self, store, scheduler, now):
        """Known items are never duplicated or reset."""
        store.initialize_unknown(["a", "b"], now)
        progressed = reviewed(scheduler, "a", now)
        store.upsert("a", progressed)

        created = store.initialize_unknown(["a", "b", "c", "c"], now + timedelta(days=1))
        assert created == 1
        assert store.get("a") == progressed
        assert len(store.list_states()) == 3

    def test_list_states_subset(self, store, now):
        store.initialize_unknown(["a", "b", "c"], now)
        assert [s.item_id for s in store.list_states(["c", "a", "zzz"])] == ["a", "c"]


class TestListDue:
    def test_filter_and_order(self, store, scheduler, now):
        """Exactly the items with due_at <= now, earliest first."""
        store.initialize_unknown(["new-1"], now - timedelta(hours=1))
        store.upsert("later", replace(reviewed(scheduler, "later", now), due_at=now + timedelta(days=2)))
        store.upsert("early", replace(reviewed(scheduler, "early", now), due_at=now - timedelta(days=2)))
        store.upsert("on-time", replace(reviewed(scheduler, "on-time", now), due_at=now))

        due = store.list_due(now)
        assert [s.item_id for s in due] == ["early", "new-1", "on-time"]

    def test_ties_broken_by_item_id(self, store, now):
        store.initialize_unknown(["b", "a", "c"], now)
        assert [s.item_id for s in store.list_due(now)] == ["a", "b", "c"]

    def test_nothing_due(self, store, now):
        store.initialize_unknown(["a"], now + timedelta(minutes=1))
        assert store.list_due(now) == []


class TestAggregates:
    def test_mastery_roundtrip(self, store, now):
        record = ConceptMasteryRecord(
            learner_id=store.learner_id,
            concept_id="python-closures",
            mastery_level=42.5,
            retention_rate=12.25,
            total_reviews=7,
            last_reviewed_at=now,
        )
        store.save_mastery(record)
        assert store.get_mastery("python-closures") == record
        store.save_mastery(replace(record, mastery_level=50.0))
        assert store.list_mastery() == [replace(record, mastery_level=50.0)]

    def test_streak_roundtrip(self, store):
        assert store.get_streak() is None
        record = StreakRecord(
            learner_id=store.learner_id,
            current_streak=3,
            longest_streak=5,
            last_active_date=date(2025, 3, 3),
            total_active_days=9,
        )
        store.save_streak(record)
        assert store.get_streak() == record

    def test_review_history_newest_first(self, store, scheduler, now):
        first = reviewed(scheduler, "a", now)
        second = reviewed(scheduler, "b", now + timedelta(hours=1), Rating.EASY)
        store.log_review(ReviewEvent("a", "c1", Rating.GOOD, now, first))
        store.log_review(ReviewEvent("b", "c1", Rating.EASY, now + timedelta(hours=1), second))

        history = store.review_history()
        assert [e.item_id for e in history] == ["b", "a"]
        assert history[0].result == second
        assert history[1].rating == Rating.GOOD
        assert len(store.review_history(limit=1)) == 1


class TestTransactions:
    def test_rollback_on_error(self, store, scheduler, now):
        store.initialize_unknown(["a"], now)
        original = store.get("a")

        with pytest.raises(PersistenceError):
            with store.transaction():
                store.upsert("a", reviewed(scheduler, "a", now))
                raise PersistenceError("disk full")

        assert store.get("a") == original

    def test_nested_joins_outer(self, store, scheduler, now):
        store.initialize_unknown(["a"], now)
        original = store.get("a")

        with pytest.raises(RuntimeError):
            with store.transaction():
                with store.transaction():
                    store.upsert("a", reviewed(scheduler, "a", now))
                raise RuntimeError("abort after inner block")

        assert store.get("a") == original

    def test_commit(self, store, scheduler, now):
        state = reviewed(scheduler, "a", now)
        with store.transaction():
            store.upsert("a", state)
            store.save_streak(StreakRecord(store.learner_id, 1, 1, date(2025, 3, 3), 1))
        assert store.get("a") == state
        assert store.get_streak().current_streak == 1


class TestClear:
    def test_clear_everything(self, store, scheduler, now):
        state = reviewed(scheduler, "a", now)
        store.upsert("a", state)
        store.log_review(ReviewEvent("a", "c1", Rating.GOOD, now, state))
        store.save_streak(StreakRecord(store.learner_id, 1, 1, date(2025, 3, 3), 1))
        store.save_mastery(ConceptMasteryRecord(store.learner_id, "c1", 10.0, 3.0, 1, now))

        store.clear()

        assert store.list_states() == []
        assert store.list_due(now + timedelta(days=365)) == []
        assert store.get_streak() is None
        assert store.list_mastery() == []
        assert store.review_history() == []
