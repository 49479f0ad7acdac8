"""
Unit tests for the device-local SQLite store.
"""

import threading

import pytest

from codememory.core.exceptions import PersistenceError
from codememory.scheduling.models import MemoryState, Rating
from codememory.store.base import ANONYMOUS_LEARNER
from codememory.store.local import LocalProgressStore


class TestLocalProgressStore:
    def test_anonymous_learner(self, local_store):
        assert local_store.learner_id == ANONYMOUS_LEARNER
        assert local_store.backend_name == "local"

    def test_creates_parent_directory(self, tmp_path):
        store = LocalProgressStore(tmp_path / "nested" / "dir" / "state.db")
        try:
            assert (tmp_path / "nested" / "dir" / "state.db").exists()
        finally:
            store.close()

    def test_survives_reopen(self, tmp_path, scheduler, now):
        """Progress persists on the device between sessions."""
        path = tmp_path / "state.db"
        state = scheduler.schedule(MemoryState.new("item-1", now), Rating.GOOD, now)

        store = LocalProgressStore(path)
        store.upsert("item-1", state)
        store.close()

        reopened = LocalProgressStore(path)
        try:
            assert reopened.get("item-1") == state
        finally:
            reopened.close()

    def test_in_memory(self, now):
        store = LocalProgressStore(":memory:")
        try:
            assert store.initialize_unknown(["a"], now) == 1
            assert store.get("a").is_new
        finally:
            store.close()

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "state.db"
        path.write_bytes(b"this is not a sqlite database" * 100)
        with pytest.raises(PersistenceError):
            LocalProgressStore(path)


class TestThreadedAccess:
    """The API shares one store across worker threads."""

    def test_reader_waits_for_open_transaction(self, local_store, scheduler, now):
        local_store.initialize_unknown(["item-1"], now)
        original = local_store.get("item-1")
        seen = []
        reader = threading.Thread(target=lambda: seen.append(local_store.get("item-1")))

        with pytest.raises(RuntimeError):
            with local_store.transaction():
                local_store.upsert("item-1", scheduler.schedule(original, Rating.EASY, now))
                reader.start()
                reader.join(timeout=0.2)
                assert reader.is_alive()
                raise RuntimeError("abort review")

        reader.join(timeout=10)
        assert seen == [original]

    def test_reader_sees_committed_write(self, local_store, scheduler, now):
        local_store.initialize_unknown(["item-1"], now)
        state = scheduler.schedule(local_store.get("item-1"), Rating.GOOD, now)
        seen = []
        reader = threading.Thread(target=lambda: seen.append(local_store.get("item-1")))

        with local_store.transaction():
            local_store.upsert("item-1", state)
            reader.start()

        reader.join(timeout=10)
        assert seen == [state]
