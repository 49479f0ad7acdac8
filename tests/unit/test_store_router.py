"""
Unit tests for learner -> store routing.
"""

import pytest

from codememory.config import Settings
from codememory.core.exceptions import PersistenceError
from codememory.store.account import AccountProgressStore
from codememory.store.local import LocalProgressStore
from codememory.store.router import StoreRouter, is_anonymous


@pytest.mark.parametrize(
    "learner_id, expected",
    [(None, True), ("", True), ("  ", True), ("anonymous", True), ("alice", False)],
)
def test_is_anonymous(learner_id, expected):
    assert is_anonymous(learner_id) is expected


class TestStoreRouter:
    @pytest.mark.parametrize("learner_id", [None, "", "anonymous"])
    def test_anonymous_gets_local_store(self, router, learner_id):
        store = router.for_learner(learner_id)
        assert isinstance(store, LocalProgressStore)
        assert store.backend_name == "local"

    def test_local_store_reused(self, router):
        assert router.for_learner(None) is router.for_learner("anonymous")

    def test_learner_gets_account_store(self, router):
        store = router.for_learner("alice")
        assert isinstance(store, AccountProgressStore)
        assert store.learner_id == "alice"
        assert store.backend_name == "account"
        assert router.for_learner("alice") is store
        assert router.for_learner("bob") is not store

    def test_no_account_database(self, tmp_path):
        router = StoreRouter(local_path=tmp_path / "local.db")
        try:
            assert router.for_learner(None).backend_name == "local"
            with pytest.raises(PersistenceError):
                router.for_learner("alice")
        finally:
            router.close()

    def test_routers_do_not_share_stores(self, tmp_path, session_factory):
        first = StoreRouter(session_factory=session_factory, local_path=tmp_path / "a.db")
        second = StoreRouter(session_factory=session_factory, local_path=tmp_path / "b.db")
        try:
            assert first.for_learner("alice") is not second.for_learner("alice")
        finally:
            first.close()
            second.close()

    def test_from_settings(self, tmp_path):
        settings = Settings(
            database_url=f"sqlite:///{tmp_path / 'accounts.db'}",
            local_state_path=tmp_path / "local.db",
        )
        router = StoreRouter.from_settings(settings)
        try:
            assert router.session_factory is not None
            store = router.for_learner("alice")
            # Tables were created
            assert store.list_states() == []
        finally:
            router.close()

    def test_from_settings_local_only(self, tmp_path):
        settings = Settings(
            database_url="postgresql://nobody@unreachable.invalid/none",
            local_state_path=tmp_path / "local.db",
        )
        router = StoreRouter.from_settings(settings, with_accounts=False)
        try:
            assert router.session_factory is None
            assert router.for_learner(None).list_states() == []
        finally:
            router.close()
