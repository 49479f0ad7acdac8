"""
Select the progress store for a learner.

Anonymous learners get the device-local store; everyone else gets an
account store scoped to their id. Callers receive a ProgressStore and never
branch on which one it is.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from codememory.config import Settings
from codememory.core.exceptions import PersistenceError
from codememory.store.account import AccountProgressStore
from codememory.store.base import ANONYMOUS_LEARNER, ProgressStore
from codememory.store.database import create_db_engine, create_session_factory, init_db
from codememory.store.local import LocalProgressStore


def is_anonymous(learner_id: str | None) -> bool:
    return learner_id is None or learner_id.strip() in ("", ANONYMOUS_LEARNER)


class StoreRouter:
    """
    Route learners to stores.

    Stores are cached per router instance; nothing is shared process-wide.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        local_path: Path | str | None = None,
        engine: Engine | None = None,
    ):
        """
        Args:
            session_factory: Account database sessions (None disables account stores)
            local_path: Device-local SQLite file (defaults to ~/.codememory/state.db)
            engine: Engine owned by this router, disposed on close()
        """
        self._session_factory = session_factory
        self._local_path = local_path
        self._engine = engine
        self._local: LocalProgressStore | None = None
        self._accounts: dict[str, AccountProgressStore] = {}

    @classmethod
    def from_settings(cls, settings: Settings, with_accounts: bool = True) -> StoreRouter:
        """Build a router from configuration, creating account tables if needed."""
        if not with_accounts:
            return cls(local_path=settings.local_state_path)
        engine = create_db_engine(settings.database_url, echo=settings.log_level == "DEBUG")
        init_db(engine)
        return cls(
            session_factory=create_session_factory(engine),
            local_path=settings.local_state_path,
            engine=engine,
        )

    @property
    def session_factory(self) -> sessionmaker[Session] | None:
        return self._session_factory

    def for_learner(self, learner_id: str | None) -> ProgressStore:
        if is_anonymous(learner_id):
            if self._local is None:
                self._local = LocalProgressStore(self._local_path)
            return self._local

        learner_id = learner_id.strip()
        store = self._accounts.get(learner_id)
        if store is None:
            if self._session_factory is None:
                raise PersistenceError(
                    f"No account database configured for learner {learner_id}"
                )
            store = AccountProgressStore(learner_id, self._session_factory)
            self._accounts[learner_id] = store
            logger.debug(f"Account store opened for learner {learner_id}")
        return store

    def close(self) -> None:
        if self._local is not None:
            self._local.close()
            self._local = None
        self._accounts.clear()
        if self._engine is not None:
            self._engine.dispose()
