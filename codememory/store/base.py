"""
Progress store contract.

One abstract capability, two implementations:
- LocalProgressStore: device-local SQLite file, anonymous learner
- AccountProgressStore: durable SQL database, keyed by learner

Scheduling never branches on which one is in use.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from contextlib import AbstractContextManager
from datetime import datetime

from codememory.scheduling.models import MemoryState
from codememory.store.records import ConceptMasteryRecord, ReviewEvent, StreakRecord

ANONYMOUS_LEARNER = "anonymous"


class ProgressStore(ABC):
    """
    Persistence for one learner's progress.

    Every method may raise PersistenceError. Calls made inside
    `transaction()` commit or roll back together.
    """

    backend_name: str = "abstract"

    def __init__(self, learner_id: str):
        self.learner_id = learner_id

    # =========================================================================
    # Transactions
    # =========================================================================

    @abstractmethod
    def transaction(self) -> AbstractContextManager[ProgressStore]:
        """Run the enclosed calls as one unit. Nested use joins the outer unit."""
        ...

    # =========================================================================
    # Memory states
    # =========================================================================

    @abstractmethod
    def get(self, item_id: str, lock: bool = False) -> MemoryState | None:
        """
        Get the memory state for an item.

        Args:
            item_id: Item identifier
            lock: Hold the row for the rest of the transaction (backends
                with concurrent writers only)
        """
        ...

    @abstractmethod
    def upsert(self, item_id: str, state: MemoryState) -> None:
        """Insert or replace the state for an item."""
        ...

    @abstractmethod
    def list_due(self, now: datetime) -> list[MemoryState]:
        """States with due_at <= now, earliest first (ties by item id)."""
        ...

    @abstractmethod
    def initialize_unknown(self, item_ids: Iterable[str], now: datetime) -> int:
        """
        Create New states for items without a row.

        Idempotent: existing rows are never touched or duplicated.

        Returns:
            Number of rows created
        """
        ...

    @abstractmethod
    def list_states(self, item_ids: Iterable[str] | None = None) -> list[MemoryState]:
        """All states (or those for `item_ids`), ordered by item id."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Delete every state, mastery record, streak and history row."""
        ...

    # =========================================================================
    # Aggregates and history
    # =========================================================================

    @abstractmethod
    def get_mastery(self, concept_id: str) -> ConceptMasteryRecord | None: ...

    @abstractmethod
    def save_mastery(self, record: ConceptMasteryRecord) -> None: ...

    @abstractmethod
    def list_mastery(self) -> list[ConceptMasteryRecord]: ...

    @abstractmethod
    def get_streak(self) -> StreakRecord | None: ...

    @abstractmethod
    def save_streak(self, record: StreakRecord) -> None: ...

    @abstractmethod
    def log_review(self, event: ReviewEvent) -> None: ...

    @abstractmethod
    def review_history(self, limit: int | None = None) -> list[ReviewEvent]:
        """Committed reviews, most recent first."""
        ...

    def close(self) -> None:
        """Release connections held by the store."""
        return None
