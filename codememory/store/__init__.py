"""Progress persistence: one contract, a device-local and an account backend."""

from codememory.store.account import AccountProgressStore
from codememory.store.base import ANONYMOUS_LEARNER, ProgressStore
from codememory.store.local import LocalProgressStore
from codememory.store.records import ConceptMasteryRecord, ReviewEvent, StreakRecord
from codememory.store.router import StoreRouter, is_anonymous

__all__ = [
    "ANONYMOUS_LEARNER",
    "AccountProgressStore",
    "ConceptMasteryRecord",
    "LocalProgressStore",
    "ProgressStore",
    "ReviewEvent",
    "StoreRouter",
    "StreakRecord",
    "is_anonymous",
]
