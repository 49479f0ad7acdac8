"""
SQLite Progress Store for unauthenticated learners.

Provides device-local persistence for:
- FSRS memory state per item
- Review history log for analytics
- Concept mastery and streak summaries

Database location: ~/.codememory/state.db

One device, one connection: every statement and every transaction runs
under a single re-entrant lock, so API worker threads never observe
another thread's uncommitted writes.
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any

from loguru import logger

from codememory.core.exceptions import PersistenceError
from codememory.core.timeutils import ensure_utc, from_db_timestamp, to_db_timestamp
from codememory.scheduling.models import CardState, MemoryState, Rating
from codememory.store.base import ANONYMOUS_LEARNER, ProgressStore
from codememory.store.records import ConceptMasteryRecord, ReviewEvent, StreakRecord

_STATE_COLUMNS = (
    "stability, difficulty, elapsed_days, scheduled_days, reps, lapses, "
    "state, due_at"
)

# SQLite's default host-parameter limit is 999 on older builds
_IN_CHUNK = 500


class LocalProgressStore(ProgressStore):
    """
    SQLite-backed progress for the anonymous, device-scoped learner.

    Handles:
    - Memory state per item (stability, difficulty, due date)
    - Review log with the resulting state snapshot
    - Per-concept mastery and the learner's streak
    """

    backend_name = "local"
    DEFAULT_DB_PATH = Path.home() / ".codememory" / "state.db"

    def __init__(self, db_path: Path | str | None = None):
        """
        Initialize the local store.

        Args:
            db_path: Custom database path (defaults to ~/.codememory/state.db),
                or ":memory:" for a throwaway store
        """
        super().__init__(ANONYMOUS_LEARNER)
        self.db_path = Path(db_path) if db_path not in (None, ":memory:") else db_path
        if self.db_path is None:
            self.db_path = self.DEFAULT_DB_PATH
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._in_transaction = False
        self._init_schema()

        logger.info(f"LocalProgressStore initialized at {self.db_path}")

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create the database connection (explicit transactions)."""
        if self._conn is None:
            try:
                # The API serves requests from a thread pool
                self._conn = sqlite3.connect(
                    str(self.db_path), isolation_level=None, check_same_thread=False
                )
            except sqlite3.Error as e:
                raise PersistenceError(f"Cannot open local store {self.db_path}: {e}") from e
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        with self._lock:
            try:
                return self.conn.execute(sql, params)
            except sqlite3.Error as e:
                logger.error(f"Local store query failed: {e}")
                raise PersistenceError(f"Local store query failed: {e}") from e

    # Readers share the connection, so they wait out any open transaction
    def _fetchone(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Row | None:
        with self._lock:
            return self._execute(sql, params).fetchone()

    def _fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._execute(sql, params).fetchall()

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self.transaction():
            # Memory state per item
            self._execute("""
                CREATE TABLE IF NOT EXISTS memory_state (
                    item_id TEXT PRIMARY KEY,
                    stability REAL NOT NULL DEFAULT 0,
                    difficulty REAL NOT NULL DEFAULT 0,
                    elapsed_days INTEGER NOT NULL DEFAULT 0,
                    scheduled_days INTEGER NOT NULL DEFAULT 0,
                    reps INTEGER NOT NULL DEFAULT 0,
                    lapses INTEGER NOT NULL DEFAULT 0,
                    state INTEGER NOT NULL DEFAULT 0,
                    last_reviewed_at TEXT,
                    due_at TEXT NOT NULL
                )
            """)

            # Review history log
            self._execute("""
                CREATE TABLE IF NOT EXISTS review_log (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    item_id TEXT NOT NULL,
                    concept_id TEXT NOT NULL,
                    rating INTEGER NOT NULL,
                    reviewed_at TEXT NOT NULL,
                    stability REAL NOT NULL,
                    difficulty REAL NOT NULL,
                    elapsed_days INTEGER NOT NULL,
                    scheduled_days INTEGER NOT NULL,
                    reps INTEGER NOT NULL,
                    lapses INTEGER NOT NULL,
                    state INTEGER NOT NULL,
                    due_at TEXT NOT NULL
                )
            """)

            self._execute("""
                CREATE TABLE IF NOT EXISTS concept_mastery (
                    concept_id TEXT PRIMARY KEY,
                    mastery_level REAL NOT NULL,
                    retention_rate REAL NOT NULL,
                    total_reviews INTEGER NOT NULL,
                    last_reviewed_at TEXT
                )
            """)

            self._execute("""
                CREATE TABLE IF NOT EXISTS streak (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    current_streak INTEGER NOT NULL,
                    longest_streak INTEGER NOT NULL,
                    last_active_date TEXT,
                    total_active_days INTEGER NOT NULL
                )
            """)

            # Index for fast due-date queries
            self._execute("""
                CREATE INDEX IF NOT EXISTS idx_memory_state_due
                ON memory_state(due_at)
            """)

            self._execute("""
                CREATE INDEX IF NOT EXISTS idx_review_log_reviewed
                ON review_log(reviewed_at)
            """)

    # =========================================================================
    # Transactions
    # =========================================================================

    @contextmanager
    def transaction(self) -> Iterator[LocalProgressStore]:
        # Nested calls from the same thread join the outer transaction
        with self._lock:
            if self._in_transaction:
                yield self
                return

            self._execute("BEGIN IMMEDIATE")
            self._in_transaction = True
            try:
                yield self
                self._execute("COMMIT")
            except BaseException:
                self._rollback()
                raise
            finally:
                self._in_transaction = False

    def _rollback(self) -> None:
        try:
            self.conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            logger.error(f"Local store rollback failed: {e}")

    # =========================================================================
    # Memory State Operations
    # =========================================================================

    def get(self, item_id: str, lock: bool = False) -> MemoryState | None:
        row = self._fetchone(
            "SELECT * FROM memory_state WHERE item_id = ?", (item_id,)
        )
        return _row_to_state(row) if row is not None else None

    def upsert(self, item_id: str, state: MemoryState) -> None:
        self._execute(
            """
            INSERT INTO memory_state (
                item_id, stability, difficulty, elapsed_days, scheduled_days,
                reps, lapses, state, last_reviewed_at, due_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(item_id) DO UPDATE SET
                stability = excluded.stability,
                difficulty = excluded.difficulty,
                elapsed_days = excluded.elapsed_days,
                scheduled_days = excluded.scheduled_days,
                reps = excluded.reps,
                lapses = excluded.lapses,
                state = excluded.state,
                last_reviewed_at = excluded.last_reviewed_at,
                due_at = excluded.due_at
        """,
            (
                item_id,
                state.stability,
                state.difficulty,
                state.elapsed_days,
                state.scheduled_days,
                state.reps,
                state.lapses,
                int(state.state),
                to_db_timestamp(state.last_reviewed_at) if state.last_reviewed_at else None,
                to_db_timestamp(state.due_at),
            ),
        )

    def list_due(self, now: datetime) -> list[MemoryState]:
        rows = self._fetchall(
            """
            SELECT * FROM memory_state
            WHERE due_at <= ?
            ORDER BY due_at ASC, item_id ASC
        """,
            (to_db_timestamp(now),),
        )
        return [_row_to_state(row) for row in rows]

    def initialize_unknown(self, item_ids: Iterable[str], now: datetime) -> int:
        created = 0
        due_at = to_db_timestamp(now)
        with self.transaction():
            for item_id in dict.fromkeys(item_ids):
                cursor = self._execute(
                    """
                    INSERT OR IGNORE INTO memory_state (item_id, state, due_at)
                    VALUES (?, ?, ?)
                """,
                    (item_id, int(CardState.NEW), due_at),
                )
                created += cursor.rowcount
        if created:
            logger.debug(f"Initialized {created} new items in local store")
        return created

    def list_states(self, item_ids: Iterable[str] | None = None) -> list[MemoryState]:
        if item_ids is None:
            rows = self._fetchall("SELECT * FROM memory_state ORDER BY item_id")
            return [_row_to_state(row) for row in rows]

        ids = list(dict.fromkeys(item_ids))
        states: list[MemoryState] = []
        with self._lock:
            for start in range(0, len(ids), _IN_CHUNK):
                chunk = ids[start : start + _IN_CHUNK]
                placeholders = ", ".join("?" for _ in chunk)
                rows = self._fetchall(
                    f"SELECT * FROM memory_state WHERE item_id IN ({placeholders})", chunk
                )
                states.extend(_row_to_state(row) for row in rows)
        return sorted(states, key=lambda s: s.item_id)

    def clear(self) -> None:
        with self.transaction():
            self._execute("DELETE FROM review_log")
            self._execute("DELETE FROM memory_state")
            self._execute("DELETE FROM concept_mastery")
            self._execute("DELETE FROM streak")
        logger.info("Local progress cleared")

    # =========================================================================
    # Mastery & Streak
    # =========================================================================

    def get_mastery(self, concept_id: str) -> ConceptMasteryRecord | None:
        row = self._fetchone(
            "SELECT * FROM concept_mastery WHERE concept_id = ?", (concept_id,)
        )
        return self._row_to_mastery(row) if row is not None else None

    def save_mastery(self, record: ConceptMasteryRecord) -> None:
        self._execute(
            """
            INSERT INTO concept_mastery (
                concept_id, mastery_level, retention_rate, total_reviews, last_reviewed_at
            ) VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(concept_id) DO UPDATE SET
                mastery_level = excluded.mastery_level,
                retention_rate = excluded.retention_rate,
                total_reviews = excluded.total_reviews,
                last_reviewed_at = excluded.last_reviewed_at
        """,
            (
                record.concept_id,
                record.mastery_level,
                record.retention_rate,
                record.total_reviews,
                to_db_timestamp(record.last_reviewed_at) if record.last_reviewed_at else None,
            ),
        )

    def list_mastery(self) -> list[ConceptMasteryRecord]:
        rows = self._fetchall("SELECT * FROM concept_mastery ORDER BY concept_id")
        return [self._row_to_mastery(row) for row in rows]

    def get_streak(self) -> StreakRecord | None:
        row = self._fetchone("SELECT * FROM streak WHERE id = 1")
        if row is None:
            return None
        return StreakRecord(
            learner_id=self.learner_id,
            current_streak=row["current_streak"],
            longest_streak=row["longest_streak"],
            last_active_date=date.fromisoformat(row["last_active_date"])
            if row["last_active_date"]
            else None,
            total_active_days=row["total_active_days"],
        )

    def save_streak(self, record: StreakRecord) -> None:
        self._execute(
            """
            INSERT INTO streak (
                id, current_streak, longest_streak, last_active_date, total_active_days
            ) VALUES (1, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                current_streak = excluded.current_streak,
                longest_streak = excluded.longest_streak,
                last_active_date = excluded.last_active_date,
                total_active_days = excluded.total_active_days
        """,
            (
                record.current_streak,
                record.longest_streak,
                record.last_active_date.isoformat() if record.last_active_date else None,
                record.total_active_days,
            ),
        )

    # =========================================================================
    # Review Log Operations
    # =========================================================================

    def log_review(self, event: ReviewEvent) -> None:
        result = event.result
        self._execute(
            f"""
            INSERT INTO review_log (
                item_id, concept_id, rating, reviewed_at, {_STATE_COLUMNS}
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
            (
                event.item_id,
                event.concept_id,
                int(event.rating),
                to_db_timestamp(event.reviewed_at),
                result.stability,
                result.difficulty,
                result.elapsed_days,
                result.scheduled_days,
                result.reps,
                result.lapses,
                int(result.state),
                to_db_timestamp(result.due_at),
            ),
        )

    def review_history(self, limit: int | None = None) -> list[ReviewEvent]:
        sql = "SELECT * FROM review_log ORDER BY reviewed_at DESC, id DESC"
        params: tuple[Any, ...] = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (limit,)
        rows = self._fetchall(sql, params)
        return [
            ReviewEvent(
                item_id=row["item_id"],
                concept_id=row["concept_id"],
                rating=Rating(row["rating"]),
                reviewed_at=from_db_timestamp(row["reviewed_at"]),
                result=_row_to_state(row, last_reviewed_column="reviewed_at"),
            )
            for row in rows
        ]

    def _row_to_mastery(self, row: sqlite3.Row) -> ConceptMasteryRecord:
        return ConceptMasteryRecord(
            learner_id=self.learner_id,
            concept_id=row["concept_id"],
            mastery_level=row["mastery_level"],
            retention_rate=row["retention_rate"],
            total_reviews=row["total_reviews"],
            last_reviewed_at=from_db_timestamp(row["last_reviewed_at"]),
        )

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None


def _row_to_state(row: sqlite3.Row, last_reviewed_column: str = "last_reviewed_at") -> MemoryState:
    return MemoryState(
        item_id=row["item_id"],
        stability=row["stability"],
        difficulty=row["difficulty"],
        elapsed_days=row["elapsed_days"],
        scheduled_days=row["scheduled_days"],
        reps=row["reps"],
        lapses=row["lapses"],
        state=CardState(row["state"]),
        last_reviewed_at=from_db_timestamp(row[last_reviewed_column]),
        due_at=ensure_utc(from_db_timestamp(row["due_at"])),
    )
