"""
Account-scoped progress store.

Durable SQLAlchemy persistence keyed by (learner_id, item_id). Postgres in
production; any SQLAlchemy URL works (tests use SQLite files).

Concurrent writers for the same learner x item are serialised two ways:
- `get(lock=True)` issues SELECT ... FOR UPDATE where the database supports it
- every memory-state row carries a version counter, so an UPDATE based on a
  stale read is rejected with ConcurrentReviewError instead of being lost

Stores are cached and shared across threads, so the open session is kept per
thread.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from codememory.core.exceptions import (
    ConcurrentReviewError,
    PersistenceError,
    ValidationError,
)
from codememory.core.timeutils import ensure_utc
from codememory.scheduling.models import CardState, MemoryState, Rating
from codememory.store.base import ANONYMOUS_LEARNER, ProgressStore
from codememory.store.models import (
    ConceptMasteryRow,
    MemoryStateRow,
    ReviewLogRow,
    StreakRow,
)
from codememory.store.records import ConceptMasteryRecord, ReviewEvent, StreakRecord

_IN_CHUNK = 500


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything stored is UTC
    return ensure_utc(value) if value is not None else None


class AccountProgressStore(ProgressStore):
    """Progress for one authenticated learner in the shared database."""

    backend_name = "account"

    def __init__(self, learner_id: str, session_factory: sessionmaker[Session]):
        if not learner_id or learner_id == ANONYMOUS_LEARNER:
            raise ValidationError("Account store requires an authenticated learner id")
        super().__init__(learner_id)
        self._session_factory = session_factory
        # One open session per thread; the store is shared by API workers
        self._local = threading.local()

    @property
    def _active(self) -> Session | None:
        return getattr(self._local, "session", None)

    # =========================================================================
    # Transactions
    # =========================================================================

    @contextmanager
    def transaction(self) -> Iterator[AccountProgressStore]:
        if self._active is not None:
            yield self
            return

        session = self._session_factory()
        self._local.session = session
        try:
            yield self
            session.commit()
        except StaleDataError as e:
            session.rollback()
            raise self._concurrent(e) from e
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Account store commit failed for {self.learner_id}: {e}")
            raise PersistenceError(f"Account store commit failed: {e}") from e
        except BaseException:
            session.rollback()
            raise
        finally:
            self._local.session = None
            session.close()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Active session, opening a one-statement transaction when none is open."""
        with self.transaction():
            assert self._active is not None
            try:
                yield self._active
            except StaleDataError as e:
                raise self._concurrent(e) from e
            except SQLAlchemyError as e:
                logger.error(f"Account store query failed for {self.learner_id}: {e}")
                raise PersistenceError(f"Account store query failed: {e}") from e

    def _concurrent(self, error: StaleDataError) -> ConcurrentReviewError:
        logger.warning(f"Concurrent write rejected for learner {self.learner_id}: {error}")
        return ConcurrentReviewError(
            f"Progress for learner {self.learner_id} was modified concurrently; retry the review"
        )

    # =========================================================================
    # Memory State Operations
    # =========================================================================

    def _state_query(self, item_id: str):
        return select(MemoryStateRow).where(
            MemoryStateRow.learner_id == self.learner_id,
            MemoryStateRow.item_id == item_id,
        )

    def get(self, item_id: str, lock: bool = False) -> MemoryState | None:
        with self._session() as session:
            stmt = self._state_query(item_id)
            if lock:
                stmt = stmt.with_for_update()
            row = session.scalars(stmt).one_or_none()
            return _row_to_state(row) if row is not None else None

    def upsert(self, item_id: str, state: MemoryState) -> None:
        with self._session() as session:
            row = session.scalars(self._state_query(item_id)).one_or_none()
            if row is None:
                row = MemoryStateRow(learner_id=self.learner_id, item_id=item_id)
                session.add(row)
            row.stability = state.stability
            row.difficulty = state.difficulty
            row.elapsed_days = state.elapsed_days
            row.scheduled_days = state.scheduled_days
            row.reps = state.reps
            row.lapses = state.lapses
            row.state = int(state.state)
            row.last_reviewed_at = _aware(state.last_reviewed_at)
            row.due_at = ensure_utc(state.due_at)
            session.flush()

    def list_due(self, now: datetime) -> list[MemoryState]:
        with self._session() as session:
            rows = session.scalars(
                select(MemoryStateRow)
                .where(
                    MemoryStateRow.learner_id == self.learner_id,
                    MemoryStateRow.due_at <= ensure_utc(now),
                )
                .order_by(MemoryStateRow.due_at, MemoryStateRow.item_id)
            ).all()
            return [_row_to_state(row) for row in rows]

    def initialize_unknown(self, item_ids: Iterable[str], now: datetime) -> int:
        ids = list(dict.fromkeys(item_ids))
        with self._session() as session:
            existing: set[str] = set()
            for start in range(0, len(ids), _IN_CHUNK):
                chunk = ids[start : start + _IN_CHUNK]
                existing.update(
                    session.scalars(
                        select(MemoryStateRow.item_id).where(
                            MemoryStateRow.learner_id == self.learner_id,
                            MemoryStateRow.item_id.in_(chunk),
                        )
                    ).all()
                )

            due_at = ensure_utc(now)
            created = [item_id for item_id in ids if item_id not in existing]
            session.add_all(
                MemoryStateRow(
                    learner_id=self.learner_id,
                    item_id=item_id,
                    state=int(CardState.NEW),
                    due_at=due_at,
                )
                for item_id in created
            )
            session.flush()

        if created:
            logger.debug(f"Initialized {len(created)} new items for {self.learner_id}")
        return len(created)

    def list_states(self, item_ids: Iterable[str] | None = None) -> list[MemoryState]:
        with self._session() as session:
            base = select(MemoryStateRow).where(MemoryStateRow.learner_id == self.learner_id)
            if item_ids is None:
                rows = list(session.scalars(base).all())
            else:
                ids = list(dict.fromkeys(item_ids))
                rows = []
                for start in range(0, len(ids), _IN_CHUNK):
                    chunk = ids[start : start + _IN_CHUNK]
                    rows.extend(
                        session.scalars(base.where(MemoryStateRow.item_id.in_(chunk))).all()
                    )
            return sorted((_row_to_state(row) for row in rows), key=lambda s: s.item_id)

    def clear(self) -> None:
        with self._session() as session:
            for model in (ReviewLogRow, MemoryStateRow, ConceptMasteryRow, StreakRow):
                session.execute(delete(model).where(model.learner_id == self.learner_id))
        logger.info(f"Progress cleared for learner {self.learner_id}")

    # =========================================================================
    # Mastery & Streak
    # =========================================================================

    def _mastery_row(self, session: Session, concept_id: str) -> ConceptMasteryRow | None:
        return session.scalars(
            select(ConceptMasteryRow).where(
                ConceptMasteryRow.learner_id == self.learner_id,
                ConceptMasteryRow.concept_id == concept_id,
            )
        ).one_or_none()

    def get_mastery(self, concept_id: str) -> ConceptMasteryRecord | None:
        with self._session() as session:
            row = self._mastery_row(session, concept_id)
            return _row_to_mastery(row) if row is not None else None

    def save_mastery(self, record: ConceptMasteryRecord) -> None:
        with self._session() as session:
            row = self._mastery_row(session, record.concept_id)
            if row is None:
                row = ConceptMasteryRow(learner_id=self.learner_id, concept_id=record.concept_id)
                session.add(row)
            row.mastery_level = record.mastery_level
            row.retention_rate = record.retention_rate
            row.total_reviews = record.total_reviews
            row.last_reviewed_at = _aware(record.last_reviewed_at)
            session.flush()

    def list_mastery(self) -> list[ConceptMasteryRecord]:
        with self._session() as session:
            rows = session.scalars(
                select(ConceptMasteryRow)
                .where(ConceptMasteryRow.learner_id == self.learner_id)
                .order_by(ConceptMasteryRow.concept_id)
            ).all()
            return [_row_to_mastery(row) for row in rows]

    def get_streak(self) -> StreakRecord | None:
        with self._session() as session:
            row = session.get(StreakRow, self.learner_id)
            if row is None:
                return None
            return StreakRecord(
                learner_id=row.learner_id,
                current_streak=row.current_streak,
                longest_streak=row.longest_streak,
                last_active_date=row.last_active_date,
                total_active_days=row.total_active_days,
            )

    def save_streak(self, record: StreakRecord) -> None:
        with self._session() as session:
            row = session.get(StreakRow, self.learner_id)
            if row is None:
                row = StreakRow(learner_id=self.learner_id)
                session.add(row)
            row.current_streak = record.current_streak
            row.longest_streak = record.longest_streak
            row.last_active_date = record.last_active_date
            row.total_active_days = record.total_active_days
            session.flush()

    # =========================================================================
    # Review Log Operations
    # =========================================================================

    def log_review(self, event: ReviewEvent) -> None:
        result = event.result
        with self._session() as session:
            session.add(
                ReviewLogRow(
                    learner_id=self.learner_id,
                    item_id=event.item_id,
                    concept_id=event.concept_id,
                    rating=int(event.rating),
                    reviewed_at=ensure_utc(event.reviewed_at),
                    stability=result.stability,
                    difficulty=result.difficulty,
                    elapsed_days=result.elapsed_days,
                    scheduled_days=result.scheduled_days,
                    reps=result.reps,
                    lapses=result.lapses,
                    state=int(result.state),
                    due_at=ensure_utc(result.due_at),
                )
            )
            session.flush()

    def review_history(self, limit: int | None = None) -> list[ReviewEvent]:
        with self._session() as session:
            stmt = (
                select(ReviewLogRow)
                .where(ReviewLogRow.learner_id == self.learner_id)
                .order_by(ReviewLogRow.reviewed_at.desc(), ReviewLogRow.id.desc())
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            rows = session.scalars(stmt).all()
            return [
                ReviewEvent(
                    item_id=row.item_id,
                    concept_id=row.concept_id,
                    rating=Rating(row.rating),
                    reviewed_at=ensure_utc(row.reviewed_at),
                    result=MemoryState(
                        item_id=row.item_id,
                        stability=row.stability,
                        difficulty=row.difficulty,
                        elapsed_days=row.elapsed_days,
                        scheduled_days=row.scheduled_days,
                        reps=row.reps,
                        lapses=row.lapses,
                        state=CardState(row.state),
                        last_reviewed_at=ensure_utc(row.reviewed_at),
                        due_at=ensure_utc(row.due_at),
                    ),
                )
                for row in rows
            ]


def _row_to_state(row: MemoryStateRow) -> MemoryState:
    return MemoryState(
        item_id=row.item_id,
        stability=row.stability,
        difficulty=row.difficulty,
        elapsed_days=row.elapsed_days,
        scheduled_days=row.scheduled_days,
        reps=row.reps,
        lapses=row.lapses,
        state=CardState(row.state),
        last_reviewed_at=_aware(row.last_reviewed_at),
        due_at=ensure_utc(row.due_at),
    )


def _row_to_mastery(row: ConceptMasteryRow) -> ConceptMasteryRecord:
    return ConceptMasteryRecord(
        learner_id=row.learner_id,
        concept_id=row.concept_id,
        mastery_level=row.mastery_level,
        retention_rate=row.retention_rate,
        total_reviews=row.total_reviews,
        last_reviewed_at=_aware(row.last_reviewed_at),
    )
