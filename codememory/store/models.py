"""
Account Progress Models.

SQLAlchemy models for the account-scoped progress store:
- Memory state per learner per item (optimistically versioned)
- Concept mastery summaries
- Daily activity streaks
- Review history and analytics events
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import JSON, Date, DateTime, Double, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for every account-store table."""


class MemoryStateRow(Base):
    """
    FSRS memory state for one learner x item.

    `version` is bumped on every UPDATE; a write based on a stale read
    matches zero rows and fails instead of overwriting the newer state.
    """

    __tablename__ = "memory_states"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    learner_id: Mapped[str] = mapped_column(Text, nullable=False)
    item_id: Mapped[str] = mapped_column(Text, nullable=False)

    # FSRS memory model (64-bit floats so both backends agree bit for bit)
    stability: Mapped[float] = mapped_column(Double, nullable=False, default=0.0)
    difficulty: Mapped[float] = mapped_column(Double, nullable=False, default=0.0)
    elapsed_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    scheduled_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lapses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    state: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    last_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    due_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("learner_id", "item_id", name="uq_memory_state_learner_item"),
        Index("idx_memory_state_due", "learner_id", "due_at"),
    )
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<MemoryStateRow learner={self.learner_id} item={self.item_id} state={self.state} v{self.version}>"


class ConceptMasteryRow(Base):
    """Mastery summary per learner per concept (0-100 scales)."""

    __tablename__ = "concept_mastery"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    learner_id: Mapped[str] = mapped_column(Text, nullable=False)
    concept_id: Mapped[str] = mapped_column(Text, nullable=False)

    mastery_level: Mapped[float] = mapped_column(Double, nullable=False, default=0.0)
    retention_rate: Mapped[float] = mapped_column(Double, nullable=False, default=0.0)
    total_reviews: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("learner_id", "concept_id", name="uq_mastery_learner_concept"),
    )

    def __repr__(self) -> str:
        return f"<ConceptMasteryRow learner={self.learner_id} concept={self.concept_id} mastery={self.mastery_level}>"


class StreakRow(Base):
    """Daily activity streak, one row per learner."""

    __tablename__ = "streaks"

    learner_id: Mapped[str] = mapped_column(Text, primary_key=True)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_active_date: Mapped[date | None] = mapped_column(Date)
    total_active_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<StreakRow learner={self.learner_id} current={self.current_streak}>"


class ReviewLogRow(Base):
    """One committed review with the resulting state snapshot."""

    __tablename__ = "review_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    learner_id: Mapped[str] = mapped_column(Text, nullable=False)
    item_id: Mapped[str] = mapped_column(Text, nullable=False)
    concept_id: Mapped[str] = mapped_column(Text, nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    reviewed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Snapshot after the review
    stability: Mapped[float] = mapped_column(Double, nullable=False)
    difficulty: Mapped[float] = mapped_column(Double, nullable=False)
    elapsed_days: Mapped[int] = mapped_column(Integer, nullable=False)
    scheduled_days: Mapped[int] = mapped_column(Integer, nullable=False)
    reps: Mapped[int] = mapped_column(Integer, nullable=False)
    lapses: Mapped[int] = mapped_column(Integer, nullable=False)
    state: Mapped[int] = mapped_column(Integer, nullable=False)
    due_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_review_log_learner_time", "learner_id", "reviewed_at"),)


class EventRow(Base):
    """Analytics event written by DatabaseEventSink."""

    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    learner_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<EventRow {self.event_type} learner={self.learner_id}>"
