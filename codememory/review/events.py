"""
Analytics events emitted after a review commits.

Emission is best-effort: a failing sink is logged and never undoes or fails
the review that produced the event.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from codememory.core.timeutils import ensure_utc
from codememory.store.database import session_scope
from codememory.store.models import EventRow


class EventType(str, Enum):
    CARD_REVIEWED = "card_reviewed"
    CONCEPT_MASTERED = "concept_mastered"
    STREAK_MILESTONE = "streak_milestone"


@dataclass(frozen=True)
class AnalyticsEvent:
    learner_id: str
    event_type: EventType
    created_at: datetime
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "learner_id": self.learner_id,
            "event_type": self.event_type.value,
            "created_at": self.created_at.isoformat(),
            "data": self.data,
        }


class EventSink(Protocol):
    """Destination for analytics events."""

    def emit(self, event: AnalyticsEvent) -> None: ...


class LoggingEventSink:
    """Writes events to the application log."""

    def emit(self, event: AnalyticsEvent) -> None:
        logger.bind(event_type=event.event_type.value, learner_id=event.learner_id).info(
            f"Event {event.event_type.value} for {event.learner_id}: {event.data}"
        )


class DatabaseEventSink:
    """Persists events to the `events` table of the account database."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def emit(self, event: AnalyticsEvent) -> None:
        with session_scope(self._session_factory) as session:
            session.add(
                EventRow(
                    learner_id=event.learner_id,
                    event_type=event.event_type.value,
                    data=event.data,
                    created_at=ensure_utc(event.created_at),
                )
            )

