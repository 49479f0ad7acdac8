"""
Unit tests for analytics event sinks.
"""

from sqlalchemy import select

from codememory.review.events import (
    AnalyticsEvent,
    DatabaseEventSink,
    EventType,
    LoggingEventSink,
)
from codememory.store.database import session_scope
from codememory.store.models import EventRow


def make_event(now):
    return AnalyticsEvent(
        learner_id="learner-1",
        event_type=EventType.CONCEPT_MASTERED,
        created_at=now,
        data={"concept_id": "python-closures", "mastery_level": 82.5},
    )


def test_event_to_dict(now):
    data = make_event(now).to_dict()
    assert data["event_type"] == "concept_mastered"
    assert data["created_at"] == now.isoformat()
    assert data["data"]["mastery_level"] == 82.5


def test_logging_sink(now):
    from loguru import logger

    messages = []
    handler_id = logger.add(messages.append, level="INFO", format="{message}")
    try:
        LoggingEventSink().emit(make_event(now))
    finally:
        logger.remove(handler_id)

    assert len(messages) == 1
    assert "concept_mastered" in messages[0]
    assert messages[0].record["extra"]["learner_id"] == "learner-1"


def test_database_sink(session_factory, now):
    DatabaseEventSink(session_factory).emit(make_event(now))

    with session_scope(session_factory) as session:
        row = session.scalars(select(EventRow)).one()
        assert row.learner_id == "learner-1"
        assert row.event_type == "concept_mastered"
        assert row.data == {"concept_id": "python-closures", "mastery_level": 82.5}
