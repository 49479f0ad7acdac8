"""
Review orchestration.

Components:
- catalog: Item -> concept lookup (ItemCatalog, JsonCatalog)
- events: Post-commit analytics events and sinks
- service: ReviewService, the single entry point for reviews
"""

from codememory.review.catalog import InMemoryCatalog, ItemCatalog, JsonCatalog
from codememory.review.events import (
    AnalyticsEvent,
    DatabaseEventSink,
    EventSink,
    EventType,
    LoggingEventSink,
)
from codememory.review.service import ReviewResult, ReviewService, build_review_service

__all__ = [
    "AnalyticsEvent",
    "DatabaseEventSink",
    "EventSink",
    "EventType",
    "InMemoryCatalog",
    "ItemCatalog",
    "JsonCatalog",
    "LoggingEventSink",
    "ReviewResult",
    "ReviewService",
    "build_review_service",
]
