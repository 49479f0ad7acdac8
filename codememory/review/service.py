"""
Review Service - one review, one atomic unit.

Flow per review:
    rating -> Scheduler -> ProgressStore upsert + history
           -> concept mastery recompute -> streak update
           -> commit -> analytics events (best-effort)

Everything before the commit succeeds or fails together; the call only
returns once the new state is persisted.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from loguru import logger

from codememory.config import Settings
from codememory.core.exceptions import NotFoundError, ValidationError
from codememory.core.timeutils import Clock, activity_date, ensure_utc, utc_now
from codememory.progress.mastery import MasteryAggregator
from codememory.progress.stats import (
    ActivitySummary,
    LearnerStats,
    build_activity_summary,
    build_learner_stats,
)
from codememory.progress.streak import StreakTracker
from codememory.review.catalog import InMemoryCatalog, ItemCatalog, JsonCatalog
from codememory.review.events import (
    AnalyticsEvent,
    DatabaseEventSink,
    EventSink,
    EventType,
    LoggingEventSink,
)
from codememory.scheduling.models import MemoryState, Rating
from codememory.scheduling.scheduler import Scheduler
from codememory.store.records import ConceptMasteryRecord, ReviewEvent, StreakRecord
from codememory.store.router import StoreRouter

DEFAULT_STREAK_MILESTONES = (3, 7, 14, 30, 60, 100, 365)


@dataclass(frozen=True)
class ReviewResult:
    """Outcome of a committed review."""

    item_id: str
    concept_id: str
    rating: Rating
    state: MemoryState
    mastery: ConceptMasteryRecord | None
    streak: StreakRecord

    @property
    def due_at(self) -> datetime:
        return self.state.due_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "concept_id": self.concept_id,
            "rating": self.rating.label,
            "due_at": self.due_at.isoformat(),
            "state": self.state.to_dict(),
            "mastery": self.mastery.to_dict() if self.mastery else None,
            "streak": self.streak.to_dict(),
        }


class ReviewService:
    """
    Orchestrates reviews for any learner.

    The store is picked per call from the learner id; nothing below this
    class knows whether the learner is anonymous.
    """

    def __init__(
        self,
        router: StoreRouter,
        catalog: ItemCatalog,
        scheduler: Scheduler | None = None,
        clock: Clock = utc_now,
        sinks: Sequence[EventSink] = (),
        activity_timezone: str = "UTC",
        mastery_threshold: float = 80.0,
        streak_milestones: Iterable[int] = DEFAULT_STREAK_MILESTONES,
    ):
        self.router = router
        self.catalog = catalog
        self.scheduler = scheduler or Scheduler()
        self.clock = clock
        self.sinks = list(sinks)
        self.activity_timezone = activity_timezone
        self.mastery_threshold = mastery_threshold
        self.streak_milestones = frozenset(streak_milestones)
        self.aggregator = MasteryAggregator()
        self.streaks = StreakTracker()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        router: StoreRouter,
        catalog: ItemCatalog,
        sinks: Sequence[EventSink] = (),
        clock: Clock = utc_now,
    ) -> ReviewService:
        return cls(
            router=router,
            catalog=catalog,
            scheduler=Scheduler(settings.get_scheduler_parameters()),
            clock=clock,
            sinks=sinks,
            activity_timezone=settings.activity_timezone,
            mastery_threshold=settings.mastery_threshold,
            streak_milestones=settings.streak_milestones,
        )

    def _now(self) -> datetime:
        return ensure_utc(self.clock())

    def _concept_of(self, item_id: str) -> str:
        concept_id = self.catalog.concept_for(item_id)
        if concept_id is None:
            raise ValidationError(f"Unknown item: {item_id}")
        return concept_id

    # =========================================================================
    # Reviews
    # =========================================================================

    def submit_review(
        self,
        learner_id: str | None,
        item_id: str,
        rating: Rating | int | str,
    ) -> ReviewResult:
        """
        Apply a rating to an item and persist everything it changes.

        Args:
            learner_id: Learner id, or None / "anonymous" for the local store
            item_id: Catalog item being reviewed
            rating: Again/Hard/Good/Easy (1-4)

        Returns:
            ReviewResult with the new due date and memory state

        Raises:
            ValidationError: Bad rating or item not in the catalog
            NotFoundError: Item never initialized for this learner
            PersistenceError: Storage failure; nothing was applied
            ComputationError: Scheduler invariant violated; nothing was applied
        """
        rating = Rating.parse(rating)
        concept_id = self._concept_of(item_id)
        store = self.router.for_learner(learner_id)
        now = self._now()

        with store.transaction():
            previous = store.get(item_id, lock=True)
            if previous is None:
                raise NotFoundError(
                    f"Item {item_id} has not been initialized for learner {store.learner_id}"
                )

            state = self.scheduler.schedule(previous, rating, now)
            store.upsert(item_id, state)
            store.log_review(
                ReviewEvent(
                    item_id=item_id,
                    concept_id=concept_id,
                    rating=rating,
                    reviewed_at=now,
                    result=state,
                )
            )

            previous_mastery = store.get_mastery(concept_id)
            mastery = self.aggregator.recompute(
                store.learner_id,
                concept_id,
                store.list_states(self.catalog.items_in_concept(concept_id)),
                now,
            )
            if mastery is not None:
                store.save_mastery(mastery)

            previous_streak = store.get_streak()
            streak = self.streaks.record_activity(
                store.learner_id,
                activity_date(now, self.activity_timezone),
                previous_streak,
            )
            if streak != previous_streak:
                store.save_streak(streak)

        logger.debug(
            f"Review committed: learner={store.learner_id} item={item_id} "
            f"rating={rating.label} state={state.state.label} due={state.due_at.isoformat()}"
        )

        result = ReviewResult(
            item_id=item_id,
            concept_id=concept_id,
            rating=rating,
            state=state,
            mastery=mastery,
            streak=streak,
        )
        self._emit(self._events_for(store.learner_id, result, previous_mastery, previous_streak, now))
        return result

    def preview_review(self, learner_id: str | None, item_id: str) -> dict[Rating, MemoryState]:
        """Outcome of each rating for an item, without persisting anything."""
        self._concept_of(item_id)
        store = self.router.for_learner(learner_id)
        previous = store.get(item_id)
        if previous is None:
            raise NotFoundError(
                f"Item {item_id} has not been initialized for learner {store.learner_id}"
            )
        return self.scheduler.preview(previous, self._now())

    def initialize_items(
        self,
        learner_id: str | None,
        item_ids: Iterable[str] | None = None,
    ) -> int:
        """
        Make catalog items known to a learner (New, due now).

        Args:
            learner_id: Learner id or anonymous
            item_ids: Items to initialize (defaults to the whole catalog)

        Returns:
            Number of items newly created
        """
        ids = list(item_ids) if item_ids is not None else self.catalog.all_items()
        unknown = [item_id for item_id in ids if self.catalog.concept_for(item_id) is None]
        if unknown:
            raise ValidationError(f"Unknown items: {', '.join(sorted(unknown))}")
        store = self.router.for_learner(learner_id)
        created = store.initialize_unknown(ids, self._now())
        logger.info(f"Initialized {created} items for learner {store.learner_id}")
        return created

    # =========================================================================
    # Queries
    # =========================================================================

    def list_due_items(self, learner_id: str | None, now: datetime | None = None) -> list[MemoryState]:
        store = self.router.for_learner(learner_id)
        return store.list_due(ensure_utc(now) if now is not None else self._now())

    def get_concept_mastery(
        self, learner_id: str | None, concept_id: str
    ) -> ConceptMasteryRecord | None:
        return self.router.for_learner(learner_id).get_mastery(concept_id)

    def get_streak(self, learner_id: str | None) -> StreakRecord:
        store = self.router.for_learner(learner_id)
        return store.get_streak() or StreakRecord.empty(store.learner_id)

    def get_stats(self, learner_id: str | None) -> LearnerStats:
        store = self.router.for_learner(learner_id)
        return build_learner_stats(
            learner_id=store.learner_id,
            states=store.list_states(),
            mastery=store.list_mastery(),
            streak=store.get_streak() or StreakRecord.empty(store.learner_id),
            now=self._now(),
            timezone=self.activity_timezone,
            mastery_threshold=self.mastery_threshold,
        )

    def get_activity_summary(self, learner_id: str | None, days: int = 30) -> ActivitySummary:
        store = self.router.for_learner(learner_id)
        return build_activity_summary(
            history=store.review_history(),
            states=store.list_states(),
            now=self._now(),
            days=days,
            timezone=self.activity_timezone,
        )

    def recent_reviews(self, learner_id: str | None, limit: int = 10) -> list[ReviewEvent]:
        """Latest committed reviews, newest first."""
        if limit < 1:
            raise ValidationError(f"limit must be positive, got {limit}")
        return self.router.for_learner(learner_id).review_history(limit)

    def reset_all(self, learner_id: str | None) -> None:
        """Delete every state, aggregate and history row for the learner."""
        store = self.router.for_learner(learner_id)
        store.clear()
        logger.info(f"Progress reset for learner {store.learner_id}")

    # =========================================================================
    # Events
    # =========================================================================

    def _events_for(
        self,
        learner_id: str,
        result: ReviewResult,
        previous_mastery: ConceptMasteryRecord | None,
        previous_streak: StreakRecord | None,
        now: datetime,
    ) -> list[AnalyticsEvent]:
        events = [
            AnalyticsEvent(
                learner_id=learner_id,
                event_type=EventType.CARD_REVIEWED,
                created_at=now,
                data={
                    "item_id": result.item_id,
                    "concept_id": result.concept_id,
                    "rating": int(result.rating),
                    "state": result.state.state.label,
                    "scheduled_days": result.state.scheduled_days,
                },
            )
        ]

        was_mastered = (
            previous_mastery is not None
            and previous_mastery.mastery_level >= self.mastery_threshold
        )
        if (
            result.mastery is not None
            and result.mastery.mastery_level >= self.mastery_threshold
            and not was_mastered
        ):
            events.append(
                AnalyticsEvent(
                    learner_id=learner_id,
                    event_type=EventType.CONCEPT_MASTERED,
                    created_at=now,
                    data={
                        "concept_id": result.concept_id,
                        "mastery_level": result.mastery.mastery_level,
                    },
                )
            )

        if result.streak != previous_streak and result.streak.current_streak in self.streak_milestones:
            events.append(
                AnalyticsEvent(
                    learner_id=learner_id,
                    event_type=EventType.STREAK_MILESTONE,
                    created_at=now,
                    data={"current_streak": result.streak.current_streak},
                )
            )
        return events

    def _emit(self, events: list[AnalyticsEvent]) -> None:
        for event in events:
            for sink in self.sinks:
                try:
                    sink.emit(event)
                except Exception as e:  # Best-effort - the review is already committed
                    logger.warning(
                        f"Event sink {type(sink).__name__} failed for {event.event_type.value}: {e}"
                    )


def build_review_service(
    settings: Settings, with_accounts: bool = True, load_catalog: bool = True
) -> ReviewService:
    """
    Wire a ReviewService from configuration.

    Args:
        settings: Application settings
        with_accounts: Connect the account database (False keeps everything device-local)
        load_catalog: Read the catalog file; progress-only callers (due, streak,
            stats, reset) can skip it and run with an empty catalog
    """
    catalog: ItemCatalog = (
        JsonCatalog.from_file(settings.catalog_path) if load_catalog else InMemoryCatalog({})
    )
    router = StoreRouter.from_settings(settings, with_accounts=with_accounts)
    sinks: list[EventSink] = [LoggingEventSink()]
    if router.session_factory is not None:
        sinks.append(DatabaseEventSink(router.session_factory))
    return ReviewService.from_settings(settings, router=router, catalog=catalog, sinks=sinks)
