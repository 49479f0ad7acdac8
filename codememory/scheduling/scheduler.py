"""
FSRS Spaced Repetition Scheduler.

Implements:
- FSRS-5 stability/difficulty updates for every rating
- The New -> Learning -> Review <-> Relearning state machine
- Deterministic interval fuzz (seeded from the review itself)

Rating Scale:
1 - Again: forgot, shown again within minutes
2 - Hard: recalled with serious difficulty
3 - Good: recalled after some hesitation
4 - Easy: recalled effortlessly

The scheduler is pure: the same (prior state, rating, instant, parameters)
always yields the same MemoryState, whichever store the state came from.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from loguru import logger

from codememory.core.exceptions import ComputationError
from codememory.core.timeutils import calendar_days_between, ensure_utc
from codememory.scheduling import fsrs
from codememory.scheduling.models import CardState, MemoryState, Rating
from codememory.scheduling.parameters import SchedulerParameters

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

# (prior state, rating) -> next state. New items always enter Learning.
TRANSITIONS: dict[tuple[CardState, Rating], CardState] = {
    (CardState.LEARNING, Rating.AGAIN): CardState.LEARNING,
    (CardState.LEARNING, Rating.HARD): CardState.LEARNING,
    (CardState.LEARNING, Rating.GOOD): CardState.REVIEW,
    (CardState.LEARNING, Rating.EASY): CardState.REVIEW,
    (CardState.REVIEW, Rating.AGAIN): CardState.RELEARNING,
    (CardState.REVIEW, Rating.HARD): CardState.REVIEW,
    (CardState.REVIEW, Rating.GOOD): CardState.REVIEW,
    (CardState.REVIEW, Rating.EASY): CardState.REVIEW,
    (CardState.RELEARNING, Rating.AGAIN): CardState.RELEARNING,
    (CardState.RELEARNING, Rating.HARD): CardState.RELEARNING,
    (CardState.RELEARNING, Rating.GOOD): CardState.REVIEW,
    (CardState.RELEARNING, Rating.EASY): CardState.REVIEW,
}

_PASSING = (Rating.HARD, Rating.GOOD, Rating.EASY)


@dataclass(frozen=True)
class _Memory:
    stability: float
    difficulty: float
    state: CardState
    lapses: int


class Scheduler:
    """
    Computes the next MemoryState for a review.

    Each item carries:
    - Stability: days until recall probability falls to the target retention
    - Difficulty: 1 (easy) to 10 (hard), modulates stability growth
    - Reps / lapses: total reviews and true lapses from Review
    """

    def __init__(self, params: SchedulerParameters | None = None):
        """
        Initialize the scheduler.

        Args:
            params: Parameter set (uses FSRS-5 defaults if None)
        """
        self.params = params or SchedulerParameters()

    def schedule(
        self,
        previous: MemoryState | None,
        rating: Rating | int | str,
        now: datetime,
    ) -> MemoryState:
        """
        Calculate the state after reviewing an item.

        Args:
            previous: Current state, or None for a never-seen item
            rating: Again/Hard/Good/Easy (1-4)
            now: Review instant

        Returns:
            New MemoryState with due_at >= now

        Raises:
            ValidationError: Rating outside 1-4
            ComputationError: Corrupt prior state or impossible result
        """
        rating = Rating.parse(rating)
        return self.preview(previous, now)[rating]

    def preview(
        self,
        previous: MemoryState | None,
        now: datetime,
    ) -> dict[Rating, MemoryState]:
        """
        Outcome of every rating for one review, computed together.

        Computing all four at once is what keeps the intervals ordered
        Again <= Hard <= Good < Easy after fuzzing.
        """
        now = ensure_utc(now)
        first_review = previous is None or previous.is_new
        if not first_review:
            self._check_prior(previous)

        if first_review:
            elapsed = 0
            memories = {rating: self._initial_memory(rating) for rating in Rating}
        else:
            elapsed = calendar_days_between(previous.last_reviewed_at, now)
            memories = {
                rating: self._next_memory(previous, rating, elapsed) for rating in Rating
            }

        intervals = self._passing_intervals(previous, memories, elapsed, now)
        reps = previous.reps if previous is not None else 0
        item_id = previous.item_id if previous is not None else None

        outcomes: dict[Rating, MemoryState] = {}
        for rating, memory in memories.items():
            if rating == Rating.AGAIN:
                scheduled_days = 0
                due_at = now + self._again_delay(memory.state)
            else:
                scheduled_days = intervals[rating]
                due_at = now + timedelta(days=scheduled_days)
            outcomes[rating] = MemoryState(
                item_id=item_id,
                stability=memory.stability,
                difficulty=memory.difficulty,
                elapsed_days=elapsed,
                scheduled_days=scheduled_days,
                reps=reps + 1,
                lapses=memory.lapses,
                state=memory.state,
                last_reviewed_at=now,
                due_at=due_at,
            )
        return outcomes

    # =========================================================================
    # Memory updates
    # =========================================================================

    def _initial_memory(self, rating: Rating) -> _Memory:
        return _Memory(
            stability=self._checked_stability(fsrs.initial_stability(rating, self.params)),
            difficulty=self._checked_difficulty(fsrs.initial_difficulty(rating, self.params)),
            state=CardState.LEARNING,
            lapses=0,
        )

    def _next_memory(self, previous: MemoryState, rating: Rating, elapsed: int) -> _Memory:
        s, d = previous.stability, previous.difficulty
        recall = fsrs.retrievability(elapsed, s)

        if rating == Rating.AGAIN:
            if previous.state == CardState.REVIEW or elapsed > 0:
                stability = fsrs.next_forget_stability(d, s, recall, self.params)
            else:
                stability = fsrs.next_short_term_stability(s, rating, self.params)
        elif elapsed == 0:
            stability = fsrs.next_short_term_stability(s, rating, self.params)
        else:
            stability = fsrs.next_recall_stability(d, s, recall, rating, self.params)

        lapse = previous.state == CardState.REVIEW and rating == Rating.AGAIN
        return _Memory(
            stability=self._checked_stability(stability),
            difficulty=self._checked_difficulty(fsrs.next_difficulty(d, rating, self.params)),
            state=TRANSITIONS[(previous.state, rating)],
            lapses=previous.lapses + (1 if lapse else 0),
        )

    # =========================================================================
    # Intervals
    # =========================================================================

    def _passing_intervals(
        self,
        previous: MemoryState | None,
        memories: dict[Rating, _Memory],
        elapsed: int,
        now: datetime,
    ) -> dict[Rating, int]:
        """Fuzzed day intervals for Hard/Good/Easy, ordered and floored."""
        if previous is None:
            seed = fsrs.fuzz_seed(self._epoch_ms(now), 0, 0.0, 0.0)
        else:
            seed = fsrs.fuzz_seed(
                self._epoch_ms(now), previous.reps, previous.difficulty, previous.stability
            )
        factor = fsrs.fuzz_factor_for(seed)

        raw = {
            rating: fsrs.apply_fuzz(
                fsrs.interval_for(memories[rating].stability, self.params),
                elapsed,
                factor,
                self.params,
            )
            for rating in _PASSING
        }
        hard = min(raw[Rating.HARD], raw[Rating.GOOD])
        good = max(raw[Rating.GOOD], hard + 1)
        easy = max(raw[Rating.EASY], good + 1)

        # A passing review never shortens the interval just completed
        floor = 0 if previous is None or previous.is_new else previous.scheduled_days
        return {
            rating: fsrs.clamp_interval(max(days, floor), self.params)
            for rating, days in ((Rating.HARD, hard), (Rating.GOOD, good), (Rating.EASY, easy))
        }

    def _again_delay(self, next_state: CardState) -> timedelta:
        if next_state == CardState.RELEARNING:
            return timedelta(minutes=self.params.relearning_again_minutes)
        return timedelta(minutes=self.params.learning_again_minutes)

    @staticmethod
    def _epoch_ms(now: datetime) -> int:
        return (now - _EPOCH) // timedelta(milliseconds=1)

    # =========================================================================
    # Invariant checks
    # =========================================================================

    def _check_prior(self, previous: MemoryState) -> None:
        problems = []
        if previous.last_reviewed_at is None:
            problems.append("reviewed state without last_reviewed_at")
        if not math.isfinite(previous.stability) or previous.stability <= 0:
            problems.append(f"stability={previous.stability}")
        if not (
            self.params.minimum_difficulty
            <= previous.difficulty
            <= self.params.maximum_difficulty
        ):
            problems.append(f"difficulty={previous.difficulty}")
        if previous.reps < 1 or previous.lapses < 0:
            problems.append(f"reps={previous.reps} lapses={previous.lapses}")
        if problems:
            message = f"Corrupt memory state for {previous.item_id}: {', '.join(problems)}"
            logger.error(message)
            raise ComputationError(message)

    def _checked_stability(self, value: float) -> float:
        if not math.isfinite(value) or value <= 0:
            logger.error(f"Scheduler produced invalid stability {value!r}")
            raise ComputationError(f"Invalid stability computed: {value!r}")
        return max(value, self.params.minimum_stability)

    def _checked_difficulty(self, value: float) -> float:
        if not (
            math.isfinite(value)
            and self.params.minimum_difficulty <= value <= self.params.maximum_difficulty
        ):
            logger.error(f"Scheduler produced invalid difficulty {value!r}")
            raise ComputationError(f"Invalid difficulty computed: {value!r}")
        return value
