"""
Scheduling data model.

MemoryState is the per learner x item record the scheduler reads and writes.
Ratings follow the four-button FSRS scale.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import IntEnum
from typing import Any

from codememory.core.exceptions import ValidationError
from codememory.core.timeutils import ensure_utc


class Rating(IntEnum):
    """Learner self-assessment after seeing the answer."""

    AGAIN = 1  # Forgot
    HARD = 2  # Recalled with serious difficulty
    GOOD = 3  # Recalled after some hesitation
    EASY = 4  # Recalled effortlessly

    @classmethod
    def parse(cls, value: Any) -> Rating:
        """
        Coerce user input into a Rating.

        Accepts a Rating, an int 1-4, a numeric string, or a rating name
        (case-insensitive).

        Raises:
            ValidationError: For anything else (including bools)
        """
        if isinstance(value, Rating):
            return value
        if isinstance(value, bool):
            raise ValidationError(f"Invalid rating: {value!r}")
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise ValidationError(f"Invalid rating: {value!r} (expected 1-4)") from None
        if isinstance(value, str):
            text = value.strip()
            if text.isascii() and text.isdigit():
                return cls.parse(int(text))
            try:
                return cls[text.upper()]
            except KeyError:
                raise ValidationError(f"Invalid rating: {value!r}") from None
        raise ValidationError(f"Invalid rating: {value!r}")

    @property
    def label(self) -> str:
        return self.name.title()


class CardState(IntEnum):
    """Position of an item in the learning state machine."""

    NEW = 0
    LEARNING = 1
    REVIEW = 2
    RELEARNING = 3

    @property
    def label(self) -> str:
        return self.name.title()


@dataclass(frozen=True)
class MemoryState:
    """Memory model state for one learner x item."""

    item_id: str | None
    stability: float
    difficulty: float
    elapsed_days: int
    scheduled_days: int
    reps: int
    lapses: int
    state: CardState
    last_reviewed_at: datetime | None
    due_at: datetime

    @classmethod
    def new(cls, item_id: str, now: datetime) -> MemoryState:
        """Unreviewed item, due immediately."""
        return cls(
            item_id=item_id,
            stability=0.0,
            difficulty=0.0,
            elapsed_days=0,
            scheduled_days=0,
            reps=0,
            lapses=0,
            state=CardState.NEW,
            last_reviewed_at=None,
            due_at=ensure_utc(now),
        )

    @property
    def is_new(self) -> bool:
        return self.state == CardState.NEW

    def is_due(self, now: datetime) -> bool:
        return self.due_at <= ensure_utc(now)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation."""
        data = asdict(self)
        data["state"] = self.state.label
        data["last_reviewed_at"] = (
            self.last_reviewed_at.isoformat() if self.last_reviewed_at else None
        )
        data["due_at"] = self.due_at.isoformat()
        return data
