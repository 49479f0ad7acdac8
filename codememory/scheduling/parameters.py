"""
FSRS parameter set.

Every constant the memory model uses is published here so a schedule can be
reproduced from (parameter version, prior state, rating, instant) alone.
Weights are the FSRS-5 defaults shipped by ts-fsrs / py-fsrs.
"""

from __future__ import annotations

from dataclasses import dataclass, field

PARAMETER_VERSION = "fsrs-5"

FSRS5_DEFAULT_WEIGHTS: tuple[float, ...] = (
    0.40255,  # w0: initial stability, Again
    1.18385,  # w1: initial stability, Hard
    3.173,  # w2: initial stability, Good
    15.69105,  # w3: initial stability, Easy
    7.1949,  # w4: initial difficulty base
    0.5345,  # w5: initial difficulty rating slope
    1.4604,  # w6: difficulty delta per rating step
    0.0046,  # w7: mean reversion weight
    1.54575,  # w8: recall stability growth scale (exp)
    0.1192,  # w9: diminishing returns on stability
    1.01925,  # w10: retrievability sensitivity
    1.9395,  # w11: failure stability scale
    0.11,  # w12: failure difficulty exponent
    0.29605,  # w13: failure stability exponent
    2.2698,  # w14: failure retrievability sensitivity
    0.2315,  # w15: hard penalty
    2.9898,  # w16: easy bonus
    0.51655,  # w17: short-term stability rate
    0.6621,  # w18: short-term stability offset
)

# Forgetting curve R(t, S) = (1 + FACTOR * t / S) ** DECAY, R(S, S) = 0.9
DECAY = -0.5
FACTOR = 0.9 ** (1 / DECAY) - 1


@dataclass(frozen=True)
class FuzzRange:
    """Interval band [start, end) contributing `factor` days of jitter per day."""

    start: float
    end: float
    factor: float


DEFAULT_FUZZ_RANGES: tuple[FuzzRange, ...] = (
    FuzzRange(start=2.5, end=7.0, factor=0.15),
    FuzzRange(start=7.0, end=20.0, factor=0.1),
    FuzzRange(start=20.0, end=float("inf"), factor=0.05),
)


@dataclass(frozen=True)
class SchedulerParameters:
    """Versioned, immutable configuration of the memory model."""

    w: tuple[float, ...] = FSRS5_DEFAULT_WEIGHTS
    request_retention: float = 0.9
    minimum_interval: int = 1  # days, successful reviews
    maximum_interval: int = 36500  # days
    enable_fuzz: bool = True
    fuzz_ranges: tuple[FuzzRange, ...] = field(default=DEFAULT_FUZZ_RANGES)
    minimum_stability: float = 0.01
    minimum_difficulty: float = 1.0
    maximum_difficulty: float = 10.0
    learning_again_minutes: int = 1  # Again while New/Learning
    relearning_again_minutes: int = 10  # Again while Review/Relearning
    version: str = PARAMETER_VERSION

    def __post_init__(self) -> None:
        if len(self.w) != 19:
            raise ValueError(f"FSRS-5 expects 19 weights, got {len(self.w)}")
        if not 0 < self.request_retention < 1:
            raise ValueError("request_retention must be in (0, 1)")
        if self.minimum_interval < 1:
            raise ValueError("minimum_interval must be >= 1 day")
        if self.maximum_interval < self.minimum_interval:
            raise ValueError("maximum_interval must be >= minimum_interval")
        if self.learning_again_minutes <= 0 or self.relearning_again_minutes <= 0:
            raise ValueError("again delays must be positive")
