"""
FSRS-5 memory model formulas.

Pure functions over (stability, difficulty, retrievability). The scheduler
composes them; nothing here knows about states, instants or persistence.
"""

from __future__ import annotations

import math
import random

from codememory.scheduling.models import Rating
from codememory.scheduling.parameters import DECAY, FACTOR, SchedulerParameters

# ============================================================================
# Forgetting curve
# ============================================================================


def retrievability(elapsed_days: float, stability: float) -> float:
    """
    Probability of recall after `elapsed_days`.

    Formula: R = (1 + F * t / S) ^ DECAY

    Args:
        elapsed_days: Days since the last review
        stability: Current stability in days

    Returns:
        Retrievability between 0 and 1
    """
    if stability <= 0:
        return 0.0
    return (1 + FACTOR * max(elapsed_days, 0) / stability) ** DECAY


def interval_for(stability: float, params: SchedulerParameters) -> float:
    """
    Unrounded interval at which R decays to the requested retention.

    Formula: I = S / F * (r ^ (1 / DECAY) - 1)
    """
    return stability / FACTOR * (params.request_retention ** (1 / DECAY) - 1)


# ============================================================================
# Initial state
# ============================================================================


def initial_stability(rating: Rating, params: SchedulerParameters) -> float:
    """S0 = w[rating - 1]."""
    return max(params.w[rating - 1], params.minimum_stability)


def initial_difficulty(rating: Rating, params: SchedulerParameters) -> float:
    """
    D0 = w4 - e^(w5 * (rating - 1)) + 1, clamped to the difficulty range.
    """
    w = params.w
    raw = w[4] - math.exp(w[5] * (rating - 1)) + 1
    return clamp_difficulty(raw, params)


def clamp_difficulty(value: float, params: SchedulerParameters) -> float:
    return min(max(value, params.minimum_difficulty), params.maximum_difficulty)


# ============================================================================
# Difficulty update
# ============================================================================


def next_difficulty(difficulty: float, rating: Rating, params: SchedulerParameters) -> float:
    """
    Apply the rating delta, damp it near the ceiling, then mean-revert.

    delta  = -w6 * (rating - 3)
    D''    = D + delta * (10 - D) / 9
    D'     = w7 * D0(Easy) + (1 - w7) * D''
    """
    w = params.w
    delta = -w[6] * (rating - 3)
    damped = difficulty + delta * (params.maximum_difficulty - difficulty) / 9
    baseline = initial_difficulty(Rating.EASY, params)
    reverted = w[7] * baseline + (1 - w[7]) * damped
    return clamp_difficulty(reverted, params)


# ============================================================================
# Stability update
# ============================================================================


def next_recall_stability(
    difficulty: float,
    stability: float,
    recall: float,
    rating: Rating,
    params: SchedulerParameters,
) -> float:
    """
    Stability after a successful recall across a day boundary.

    S' = S * (1 + e^w8 * (11 - D) * S^-w9 * (e^(w10 * (1 - R)) - 1) * penalty * bonus)

    Growth shrinks with difficulty and with current stability, and grows the
    further retrievability had decayed at review time.
    """
    w = params.w
    hard_penalty = w[15] if rating == Rating.HARD else 1.0
    easy_bonus = w[16] if rating == Rating.EASY else 1.0
    growth = (
        math.exp(w[8])
        * (11 - difficulty)
        * stability ** (-w[9])
        * (math.exp(w[10] * (1 - recall)) - 1)
        * hard_penalty
        * easy_bonus
    )
    return stability * (1 + growth)


def next_forget_stability(
    difficulty: float,
    stability: float,
    recall: float,
    params: SchedulerParameters,
) -> float:
    """
    Stability after a lapse.

    S' = w11 * D^-w12 * ((S + 1)^w13 - 1) * e^(w14 * (1 - R)),
    capped at S / e^(w17 * w18) so a failure always lowers stability.
    """
    w = params.w
    forgotten = (
        w[11]
        * difficulty ** (-w[12])
        * ((stability + 1) ** w[13] - 1)
        * math.exp(w[14] * (1 - recall))
    )
    ceiling = stability / math.exp(w[17] * w[18])
    return min(forgotten, ceiling)


def next_short_term_stability(
    stability: float,
    rating: Rating,
    params: SchedulerParameters,
) -> float:
    """
    Same-day stability change.

    S' = S * e^(w17 * (rating - 3 + w18)); successes never shrink stability.
    """
    w = params.w
    factor = math.exp(w[17] * (rating - 3 + w[18]))
    if rating != Rating.AGAIN:
        factor = max(factor, 1.0)
    return stability * factor


# ============================================================================
# Fuzz
# ============================================================================


def fuzz_bounds(
    interval: float,
    elapsed_days: int,
    params: SchedulerParameters,
) -> tuple[int, int]:
    """
    Inclusive [min, max] day window for a fuzzed interval.

    The window widens with the interval (see DEFAULT_FUZZ_RANGES) and is kept
    inside [minimum_interval, maximum_interval].
    """
    delta = 1.0
    for band in params.fuzz_ranges:
        delta += band.factor * max(min(interval, band.end) - band.start, 0.0)
    interval = min(interval, params.maximum_interval)
    low = max(2, params.minimum_interval, round(interval - delta))
    high = min(round(interval + delta), params.maximum_interval)
    if interval > elapsed_days:
        low = max(low, elapsed_days + 1)
    low = min(low, high)
    return low, high


def apply_fuzz(
    interval: float,
    elapsed_days: int,
    fuzz_factor: float,
    params: SchedulerParameters,
) -> int:
    """
    Jitter an interval so items reviewed together do not all come due together.

    Intervals under 2.5 days are only rounded.

    Args:
        interval: Unrounded interval in days
        elapsed_days: Days since previous review
        fuzz_factor: Uniform sample in [0, 1)
        params: Scheduler parameters

    Returns:
        Whole days inside [minimum_interval, maximum_interval]
    """
    if not params.enable_fuzz or interval < 2.5:
        return clamp_interval(round(interval), params)
    low, high = fuzz_bounds(interval, elapsed_days, params)
    fuzzed = math.floor(fuzz_factor * (high - low + 1) + low)
    return clamp_interval(fuzzed, params)


def clamp_interval(days: int, params: SchedulerParameters) -> int:
    return min(max(days, params.minimum_interval), params.maximum_interval)


def fuzz_seed(review_ms: int, reps: int, difficulty: float, stability: float) -> str:
    """Seed string derived from the review so fuzz is reproducible."""
    return f"{review_ms}_{reps}_{difficulty * stability!r}"


def fuzz_factor_for(seed: str) -> float:
    """Deterministic uniform sample for a seed; never touches the global RNG."""
    return random.Random(seed).random()
