"""
Unit tests for the FSRS-5 memory model formulas.

Pure arithmetic, no stores or clocks.
"""

import math

import pytest

from codememory.scheduling import fsrs
from codememory.scheduling.models import Rating
from codememory.scheduling.parameters import (
    DECAY,
    FACTOR,
    FSRS5_DEFAULT_WEIGHTS,
    SchedulerParameters,
)

W = FSRS5_DEFAULT_WEIGHTS
PARAMS = SchedulerParameters()


class TestForgettingCurve:
    def test_full_recall_immediately(self):
        assert fsrs.retrievability(0, 5.0) == pytest.approx(1.0)

    def test_ninety_percent_after_one_stability(self):
        """By construction R(S, S) equals the default retention of 0.9."""
        for stability in (0.5, 3.0, 42.0, 365.0):
            assert fsrs.retrievability(stability, stability) == pytest.approx(0.9)

    def test_decays_monotonically(self):
        values = [fsrs.retrievability(t, 10.0) for t in range(0, 60, 5)]
        assert values == sorted(values, reverse=True)

    def test_zero_stability_means_forgotten(self):
        assert fsrs.retrievability(3, 0.0) == 0.0

    def test_interval_equals_stability_at_default_retention(self):
        assert fsrs.interval_for(12.5, PARAMS) == pytest.approx(12.5)

    def test_higher_retention_shortens_interval(self):
        strict = SchedulerParameters(request_retention=0.95)
        assert fsrs.interval_for(12.5, strict) < fsrs.interval_for(12.5, PARAMS)

    def test_constants_consistent(self):
        assert DECAY == -0.5
        assert FACTOR == pytest.approx(19 / 81)


class TestInitialState:
    @pytest.mark.parametrize("rating", list(Rating))
    def test_initial_stability_from_weights(self, rating):
        assert fsrs.initial_stability(rating, PARAMS) == W[rating - 1]

    def test_initial_difficulty_formula(self):
        expected = W[4] - math.exp(W[5] * 2) + 1
        assert fsrs.initial_difficulty(Rating.GOOD, PARAMS) == pytest.approx(expected)

    def test_initial_difficulty_ordered_by_rating(self):
        values = [fsrs.initial_difficulty(r, PARAMS) for r in Rating]
        assert values == sorted(values, reverse=True)

    def test_initial_difficulty_clamped(self):
        assert 1.0 <= fsrs.initial_difficulty(Rating.EASY, PARAMS) <= 10.0
        assert 1.0 <= fsrs.initial_difficulty(Rating.AGAIN, PARAMS) <= 10.0


class TestDifficulty:
    def test_good_only_mean_reverts(self):
        d = 6.0
        baseline = fsrs.initial_difficulty(Rating.EASY, PARAMS)
        expected = W[7] * baseline + (1 - W[7]) * d
        assert fsrs.next_difficulty(d, Rating.GOOD, PARAMS) == pytest.approx(expected)

    def test_again_makes_harder_easy_makes_easier(self):
        d = 5.0
        assert fsrs.next_difficulty(d, Rating.AGAIN, PARAMS) > d
        assert fsrs.next_difficulty(d, Rating.EASY, PARAMS) < d

    def test_damped_near_ceiling(self):
        """The closer to 10, the smaller the increase from Again."""
        low_gain = fsrs.next_difficulty(3.0, Rating.AGAIN, PARAMS) - 3.0
        high_gain = fsrs.next_difficulty(9.5, Rating.AGAIN, PARAMS) - 9.5
        assert high_gain < low_gain

    def test_never_leaves_range(self):
        assert fsrs.next_difficulty(10.0, Rating.AGAIN, PARAMS) <= 10.0
        assert fsrs.next_difficulty(1.0, Rating.EASY, PARAMS) >= 1.0


class TestStability:
    def test_recall_grows_stability(self):
        s, d = 5.0, 5.0
        recall = fsrs.retrievability(5, s)
        assert fsrs.next_recall_stability(d, s, recall, Rating.GOOD, PARAMS) > s

    def test_recall_growth_ordered_by_rating(self):
        s, d = 5.0, 5.0
        recall = fsrs.retrievability(5, s)
        hard, good, easy = (
            fsrs.next_recall_stability(d, s, recall, r, PARAMS)
            for r in (Rating.HARD, Rating.GOOD, Rating.EASY)
        )
        assert hard < good < easy

    def test_harder_items_grow_slower(self):
        s = 5.0
        recall = fsrs.retrievability(5, s)
        easy_item = fsrs.next_recall_stability(2.0, s, recall, Rating.GOOD, PARAMS)
        hard_item = fsrs.next_recall_stability(9.0, s, recall, Rating.GOOD, PARAMS)
        assert hard_item < easy_item

    def test_forget_lowers_stability(self):
        for s in (0.5, 3.0, 30.0, 400.0):
            recall = fsrs.retrievability(s, s)
            assert fsrs.next_forget_stability(6.0, s, recall, PARAMS) < s

    def test_short_term_success_never_shrinks(self):
        for rating in (Rating.HARD, Rating.GOOD, Rating.EASY):
            assert fsrs.next_short_term_stability(2.0, rating, PARAMS) >= 2.0

    def test_short_term_again_shrinks(self):
        assert fsrs.next_short_term_stability(2.0, Rating.AGAIN, PARAMS) < 2.0


class TestFuzz:
    def test_short_intervals_only_rounded(self):
        assert fsrs.apply_fuzz(2.4, 0, 0.99, PARAMS) == 2
        assert fsrs.apply_fuzz(1.2, 0, 0.0, PARAMS) == 1

    def test_disabled_fuzz_rounds(self):
        params = SchedulerParameters(enable_fuzz=False)
        assert fsrs.apply_fuzz(15.6, 0, 0.99, params) == 16

    @pytest.mark.parametrize("interval", [3.0, 8.5, 25.0, 400.0])
    def test_fuzzed_value_inside_bounds(self, interval):
        low, high = fsrs.fuzz_bounds(interval, 0, PARAMS)
        assert low <= high
        for factor in (0.0, 0.25, 0.5, 0.999):
            assert low <= fsrs.apply_fuzz(interval, 0, factor, PARAMS) <= high

    def test_fuzz_window_widens_with_interval(self):
        small = fsrs.fuzz_bounds(5.0, 0, PARAMS)
        large = fsrs.fuzz_bounds(200.0, 0, PARAMS)
        assert large[1] - large[0] > small[1] - small[0]

    def test_fuzz_respects_maximum_interval(self):
        params = SchedulerParameters(maximum_interval=30)
        assert fsrs.apply_fuzz(29.5, 0, 0.999, params) <= 30

    def test_seeded_factor_is_deterministic(self):
        seed = fsrs.fuzz_seed(1_700_000_000_000, 3, 5.5, 12.25)
        assert fsrs.fuzz_factor_for(seed) == fsrs.fuzz_factor_for(seed)
        assert 0.0 <= fsrs.fuzz_factor_for(seed) < 1.0

    def test_seed_depends_on_review(self):
        assert fsrs.fuzz_seed(1, 1, 2.0, 3.0) != fsrs.fuzz_seed(2, 1, 2.0, 3.0)


class TestClampInterval:
    def test_clamps_both_ends(self):
        params = SchedulerParameters(minimum_interval=2, maximum_interval=100)
        assert fsrs.clamp_interval(0, params) == 2
        assert fsrs.clamp_interval(500, params) == 100
        assert fsrs.clamp_interval(50, params) == 50
