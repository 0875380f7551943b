"""
Tests for score normalization.
"""

import pytest

from modelboard.db.models import NormalizationMethod
from modelboard.services.normalization import (
    SINGLE_VALUE_SCORE,
    BenchmarkSpec,
    bounded_score,
    mid_rank_score,
    normalize_score,
)

GPQA = BenchmarkSpec(key="gpqa", category="reasoning", max_score=100)
ELO = BenchmarkSpec(key="lmarena_elo", category="arena", max_score=None,
                    normalization_method=NormalizationMethod.PERCENTILE_RANK, unit="elo")
LATENCY = BenchmarkSpec(key="latency", category="speed", higher_is_better=False,
                        max_score=None, unit="ms")


class TestBoundedScaling:
    def test_fraction_of_max(self):
        assert normalize_score(85, GPQA, [85]) == pytest.approx(85.0)

    def test_overshoot_is_capped(self):
        """A raw value above the maximum normalizes to exactly 100."""
        assert normalize_score(150, GPQA, [150, 20]) == 100.0

    def test_negative_is_floored(self):
        assert bounded_score(-5, 100) == 0.0

    def test_non_percentage_max(self):
        spec = BenchmarkSpec(key="arc_agi", category="reasoning", max_score=8, unit="tasks")
        assert normalize_score(2, spec, []) == pytest.approx(25.0)

    def test_population_is_ignored(self):
        assert normalize_score(40, GPQA, [10, 90]) == normalize_score(40, GPQA, [40])


class TestRankScaling:
    def test_mid_rank_ties(self):
        """20 in [10, 20, 20, 30] sits at (1 + 0.5) / 3 of the range."""
        assert normalize_score(20, ELO, [10, 20, 20, 30]) == pytest.approx(50.0)

    def test_extremes(self):
        population = [1200, 1250, 1300, 1350]
        assert normalize_score(1200, ELO, population) == pytest.approx(0.0)
        assert normalize_score(1350, ELO, population) == pytest.approx(100.0)

    def test_all_tied(self):
        assert mid_rank_score(5, [5, 5, 5]) == pytest.approx(50.0)

    @pytest.mark.parametrize("population", [[], [1300]])
    def test_fewer_than_two_values(self, population):
        assert normalize_score(1300, ELO, population) == SINGLE_VALUE_SCORE

    def test_bounded_without_max_falls_back_to_rank(self):
        assert LATENCY.normalization_method is NormalizationMethod.BOUNDED
        assert LATENCY.effective_method is NormalizationMethod.PERCENTILE_RANK

    def test_zero_max_falls_back_to_rank(self):
        spec = BenchmarkSpec(key="weird", category="misc", max_score=0)
        assert spec.effective_method is NormalizationMethod.PERCENTILE_RANK

    def test_result_stays_in_range(self):
        population = [3, 1, 4, 1, 5, 9, 2, 6]
        for value in population:
            assert 0.0 <= normalize_score(value, ELO, population) <= 100.0


class TestPolarity:
    def test_lowest_latency_scores_near_100(self):
        population = [120, 250, 400, 900]
        assert normalize_score(120, LATENCY, population) == pytest.approx(100.0)
        assert normalize_score(900, LATENCY, population) == pytest.approx(0.0)

    def test_bounded_lower_is_better(self):
        spec = BenchmarkSpec(key="hallucination_rate", category="safety", higher_is_better=False, max_score=100)
        assert normalize_score(10, spec, []) == pytest.approx(90.0)

    def test_single_value_is_neutral_either_way(self):
        assert normalize_score(300, LATENCY, [300]) == SINGLE_VALUE_SCORE


class TestPurity:
    def test_same_inputs_same_output(self):
        population = [10, 20, 20, 30]
        first = normalize_score(20, ELO, population)
        second = normalize_score(20, ELO, population)
        assert first == second
        assert population == [10, 20, 20, 30]

    def test_accepts_any_iterable(self):
        assert normalize_score(20, ELO, iter([10, 20, 20, 30])) == pytest.approx(50.0)
