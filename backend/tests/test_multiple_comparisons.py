"""Tests for Benjamini-Hochberg FDR correction."""

import pytest

from lifeconnections.ml.correlation.multiple_comparisons import benjamini_hochberg, correct_p_values


P_VALUES = [0.001, 0.01, 0.03, 0.04, 0.05, 0.10, 0.20, 0.50]


class TestBenjaminiHochberg:

    def test_only_first_two_remain_significant(self):
        adjusted = benjamini_hochberg(P_VALUES)
        assert [p < 0.05 for p in adjusted] == [True, True] + [False] * 6

    def test_adjusted_values_are_non_decreasing_in_rank_order(self):
        adjusted = benjamini_hochberg(P_VALUES)
        assert all(a <= b for a, b in zip(adjusted, adjusted[1:]))

    def test_known_values(self):
        adjusted = benjamini_hochberg(P_VALUES)
        assert adjusted[0] == pytest.approx(0.008)
        assert adjusted[1] == pytest.approx(0.04)
        assert adjusted[2] == pytest.approx(0.08)
        assert adjusted[-1] == pytest.approx(0.5)

    def test_input_order_is_preserved(self):
        shuffled = [0.50, 0.001, 0.20, 0.01]
        adjusted = benjamini_hochberg(shuffled)
        sorted_adjusted = benjamini_hochberg(sorted(shuffled))
        assert adjusted[1] == sorted_adjusted[0]
        assert adjusted[0] == sorted_adjusted[-1]

    def test_never_below_raw_and_capped_at_one(self):
        raw = [0.9, 0.95, 0.2, 0.04]
        adjusted = benjamini_hochberg(raw)
        assert all(a >= r for a, r in zip(adjusted, raw))
        assert all(a <= 1.0 for a in adjusted)

    def test_empty_input(self):
        assert benjamini_hochberg([]) == []


class TestCorrectPValues:

    def test_counts_discoveries(self):
        correction = correct_p_values(P_VALUES, fdr_level=0.05)
        assert correction.discoveries == 2
        assert len(correction.adjusted) == len(P_VALUES)
