"""
Tests for core odds mathematics
Run with: pytest tests/test_odds_math.py -v
"""

import math

import pytest

from stat_edge.core.odds_math import (
    edge,
    expected_value,
    implied_prob,
    is_positive_edge,
    is_valid_decimal_odds,
    overround,
    remove_margin,
)


class TestOddsValidation:
    """Decimal odds sanity"""

    @pytest.mark.parametrize("odds", [1.01, 1.85, 2, 15.0])
    def test_valid_odds(self, odds):
        assert is_valid_decimal_odds(odds)

    @pytest.mark.parametrize(
        "odds", [1.0, 0.5, -2.0, float("nan"), float("inf"), None, "1.85", True]
    )
    def test_degenerate_odds(self, odds):
        assert not is_valid_decimal_odds(odds)


class TestImpliedProb:
    """Raw implied probability"""

    def test_even_money(self):
        assert implied_prob(2.0) == pytest.approx(0.5)

    def test_favourite(self):
        assert implied_prob(1.25) == pytest.approx(0.8)

    def test_invalid_odds_raise(self):
        with pytest.raises(ValueError):
            implied_prob(1.0)
        with pytest.raises(ValueError):
            implied_prob(float("nan"))


class TestMarginRemoval:
    """Proportional normalisation of two-way markets"""

    def test_symmetric_market(self):
        p_over, p_under = remove_margin(1.90, 1.90)
        assert p_over == pytest.approx(0.5)
        assert p_under == pytest.approx(0.5)

    def test_probabilities_sum_to_one(self):
        p_over, p_under = remove_margin(1.50, 2.60)
        assert p_over + p_under == pytest.approx(1.0)
        assert p_over > p_under

    def test_normalised_below_raw(self):
        p_over, _ = remove_margin(1.85, 1.95)
        assert p_over < implied_prob(1.85)

    def test_missing_side_returns_none(self):
        assert remove_margin(1.90, None) is None

    def test_degenerate_side_returns_none(self):
        assert remove_margin(1.0, 2.0) is None
        assert remove_margin(1.9, float("inf")) is None

    def test_overround(self):
        assert overround(1.90, 1.90) == pytest.approx(2 / 1.9)
        assert overround(1.90, 0.9) is None


class TestEdge:
    """Model vs market edge"""

    def test_edge_is_difference(self):
        assert edge(0.568, 0.513) == pytest.approx(0.055)

    def test_negative_edge(self):
        assert edge(0.45, 0.5) < 0

    @pytest.mark.parametrize(
        "value, expected",
        [(0.01, True), (0.0, False), (-0.02, False), (None, False), (math.nan, False)],
    )
    def test_is_positive_edge(self, value, expected):
        assert is_positive_edge(value) is expected

    def test_expected_value(self):
        assert expected_value(0.55, 2.0) == pytest.approx(0.10)
        assert expected_value(0.50, 1.90) == pytest.approx(-0.05)
