"""
Tests for the suspicious-odds guard
Run with: pytest tests/test_guards.py -v
"""

import logging
from dataclasses import replace

import pytest

from stat_edge.core.engine_config import EngineConfig
from stat_edge.core.types import EdgeCandidate, OddsQuote
from stat_edge.services.guards import check_suspicious_odds, filter_suspicious


class TestGlobalBand:
    """ODDS_MIN / ODDS_MAX band"""

    def test_above_maximum(self):
        reason = check_suspicious_odds("goals", 2.5, 6.2)

        assert reason is not None
        assert reason.startswith("Out of band")
        assert "6.20" in reason
        assert "above maximum" in reason

    def test_below_minimum(self):
        reason = check_suspicious_odds("goals", 0.5, 1.10)
        assert "below minimum" in reason

    def test_band_edges_pass(self):
        assert check_suspicious_odds("fouls", 20.5, 1.25) is None
        assert check_suspicious_odds("fouls", 20.5, 5.00) is None

    def test_custom_band(self):
        cfg = replace(EngineConfig.default(), odds_max=7.0)
        assert check_suspicious_odds("offsides", 3.5, 6.2, cfg) is None

    @pytest.mark.parametrize("odds", [float("nan"), float("inf"), None])
    def test_non_finite_flagged(self, odds):
        assert check_suspicious_odds("goals", 2.5, odds) is not None

    @pytest.mark.parametrize("odds", ["1.85", True, [1.85]])
    def test_non_numeric_flagged(self, odds):
        warning = check_suspicious_odds("goals", 2.5, odds)
        assert warning.startswith("Invalid odds: goals Over 2.5")


class TestMarketCeilings:
    """Per-(market, line) ceilings"""

    def test_goals_over_1_5_ceiling(self):
        reason = check_suspicious_odds("goals", 1.5, 3.9)

        assert reason.startswith("Suspicious odds")
        assert "3.8" in reason

    def test_ceiling_is_inclusive(self):
        assert check_suspicious_odds("goals", 1.5, 3.8) is not None

    def test_below_ceiling_passes(self):
        assert check_suspicious_odds("goals", 1.5, 3.5) is None

    def test_cards_ceiling(self):
        assert check_suspicious_odds("cards", 2.5, 4.6) is not None
        assert check_suspicious_odds("cards", 3.5, 4.6) is None

    def test_line_tolerance(self):
        assert check_suspicious_odds("goals", 1.505, 3.9) is not None

    def test_side_in_message(self):
        reason = check_suspicious_odds("goals", 2.5, 1.10, side="under")
        assert "goals Under 2.5" in reason


class TestFilterSuspicious:
    """Dropping and logging suspicious items"""

    def test_filters_quotes(self, caplog):
        quotes = [
            OddsQuote("goals", "over", 2.5, "Bet365", 1.85),
            OddsQuote("goals", "over", 2.5, "Broken", 6.20),
        ]
        with caplog.at_level(logging.WARNING):
            kept = filter_suspicious(quotes)

        assert [q.bookmaker for q in kept] == ["Bet365"]
        assert "DROPPED" in caplog.text

    def test_filters_edge_candidates(self):
        candidates = [
            EdgeCandidate("goals", 1.5, "over", 0.8, 0.7, 0.1, 1.40, "A"),
            EdgeCandidate("goals", 1.5, "over", 0.4, 0.2, 0.2, 4.00, "B"),
        ]
        kept = filter_suspicious(candidates)
        assert [c.bookmaker for c in kept] == ["A"]

    def test_empty(self):
        assert filter_suspicious([]) == []
