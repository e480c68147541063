"""
Tests for the over/under probability model
Run with: pytest tests/test_probability.py -v
"""

import pytest
from scipy.stats import nbinom, poisson

from stat_edge.core.engine_config import EngineConfig
from stat_edge.core.types import TeamMetricProfile
from stat_edge.services.probability import (
    compute_models,
    dispersed_over_under,
    expected_total_goals,
    model_confidence,
    model_for_line,
    over_under_probability,
    shrinkage_weight,
)


def _profile(team_id, goals, n=5, corners=5.0, cards=2.0, sample_sizes=None):
    return TeamMetricProfile.from_averages(
        team_id,
        {"goals": goals, "corners": corners, "cards": cards, "fouls": 11.0, "offsides": 2.0},
        n,
        sample_sizes=sample_sizes,
    )


class TestShrinkage:
    """Bayesian shrinkage toward the league mean"""

    def test_weight(self):
        assert shrinkage_weight(5, 10.0) == pytest.approx(1 / 3)
        assert shrinkage_weight(10, 10.0) == pytest.approx(0.5)

    def test_empty_sample_has_zero_weight(self):
        assert shrinkage_weight(0, 10.0) == 0.0

    def test_expected_rates(self):
        lam_home, lam_away, lam_total = expected_total_goals(
            _profile(1, 1.8), _profile(2, 1.2), EngineConfig.default()
        )
        assert lam_home == pytest.approx((1.8 / 3 + 1.4 * 2 / 3) * 1.06)
        assert lam_away == pytest.approx(1.2 / 3 + 1.4 * 2 / 3)
        assert lam_total == pytest.approx(2.96, abs=0.01)

    def test_league_mean_override(self):
        cfg = EngineConfig.default()
        _, _, default_total = expected_total_goals(_profile(1, 1.5), _profile(2, 1.5), cfg)
        _, _, high_total = expected_total_goals(
            _profile(1, 1.5), _profile(2, 1.5), cfg, league_mean_goals=1.7
        )
        assert high_total > default_total


class TestGoalsOverUnder:
    """Poisson total-goals probabilities"""

    def test_worked_example(self):
        home, away = _profile(1, 1.8), _profile(2, 1.2)
        lam = (1.8 / 3 + 1.4 * 2 / 3) * 1.06 + (1.2 / 3 + 1.4 * 2 / 3)

        ou = over_under_probability(home, away, 2.5)

        assert ou.prob_over == pytest.approx(1 - poisson.cdf(2, lam))
        assert ou.prob_over == pytest.approx(0.568, abs=0.002)
        assert ou.expected_total == pytest.approx(lam)

    def test_sides_sum_to_one(self):
        ou = over_under_probability(_profile(1, 1.1), _profile(2, 0.9), 1.5)
        assert ou.prob_over + ou.prob_under == pytest.approx(1.0)

    def test_higher_line_lower_over_probability(self):
        home, away = _profile(1, 1.6), _profile(2, 1.3)
        overs = [over_under_probability(home, away, line).prob_over for line in (0.5, 1.5, 2.5, 3.5)]
        assert overs == sorted(overs, reverse=True)

    def test_empty_samples_fall_back_to_league_mean(self):
        home, away = _profile(1, 0.0, n=0), _profile(2, 0.0, n=0)
        ou = over_under_probability(home, away, 2.5)
        assert ou.expected_total == pytest.approx(1.4 * 1.06 + 1.4)


class TestDispersedMarkets:
    """Negative-binomial corners and cards"""

    def test_corners(self):
        home, away = _profile(1, 1.5, corners=5.0), _profile(2, 1.5, corners=5.4)
        ou = dispersed_over_under("corners", home, away, 9.5)

        mu, r = 5.2, 4.0
        assert ou.prob_under == pytest.approx(nbinom.cdf(9, r, r / (r + mu)))
        assert ou.expected_total == pytest.approx(5.2)

    def test_cards_uses_own_dispersion(self):
        home, away = _profile(1, 1.5, cards=2.0), _profile(2, 1.5, cards=2.4)
        ou = dispersed_over_under("cards", home, away, 2.5)

        mu, r = 2.2, 3.0
        assert ou.prob_under == pytest.approx(nbinom.cdf(2, r, r / (r + mu)))

    def test_unmodelled_market(self):
        assert dispersed_over_under("fouls", _profile(1, 1.5), _profile(2, 1.5), 20.5) is None
        assert model_for_line("offsides", 3.5, _profile(1, 1.5), _profile(2, 1.5)) is None

    def test_missing_samples(self):
        home = _profile(1, 1.5, corners=0.0, sample_sizes={"corners": 0})
        assert dispersed_over_under("corners", _profile(2, 1.5), home, 9.5) is None


class TestModelOutputs:
    """Confidence and the full model sweep"""

    @pytest.mark.parametrize("home_n, away_n, expected", [(5, 5, "high"), (5, 3, "med"), (2, 5, "low")])
    def test_confidence(self, home_n, away_n, expected):
        assert model_confidence(_profile(1, 1.5, n=home_n), _profile(2, 1.5, n=away_n)) == expected

    def test_secondary_markets_capped_at_med(self):
        output = model_for_line("corners", 9.5, _profile(1, 1.5), _profile(2, 1.5))
        assert output.confidence == "med"

    def test_goals_rationale(self):
        output = model_for_line("goals", 2.5, _profile(1, 1.8), _profile(2, 1.2))
        assert output.confidence == "high"
        assert "Poisson" in output.rationale

    def test_compute_models_covers_configured_lines(self):
        outputs = compute_models(_profile(1, 1.5), _profile(2, 1.5))
        keys = {(o.market, o.line) for o in outputs}

        assert ("goals", 0.5) in keys and ("goals", 4.5) in keys
        assert ("corners", 8.5) in keys and ("cards", 5.5) in keys
        assert len(outputs) == 5 + 4 + 4
