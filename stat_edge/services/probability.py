"""
Probability model: count-data over/under probabilities.

Goals (Poisson with shrinkage)
------------------------------
Each team's goal average is shrunk toward the league baseline in
proportion to sample confidence::

    w        = n / (n + τ)                         τ = 10
    λ_home   = (avg_h · w_h + mean · (1 − w_h)) · home_advantage
    λ_away   =  avg_a · w_a + mean · (1 − w_a)
    λ_total  = λ_home + λ_away

Total goals ~ Poisson(λ_total); ``P(under line) = CDF(λ_total, floor(line))``.
With five-match samples the weight is only 1/3, so a hot streak moves λ
by a third of its size.

Corners and cards (negative binomial)
-------------------------------------
Mean ``(home_avg + away_avg) / 2`` with market dispersion ``r`` from the
config (corners 4, cards 3).  Fouls and offsides have no model; callers
receive ``None``.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from stat_edge.core.count_models import goals_at_or_under, negbin_cdf, poisson_cdf
from stat_edge.core.engine_config import EngineConfig
from stat_edge.core.metrics import GOALS
from stat_edge.core.types import ModelOutput, TeamMetricProfile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OverUnder:
    """Over / under probabilities for one line."""

    prob_over: float
    prob_under: float
    expected_total: float


def shrinkage_weight(sample_size: int, tau: float) -> float:
    """``n / (n + τ)``; 0 for an empty sample."""
    if sample_size <= 0:
        return 0.0
    return sample_size / (sample_size + tau)


def expected_total_goals(
    home: TeamMetricProfile,
    away: TeamMetricProfile,
    config: EngineConfig,
    league_mean_goals: Optional[float] = None,
) -> Tuple[float, float, float]:
    """
    Shrunk Poisson rates for the fixture.

    Returns:
        ``(λ_home, λ_away, λ_total)``.
    """
    mean = config.league_mean_goals if league_mean_goals is None else league_mean_goals
    w_home = shrinkage_weight(home.sample_size, config.shrinkage_tau)
    w_away = shrinkage_weight(away.sample_size, config.shrinkage_tau)

    lam_home = (home.average(GOALS) * w_home + mean * (1.0 - w_home)) * config.home_advantage
    lam_away = away.average(GOALS) * w_away + mean * (1.0 - w_away)
    return lam_home, lam_away, lam_home + lam_away


def over_under_probability(
    home: TeamMetricProfile,
    away: TeamMetricProfile,
    line: float,
    config: Optional[EngineConfig] = None,
    league_mean_goals: Optional[float] = None,
) -> OverUnder:
    """
    Goals over/under probability for ``line`` (0.5, 1.5, 2.5, …).

    Examples::

        # 1.8 / 1.2 goal averages, five matches each, mean 1.4:
        #   λ_home ≈ 1.63, λ_away ≈ 1.33, λ_total ≈ 2.96
        over_under_probability(home, away, 2.5).prob_over  → ≈ 0.568
    """
    config = config or EngineConfig.default()
    _, _, lam_total = expected_total_goals(home, away, config, league_mean_goals)
    prob_under = poisson_cdf(lam_total, goals_at_or_under(line))
    return OverUnder(
        prob_over=1.0 - prob_under,
        prob_under=prob_under,
        expected_total=lam_total,
    )


def dispersed_over_under(
    market: str,
    home: TeamMetricProfile,
    away: TeamMetricProfile,
    line: float,
    config: Optional[EngineConfig] = None,
) -> Optional[OverUnder]:
    """
    Negative-binomial over/under for an overdispersed market.

    Returns ``None`` when ``market`` has no configured dispersion or either
    team has no samples for it.
    """
    config = config or EngineConfig.default()
    r = config.dispersion.get(market)
    if r is None:
        return None
    home_sample = home.sample(market)
    away_sample = away.sample(market)
    if not (home_sample.has_data and away_sample.has_data):
        return None
    mu = (home_sample.average + away_sample.average) / 2.0
    prob_under = negbin_cdf(mu, r, goals_at_or_under(line))
    return OverUnder(prob_over=1.0 - prob_under, prob_under=prob_under, expected_total=mu)


def model_confidence(home: TeamMetricProfile, away: TeamMetricProfile) -> str:
    """``high`` when both goal samples are full, ``med`` at 3+, else ``low``."""
    if home.sample_size >= 5 and away.sample_size >= 5:
        return "high"
    if home.sample_size >= 3 and away.sample_size >= 3:
        return "med"
    return "low"


def model_for_line(
    market: str,
    line: float,
    home: TeamMetricProfile,
    away: TeamMetricProfile,
    config: Optional[EngineConfig] = None,
    league_mean_goals: Optional[float] = None,
) -> Optional[ModelOutput]:
    """Model output for one (market, line), or ``None`` if unmodelled."""
    config = config or EngineConfig.default()
    confidence = model_confidence(home, away)

    if market == GOALS:
        lam_home, lam_away, lam_total = expected_total_goals(
            home, away, config, league_mean_goals
        )
        ou = over_under_probability(home, away, line, config, league_mean_goals)
        return ModelOutput(
            market=market,
            line=line,
            prob_over=ou.prob_over,
            prob_under=ou.prob_under,
            confidence=confidence,
            rationale=(
                f"Poisson λ={lam_total:.2f} (home={lam_home:.2f}+HA, "
                f"away={lam_away:.2f}), shrinkage τ={config.shrinkage_tau:g}"
            ),
        )

    ou = dispersed_over_under(market, home, away, line, config)
    if ou is None:
        return None
    # Secondary markets never reach "high": the window is often short.
    return ModelOutput(
        market=market,
        line=line,
        prob_over=ou.prob_over,
        prob_under=ou.prob_under,
        confidence="med" if confidence != "low" else "low",
        rationale=f"NegBin μ={ou.expected_total:.2f}, r={config.dispersion[market]:g}",
    )


def compute_models(
    home: TeamMetricProfile,
    away: TeamMetricProfile,
    config: Optional[EngineConfig] = None,
    league_mean_goals: Optional[float] = None,
) -> List[ModelOutput]:
    """Model outputs for every configured (market, line)."""
    config = config or EngineConfig.default()
    outputs: List[ModelOutput] = []
    for market, lines in config.model_lines.items():
        for line in lines:
            output = model_for_line(market, line, home, away, config, league_mean_goals)
            if output is not None:
                outputs.append(output)
    logger.debug(
        "Computed %d model outputs for teams %s/%s",
        len(outputs), home.team_id, away.team_id,
    )
    return outputs
