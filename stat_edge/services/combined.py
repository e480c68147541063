"""
Combined-metrics calculator.

Merges two team profiles into match-level expected totals::

    combined(metric) = clamp(((home_avg + away_avg) / 2) × multiplier, bounds)

rounded to one decimal.  Both teams need a goals sample of at least
``min_sample_size`` (3); otherwise every metric is unknown and only the
diagnostic ``sample_size`` is reported.
"""

import logging
from typing import Dict, Optional

from stat_edge.core.engine_config import EngineConfig
from stat_edge.core.metrics import GOALS, METRICS
from stat_edge.core.types import CombinedMetrics, TeamMetricProfile

logger = logging.getLogger(__name__)


def combine_value(
    metric: str,
    home_avg: float,
    away_avg: float,
    config: EngineConfig,
) -> float:
    """Apply the multiplier, clamp and one-decimal rounding to one metric."""
    value = ((home_avg + away_avg) / 2.0) * config.multipliers[metric]
    value = config.bounds[metric].clamp(value)
    return round(value, 1)


def combine(
    home: TeamMetricProfile,
    away: TeamMetricProfile,
    config: Optional[EngineConfig] = None,
) -> CombinedMetrics:
    """
    Combine two profiles into match-level expectations.

    A secondary metric with no accepted samples on either side carries no
    information, so it is reported unknown rather than combined from a
    placeholder zero.  Goals are always known once the sample gate passes.
    """
    config = config or EngineConfig.default()
    sample_size = min(home.sample_size, away.sample_size)

    values: Dict[str, Optional[float]] = {m: None for m in METRICS}

    if home.sample_size < config.min_sample_size or away.sample_size < config.min_sample_size:
        logger.info(
            "Insufficient sample size: home=%d, away=%d (min %d required)",
            home.sample_size, away.sample_size, config.min_sample_size,
        )
        return CombinedMetrics(sample_size=sample_size, **values)

    for metric in METRICS:
        home_sample = home.sample(metric)
        away_sample = away.sample(metric)
        if metric != GOALS and not (home_sample.has_data and away_sample.has_data):
            logger.debug(
                "Combined %s unknown: home n=%d, away n=%d",
                metric, home_sample.sample_size, away_sample.sample_size,
            )
            continue
        values[metric] = combine_value(
            metric, home_sample.average, away_sample.average, config
        )

    combined = CombinedMetrics(sample_size=sample_size, **values)
    logger.info(
        "Combined: goals=%s corners=%s offsides=%s fouls=%s cards=%s "
        "(samples: H=%d/A=%d)",
        combined.goals, combined.corners, combined.offsides,
        combined.fouls, combined.cards,
        home.sample_size, away.sample_size,
    )
    return combined
