"""
Stats integrity validator (goals first).

Goals are mandatory: a fixture is invalid when either team has no profile or
a goals sample below the minimum.  The other metrics are optional; a weak
corners or cards sample never blocks a fixture, it is only reported as
unavailable in the per-metric availability map.

The home team is checked first; the first failure sets ``reason``.
"""

import logging
from typing import Dict, Iterable, Mapping, Optional, Tuple

from stat_edge.core.metrics import METRICS, ZERO_TOLERANT_METRICS
from stat_edge.core.types import (
    IntegrityResult,
    MetricAvailability,
    TeamIntegrity,
    TeamMetricProfile,
)

logger = logging.getLogger(__name__)

MIN_SAMPLE_SIZE = 3


def metric_availability(
    profile: Optional[TeamMetricProfile],
    min_sample: int = MIN_SAMPLE_SIZE,
) -> Dict[str, MetricAvailability]:
    """Per-metric availability flags for one team.

    A metric is available with at least ``min_sample`` samples and a
    positive average.  Cards and offsides can legitimately average zero.
    """
    if profile is None:
        return {m: MetricAvailability(False, 0, 0.0) for m in METRICS}

    out: Dict[str, MetricAvailability] = {}
    for metric in METRICS:
        sample = profile.sample(metric)
        if metric in ZERO_TOLERANT_METRICS:
            value_ok = sample.average >= 0
        else:
            value_ok = sample.average > 0
        out[metric] = MetricAvailability(
            available=sample.sample_size >= min_sample and value_ok,
            sample_size=sample.sample_size,
            value=sample.average,
        )
    return out


def _team_integrity(
    profile: Optional[TeamMetricProfile],
    min_sample: int,
) -> TeamIntegrity:
    return TeamIntegrity(
        has_profile=profile is not None,
        sample_size=profile.sample_size if profile is not None else 0,
        metrics=metric_availability(profile, min_sample),
    )


def _failure(
    label: str,
    team_id,
    profile: Optional[TeamMetricProfile],
    min_sample: int,
) -> Optional[str]:
    if profile is None:
        return f"{label} team ({team_id}) has no stats profile"
    if profile.sample_size < min_sample:
        return (
            f"{label} team ({team_id}) has sample_size={profile.sample_size} "
            f"(need {min_sample}+ for goals)"
        )
    return None


def validate(
    home: Optional[TeamMetricProfile],
    away: Optional[TeamMetricProfile],
    min_sample: int = MIN_SAMPLE_SIZE,
    home_team_id=None,
    away_team_id=None,
) -> IntegrityResult:
    """
    Validate both teams of a fixture.

    ``home_team_id`` / ``away_team_id`` only label the reason when the
    corresponding profile is missing.
    """
    home_id = home.team_id if home is not None else home_team_id
    away_id = away.team_id if away is not None else away_team_id

    reason = _failure("Home", home_id, home, min_sample)
    if reason is None:
        reason = _failure("Away", away_id, away, min_sample)

    return IntegrityResult(
        is_valid=reason is None,
        home=_team_integrity(home, min_sample),
        away=_team_integrity(away, min_sample),
        reason=reason,
    )


def validate_batch(
    fixtures: Iterable[Tuple[int, int, int]],
    profiles: Mapping[int, TeamMetricProfile],
    min_sample: int = MIN_SAMPLE_SIZE,
) -> Dict[int, IntegrityResult]:
    """
    Validate many fixtures against one team-id → profile map.

    Args:
        fixtures: ``(fixture_id, home_team_id, away_team_id)`` triples.
        profiles: Available team profiles; absent teams count as missing.

    Returns:
        ``{fixture_id: IntegrityResult}``
    """
    results: Dict[int, IntegrityResult] = {}
    invalid = 0
    for fixture_id, home_id, away_id in fixtures:
        result = validate(
            profiles.get(home_id),
            profiles.get(away_id),
            min_sample,
            home_team_id=home_id,
            away_team_id=away_id,
        )
        if not result.is_valid:
            invalid += 1
            logger.info("Fixture %s rejected by integrity gate: %s", fixture_id, result.reason)
        results[fixture_id] = result

    if results:
        logger.info(
            "Integrity batch: %d/%d fixtures valid", len(results) - invalid, len(results)
        )
    return results
