"""
Metric aggregator: per-team rolling profiles from raw fixture rows.

Turns a team's recent finished fixtures (newest first) into a
:class:`~stat_edge.core.types.TeamMetricProfile`: a rolling average and
sample size for each of goals, corners, cards, fouls and offsides.

Per-metric selection
--------------------
Every metric is collected by its own bounded accumulator, all fed from a
single newest→oldest pass over the shared fixture list:

    goals       first ``window`` fixtures, no skip logic.  Anchors the
                team's freshness / reliability signal.
    secondary   corners, cards, fouls, offsides.  A fixture is skipped for
                the metric when
                  (a) the competition is flagged unreliable for the metric,
                  (b) the value is missing, or
                  (c) the fake-zero pattern fires: all four secondary
                      values are zero-or-missing AND the competition is
                      unreliable / cup-like.

The scan stops as soon as all five accumulators hold ``window`` samples.

Many cups report goals faithfully but zero out secondary statistics;
counting those zeros as real would drag corners and fouls averages toward
zero, so they are excluded rather than averaged in.

Competition reliability
-----------------------
:class:`CompetitionPolicy` decides whether a competition is unreliable.
Precedence: explicit per-row flags on the :class:`FixtureStatRow`, then the
coverage map, then the cup-name keyword heuristic.  The heuristic is policy,
not a guarantee: pass ``cup_keywords=()`` to disable it.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from stat_edge.core.metrics import GOALS, METRICS, SECONDARY_METRICS
from stat_edge.core.types import (
    CompetitionCoverage,
    FixtureStatRow,
    MetricSample,
    TeamMetricProfile,
)

logger = logging.getLogger(__name__)

#: Name fragments that mark a competition as a cup.  Lower-case.
DEFAULT_CUP_KEYWORDS: tuple = (
    "cup",
    "trophy",
    "fa ",
    "efl",
    "carabao",
    "league cup",
    "coppa",
    "pokal",
    "coupe",
)

DEFAULT_WINDOW = 5

_NUMERIC_CHARS = re.compile(r"[^0-9.\-]")


# ---------------------------------------------------------------------------
# Competition reliability policy
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CompetitionPolicy:
    """
    Decides which competitions report secondary statistics reliably.

    ``coverage`` is the explicit per-competition table; ``cup_keywords`` is
    the fallback name heuristic applied only when no explicit information
    exists for a fixture.
    """

    coverage: Mapping[int, CompetitionCoverage] = field(default_factory=dict)
    cup_keywords: tuple = DEFAULT_CUP_KEYWORDS

    @classmethod
    def from_coverage_rows(
        cls,
        rows: Iterable[Mapping],
        cup_keywords: tuple = DEFAULT_CUP_KEYWORDS,
    ) -> "CompetitionPolicy":
        """Build a policy from coverage-table rows (``league_id``, ``skip_*``, ``is_cup``)."""
        coverage: Dict[int, CompetitionCoverage] = {}
        for row in rows:
            league_id = row.get("league_id", row.get("competition_id"))
            if league_id is None:
                continue
            coverage[int(league_id)] = CompetitionCoverage(
                competition_id=int(league_id),
                skip_goals=bool(row.get("skip_goals", False)),
                skip_corners=bool(row.get("skip_corners", False)),
                skip_cards=bool(row.get("skip_cards", False)),
                skip_fouls=bool(row.get("skip_fouls", False)),
                skip_offsides=bool(row.get("skip_offsides", False)),
                is_cup=bool(row.get("is_cup", False)),
            )
        logger.info("Loaded stats coverage for %d competitions", len(coverage))
        return cls(coverage=coverage, cup_keywords=cup_keywords)

    def looks_like_cup(self, competition_name: Optional[str]) -> bool:
        if not competition_name or not self.cup_keywords:
            return False
        name = competition_name.lower()
        return any(keyword in name for keyword in self.cup_keywords)

    def skips_metric(self, row: FixtureStatRow, metric: str) -> bool:
        """True if ``row``'s competition is flagged unreliable for ``metric``."""
        if row.unreliable_metrics is not None:
            return metric in row.unreliable_metrics
        coverage = self.coverage.get(row.competition_id)
        if coverage is not None:
            return coverage.skips(metric)
        return False

    def is_unreliable(self, row: FixtureStatRow) -> bool:
        """True if ``row``'s competition is unreliable or cup-like."""
        if row.is_cup is not None or row.unreliable_metrics is not None:
            flagged = row.unreliable_metrics or frozenset()
            return bool(row.is_cup) or any(m in flagged for m in SECONDARY_METRICS)
        coverage = self.coverage.get(row.competition_id)
        if coverage is not None:
            return coverage.is_unreliable
        return self.looks_like_cup(row.competition_name)


def is_fake_zero(row: FixtureStatRow, policy: CompetitionPolicy) -> bool:
    """
    Detect a reporting gap disguised as zeros.

    All four secondary statistics must be zero-or-missing *and* the
    competition must be unreliable or cup-like.  A genuine 0-card,
    0-offside match in a covered league still has corners and fouls.
    """
    all_blank = all(not row.value(m) for m in SECONDARY_METRICS)
    return all_blank and policy.is_unreliable(row)


# ---------------------------------------------------------------------------
# Accumulation
# ---------------------------------------------------------------------------

@dataclass
class _MetricAccumulator:
    """Bounded collector for one metric."""

    target: int
    values: List[float] = field(default_factory=list)

    @property
    def full(self) -> bool:
        return len(self.values) >= self.target

    def offer(self, value: float) -> None:
        if not self.full:
            self.values.append(float(value))

    def to_sample(self) -> MetricSample:
        if not self.values:
            return MetricSample(average=0.0, sample_size=0)
        return MetricSample(
            average=float(np.mean(self.values)),
            sample_size=len(self.values),
        )


def _accept_secondary(
    row: FixtureStatRow,
    metric: str,
    fake_zero: bool,
    policy: CompetitionPolicy,
) -> bool:
    if policy.skips_metric(row, metric):
        return False
    value = row.value(metric)
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return False
    return not fake_zero


def build_profile(
    team_id: int,
    fixtures: Sequence[FixtureStatRow],
    policy: Optional[CompetitionPolicy] = None,
    window: int = DEFAULT_WINDOW,
) -> TeamMetricProfile:
    """
    Build a team's rolling profile from fixtures ordered newest first.

    Args:
        team_id: Team the rows belong to.
        fixtures: The team's finished fixtures, newest first.  Longer
            histories are fine; the scan stops once every metric is full.
        policy: Competition reliability policy.  Defaults to the name
            heuristic with no coverage table.
        window: Target samples per metric.

    Returns:
        Profile with per-metric averages and sample sizes.  A metric with no
        accepted samples has ``average=0.0`` and ``sample_size=0``.

    Raises:
        ValueError: If ``window < 1``.
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window!r}")
    policy = policy or CompetitionPolicy()

    acc = {m: _MetricAccumulator(target=window) for m in METRICS}
    goal_fixture_ids: List[int] = []
    fake_zero_count = 0

    for row in fixtures:
        goals_acc = acc[GOALS]
        if not goals_acc.full:
            if row.goals is None:
                logger.warning(
                    "Team %s fixture %s has no goals value; not counted",
                    team_id, row.fixture_id,
                )
            else:
                goals_acc.offer(row.goals)
                goal_fixture_ids.append(row.fixture_id)

        fake_zero = is_fake_zero(row, policy)
        if fake_zero:
            fake_zero_count += 1
            logger.debug(
                "Team %s fixture %s (competition %s): fake-zero secondary stats excluded",
                team_id, row.fixture_id, row.competition_id,
            )

        for metric in SECONDARY_METRICS:
            if acc[metric].full:
                continue
            if _accept_secondary(row, metric, fake_zero, policy):
                acc[metric].offer(row.value(metric))

        if all(a.full for a in acc.values()):
            break

    profile = TeamMetricProfile(
        team_id=team_id,
        metrics={m: a.to_sample() for m, a in acc.items()},
        fixture_ids=tuple(goal_fixture_ids),
    )
    _log_profile(profile, window, fake_zero_count)
    return profile


def _log_profile(profile: TeamMetricProfile, window: int, fake_zero_count: int) -> None:
    goals = profile.sample(GOALS)
    corners = profile.sample("corners")

    logger.info(
        "Team %s profile: goals=%.2f (%d) corners=%.2f (%d) cards=%.2f (%d) "
        "fouls=%.2f (%d) offsides=%.2f (%d), fake-zero fixtures=%d",
        profile.team_id,
        goals.average, goals.sample_size,
        corners.average, corners.sample_size,
        profile.average("cards"), profile.sample("cards").sample_size,
        profile.average("fouls"), profile.sample("fouls").sample_size,
        profile.average("offsides"), profile.sample("offsides").sample_size,
        fake_zero_count,
    )

    if goals.sample_size < window:
        logger.warning(
            "Team %s has only %d matches (expected %d)",
            profile.team_id, goals.sample_size, window,
        )
    if corners.sample_size < 3 <= goals.sample_size:
        logger.warning(
            "Team %s has limited corners data: %d/%d fixtures",
            profile.team_id, corners.sample_size, goals.sample_size,
        )
    if goals.average < 0.5 and goals.sample_size >= 3:
        logger.warning(
            "Team %s has unusually low goals average (%.2f from %d matches)",
            profile.team_id, goals.average, goals.sample_size,
        )


def newest_first(rows: Iterable[FixtureStatRow]) -> List[FixtureStatRow]:
    """Order rows by kickoff, newest first.  Rows without kickoff go last."""
    return sorted(
        rows,
        key=lambda r: (r.kickoff is not None, r.kickoff or 0),
        reverse=True,
    )


# ---------------------------------------------------------------------------
# Row extraction from provider payloads
# ---------------------------------------------------------------------------

def parse_stat_value(raw) -> Optional[float]:
    """
    Parse one provider statistic value.

    Numbers pass through (including 0).  Strings such as ``"10"`` or
    ``"54%"`` are stripped to their numeric part.  ``None`` and anything
    unparseable become ``None``.  Missing is never coerced to zero.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return None if isinstance(raw, float) and math.isnan(raw) else float(raw)
    if isinstance(raw, str):
        cleaned = _NUMERIC_CHARS.sub("", raw)
        try:
            return float(cleaned)
        except ValueError:
            return None
    return None


def _find_stat(statistics: Sequence[Mapping], *types: str) -> Optional[float]:
    for stat_type in types:
        wanted = stat_type.lower()
        for entry in statistics:
            if str(entry.get("type") or "").lower() == wanted:
                return parse_stat_value(entry.get("value"))
    return None


def row_from_api_statistics(
    fixture_id: int,
    competition_id: Optional[int],
    goals: float,
    statistics: Sequence[Mapping],
    *,
    competition_name: Optional[str] = None,
    kickoff: Optional[int] = None,
) -> FixtureStatRow:
    """
    Build a :class:`FixtureStatRow` from a provider statistics list.

    ``statistics`` is one team's entry list, e.g.
    ``[{"type": "Corner Kicks", "value": 5}, {"type": "Fouls", "value": "12"}]``.
    Cards are yellow + red, present when at least one of the two is.
    """
    corners = _find_stat(statistics, "Corner Kicks", "Corners")
    offsides = _find_stat(statistics, "Offsides")
    fouls = _find_stat(statistics, "Fouls")
    yellow = _find_stat(statistics, "Yellow Cards")
    red = _find_stat(statistics, "Red Cards")
    cards = None
    if yellow is not None or red is not None:
        cards = (yellow or 0.0) + (red or 0.0)

    return FixtureStatRow(
        fixture_id=fixture_id,
        competition_id=competition_id,
        goals=float(goals),
        corners=corners,
        cards=cards,
        fouls=fouls,
        offsides=offsides,
        competition_name=competition_name,
        kickoff=kickoff,
    )


def row_from_fixture_result(
    team_id: int,
    fixture: Mapping,
    result: Mapping,
    *,
    competition_name: Optional[str] = None,
) -> Optional[FixtureStatRow]:
    """
    Build a row for ``team_id`` from a stored fixture + result pair.

    ``result`` carries ``goals_home`` / ``goals_away`` style columns for
    every metric; the team's side is resolved from ``fixture["teams_home"]``.
    Returns ``None`` when the team played in neither slot or no goals value
    is recorded.
    """
    home_id = (fixture.get("teams_home") or {}).get("id")
    away_id = (fixture.get("teams_away") or {}).get("id")
    if home_id is not None and int(home_id) == team_id:
        side = "home"
    elif away_id is not None and int(away_id) == team_id:
        side = "away"
    else:
        return None

    goals = parse_stat_value(result.get(f"goals_{side}"))
    if goals is None:
        return None

    league_id = fixture.get("league_id")
    return FixtureStatRow(
        fixture_id=int(fixture["id"]),
        competition_id=int(league_id) if league_id is not None else None,
        goals=goals,
        corners=parse_stat_value(result.get(f"corners_{side}")),
        cards=parse_stat_value(result.get(f"cards_{side}")),
        fouls=parse_stat_value(result.get(f"fouls_{side}")),
        offsides=parse_stat_value(result.get(f"offsides_{side}")),
        competition_name=competition_name,
        kickoff=fixture.get("timestamp"),
    )
