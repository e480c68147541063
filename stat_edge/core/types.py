"""Data-transfer objects shared by every stage of the selection pipeline.

Flow::

    FixtureStatRow ─► TeamMetricProfile ─► CombinedMetrics ─► Pick
                                                    │
    OddsQuote / TwoWayLine ─────────────────────────┴─► Selection

Design choices
--------------
* Every DTO is a frozen, slotted dataclass.  Selections are superseded by
  the next recompute cycle, never mutated, and frozen objects can be shared
  across worker threads without copying.
* "No information" is always ``None`` (combined values, model probability),
  never a numeric zero.  A :class:`MetricSample` with ``sample_size == 0``
  has ``average == 0.0`` only so arithmetic stays total; consumers check
  ``sample_size`` before trusting the average.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Mapping, Optional

from stat_edge.core.metrics import METRICS, require_metric


# ---------------------------------------------------------------------------
# Aggregation inputs / outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FixtureStatRow:
    """One team's raw statistics from one finished fixture.

    Attributes:
        fixture_id: Provider fixture identifier.
        competition_id: Provider league / cup identifier.  ``None`` when
            unknown, in which case only the per-row flags and the name
            heuristic can mark the competition unreliable.
        goals: Goals scored by the team.  Always present.
        corners, cards, fouls, offsides: Raw values, ``None`` when the
            provider returned nothing for that statistic.
        competition_name: Display name, used by the cup-name heuristic.
        kickoff: Unix timestamp of kickoff, for ordering and diagnostics.
        unreliable_metrics: Explicit per-row reliability flags: metrics the
            upstream coverage table marks as not reliably reported for this
            competition.  ``None`` means "no per-row information".
        is_cup: Explicit cup / low-coverage flag for the competition.
            ``None`` means "unknown" (fall back to the policy).
    """

    fixture_id: int
    competition_id: Optional[int]
    goals: float
    corners: Optional[float] = None
    cards: Optional[float] = None
    fouls: Optional[float] = None
    offsides: Optional[float] = None
    competition_name: Optional[str] = None
    kickoff: Optional[int] = None
    unreliable_metrics: Optional[frozenset[str]] = None
    is_cup: Optional[bool] = None

    def value(self, metric: str) -> Optional[float]:
        """Raw value for ``metric`` (``None`` when absent)."""
        return getattr(self, require_metric(metric))


@dataclass(frozen=True, slots=True)
class CompetitionCoverage:
    """Known statistics coverage for one competition.

    Mirrors the upstream ``league_stats_coverage`` table: a ``skip_*`` flag
    means the provider does not reliably report that statistic for the
    competition.
    """

    competition_id: int
    skip_goals: bool = False
    skip_corners: bool = False
    skip_cards: bool = False
    skip_fouls: bool = False
    skip_offsides: bool = False
    is_cup: bool = False

    def skips(self, metric: str) -> bool:
        return bool(getattr(self, f"skip_{require_metric(metric)}"))

    @property
    def is_unreliable(self) -> bool:
        """True if any secondary statistic is flagged, or it is a cup."""
        return self.is_cup or any(
            (self.skip_corners, self.skip_cards, self.skip_fouls, self.skip_offsides)
        )


@dataclass(frozen=True, slots=True)
class MetricSample:
    """Rolling average of one metric and the number of fixtures behind it."""

    average: float = 0.0
    sample_size: int = 0

    @property
    def has_data(self) -> bool:
        return self.sample_size > 0


@dataclass(frozen=True, slots=True)
class TeamMetricProfile:
    """A team's per-metric rolling profile over its most recent fixtures.

    Attributes:
        team_id: Provider team identifier.
        metrics: ``{metric: MetricSample}`` for all five metrics.
        fixture_ids: Fixtures contributing to the goals average, newest first.
        computed_at: When the profile was built (UTC).
    """

    team_id: int
    metrics: Mapping[str, MetricSample]
    fixture_ids: tuple[int, ...] = ()
    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        missing = [m for m in METRICS if m not in self.metrics]
        if missing:
            raise ValueError(f"Profile for team {self.team_id} lacks metrics {missing}.")
        object.__setattr__(self, "metrics", MappingProxyType(dict(self.metrics)))

    def sample(self, metric: str) -> MetricSample:
        return self.metrics[require_metric(metric)]

    def average(self, metric: str) -> float:
        return self.sample(metric).average

    @property
    def sample_size(self) -> int:
        """Goals sample size: the team's reliability signal."""
        return self.metrics["goals"].sample_size

    @property
    def last_fixture_id(self) -> Optional[int]:
        return self.fixture_ids[0] if self.fixture_ids else None

    def is_sufficient(self, min_sample_size: int = 3) -> bool:
        return self.sample_size >= min_sample_size

    @classmethod
    def from_averages(
        cls,
        team_id: int,
        averages: Mapping[str, float],
        sample_size: int,
        *,
        sample_sizes: Optional[Mapping[str, int]] = None,
        fixture_ids: tuple[int, ...] = (),
    ) -> TeamMetricProfile:
        """Build a profile from cached averages (e.g. a persisted stats row).

        ``sample_sizes`` gives per-metric sizes; metrics missing from it
        inherit ``sample_size``.
        """
        sizes = dict(sample_sizes or {})
        metrics = {
            m: MetricSample(
                average=float(averages.get(m, 0.0) or 0.0),
                sample_size=int(sizes.get(m, sample_size)),
            )
            for m in METRICS
        }
        return cls(team_id=team_id, metrics=metrics, fixture_ids=tuple(fixture_ids))


@dataclass(frozen=True, slots=True)
class CombinedMetrics:
    """Match-level expected totals.  ``None`` means unknown."""

    goals: Optional[float]
    corners: Optional[float]
    cards: Optional[float]
    fouls: Optional[float]
    offsides: Optional[float]
    sample_size: int

    def value(self, metric: str) -> Optional[float]:
        return getattr(self, require_metric(metric))

    @property
    def all_unknown(self) -> bool:
        return all(self.value(m) is None for m in METRICS)

    def snapshot(self) -> dict[str, Optional[float]]:
        """Plain dict of the five values, as persisted alongside a selection."""
        return {m: self.value(m) for m in METRICS}


# ---------------------------------------------------------------------------
# Odds
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class OddsQuote:
    """One bookmaker price for one side of one over/under line."""

    market: str
    side: str
    line: float
    bookmaker: str
    odds: float

    @property
    def key(self) -> tuple[str, str, float]:
        return (self.market, self.side, round(self.line, 2))


@dataclass(frozen=True, slots=True)
class TwoWayLine:
    """Both sides of one over/under line from one bookmaker."""

    market: str
    line: float
    bookmaker: str
    over_odds: float
    under_odds: float

    def odds_for(self, side: str) -> float:
        return self.over_odds if side == "over" else self.under_odds


# ---------------------------------------------------------------------------
# Picks, model outputs, selections
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Pick:
    """Canonical (market, side, line) a combined value qualifies for."""

    market: str
    side: str
    line: float

    def __str__(self) -> str:
        return f"{self.market} {self.side} {self.line}"


@dataclass(frozen=True, slots=True)
class ModelOutput:
    """Model probabilities for both sides of one line."""

    market: str
    line: float
    prob_over: float
    prob_under: float
    confidence: str
    rationale: str

    def prob_for(self, side: str) -> float:
        return self.prob_over if side == "over" else self.prob_under


@dataclass(frozen=True, slots=True)
class EdgeCandidate:
    """A positive-edge side of one bookmaker line."""

    market: str
    line: float
    side: str
    model_prob: float
    book_prob: float
    edge: float
    odds: float
    bookmaker: str
    confidence: str = "low"
    rationale: str = ""
    raw_over_prob: Optional[float] = None
    raw_under_prob: Optional[float] = None


@dataclass(frozen=True, slots=True)
class MetricAvailability:
    """Transparency flag for one metric of one team."""

    available: bool
    sample_size: int
    value: float


@dataclass(frozen=True, slots=True)
class TeamIntegrity:
    """Integrity view of one side of a fixture."""

    has_profile: bool
    sample_size: int
    metrics: Mapping[str, MetricAvailability]


@dataclass(frozen=True, slots=True)
class IntegrityResult:
    """Whether a fixture's profiles may be exposed, and why not."""

    is_valid: bool
    home: TeamIntegrity
    away: TeamIntegrity
    reason: Optional[str] = None

    def metric_available(self, metric: str) -> bool:
        """True when ``metric`` is available for both teams."""
        return (
            self.home.metrics[metric].available
            and self.away.metrics[metric].available
        )


@dataclass(frozen=True, slots=True)
class Selection:
    """A fully-justified betting selection for one fixture.

    Immutable once emitted; the next recompute cycle supersedes it.
    Storage key: (fixture_id, market, side, line, bookmaker).
    """

    fixture_id: int
    pick: Pick
    quote: OddsQuote
    model_prob: Optional[float]
    book_prob: Optional[float]
    edge: Optional[float]
    combined_value: float
    combined_snapshot: Mapping[str, Optional[float]]
    rules_version: str
    sample_size: int
    metric_available: bool
    confidence: str
    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self) -> tuple[int, str, str, float, str]:
        return (
            self.fixture_id,
            self.pick.market,
            self.pick.side,
            round(self.pick.line, 2),
            self.quote.bookmaker,
        )

    def to_record(self):
        """Pydantic upsert payload (:class:`stat_edge.schemas.SelectionRecord`)."""
        from stat_edge.schemas import SelectionRecord

        return SelectionRecord.from_selection(self)
