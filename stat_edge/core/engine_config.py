"""Engine configuration: every tunable constant in one place.

This module is the **registry** for every constant the selection engine
uses.  Nowhere else in the codebase should the rolling window, minimum
sample size, odds band, shrinkage, or market ceilings be hard-coded.

Architecture
------------
:class:`EngineConfig` is a frozen dataclass carrying all constants.  The
named constructor :meth:`EngineConfig.default` returns the production
values; :meth:`EngineConfig.from_env` layers environment overrides on top of
it.  Services receive the config explicitly; they never read the
environment themselves.

Typical usage::

    from stat_edge.core.engine_config import EngineConfig

    cfg = EngineConfig.default()
    engine = SelectionEngine(config=cfg)

    # Per-league goal baseline:
    serie_a = cfg.with_league_mean(1.32)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Final, Mapping, Optional

from dotenv import load_dotenv

from stat_edge.core.metrics import (
    CARDS,
    CORNERS,
    GOALS,
    METRIC_BOUNDS,
    METRIC_MULTIPLIERS,
    Bounds,
)

#: Identifier of the production configuration, recorded on emitted rows.
CONFIG_ID_DEFAULT: Final[str] = "default"


@dataclass(frozen=True, slots=True)
class OddsCeiling:
    """Maximum plausible decimal odds for one (market, line) pair."""

    market: str
    line: float
    max_odds: float
    description: str = ""


#: Market-specific ceilings.  Absence of an entry means only the global
#: band applies.  Conservative: borderline prices are kept.
DEFAULT_ODDS_CEILINGS: Final[tuple[OddsCeiling, ...]] = (
    OddsCeiling(GOALS, 1.5, 3.8, "Goals O1.5 rarely exceeds 3.8"),
    OddsCeiling(GOALS, 2.5, 5.0, "Goals O2.5 rarely exceeds 5.0"),
    OddsCeiling(CORNERS, 8.5, 6.0, "Corners O8.5 rarely exceeds 6.0"),
    OddsCeiling(CORNERS, 9.5, 6.0, "Corners O9.5 rarely exceeds 6.0"),
    OddsCeiling(CORNERS, 10.5, 6.0, "Corners O10.5 rarely exceeds 6.0"),
    OddsCeiling(CORNERS, 11.5, 6.0, "Corners O11.5 rarely exceeds 6.0"),
    OddsCeiling(CORNERS, 12.5, 6.0, "Corners O12.5 rarely exceeds 6.0"),
    OddsCeiling(CARDS, 2.5, 4.5, "Cards O2.5 rarely exceeds 4.5"),
)


@dataclass(frozen=True)
class EngineConfig:
    """Immutable configuration bundle for the selection engine.

    Override via :func:`dataclasses.replace` for single-league or A/B-test
    tweaks.

    Attributes:
        config_id: Short identifier for logging and persisted rows.

        --- Aggregation ---
        rolling_window: Target number of accepted samples per metric.
        min_sample_size: Goals sample size below which a team profile is
            insufficient and a fixture is rejected.

        --- Combination ---
        multipliers: Per-metric multiplier applied to the mean of the two
            team averages.
        bounds: Per-metric clamp for combined values.

        --- Probability model ---
        shrinkage_tau: Pseudo-sample size τ in ``w = n / (n + τ)``.
        home_advantage: Multiplicative boost on the home goal rate.
        league_mean_goals: Per-team per-match goal baseline used when the
            caller supplies no league-specific value.
        dispersion: Negative-binomial dispersion ``r`` per market.  Markets
            absent here (other than goals) have no probability model.
        model_lines: Lines evaluated for the value-candidate view.

        --- Odds sanity ---
        odds_min: Lower edge of the global decimal-odds band.
        odds_max: Upper edge of the global decimal-odds band.
        odds_ceilings: Per-(market, line) plausibility ceilings.

        --- Output ---
        emit_unmodelled_picks: When True, rule-qualified picks in markets
            without a probability model (fouls, offsides) are emitted with
            ``model_prob=None``.  Off by default: a selection must be
            probability-justified.
        max_value_candidates: Cap on the value-candidate list per fixture.
    """

    config_id: str

    # Aggregation
    rolling_window: int
    min_sample_size: int

    # Combination
    multipliers: Mapping[str, float]
    bounds: Mapping[str, Bounds]

    # Probability model
    shrinkage_tau: float
    home_advantage: float
    league_mean_goals: float
    dispersion: Mapping[str, float]
    model_lines: Mapping[str, tuple[float, ...]]

    # Odds sanity
    odds_min: float
    odds_max: float
    odds_ceilings: tuple[OddsCeiling, ...]

    # Output
    emit_unmodelled_picks: bool
    max_value_candidates: int

    def __post_init__(self) -> None:
        if self.rolling_window < 1:
            raise ValueError(
                f"rolling_window must be >= 1, got {self.rolling_window!r}."
            )
        if self.min_sample_size > self.rolling_window:
            raise ValueError(
                f"min_sample_size={self.min_sample_size} can never be reached "
                f"with rolling_window={self.rolling_window}."
            )
        if not (1.0 <= self.odds_min < self.odds_max):
            raise ValueError(
                f"Invalid odds band [{self.odds_min}, {self.odds_max}]."
            )

    # ------------------------------------------------------------------ #
    #  Named constructors                                                  #
    # ------------------------------------------------------------------ #

    @classmethod
    def default(cls) -> EngineConfig:
        """Return the production configuration."""
        return cls(
            config_id=CONFIG_ID_DEFAULT,
            rolling_window=5,
            min_sample_size=3,
            multipliers=METRIC_MULTIPLIERS,
            bounds=METRIC_BOUNDS,
            shrinkage_tau=10.0,
            home_advantage=1.06,         # +6% on the home goal rate
            league_mean_goals=1.4,       # per team, per match
            dispersion=MappingProxyType({CORNERS: 4.0, CARDS: 3.0}),
            model_lines=MappingProxyType({
                GOALS: (0.5, 1.5, 2.5, 3.5, 4.5),
                CARDS: (2.5, 3.5, 4.5, 5.5),
                CORNERS: (8.5, 9.5, 10.5, 11.5),
            }),
            odds_min=1.25,
            odds_max=5.00,
            odds_ceilings=DEFAULT_ODDS_CEILINGS,
            emit_unmodelled_picks=False,
            max_value_candidates=20,
        )

    @classmethod
    def from_env(cls, base: Optional[EngineConfig] = None) -> EngineConfig:
        """Return ``base`` (or the default) with environment overrides.

        Recognised variables: ``ODDS_MIN``, ``ODDS_MAX``, ``SHRINKAGE_TAU``,
        ``HOME_ADVANTAGE``, ``LEAGUE_MEAN_GOALS``, ``MIN_SAMPLE_SIZE``,
        ``ROLLING_WINDOW``, ``EMIT_UNMODELLED_PICKS``.  A ``.env`` file in
        the working directory is loaded first.
        """
        load_dotenv()
        cfg = base or cls.default()
        return replace(
            cfg,
            odds_min=float(os.getenv("ODDS_MIN", str(cfg.odds_min))),
            odds_max=float(os.getenv("ODDS_MAX", str(cfg.odds_max))),
            shrinkage_tau=float(os.getenv("SHRINKAGE_TAU", str(cfg.shrinkage_tau))),
            home_advantage=float(os.getenv("HOME_ADVANTAGE", str(cfg.home_advantage))),
            league_mean_goals=float(
                os.getenv("LEAGUE_MEAN_GOALS", str(cfg.league_mean_goals))
            ),
            min_sample_size=int(os.getenv("MIN_SAMPLE_SIZE", str(cfg.min_sample_size))),
            rolling_window=int(os.getenv("ROLLING_WINDOW", str(cfg.rolling_window))),
            emit_unmodelled_picks=os.getenv(
                "EMIT_UNMODELLED_PICKS", str(cfg.emit_unmodelled_picks)
            ).lower() == "true",
        )

    # ------------------------------------------------------------------ #
    #  Convenience accessors                                               #
    # ------------------------------------------------------------------ #

    def with_league_mean(self, league_mean_goals: float) -> EngineConfig:
        """Return a copy with a league-specific goal baseline.

        Examples::

            cfg = EngineConfig.default()
            assert cfg.with_league_mean(1.55).league_mean_goals == 1.55
        """
        return replace(self, league_mean_goals=league_mean_goals)

    def ceiling_for(self, market: str, line: float) -> Optional[OddsCeiling]:
        """Return the ceiling entry for ``(market, line)``, if any."""
        for ceiling in self.odds_ceilings:
            if ceiling.market == market and abs(ceiling.line - line) < 0.01:
                return ceiling
        return None

    def has_model(self, market: str) -> bool:
        """True if ``market`` has a count-data probability model."""
        return market == GOALS or market in self.dispersion

    def __repr__(self) -> str:
        return (
            f"EngineConfig(config_id={self.config_id!r}, "
            f"window={self.rolling_window}, "
            f"min_sample={self.min_sample_size}, "
            f"odds_band=[{self.odds_min}, {self.odds_max}], "
            f"tau={self.shrinkage_tau}, "
            f"home_adv={self.home_advantage})"
        )
