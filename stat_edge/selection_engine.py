"""
Selection engine: fixture statistics and odds in, justified selections out.

Pipeline for one fixture:

1. Integrity gate: both teams need a goals sample of at least 3.
2. Combined metrics from the two team profiles.
3. Qualification: each market's combined value maps to one canonical pick
   under the active rule table.
4. Line shopping: the best complete two-way line for the pick's
   (market, side, line) across bookmakers.  Prices flagged by the
   suspicious-odds guard are dropped first, so one bad quote never hides
   a plausible one.
5. Model probability for the pick's side (goals Poisson, corners / cards
   negative binomial).  Markets without a model only emit when
   ``EngineConfig.emit_unmodelled_picks`` is set.
6. Margin-free book probability from the same bookmaker's two-way line.
7. Positive-edge filter.

Everything is computed from explicit inputs; the engine holds no mutable
state, so one instance can serve any number of threads.  Callers upsert the
emitted selections on (fixture, market, side, line, bookmaker).
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from stat_edge.core.engine_config import EngineConfig
from stat_edge.core.metrics import METRICS
from stat_edge.core.odds_math import edge as edge_of
from stat_edge.core.odds_math import is_positive_edge, is_valid_decimal_odds
from stat_edge.core.rules import CURRENT_RULES, RuleTable, revalidate
from stat_edge.core.types import (
    CombinedMetrics,
    EdgeCandidate,
    FixtureStatRow,
    IntegrityResult,
    OddsQuote,
    Pick,
    Selection,
    TeamMetricProfile,
)
from stat_edge.schemas import PersistedSelection
from stat_edge.services.aggregator import CompetitionPolicy, build_profile
from stat_edge.services.combined import combine
from stat_edge.services.edges import best_price_per_key, book_probability, compute_edges
from stat_edge.services.guards import check_suspicious_odds, filter_suspicious
from stat_edge.services.integrity import validate
from stat_edge.services.odds import best_quotes, best_two_way_lines, pair_two_way
from stat_edge.services.probability import compute_models, model_for_line

logger = logging.getLogger(__name__)


@dataclass
class FixtureAnalysis:
    """Complete analysis output for one fixture."""
    fixture_id: int
    integrity: IntegrityResult
    combined: Optional[CombinedMetrics]
    selections: List[Selection] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.integrity.is_valid


class SelectionEngine:
    """
    Stateless selection pipeline over explicit inputs.

    Conservative by construction: a pick is only emitted when the rules
    qualify it, a complete bookmaker line exists, the model shows a
    positive edge and the price passes the plausibility guard.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        rules: RuleTable = CURRENT_RULES,
        policy: Optional[CompetitionPolicy] = None,
    ):
        self.config = config or EngineConfig.default()
        self.rules = rules
        self.policy = policy or CompetitionPolicy()

    # ------------------------------------------------------------------ #
    #  Profiles                                                            #
    # ------------------------------------------------------------------ #

    def profile(self, team_id: int, rows: Sequence[FixtureStatRow]) -> TeamMetricProfile:
        """Rolling profile for ``team_id`` from its rows, newest first."""
        return build_profile(team_id, rows, self.policy, self.config.rolling_window)

    # ------------------------------------------------------------------ #
    #  Fixture analysis                                                    #
    # ------------------------------------------------------------------ #

    def analyze_fixture(
        self,
        fixture_id: int,
        home: Optional[TeamMetricProfile],
        away: Optional[TeamMetricProfile],
        quotes: Iterable[OddsQuote],
        league_mean_goals: Optional[float] = None,
    ) -> FixtureAnalysis:
        """
        Run the full pipeline for one fixture.

        Args:
            fixture_id: Fixture being analysed.
            home, away: Team profiles; ``None`` when a team has none.
            quotes:     All bookmaker quotes for the fixture.
            league_mean_goals: Per-team goal baseline for this league.

        Returns:
            FixtureAnalysis with emitted selections and every rejection
            reason encountered on the way.
        """
        integrity = validate(home, away, self.config.min_sample_size)
        if not integrity.is_valid:
            logger.info("Fixture %s skipped: %s", fixture_id, integrity.reason)
            # All values unknown, but sample_size is kept for diagnostics
            diagnostics = None
            if home is not None and away is not None:
                diagnostics = combine(home, away, self.config)
            return FixtureAnalysis(
                fixture_id=fixture_id,
                integrity=integrity,
                combined=diagnostics,
                rejected=[integrity.reason],
            )

        combined = combine(home, away, self.config)
        valid_quotes = [q for q in quotes if is_valid_decimal_odds(q.odds)]
        lines = pair_two_way(valid_quotes)
        best = best_quotes(valid_quotes)

        analysis = FixtureAnalysis(fixture_id=fixture_id, integrity=integrity, combined=combined)

        for market in METRICS:
            value = combined.value(market)
            if value is None:
                analysis.rejected.append(f"{market}: combined value unknown")
                continue
            pick = self.rules.pick(market, value)
            if pick is None:
                analysis.rejected.append(f"{market}: combined {value} qualifies for no pick")
                continue

            selection, reason = self._select(
                fixture_id, pick, value, combined, integrity,
                home, away, lines, best, league_mean_goals, analysis.rejected,
            )
            if selection is None:
                analysis.rejected.append(reason)
                continue
            analysis.selections.append(selection)

        for reason in analysis.rejected:
            logger.debug("Fixture %s: %s", fixture_id, reason)
        logger.info(
            "Fixture %s: %d selections, %d rejections",
            fixture_id, len(analysis.selections), len(analysis.rejected),
        )
        return analysis

    def _select(
        self,
        fixture_id: int,
        pick: Pick,
        combined_value: float,
        combined: CombinedMetrics,
        integrity: IntegrityResult,
        home: TeamMetricProfile,
        away: TeamMetricProfile,
        lines,
        best,
        league_mean_goals: Optional[float],
        rejected: List[str],
    ):
        """
        Build the selection for ``pick`` or return ``(None, reason)``.

        Bookmaker prices flagged by the suspicious-odds guard are dropped
        one by one (their warnings go to ``rejected``); the best remaining
        price is used.
        """
        market, side, line = pick.market, pick.side, pick.line
        has_model = self.config.has_model(market)

        if not has_model and not self.config.emit_unmodelled_picks:
            return None, f"{pick}: no probability model for {market}"

        ranked = best_two_way_lines(lines, market, line, side)
        plausible = [
            tw for tw in ranked
            if self._plausible(fixture_id, market, tw.line, tw.odds_for(side), side, rejected)
        ]
        one_sided = best.get((market, side, round(line, 2)))

        if plausible:
            tw = plausible[0]
            quote = OddsQuote(
                market=market, side=side, line=tw.line,
                bookmaker=tw.bookmaker, odds=tw.odds_for(side),
            )
            book_prob = book_probability(tw, side)
        elif ranked:
            return None, f"{pick}: every bookmaker price flagged as suspicious"
        elif (
            not has_model
            and one_sided is not None
            and self._plausible(fixture_id, market, one_sided.line, one_sided.odds, side, rejected)
        ):
            quote = one_sided
            book_prob = None
        else:
            return None, f"{pick}: no complete bookmaker line"

        model_prob = None
        value_edge = None
        confidence = "low"
        if has_model:
            model = model_for_line(
                market, line, home, away, self.config, league_mean_goals
            )
            if model is None:
                return None, f"{pick}: model unavailable (insufficient {market} data)"
            if book_prob is None:
                return None, f"{pick}: degenerate odds at {quote.bookmaker}"
            model_prob = model.prob_for(side)
            value_edge = edge_of(model_prob, book_prob)
            confidence = model.confidence
            if not is_positive_edge(value_edge):
                return None, (
                    f"{pick}: no edge (model {model_prob:.3f} vs book {book_prob:.3f} "
                    f"@ {quote.odds:.2f} {quote.bookmaker})"
                )

        selection = Selection(
            fixture_id=fixture_id,
            pick=pick,
            quote=quote,
            model_prob=model_prob,
            book_prob=book_prob,
            edge=value_edge,
            combined_value=combined_value,
            combined_snapshot=combined.snapshot(),
            rules_version=self.rules.version,
            sample_size=combined.sample_size,
            metric_available=integrity.metric_available(market),
            confidence=confidence,
        )
        return selection, None

    def _plausible(
        self,
        fixture_id: int,
        market: str,
        line: float,
        odds: float,
        side: str,
        rejected: List[str],
    ) -> bool:
        warning = check_suspicious_odds(market, line, odds, self.config, side=side)
        if warning:
            logger.warning("[suspicious-odds] fixture %s %s - DROPPED", fixture_id, warning)
            rejected.append(warning)
            return False
        return True

    # ------------------------------------------------------------------ #
    #  Value candidates                                                    #
    # ------------------------------------------------------------------ #

    def value_candidates(
        self,
        fixture_id: int,
        home: Optional[TeamMetricProfile],
        away: Optional[TeamMetricProfile],
        quotes: Iterable[OddsQuote],
        league_mean_goals: Optional[float] = None,
    ) -> List[EdgeCandidate]:
        """
        Every positive-edge side over the configured model lines.

        Independent of the rule table.  Suspicious prices are dropped, then
        only the best bookmaker price per (market, side, line) is kept;
        returns the top ``config.max_value_candidates`` by edge.
        """
        integrity = validate(home, away, self.config.min_sample_size)
        if not integrity.is_valid:
            logger.info("Fixture %s: no value candidates (%s)", fixture_id, integrity.reason)
            return []

        models = compute_models(home, away, self.config, league_mean_goals)
        lines = pair_two_way(q for q in quotes if is_valid_decimal_odds(q.odds))
        candidates = compute_edges(models, lines)
        candidates = best_price_per_key(filter_suspicious(candidates, self.config))
        candidates = candidates[: self.config.max_value_candidates]
        logger.info("Fixture %s: %d value candidates", fixture_id, len(candidates))
        return candidates

    # ------------------------------------------------------------------ #
    #  Read-time re-validation                                             #
    # ------------------------------------------------------------------ #

    def revalidate_persisted(
        self,
        rows: Iterable[Union[PersistedSelection, Mapping]],
    ) -> List[PersistedSelection]:
        """
        Drop stored selections that no longer match the active rule table.

        A row survives only if it parses, carries this table's version (when
        it records one) and its stored (side, line) is still what the table
        derives from its combined-value snapshot.
        """
        kept: List[PersistedSelection] = []
        for raw in rows:
            try:
                if isinstance(raw, PersistedSelection):
                    row = raw
                else:
                    row = PersistedSelection.model_validate(raw)
            except ValidationError as exc:
                logger.warning("Dropping malformed persisted selection: %s", exc.errors()[:1])
                continue

            if row.rules_version is not None and row.rules_version != self.rules.version:
                logger.info(
                    "Dropping stale selection fixture=%s %s %s %s: rules %s != %s",
                    row.fixture_id, row.market, row.side, row.line,
                    row.rules_version, self.rules.version,
                )
                continue

            if row.market not in METRICS:
                logger.warning(
                    "Dropping selection fixture=%s with unknown market %r",
                    row.fixture_id, row.market,
                )
                continue

            if not revalidate(row.market, row.side, row.line, row.combined_value, self.rules):
                expected = self.rules.pick(row.market, row.combined_value)
                logger.warning(
                    "Dropping mismatched selection fixture=%s %s %s %s "
                    "(combined=%s, expected %s)",
                    row.fixture_id, row.market, row.side, row.line,
                    row.combined_value, expected,
                )
                continue
            kept.append(row)

        return kept
