"""
End-to-end tests for the selection engine
Run with: pytest tests/test_selection_engine.py -v
"""

from dataclasses import replace

import pytest
from scipy.stats import poisson

from stat_edge import EngineConfig, SelectionEngine
from stat_edge.core.types import FixtureStatRow, OddsQuote, Pick, TeamMetricProfile
from stat_edge.schemas import PersistedSelection
from stat_edge.services.aggregator import CompetitionPolicy


def _profile(team_id, goals, n=5, corners=5.0, cards=2.0, fouls=11.0, offsides=2.0):
    return TeamMetricProfile.from_averages(
        team_id,
        {"goals": goals, "corners": corners, "cards": cards, "fouls": fouls, "offsides": offsides},
        n,
    )


def _two_way(market, line, bookmaker, over, under):
    return [
        OddsQuote(market, "over", line, bookmaker, over),
        OddsQuote(market, "under", line, bookmaker, under),
    ]


HOME = _profile(10, 1.8, corners=5.0, cards=2.0)
AWAY = _profile(20, 1.2, corners=5.4, cards=2.4)

QUOTES = (
    _two_way("goals", 1.5, "Bet365", 1.30, 3.40)
    + _two_way("goals", 1.5, "Pinnacle", 1.28, 3.60)
    + _two_way("corners", 8.5, "Pinnacle", 2.50, 1.50)
    + _two_way("fouls", 16.5, "Bet365", 1.80, 2.00)
)

# λ_total for HOME / AWAY with τ=10, mean 1.4, home advantage 1.06
LAMBDA = (1.8 / 3 + 1.4 * 2 / 3) * 1.06 + (1.2 / 3 + 1.4 * 2 / 3)


class TestAnalyzeFixture:
    """Full pipeline for one fixture"""

    def test_goals_selection_emitted(self):
        analysis = SelectionEngine().analyze_fixture(1001, HOME, AWAY, QUOTES)

        assert analysis.is_valid
        assert len(analysis.selections) == 1
        sel = analysis.selections[0]

        assert sel.pick == Pick("goals", "over", 1.5)
        assert sel.quote.bookmaker == "Bet365"
        assert sel.quote.odds == pytest.approx(1.30)
        assert sel.combined_value == pytest.approx(2.4)
        assert sel.rules_version == "v2_combined_matrix_v1"
        assert sel.sample_size == 5
        assert sel.metric_available
        assert sel.confidence == "high"

    def test_selection_probabilities(self):
        sel = SelectionEngine().analyze_fixture(1001, HOME, AWAY, QUOTES).selections[0]

        raw_over, raw_under = 1 / 1.30, 1 / 3.40
        book = raw_over / (raw_over + raw_under)
        assert sel.model_prob == pytest.approx(1 - poisson.cdf(1, LAMBDA))
        assert sel.book_prob == pytest.approx(book)
        assert sel.edge == pytest.approx(sel.model_prob - book)
        assert sel.edge > 0

    def test_rejection_reasons(self):
        analysis = SelectionEngine().analyze_fixture(1001, HOME, AWAY, QUOTES)
        rejected = " | ".join(analysis.rejected)

        assert "corners over 8.5: no edge" in rejected
        assert "cards over 3.5: no complete bookmaker line" in rejected
        assert "fouls over 16.5: no probability model" in rejected
        assert "offsides over 2.5: no probability model" in rejected

    def test_selection_key_and_record(self):
        sel = SelectionEngine().analyze_fixture(1001, HOME, AWAY, QUOTES).selections[0]

        assert sel.key == (1001, "goals", "over", 1.5, "Bet365")
        record = sel.to_record()
        assert record.key == sel.key
        assert record.combined_snapshot["goals"] == pytest.approx(2.4)
        assert record.edge_pct == pytest.approx(round(sel.edge * 100, 2))

    def test_integrity_failure_short_circuits(self):
        analysis = SelectionEngine().analyze_fixture(1001, _profile(10, 1.8, n=2), AWAY, QUOTES)

        assert not analysis.is_valid
        assert analysis.selections == []
        assert analysis.rejected[0].startswith("Home team (10)")
        # Combined values stay unknown, sample size is reported
        assert analysis.combined.sample_size == 2
        assert analysis.combined.goals is None
        assert analysis.combined.snapshot()["corners"] is None

    def test_missing_profile(self):
        analysis = SelectionEngine().analyze_fixture(1001, HOME, None, QUOTES)
        assert not analysis.is_valid
        assert analysis.combined is None

    def test_no_odds_no_selections(self):
        analysis = SelectionEngine().analyze_fixture(1001, HOME, AWAY, [])

        assert analysis.is_valid
        assert analysis.selections == []
        assert analysis.combined.goals == pytest.approx(2.4)

    def test_suspicious_odds_dropped(self):
        home, away = _profile(10, 0.8), _profile(20, 0.8)
        quotes = _two_way("goals", 0.5, "Bet365", 1.20, 4.50)

        analysis = SelectionEngine().analyze_fixture(1001, home, away, quotes)

        assert analysis.selections == []
        assert any(r.startswith("Out of band: goals Over 0.5") for r in analysis.rejected)

    def test_bad_price_does_not_hide_plausible_one(self):
        quotes = (
            _two_way("goals", 1.5, "Bet365", 1.30, 3.40)
            + _two_way("goals", 1.5, "Broken", 4.00, 1.30)
        )
        analysis = SelectionEngine().analyze_fixture(1001, HOME, AWAY, quotes)

        goals = [s for s in analysis.selections if s.pick.market == "goals"]
        assert len(goals) == 1
        assert goals[0].quote.bookmaker == "Bet365"
        assert goals[0].quote.odds == pytest.approx(1.30)
        assert goals[0].book_prob == pytest.approx((1 / 1.30) / (1 / 1.30 + 1 / 3.40))
        assert any(
            r.startswith("Suspicious odds: goals Over 1.5 @ 4.00") for r in analysis.rejected
        )

    def test_every_price_flagged(self):
        quotes = _two_way("goals", 1.5, "Broken", 4.00, 1.30)
        analysis = SelectionEngine().analyze_fixture(1001, HOME, AWAY, quotes)

        assert analysis.selections == []
        assert "goals over 1.5: every bookmaker price flagged as suspicious" in analysis.rejected

    def test_degenerate_odds_ignored(self):
        quotes = (
            _two_way("goals", 1.5, "Broken", 1.0, 9.0)
            + _two_way("goals", 1.5, "Bet365", 1.30, 3.40)
        )
        sel = SelectionEngine().analyze_fixture(1001, HOME, AWAY, quotes).selections[0]
        assert sel.quote.bookmaker == "Bet365"

    def test_unmodelled_picks_behind_flag(self):
        cfg = replace(EngineConfig.default(), emit_unmodelled_picks=True)
        analysis = SelectionEngine(config=cfg).analyze_fixture(1001, HOME, AWAY, QUOTES)

        fouls = [s for s in analysis.selections if s.pick.market == "fouls"]
        assert len(fouls) == 1
        assert fouls[0].model_prob is None
        assert fouls[0].edge is None
        assert fouls[0].book_prob == pytest.approx((1 / 1.8) / (1 / 1.8 + 1 / 2.0))
        assert fouls[0].confidence == "low"

    def test_unmodelled_one_sided_quote(self):
        cfg = replace(EngineConfig.default(), emit_unmodelled_picks=True)
        quotes = [OddsQuote("offsides", "over", 2.5, "Bet365", 1.70)]

        analysis = SelectionEngine(config=cfg).analyze_fixture(1001, HOME, AWAY, quotes)

        offsides = [s for s in analysis.selections if s.pick.market == "offsides"]
        assert offsides[0].quote.odds == pytest.approx(1.70)
        assert offsides[0].book_prob is None

    def test_deterministic(self):
        engine = SelectionEngine()
        first = engine.analyze_fixture(1001, HOME, AWAY, QUOTES)
        second = engine.analyze_fixture(1001, HOME, AWAY, QUOTES)

        assert [s.key for s in first.selections] == [s.key for s in second.selections]
        assert first.rejected == second.rejected


class TestValueCandidates:
    """Rule-independent value view over model lines"""

    def test_sorted_by_edge(self):
        candidates = SelectionEngine().value_candidates(1001, HOME, AWAY, QUOTES)

        assert candidates
        assert candidates[0].market == "corners"
        assert candidates[0].side == "under"
        edges = [c.edge for c in candidates]
        assert edges == sorted(edges, reverse=True)
        assert all(c.edge > 0 for c in candidates)

    def test_capped(self):
        cfg = replace(EngineConfig.default(), max_value_candidates=1)
        assert len(SelectionEngine(config=cfg).value_candidates(1001, HOME, AWAY, QUOTES)) == 1

    def test_one_candidate_per_line_and_side(self):
        candidates = SelectionEngine().value_candidates(1001, HOME, AWAY, QUOTES)

        keys = [(c.market, c.side, c.line) for c in candidates]
        assert len(keys) == len(set(keys))
        goals_over = [
            c for c in candidates if (c.market, c.side, c.line) == ("goals", "over", 1.5)
        ]
        assert len(goals_over) == 1
        assert goals_over[0].bookmaker == "Bet365"

    def test_unmodelled_markets_excluded(self):
        candidates = SelectionEngine().value_candidates(1001, HOME, AWAY, QUOTES)
        assert "fouls" not in {c.market for c in candidates}

    def test_invalid_fixture(self):
        assert SelectionEngine().value_candidates(1001, HOME, _profile(20, 1.2, n=1), QUOTES) == []


class TestRevalidatePersisted:
    """Read-time re-validation against the active rule table"""

    def _row(self, **overrides):
        row = {
            "fixture_id": 1,
            "market": "goals",
            "side": "over",
            "line": 2.5,
            "bookmaker": "Bet365",
            "odds": 1.85,
            "rules_version": "v2_combined_matrix_v1",
            "combined_snapshot": {"goals": 3.0},
        }
        row.update(overrides)
        return row

    def test_matching_row_kept(self):
        kept = SelectionEngine().revalidate_persisted([self._row()])
        assert len(kept) == 1
        assert isinstance(kept[0], PersistedSelection)

    def test_mismatched_line_dropped(self):
        assert SelectionEngine().revalidate_persisted([self._row(line=1.5)]) == []

    def test_stale_version_dropped(self):
        assert SelectionEngine().revalidate_persisted([self._row(rules_version="v1_legacy")]) == []

    def test_missing_snapshot_dropped(self):
        assert SelectionEngine().revalidate_persisted([self._row(combined_snapshot=None)]) == []

    def test_malformed_row_dropped(self):
        assert SelectionEngine().revalidate_persisted([self._row(fixture_id="abc")]) == []

    def test_unknown_market_dropped(self):
        row = self._row(market="throw_ins", combined_snapshot={"throw_ins": 40.0})
        assert SelectionEngine().revalidate_persisted([row]) == []

    def test_mixed_batch(self):
        rows = [
            self._row(),
            self._row(fixture_id=2, market="Goals", side="OVER", rules_version=None),
            PersistedSelection(**self._row(fixture_id=3, side="under")),
            self._row(fixture_id=4, market="corners", line=8.5, combined_snapshot={"corners": 9.4}),
        ]
        kept = SelectionEngine().revalidate_persisted(rows)
        assert [r.fixture_id for r in kept] == [1, 2, 4]


class TestProfiles:

    def test_profile_uses_policy_and_window(self):
        cfg = replace(EngineConfig.default(), rolling_window=4, min_sample_size=3)
        engine = SelectionEngine(config=cfg, policy=CompetitionPolicy(cup_keywords=()))
        rows = [
            FixtureStatRow(
                fixture_id=i, competition_id=48, goals=1, corners=0, cards=0,
                fouls=0, offsides=0, competition_name="League Cup",
            )
            for i in range(1, 7)
        ]
        profile = engine.profile(10, rows)

        assert profile.sample_size == 4
        # Heuristic disabled: zeros are counted as real values
        assert profile.sample("corners").sample_size == 4
