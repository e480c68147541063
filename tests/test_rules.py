"""
Tests for the qualification rule tables
Run with: pytest tests/test_rules.py -v
"""

import pytest

from stat_edge.core.rules import (
    CURRENT_RULES,
    RULE_TABLES,
    RuleBand,
    RuleTable,
    pick_from_combined,
    revalidate,
)
from stat_edge.core.types import Pick


class TestGoalsBands:
    """Goals matrix, including shared boundaries"""

    @pytest.mark.parametrize(
        "value, line",
        [
            (1.0, 0.5),
            (1.9, 0.5),
            (2.0, 1.5),   # shared boundary resolves upward
            (2.4, 1.5),
            (2.7, 2.5),
            (3.0, 2.5),
            (4.2, 3.5),
            (5.5, 4.5),
            (6.0, 4.5),
            (7.5, 4.5),   # open-ended band
            (12.0, 4.5),
        ],
    )
    def test_goals_pick(self, value, line):
        assert pick_from_combined("goals", value) == Pick("goals", "over", line)

    def test_below_every_band(self):
        assert pick_from_combined("goals", 0.4) is None


class TestSecondaryBands:
    """Corners / cards / fouls / offsides matrices"""

    def test_corners_regular(self):
        assert pick_from_combined("corners", 9.4) == Pick("corners", "over", 8.5)

    def test_corners_gap_has_no_pick(self):
        assert pick_from_combined("corners", 13.5) is None

    def test_corners_gap_edges(self):
        assert pick_from_combined("corners", 13.0) == Pick("corners", "over", 9.5)
        assert pick_from_combined("corners", 14.0) == Pick("corners", "over", 9.5)

    def test_corners_open_ended(self):
        assert pick_from_combined("corners", 16.0) == Pick("corners", "over", 10.5)
        assert pick_from_combined("corners", 21.3) == Pick("corners", "over", 10.5)

    def test_corners_too_low(self):
        assert pick_from_combined("corners", 6.9) is None

    def test_cards_not_eligible_range(self):
        assert pick_from_combined("cards", 1.5) is None

    def test_cards_boundary_prefers_upper(self):
        assert pick_from_combined("cards", 2.0) == Pick("cards", "over", 1.5)

    def test_cards_regular(self):
        assert pick_from_combined("cards", 4.1) == Pick("cards", "over", 3.5)

    def test_offsides_open_ended(self):
        assert pick_from_combined("offsides", 8.5) == Pick("offsides", "over", 5.5)

    def test_fouls(self):
        assert pick_from_combined("fouls", 18.9) is None
        assert pick_from_combined("fouls", 22.5) == Pick("fouls", "over", 19.5)
        assert pick_from_combined("fouls", 31.0) == Pick("fouls", "over", 24.5)


class TestRuleEngineContract:
    """Purity, versioning and input validation"""

    def test_unknown_value_yields_none(self):
        assert pick_from_combined("goals", None) is None

    def test_unknown_market_raises(self):
        with pytest.raises(ValueError):
            pick_from_combined("throw_ins", 5.0)

    def test_deterministic(self):
        picks = {pick_from_combined("corners", 10.3) for _ in range(20)}
        assert len(picks) == 1

    def test_current_version_registered(self):
        assert CURRENT_RULES.version == "v2_combined_matrix_v1"
        assert RULE_TABLES[CURRENT_RULES.version] is CURRENT_RULES

    def test_custom_table(self):
        table = RuleTable(
            version="v_test",
            bands={"goals": (RuleBand(0.0, 3.0, "under", 3.5), RuleBand(None, None, "over", 2.5))},
        )
        assert table.pick("goals", 2.0) == Pick("goals", "under", 3.5)
        assert table.pick("goals", 3.0) == Pick("goals", "over", 2.5)
        assert table.pick("corners", 10.0) is None


class TestRevalidate:
    """Read-time re-validation of persisted rows"""

    def test_matching_row_kept(self):
        assert revalidate("goals", "over", 2.5, 3.0)

    def test_wrong_line_rejected(self):
        assert not revalidate("goals", "over", 1.5, 3.0)

    def test_wrong_side_rejected(self):
        assert not revalidate("goals", "under", 2.5, 3.0)

    def test_no_longer_eligible_rejected(self):
        assert not revalidate("cards", "over", 1.5, 1.5)

    def test_missing_snapshot_rejected(self):
        assert not revalidate("goals", "over", 2.5, None)
