"""Qualification rule engine: versioned combined-value → pick tables.

A :class:`RuleTable` maps a combined metric value to exactly one canonical
:class:`~stat_edge.core.types.Pick` per market.  The mapping is pure and
total: a value outside every configured band yields ``None``.

The same function serves two purposes:

1. **Forward**: generate a pick from freshly computed combined metrics.
2. **Read-time**: re-derive the pick from a persisted
   combined-value snapshot and reject any stored row whose (side, line) no
   longer matches.  Rule changes are made by publishing a new table with a
   new ``version``; rows tagged with an older version are stale by
   definition.

Band semantics (``v2_combined_matrix_v1``)
------------------------------------------
* Bands are inclusive on both ends: ``lo ≤ x ≤ hi``.
* Bands are scanned from the last to the first, so a value on a shared
  boundary (e.g. 2.7 for goals) resolves to the upper bucket.
* An open-ended band (``hi is None``) applies from the largest finite upper
  bound in the market upward.
* A band whose pick is ``None`` marks a range as explicitly not eligible.

Run tests with::

    pytest tests/test_rules.py -v
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Final, Mapping, Optional

from stat_edge.core.metrics import CARDS, CORNERS, FOULS, GOALS, OFFSIDES, require_metric
from stat_edge.core.types import Pick


@dataclass(frozen=True, slots=True)
class RuleBand:
    """One range of a market's qualification matrix.

    ``hi=None`` marks the open-ended "greater than or equal" band.
    ``side=None`` marks a not-eligible range.
    """

    lo: Optional[float]
    hi: Optional[float]
    side: Optional[str] = None
    line: Optional[float] = None

    @property
    def is_open_ended(self) -> bool:
        return self.hi is None

    @property
    def is_eligible(self) -> bool:
        return self.side is not None and self.line is not None


def _over(lo: float, hi: Optional[float], line: float) -> RuleBand:
    return RuleBand(lo, hi, "over", line)


def _none(lo: float, hi: float) -> RuleBand:
    return RuleBand(lo, hi)


def _gte(line: float) -> RuleBand:
    return RuleBand(None, None, "over", line)


@dataclass(frozen=True)
class RuleTable:
    """Immutable, versioned qualification matrix."""

    version: str
    bands: Mapping[str, tuple[RuleBand, ...]]

    def gte_threshold(self, market: str) -> float:
        """Largest finite upper bound of ``market`` (start of the open band)."""
        finite = [b.hi for b in self.bands[market] if b.hi is not None]
        return max(finite) if finite else float("-inf")

    def pick(self, market: str, combined_value: float) -> Optional[Pick]:
        """Canonical pick for ``combined_value``, or ``None``."""
        require_metric(market)
        bands = self.bands.get(market, ())
        if combined_value is None or not bands:
            return None
        threshold = self.gte_threshold(market)
        for band in reversed(bands):
            if band.is_open_ended:
                if combined_value >= threshold:
                    return _as_pick(market, band)
                continue
            if band.lo <= combined_value <= band.hi:
                return _as_pick(market, band)
        return None


def _as_pick(market: str, band: RuleBand) -> Optional[Pick]:
    if not band.is_eligible:
        return None
    return Pick(market=market, side=band.side, line=band.line)


# ---------------------------------------------------------------------------
# Published tables
# ---------------------------------------------------------------------------

#: Combined-value matrix v2.  Goals 3.0 → Over 2.5, corners 9.4 → Over 8.5.
RULES_V2: Final[RuleTable] = RuleTable(
    version="v2_combined_matrix_v1",
    bands=MappingProxyType({
        GOALS: (
            _over(1.0, 2.0, 0.5),
            _over(2.0, 2.7, 1.5),
            _over(2.7, 4.0, 2.5),
            _over(4.0, 5.0, 3.5),
            _over(5.0, 6.0, 4.5),
            _gte(4.5),
        ),
        CORNERS: (
            _over(7.0, 8.0, 7.5),
            _over(8.0, 9.0, 7.5),
            _over(9.0, 10.0, 8.5),
            _over(10.0, 11.0, 8.5),
            _over(11.0, 12.0, 9.5),
            _over(12.0, 13.0, 9.5),
            # 13.0-14.0 intentionally absent: no pick.
            _over(14.0, 15.0, 9.5),
            _over(15.0, 16.0, 10.5),
            _gte(10.5),
        ),
        OFFSIDES: (
            _none(1.0, 2.0),
            _over(2.0, 3.0, 1.5),
            _over(3.0, 4.0, 2.5),
            _over(4.0, 5.0, 3.5),
            _over(5.0, 6.0, 4.5),
            _over(6.0, 7.0, 5.5),
            _over(7.0, 8.0, 5.5),
            _gte(5.5),
        ),
        FOULS: (
            _over(19.0, 20.0, 16.5),
            _over(20.0, 21.0, 17.5),
            _over(21.0, 22.0, 18.5),
            _over(22.0, 23.0, 19.5),
            _over(23.0, 24.0, 20.5),
            _over(24.0, 25.0, 21.5),
            _over(25.0, 26.0, 22.5),
            _over(26.0, 27.0, 23.5),
            _over(27.0, 28.0, 24.5),
            _over(28.0, 29.0, 24.5),
            _over(29.0, 30.0, 24.5),
            _gte(24.5),
        ),
        CARDS: (
            _none(1.0, 2.0),
            _over(2.0, 3.0, 1.5),
            _over(3.0, 4.0, 2.5),
            _over(4.0, 5.0, 3.5),
            _over(5.0, 6.0, 4.5),
            _over(6.0, 7.0, 5.5),
            _over(7.0, 8.0, 5.5),
            _gte(5.5),
        ),
    }),
)

CURRENT_RULES: Final[RuleTable] = RULES_V2

#: Every table ever published, by version, for auditing persisted rows.
RULE_TABLES: Final[Mapping[str, RuleTable]] = MappingProxyType({
    RULES_V2.version: RULES_V2,
})


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def pick_from_combined(
    market: str,
    combined_value: Optional[float],
    table: RuleTable = CURRENT_RULES,
) -> Optional[Pick]:
    """Map a combined value to the canonical pick of ``table``.

    Pure and deterministic: the same ``(market, value, table)`` always
    yields the same result.  An unknown combined value yields ``None``.

    Raises:
        ValueError: If ``market`` is not a known metric.

    Examples::

        pick_from_combined("goals", 2.4)  → Pick("goals", "over", 1.5)
        pick_from_combined("goals", 2.7)  → Pick("goals", "over", 2.5)
        pick_from_combined("cards", 1.5)  → None   (not eligible)
        pick_from_combined("goals", 0.4)  → None   (below every band)
    """
    return table.pick(market, combined_value)


def revalidate(
    market: str,
    side: str,
    line: float,
    combined_value: Optional[float],
    table: RuleTable = CURRENT_RULES,
) -> bool:
    """True if a stored (side, line) still matches what ``table`` produces."""
    expected = pick_from_combined(market, combined_value, table)
    if expected is None:
        return False
    return expected.side == side and abs(expected.line - line) < 0.01
