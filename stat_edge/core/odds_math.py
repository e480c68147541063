"""Fundamental odds mathematics: the single source of truth.

Every function here is **pure**: no I/O, no logging, no side effects.
Import from this module; never reimplement locally in services.

The three pillars exposed are:

1. **Odds validation**: decimal odds sanity (finite, strictly above 1.0).
2. **Margin removal**: proportional normalisation of a two-way market.
3. **Edge**: model probability minus margin-free book probability.

Design decisions
----------------
* All functions accept **decimal** odds because the upstream football
  provider quotes decimal prices (often as strings).  Parsing belongs to
  :mod:`stat_edge.services.odds`.
* Margin is removed by proportional normalisation at the (bookmaker,
  market, line) level.  Over/under totals are close to symmetric markets,
  where proportional normalisation and Shin agree to well within the noise
  of a five-match rolling average.
* Degenerate input is reported as ``None`` rather than raised: a malformed
  price is an expected data condition, not a programming error.

Run tests with::

    pytest tests/test_odds_math.py -v
"""

from __future__ import annotations

import math
from typing import Final, Optional

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

#: Decimal odds must exceed this to carry any payout.
MIN_DECIMAL_ODDS: Final[float] = 1.0


# ---------------------------------------------------------------------------
# Validation and conversion
# ---------------------------------------------------------------------------


def is_valid_decimal_odds(odds: object) -> bool:
    """Return True if ``odds`` is a finite real number strictly above 1.0.

    Examples::

        is_valid_decimal_odds(1.85)          → True
        is_valid_decimal_odds(1.0)           → False  (no payout)
        is_valid_decimal_odds(float("nan"))  → False
        is_valid_decimal_odds("1.85")        → False  (parse first)
    """
    if isinstance(odds, bool) or not isinstance(odds, (int, float)):
        return False
    return math.isfinite(odds) and odds > MIN_DECIMAL_ODDS


def implied_prob(decimal_odds: float) -> float:
    """Raw implied probability from decimal odds (margin-inclusive).

    Args:
        decimal_odds: Decimal odds > 1.0.

    Returns:
        ``1 / decimal_odds``.  Two sides of the same market sum to > 1.0
        due to the bookmaker's margin.

    Raises:
        ValueError: If the odds are not valid decimal odds.

    Examples::

        implied_prob(2.00) → 0.5000
        implied_prob(1.90) → 0.5263
    """
    if not is_valid_decimal_odds(decimal_odds):
        raise ValueError(
            f"Invalid decimal odds {decimal_odds!r}: must be finite and > 1.0. "
            "Check upstream odds parsing for data errors."
        )
    return 1.0 / decimal_odds


def overround(over_odds: float, under_odds: float) -> Optional[float]:
    """Sum of raw implied probabilities of a two-way market.

    Returns ``None`` when either side is degenerate.  A value of 1.05 means
    a 5% bookmaker margin.
    """
    if not (is_valid_decimal_odds(over_odds) and is_valid_decimal_odds(under_odds)):
        return None
    return 1.0 / over_odds + 1.0 / under_odds


# ---------------------------------------------------------------------------
# Margin removal
# ---------------------------------------------------------------------------


def remove_margin(
    over_odds: float,
    under_odds: float,
) -> Optional[tuple[float, float]]:
    """Margin-free probabilities for both sides of a two-way market.

    Proportional normalisation::

        p_side = (1 / odds_side) / (1 / odds_over + 1 / odds_under)

    so that ``p_over + p_under == 1``.

    Args:
        over_odds: Decimal odds for the over side.
        under_odds: Decimal odds for the under side.

    Returns:
        ``(p_over, p_under)``, or ``None`` if either side is degenerate
        (≤ 1.0, non-finite, or missing).

    Examples::

        remove_margin(1.90, 1.90) → (0.5, 0.5)
        remove_margin(1.50, 2.60) → (0.634, 0.366)
        remove_margin(1.90, None) → None
    """
    total = overround(over_odds, under_odds)
    if total is None:
        return None
    raw_over = 1.0 / over_odds
    raw_under = 1.0 / under_odds
    return raw_over / total, raw_under / total


# ---------------------------------------------------------------------------
# Edge
# ---------------------------------------------------------------------------


def edge(model_prob: float, book_prob: float) -> float:
    """Model-vs-market edge in probability points.

    A positive value means the model rates the outcome more likely than the
    margin-free market does.  Only strictly positive edges qualify a
    candidate selection; see :func:`is_positive_edge`.
    """
    return model_prob - book_prob


def is_positive_edge(value: Optional[float]) -> bool:
    """True only for a finite, strictly positive edge."""
    return value is not None and math.isfinite(value) and value > 0.0


def expected_value(model_prob: float, decimal_odds: float) -> float:
    """Expected profit per unit staked at ``decimal_odds``.

    ``EV = p · (odds − 1) − (1 − p)``.  Reported for display; selection
    itself is driven by :func:`edge`.

    Examples::

        expected_value(0.55, 2.00) → 0.10
        expected_value(0.50, 1.90) → -0.05
    """
    return model_prob * (decimal_odds - 1.0) - (1.0 - model_prob)
