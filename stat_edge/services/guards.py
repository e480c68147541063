"""
Suspicious-odds guard.

Rejects prices that almost certainly come from a bookmaker data error rather
than a genuine market.  Two checks, in order:

1. Global band: ``odds_min <= odds <= odds_max`` (1.25 / 5.00 by default).
2. Per-(market, line) ceiling: ``odds >= max_odds`` is suspicious.  Lines
   match within 0.01; a (market, line) without a ceiling passes.

Thresholds are conservative: borderline prices are kept.
"""

import logging
import math
from typing import Iterable, List, Optional, Tuple, TypeVar

from stat_edge.core.engine_config import EngineConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


def check_suspicious_odds(
    market: str,
    line: float,
    odds: float,
    config: Optional[EngineConfig] = None,
    side: str = "over",
) -> Optional[str]:
    """
    Return a warning string if ``odds`` is implausible, else ``None``.

    Examples::

        check_suspicious_odds("goals", 2.5, 6.20)
        → "Out of band: goals Over 2.5 @ 6.20 above maximum 5.0"

        check_suspicious_odds("goals", 1.5, 3.90)
        → "Suspicious odds: goals Over 1.5 @ 3.90 exceeds threshold 3.8 (...)"

        check_suspicious_odds("goals", 2.5, 1.85)  → None
    """
    config = config or EngineConfig.default()
    label = f"{market} {side.capitalize()} {line:g}"

    if (
        not isinstance(odds, (int, float))
        or isinstance(odds, bool)
        or not math.isfinite(odds)
    ):
        return f"Invalid odds: {label} @ {odds!r} is not a finite number"

    if odds < config.odds_min:
        return f"Out of band: {label} @ {odds:.2f} below minimum {config.odds_min:g}"
    if odds > config.odds_max:
        return f"Out of band: {label} @ {odds:.2f} above maximum {config.odds_max:g}"

    ceiling = config.ceiling_for(market, line)
    if ceiling is None:
        return None
    if odds >= ceiling.max_odds:
        return (
            f"Suspicious odds: {label} @ {odds:.2f} exceeds threshold "
            f"{ceiling.max_odds:g} ({ceiling.description})"
        )
    return None


def _describe(item) -> Tuple[str, float, float, str]:
    """(market, line, odds, side) of a Selection, EdgeCandidate or OddsQuote."""
    quote = getattr(item, "quote", None)
    if quote is not None:
        return quote.market, quote.line, quote.odds, quote.side
    return item.market, item.line, item.odds, getattr(item, "side", "over")


def filter_suspicious(
    items: Iterable[T],
    config: Optional[EngineConfig] = None,
    log_prefix: str = "[suspicious-odds]",
) -> List[T]:
    """Drop items with suspicious odds, logging one warning per drop."""
    config = config or EngineConfig.default()
    kept: List[T] = []
    for item in items:
        market, line, odds, side = _describe(item)
        warning = check_suspicious_odds(market, line, odds, config, side=side)
        if warning:
            logger.warning("%s %s - DROPPED", log_prefix, warning)
            continue
        kept.append(item)
    return kept
