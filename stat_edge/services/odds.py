"""
Bookmaker odds payload parsing.

Turns an already-fetched provider odds payload into flat
:class:`~stat_edge.core.types.OddsQuote` rows and complete two-way lines.
No network I/O happens here; fetching belongs to the caller.

Accepted payload shapes::

    {"bookmakers": [{"name": "Bet365",
                     "bets": [{"id": 5, "name": "Goals Over/Under",
                               "values": [{"value": "Over 2.5", "odd": "1.85"},
                                          {"value": "Under 2.5", "odd": "1.95"}]}]}]}

    {"response": [{"bookmakers": [...]}]}          # wrapped provider reply

``markets`` is accepted as an alias of ``bets``.

Line shopping
-------------
:func:`best_quotes` keeps the single highest price per (market, side, line)
across all bookmakers: for an equal model probability the highest price
maximises both the payout and the reported edge.  Margin removal must use
both sides from the *same* bookmaker, so :func:`pair_two_way` keeps lines
per bookmaker and :func:`find_line` looks up the partner side of a shopped
price from its own book.
"""

import logging
import math
import re
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from stat_edge.core.metrics import CARDS, CORNERS, FOULS, GOALS, OFFSIDES
from stat_edge.core.odds_math import is_valid_decimal_odds
from stat_edge.core.types import OddsQuote, TwoWayLine

logger = logging.getLogger(__name__)

#: Over/under bet ids from the provider.  Anything else (1X2, BTTS, exact
#: score, corner 1X2, player cards) is not a totals market.
OU_BET_IDS: Dict[int, str] = {
    5: GOALS,       # Goals Over/Under
    12: CORNERS,    # Corners Over/Under
    14: CARDS,      # Cards Over/Under
}

#: Bet-name fragments, checked in order, for books without usable ids.
MARKET_NAME_PATTERNS: Tuple[Tuple[str, str], ...] = (
    ("goals over/under", GOALS),
    ("total goals", GOALS),
    ("match goals", GOALS),
    ("corners over/under", CORNERS),
    ("total corners", CORNERS),
    ("cards over/under", CARDS),
    ("total cards", CARDS),
    ("bookings", CARDS),
    ("offsides", OFFSIDES),
    ("fouls", FOULS),
)

#: Bet names that contain a market word but are not match totals.
_EXCLUDED_NAME_FRAGMENTS: Tuple[str, ...] = (
    "first half", "second half", "1st half", "2nd half",
    "home", "away", "player", "1x2", "handicap", "asian",
)

_SIDE_LINE = re.compile(r"^(over|under)\s*([0-9]+(?:\.[0-9]+)?)$")


# ---------------------------------------------------------------------------
# String normalisation
# ---------------------------------------------------------------------------

def normalize_odds_value(raw_value: Optional[str]) -> str:
    """
    Normalise a bookmaker selection label to ``"{side} {line}"``.

    Handles ``"Over 2.5"``, ``"O 2.5"``, ``"Total Over (2.5)"`` and comma
    decimals (``"Over 2,5"``).  Returns ``""`` for empty input.
    """
    if not raw_value:
        return ""
    normalized = str(raw_value).lower().strip()
    normalized = re.sub(r"\btotal\b", "", normalized)
    normalized = re.sub(r"[()]", "", normalized)
    normalized = re.sub(r"(\d),(\d)", r"\1.\2", normalized)
    normalized = re.sub(r"\s+", " ", normalized).strip()
    normalized = re.sub(r"\bo\b", "over", normalized)
    normalized = re.sub(r"\bu\b", "under", normalized)
    return normalized


def build_target_string(side: str, line: float) -> str:
    """Canonical label for a pick, e.g. ``("over", 2.5) -> "over 2.5"``."""
    return f"{side.lower()} {line:g}"


def parse_side_line(raw_value: Optional[str]) -> Optional[Tuple[str, float]]:
    """``"Over 2.5" -> ("over", 2.5)``; ``None`` for non over/under labels."""
    match = _SIDE_LINE.match(normalize_odds_value(raw_value))
    if not match:
        return None
    return match.group(1), float(match.group(2))


def parse_decimal_odds(raw) -> Optional[float]:
    """Decimal odds from a number or string; ``None`` if degenerate."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        odds = float(str(raw).replace(",", ".")) if isinstance(raw, str) else float(raw)
    except (TypeError, ValueError):
        return None
    return odds if is_valid_decimal_odds(odds) else None


def normalize_market_name(bet_name: Optional[str]) -> Optional[str]:
    """Map a provider bet name to a market, or ``None`` for other bets."""
    if not bet_name:
        return None
    name = bet_name.lower()
    if any(fragment in name for fragment in _EXCLUDED_NAME_FRAGMENTS):
        return None
    for pattern, market in MARKET_NAME_PATTERNS:
        if pattern in name:
            return market
    return None


def normalize_market(bet: Mapping) -> Optional[str]:
    """Resolve a bet's market by provider id first, then by name."""
    bet_id = bet.get("id")
    if bet_id is not None:
        try:
            market = OU_BET_IDS.get(int(bet_id))
        except (TypeError, ValueError):
            market = None
        if market is not None:
            return market
    return normalize_market_name(bet.get("name"))


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------

def _bookmakers(payload: Mapping) -> List[Mapping]:
    if not payload:
        return []
    if "bookmakers" in payload:
        return list(payload.get("bookmakers") or [])
    response = payload.get("response") or []
    books: List[Mapping] = []
    for entry in response:
        books.extend(entry.get("bookmakers") or [])
    return books


def parse_bookmaker_payload(payload: Mapping) -> List[OddsQuote]:
    """
    Flatten a provider payload into valid over/under quotes.

    Degenerate prices (≤ 1.0, non-numeric, non-finite) are dropped here,
    before any edge computation.  Unknown markets and non over/under labels
    are ignored.
    """
    quotes: List[OddsQuote] = []
    dropped = 0

    for bookmaker in _bookmakers(payload):
        book_name = str(bookmaker.get("name") or bookmaker.get("key") or "Unknown")
        bets = bookmaker.get("bets") or bookmaker.get("markets") or []
        for bet in bets:
            market = normalize_market(bet)
            if market is None:
                continue
            for value in bet.get("values") or []:
                parsed = parse_side_line(value.get("value"))
                if parsed is None:
                    continue
                odds = parse_decimal_odds(value.get("odd"))
                if odds is None:
                    dropped += 1
                    continue
                side, line = parsed
                quotes.append(OddsQuote(
                    market=market, side=side, line=line,
                    bookmaker=book_name, odds=odds,
                ))

    if dropped:
        logger.info("Dropped %d degenerate odds values while parsing payload", dropped)
    return quotes


def pair_two_way(quotes: Iterable[OddsQuote]) -> List[TwoWayLine]:
    """
    Join over and under quotes of the same (bookmaker, market, line).

    Lines missing either side are discarded: margin cannot be removed from a
    one-sided market.  If a book lists the same side twice the later price
    wins.
    """
    sides: Dict[Tuple[str, str, float], Dict[str, float]] = {}
    for q in quotes:
        sides.setdefault((q.bookmaker, q.market, round(q.line, 2)), {})[q.side] = q.odds

    lines: List[TwoWayLine] = []
    for (bookmaker, market, line), pair in sides.items():
        over, under = pair.get("over"), pair.get("under")
        if over is None or under is None:
            logger.debug(
                "Incomplete two-way line %s %s %s (over=%s under=%s) skipped",
                bookmaker, market, line, over, under,
            )
            continue
        lines.append(TwoWayLine(
            market=market, line=line, bookmaker=bookmaker,
            over_odds=over, under_odds=under,
        ))
    return lines


def best_quotes(quotes: Iterable[OddsQuote]) -> Dict[Tuple[str, str, float], OddsQuote]:
    """Highest price per (market, side, line) across all bookmakers."""
    best: Dict[Tuple[str, str, float], OddsQuote] = {}
    for q in quotes:
        if not (isinstance(q.odds, (int, float)) and math.isfinite(q.odds)):
            continue
        current = best.get(q.key)
        if current is None or q.odds > current.odds:
            best[q.key] = q
    return best


def best_two_way_lines(
    lines: Iterable[TwoWayLine],
    market: str,
    line: float,
    side: str,
) -> List[TwoWayLine]:
    """Complete lines for (market, line), best price for ``side`` first."""
    matching = [
        tw for tw in lines
        if tw.market == market and abs(tw.line - line) <= 0.01
    ]
    return sorted(matching, key=lambda tw: tw.odds_for(side), reverse=True)


def find_line(
    lines: Iterable[TwoWayLine],
    bookmaker: str,
    market: str,
    line: float,
) -> Optional[TwoWayLine]:
    """The two-way line a given bookmaker offers for (market, line)."""
    for tw in lines:
        if tw.bookmaker == bookmaker and tw.market == market and abs(tw.line - line) <= 0.01:
            return tw
    return None


def detect_available_markets(quotes: Iterable[OddsQuote]) -> Set[str]:
    """Markets with at least one valid quote.  Lower divisions often lack some."""
    return {q.market for q in quotes}
