"""
Edge calculator: model probability vs margin-free bookmaker probability.

For each complete two-way bookmaker line::

    raw_over  = 1 / over_odds          raw_under = 1 / under_odds
    book_over = raw_over  / (raw_over + raw_under)
    book_under = raw_under / (raw_over + raw_under)
    edge      = model_prob - book_prob

Only strictly positive edges become candidates.  Candidates are returned in
descending edge order so repeated runs over the same inputs list them
identically.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from stat_edge.core.odds_math import edge as edge_of
from stat_edge.core.odds_math import implied_prob, is_positive_edge, remove_margin
from stat_edge.core.types import EdgeCandidate, ModelOutput, TwoWayLine

logger = logging.getLogger(__name__)


def book_probability(line: TwoWayLine, side: str) -> Optional[float]:
    """Margin-free probability of ``side`` on ``line``; ``None`` if degenerate."""
    fair = remove_margin(line.over_odds, line.under_odds)
    if fair is None:
        return None
    return fair[0] if side == "over" else fair[1]


def _index_models(
    model_outputs: Iterable[ModelOutput],
) -> Dict[Tuple[str, float], ModelOutput]:
    return {(m.market, round(m.line, 2)): m for m in model_outputs}


def compute_edges(
    model_outputs: Iterable[ModelOutput],
    lines: Iterable[TwoWayLine],
    limit: Optional[int] = None,
) -> List[EdgeCandidate]:
    """
    Every positive-edge side across all bookmaker lines with a model.

    Args:
        model_outputs: Model probabilities per (market, line).
        lines:         Complete two-way bookmaker lines.
        limit:         Keep only the top ``limit`` candidates.

    Returns:
        Candidates sorted by descending edge.
    """
    models = _index_models(model_outputs)
    candidates: List[EdgeCandidate] = []
    skipped = 0

    for tw in lines:
        model = models.get((tw.market, round(tw.line, 2)))
        if model is None:
            continue
        fair = remove_margin(tw.over_odds, tw.under_odds)
        if fair is None:
            skipped += 1
            continue
        raw_over = implied_prob(tw.over_odds)
        raw_under = implied_prob(tw.under_odds)

        for side, book_prob in (("over", fair[0]), ("under", fair[1])):
            model_prob = model.prob_for(side)
            value = edge_of(model_prob, book_prob)
            if not is_positive_edge(value):
                continue
            candidates.append(EdgeCandidate(
                market=tw.market,
                line=tw.line,
                side=side,
                model_prob=model_prob,
                book_prob=book_prob,
                edge=value,
                odds=tw.odds_for(side),
                bookmaker=tw.bookmaker,
                confidence=model.confidence,
                rationale=model.rationale,
                raw_over_prob=raw_over,
                raw_under_prob=raw_under,
            ))

    if skipped:
        logger.info("Skipped %d degenerate two-way lines", skipped)

    candidates.sort(key=lambda c: (-c.edge, c.market, c.line, c.side, c.bookmaker))
    if limit is not None:
        candidates = candidates[:limit]
    logger.debug("Computed %d positive-edge candidates", len(candidates))
    return candidates


def best_price_per_key(candidates: Iterable[EdgeCandidate]) -> List[EdgeCandidate]:
    """
    Keep one candidate per (market, side, line): the best bookmaker price.

    Ties on price go to the higher edge.  Input order (descending edge) is
    preserved among the survivors.
    """
    candidates = list(candidates)
    best: Dict[Tuple[str, str, float], EdgeCandidate] = {}
    for c in candidates:
        key = (c.market, c.side, round(c.line, 2))
        current = best.get(key)
        if current is None or (c.odds, c.edge) > (current.odds, current.edge):
            best[key] = c
    kept = [c for c in candidates if best[(c.market, c.side, round(c.line, 2))] is c]
    if len(kept) < len(candidates):
        logger.debug("Collapsed %d candidates to %d best prices", len(candidates), len(kept))
    return kept
