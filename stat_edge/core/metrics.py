"""Metric identifiers and the fixed per-metric lookup tables.

The five statistical categories tracked per team are:

* ``goals``: always reported by the provider, the reliability anchor.
* ``corners``: frequently omitted or zeroed by cup competitions.
* ``cards``: yellow + red.  A genuine zero is common.
* ``fouls``: frequently omitted by lower-tier competitions.
* ``offsides``: a genuine zero is common.

The multiplier and bounds tables are immutable mappings rather than code
branches so that the combined-metrics formula is a single expression and any
future re-tuning is a data change.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Final, Literal, Mapping

Metric = Literal["goals", "corners", "cards", "fouls", "offsides"]
Side = Literal["over", "under"]

GOALS: Final[str] = "goals"
CORNERS: Final[str] = "corners"
CARDS: Final[str] = "cards"
FOULS: Final[str] = "fouls"
OFFSIDES: Final[str] = "offsides"

#: All tracked metrics, goals first.
METRICS: Final[tuple[str, ...]] = (GOALS, CORNERS, CARDS, FOULS, OFFSIDES)

#: Metrics subject to reliability filtering and fake-zero detection.
SECONDARY_METRICS: Final[tuple[str, ...]] = (CORNERS, CARDS, FOULS, OFFSIDES)

#: Metrics for which a zero average is a plausible real value.
ZERO_TOLERANT_METRICS: Final[frozenset[str]] = frozenset({CARDS, OFFSIDES})

SIDES: Final[tuple[str, ...]] = ("over", "under")


@dataclass(frozen=True, slots=True)
class Bounds:
    """Inclusive sanity clamp for a combined metric value."""

    lower: float
    upper: float

    def clamp(self, value: float) -> float:
        return max(self.lower, min(self.upper, value))

    def __contains__(self, value: float) -> bool:
        return self.lower <= value <= self.upper


#: Combined-value multiplier applied to the mean of the two team averages.
METRIC_MULTIPLIERS: Final[Mapping[str, float]] = MappingProxyType({
    GOALS: 1.6,
    CORNERS: 1.75,
    OFFSIDES: 1.8,
    FOULS: 1.8,
    CARDS: 1.8,
})

#: Sanity clamps for combined values.
METRIC_BOUNDS: Final[Mapping[str, Bounds]] = MappingProxyType({
    GOALS: Bounds(0.0, 12.0),
    CORNERS: Bounds(0.0, 25.0),
    OFFSIDES: Bounds(0.0, 10.0),
    FOULS: Bounds(0.0, 40.0),
    CARDS: Bounds(0.0, 15.0),
})


def require_metric(metric: str) -> str:
    """Return ``metric`` unchanged or raise for an unknown identifier."""
    if metric not in METRICS:
        raise ValueError(
            f"Unknown metric {metric!r}; expected one of {', '.join(METRICS)}."
        )
    return metric
