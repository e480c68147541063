"""
Pydantic schemas for emitted and persisted selections.

Selections leave the engine as :class:`SelectionRecord` payloads (the upsert
body keyed on fixture, market, side, line and bookmaker) and come back as
:class:`PersistedSelection` rows when a reader re-validates them against the
current rule table.  Using explicit schemas instead of raw dicts keeps
malformed rows out of the pipeline.
"""

from __future__ import annotations

from typing import Literal, Optional
from datetime import datetime

from pydantic import BaseModel, Field, field_validator


Market = Literal["goals", "corners", "cards", "fouls", "offsides"]
SideLiteral = Literal["over", "under"]


# ---------------------------------------------------------------------------
# Emitted selections
# ---------------------------------------------------------------------------

class SelectionRecord(BaseModel):
    """
    Upsert payload for one selection.

    Probabilities and edge are ``None`` for rule-qualified picks in markets
    without a probability model.
    """

    fixture_id: int
    market: Market
    side: SideLiteral
    line: float
    bookmaker: str = Field(..., min_length=1)
    odds: float = Field(..., description="Decimal odds")

    model_prob: Optional[float] = Field(None, ge=0.0, le=1.0)
    book_prob: Optional[float] = Field(None, ge=0.0, le=1.0)
    edge_pct: Optional[float] = Field(None, description="Edge in percentage points")

    combined_snapshot: dict[str, Optional[float]]
    rules_version: str
    sample_size: int = Field(..., ge=0)
    is_stats_valid: bool = True
    metric_available: bool
    confidence: Literal["low", "med", "high"]
    computed_at: datetime

    @field_validator("odds")
    @classmethod
    def validate_decimal_odds(cls, v: float) -> float:
        if not v >= 1.0:
            raise ValueError(f"odds={v} is not valid decimal odds (must be >= 1.0)")
        return v

    @field_validator("line")
    @classmethod
    def round_line(cls, v: float) -> float:
        return round(v, 2)

    @property
    def key(self) -> tuple[int, str, str, float, str]:
        return (self.fixture_id, self.market, self.side, self.line, self.bookmaker)

    @classmethod
    def from_selection(cls, selection) -> SelectionRecord:
        """Build the record for a :class:`~stat_edge.core.types.Selection`."""
        return cls(
            fixture_id=selection.fixture_id,
            market=selection.pick.market,
            side=selection.pick.side,
            line=selection.pick.line,
            bookmaker=selection.quote.bookmaker,
            odds=selection.quote.odds,
            model_prob=selection.model_prob,
            book_prob=selection.book_prob,
            edge_pct=None if selection.edge is None else round(selection.edge * 100, 2),
            combined_snapshot=dict(selection.combined_snapshot),
            rules_version=selection.rules_version,
            sample_size=selection.sample_size,
            metric_available=selection.metric_available,
            confidence=selection.confidence,
            computed_at=selection.computed_at,
        )

    model_config = {
        "json_schema_extra": {
            "example": {
                "fixture_id": 1035043,
                "market": "goals",
                "side": "over",
                "line": 2.5,
                "bookmaker": "Bet365",
                "odds": 1.85,
                "model_prob": 0.568,
                "book_prob": 0.513,
                "edge_pct": 5.5,
                "combined_snapshot": {
                    "goals": 3.0, "corners": 9.4, "cards": 4.1,
                    "fouls": 22.0, "offsides": 3.2,
                },
                "rules_version": "v2_combined_matrix_v1",
                "sample_size": 5,
                "metric_available": True,
                "confidence": "high",
                "computed_at": "2025-01-18T12:00:00Z",
            }
        }
    }


# ---------------------------------------------------------------------------
# Persisted rows (read-time re-validation)
# ---------------------------------------------------------------------------

class PersistedSelection(BaseModel):
    """
    A stored selection row as read back from persistence.

    Only the fields the re-validation step needs are required.
    """

    fixture_id: int
    market: str
    side: str
    line: float
    bookmaker: Optional[str] = None
    odds: Optional[float] = None
    rules_version: Optional[str] = None
    combined_snapshot: Optional[dict[str, Optional[float]]] = None
    computed_at: Optional[datetime] = None

    @field_validator("side", mode="before")
    @classmethod
    def normalise_side(cls, v: str) -> str:
        return str(v).strip().lower()

    @field_validator("market", mode="before")
    @classmethod
    def normalise_market(cls, v: str) -> str:
        return str(v).strip().lower()

    @property
    def combined_value(self) -> Optional[float]:
        """Snapshot value of this row's own market, if stored."""
        if not self.combined_snapshot:
            return None
        return self.combined_snapshot.get(self.market)

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Integrity
# ---------------------------------------------------------------------------

class MetricAvailabilityReport(BaseModel):
    available: bool
    sample_size: int
    value: float


class TeamIntegrityReport(BaseModel):
    has_profile: bool
    sample_size: int
    metrics: dict[str, MetricAvailabilityReport]


class IntegrityReport(BaseModel):
    """Serialisable view of an :class:`~stat_edge.core.types.IntegrityResult`."""

    is_valid: bool
    reason: Optional[str] = None
    home: TeamIntegrityReport
    away: TeamIntegrityReport

    @classmethod
    def from_result(cls, result) -> IntegrityReport:
        def team(t) -> TeamIntegrityReport:
            return TeamIntegrityReport(
                has_profile=t.has_profile,
                sample_size=t.sample_size,
                metrics={
                    m: MetricAvailabilityReport(
                        available=a.available, sample_size=a.sample_size, value=a.value
                    )
                    for m, a in t.metrics.items()
                },
            )

        return cls(
            is_valid=result.is_valid,
            reason=result.reason,
            home=team(result.home),
            away=team(result.away),
        )
