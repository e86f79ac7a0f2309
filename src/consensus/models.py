# src/consensus/models.py
"""Data models for weighted consensus."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.analysts.models import Action, utc_now


class ConsensusAction(str, Enum):
    """Resolved consensus action.

    Declaration order is the tie-break precedence.
    """

    BUY = "BUY"
    HOLD = "HOLD"
    SELL = "SELL"
    NO_RATING = "NO_RATING"

    @classmethod
    def precedence(cls) -> list["ConsensusAction"]:
        return list(cls)


class AnalystRating(BaseModel):
    """One analyst's current rating for a ticker."""

    model_config = ConfigDict(extra="forbid")

    analyst_id: str = Field(min_length=1)
    action: Action
    confidence: float = Field(default=0.7, gt=0.0, le=1.0)
    target_price: float | None = Field(default=None, gt=0.0)

    @field_validator("action", mode="before")
    @classmethod
    def normalize_action(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v


class RatingContribution(BaseModel):
    """How much one rating weighed in the consensus."""

    analyst_id: str
    action: Action
    credibility_score: float
    weight_multiplier: float
    confidence: float
    specialization_bonus: float = 0.0
    weight: float
    target_price: float | None = None


class ConsensusResult(BaseModel):
    """Weighted consensus for one ticker. A snapshot, recomputed on demand.

    Attributes:
        ticker: Stock ticker symbol.
        action: Winning action, NO_RATING when there are no ratings.
        distribution: Summed weight per action.
        confidence: Winning share of the total weight, 0 when empty.
        target_price: Weighted mean of supplied targets, if any.
        contributions: Per-rating weight breakdown.
        rating_count: Number of ratings aggregated.
        computed_at: When the consensus was computed.
    """

    ticker: str
    action: ConsensusAction = ConsensusAction.NO_RATING
    distribution: dict[str, float] = Field(default_factory=dict)
    confidence: float = 0.0
    target_price: float | None = None
    contributions: list[RatingContribution] = Field(default_factory=list)
    rating_count: int = 0
    computed_at: datetime = Field(default_factory=utc_now)

    @property
    def contributing_analysts(self) -> dict[str, float]:
        """Total weight per contributing analyst id."""
        weights: dict[str, float] = {}
        for c in self.contributions:
            weights[c.analyst_id] = weights.get(c.analyst_id, 0.0) + c.weight
        return weights
