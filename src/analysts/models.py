# src/analysts/models.py
"""Data models for analysts, their recommendations and evaluations."""

from datetime import datetime, timedelta, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator


NEUTRAL_PRIOR = 0.5


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class Action(str, Enum):
    """Recommendation action."""

    BUY = "BUY"
    HOLD = "HOLD"
    SELL = "SELL"


class PredictionType(str, Enum):
    """What a recommendation predicts. Values match performance categories."""

    RATING = "rating"
    PRICE_TARGET = "price_target"
    EPS = "eps"


class Outcome(str, Enum):
    """Resolved outcome of a recommendation."""

    CORRECT = "CORRECT"
    INCORRECT = "INCORRECT"
    NEUTRAL = "NEUTRAL"


class RecommendationStatus(str, Enum):
    """Whether a recommendation still awaits evaluation."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"


class AnalystTier(str, Enum):
    """Coarse banding of a credibility score."""

    TOP_TIER = "TOP_TIER"
    RISING = "RISING"
    STANDARD = "STANDARD"
    NEW = "NEW"

    @classmethod
    def from_score(cls, score: float) -> "AnalystTier":
        """Get the tier for a credibility score using default thresholds.

        Args:
            score: Credibility score from 0-1.

        Returns:
            AnalystTier based on thresholds:
                - score >= 0.80 -> TOP_TIER
                - score >= 0.65 -> RISING
                - score >= 0.50 -> STANDARD
                - score < 0.50 -> NEW
        """
        if score >= 0.80:
            return cls.TOP_TIER
        elif score >= 0.65:
            return cls.RISING
        elif score >= 0.50:
            return cls.STANDARD
        else:
            return cls.NEW


class TrackRecord(BaseModel):
    """Lifetime prediction counts for an analyst."""

    model_config = ConfigDict(extra="ignore")

    total_predictions: int = Field(default=0, ge=0)
    accurate_predictions: int = Field(default=0, ge=0)
    last_updated: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def check_counts(self) -> "TrackRecord":
        """Accurate predictions can never exceed total predictions."""
        if self.accurate_predictions > self.total_predictions:
            raise ValueError(
                f"accurate_predictions ({self.accurate_predictions}) exceeds "
                f"total_predictions ({self.total_predictions})"
            )
        return self

    @computed_field
    @property
    def accuracy_rate(self) -> float:
        """Ratio of accurate to total predictions, 0.5 with no history."""
        if self.total_predictions == 0:
            return NEUTRAL_PRIOR
        return self.accurate_predictions / self.total_predictions


class HistoricalPerformance(BaseModel):
    """Per-category accuracy, maintained as incremental running averages."""

    model_config = ConfigDict(extra="ignore")

    rating: float = Field(default=NEUTRAL_PRIOR, ge=0.0, le=1.0)
    price_target: float = Field(default=NEUTRAL_PRIOR, ge=0.0, le=1.0)
    timing: float = Field(default=NEUTRAL_PRIOR, ge=0.0, le=1.0)
    eps: float = Field(default=NEUTRAL_PRIOR, ge=0.0, le=1.0)

    # Samples behind each running average
    category_counts: dict[str, int] = Field(default_factory=dict)

    def accuracy_for(self, category: str) -> float:
        """Return the sub-accuracy for a category name."""
        return getattr(self, category, NEUTRAL_PRIOR)


class RecentPerformance(BaseModel):
    """Accuracy over rolling windows."""

    model_config = ConfigDict(extra="ignore")

    last_30_days: float = Field(default=NEUTRAL_PRIOR, ge=0.0, le=1.0)
    last_90_days: float = Field(default=NEUTRAL_PRIOR, ge=0.0, le=1.0)
    last_year: float = Field(default=NEUTRAL_PRIOR, ge=0.0, le=1.0)


class Analyst(BaseModel):
    """An analyst and the cumulative statistics of their calls.

    ``tier`` is a cache of the banding of ``credibility_score``; the score
    is the source of truth.
    """

    model_config = ConfigDict(extra="ignore")

    analyst_id: str = Field(min_length=1)
    name: str
    firm: str = "Unknown"
    credibility_score: float = Field(default=NEUTRAL_PRIOR, ge=0.0, le=1.0)
    track_record: TrackRecord = Field(default_factory=TrackRecord)
    specializations: set[str] = Field(default_factory=set)
    historical_performance: HistoricalPerformance = Field(
        default_factory=HistoricalPerformance
    )
    recent_performance: RecentPerformance = Field(default_factory=RecentPerformance)
    weight_multiplier: float = Field(default=1.0, gt=0.0)
    tier: AnalystTier | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def with_defaults(
        cls,
        analyst_id: str,
        name: str | None = None,
        firm: str = "Unknown",
        specializations: set[str] | None = None,
        weight_multiplier: float = 1.0,
    ) -> "Analyst":
        """Create an analyst with the neutral 0.5 priors everywhere."""
        return cls(
            analyst_id=analyst_id,
            name=name or f"Analyst_{analyst_id}",
            firm=firm,
            specializations=specializations or set(),
            weight_multiplier=weight_multiplier,
            tier=AnalystTier.from_score(NEUTRAL_PRIOR),
        )


class Recommendation(BaseModel):
    """A single recorded analyst call. Immutable apart from ``status``."""

    model_config = ConfigDict(extra="forbid")

    recommendation_id: str = Field(min_length=1)
    analyst_id: str = Field(min_length=1)
    ticker: str = Field(min_length=1, max_length=10)
    action: Action
    confidence: float = Field(default=0.7, gt=0.0, le=1.0)
    horizon_days: int = Field(default=30, ge=1)
    prediction_type: PredictionType = PredictionType.RATING
    target_price: float | None = Field(default=None, gt=0.0)
    predicted_eps: float | None = None
    entry_price: float | None = Field(default=None, gt=0.0)
    benchmark: str | None = None
    note: str | None = None
    sector: str | None = None
    status: RecommendationStatus = RecommendationStatus.OPEN
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("ticker")
    @classmethod
    def normalize_ticker(cls, v: str) -> str:
        return v.strip().upper()

    @model_validator(mode="after")
    def check_prediction_inputs(self) -> "Recommendation":
        """Each prediction type needs the value it will be judged against."""
        if self.prediction_type == PredictionType.PRICE_TARGET and self.target_price is None:
            raise ValueError("price_target predictions require target_price")
        if self.prediction_type == PredictionType.EPS and self.predicted_eps is None:
            raise ValueError("eps predictions require predicted_eps")
        return self

    @property
    def evaluate_at(self) -> datetime:
        """When the horizon of this recommendation elapses."""
        return self.created_at + timedelta(days=self.horizon_days)

    def is_due(self, as_of: datetime) -> bool:
        """Return True once the horizon has elapsed as of ``as_of``."""
        return as_of >= self.evaluate_at


class Evaluation(BaseModel):
    """The single outcome recorded for a recommendation."""

    model_config = ConfigDict(extra="ignore")

    recommendation_id: str
    analyst_id: str
    ticker: str
    action: Action
    prediction_type: PredictionType
    actual_value: float
    abs_return: float | None = None
    bench_return: float | None = None
    alpha: float | None = None
    outcome: Outcome
    evaluated_at: datetime = Field(default_factory=utc_now)
