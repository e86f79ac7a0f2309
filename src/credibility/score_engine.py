# src/credibility/score_engine.py
"""Credibility score computation for analysts."""

from dataclasses import dataclass

from src.analysts.models import NEUTRAL_PRIOR, Analyst, AnalystTier, PredictionType
from src.credibility.settings import CredibilitySettings


@dataclass
class CredibilityBreakdown:
    """How a credibility score was derived.

    Attributes:
        base_accuracy: Lifetime accuracy rate (0.5 with no history).
        recency_factor: Blend of lifetime, 90-day and 30-day accuracy.
        category_accuracy: Sub-accuracy used instead of the blend, if any.
        final_score: Clamped score in [0, 1].
    """

    base_accuracy: float
    recency_factor: float
    category_accuracy: float | None
    final_score: float


class CredibilityScoreEngine:
    """Computes a normalized credibility score and tier for an analyst.

    The score is a pure accuracy signal. ``weight_multiplier`` is left out
    on purpose and only applied when ratings are aggregated.

    Blend (defaults):
        score = 0.2 * lifetime + 0.3 * last_90_days + 0.5 * last_30_days

    Weights are normalized to sum to 1. Analysts with no predictions score
    exactly the neutral prior of 0.5.
    """

    def __init__(self, settings: CredibilitySettings | None = None):
        self._settings = settings or CredibilitySettings()

    @property
    def settings(self) -> CredibilitySettings:
        return self._settings

    def score(
        self, analyst: Analyst, prediction_type: PredictionType | None = None
    ) -> float:
        """Compute the credibility score of an analyst.

        Args:
            analyst: Analyst with track record and performance windows.
            prediction_type: When given, score using the matching
                per-category accuracy instead of the recency blend.

        Returns:
            Score from 0.0 to 1.0.
        """
        return self.breakdown(analyst, prediction_type).final_score

    def breakdown(
        self, analyst: Analyst, prediction_type: PredictionType | None = None
    ) -> CredibilityBreakdown:
        """Compute the score along with its intermediate values."""
        track_record = analyst.track_record
        if track_record.total_predictions == 0:
            return CredibilityBreakdown(
                base_accuracy=NEUTRAL_PRIOR,
                recency_factor=NEUTRAL_PRIOR,
                category_accuracy=None,
                final_score=NEUTRAL_PRIOR,
            )

        base_accuracy = track_record.accuracy_rate
        recency_factor = self._blend(analyst, base_accuracy)

        category_accuracy = None
        blended = recency_factor
        if prediction_type is not None:
            category_accuracy = analyst.historical_performance.accuracy_for(
                prediction_type.value
            )
            blended = category_accuracy

        return CredibilityBreakdown(
            base_accuracy=base_accuracy,
            recency_factor=recency_factor,
            category_accuracy=category_accuracy,
            final_score=self._clamp(blended),
        )

    def _blend(self, analyst: Analyst, lifetime: float) -> float:
        s = self._settings
        recent = analyst.recent_performance
        total_weight = s.lifetime_weight + s.last_90_days_weight + s.last_30_days_weight
        return (
            s.lifetime_weight * lifetime
            + s.last_90_days_weight * recent.last_90_days
            + s.last_30_days_weight * recent.last_30_days
        ) / total_weight

    @staticmethod
    def _clamp(value: float) -> float:
        return max(0.0, min(1.0, value))

    def get_tier(self, score: float) -> AnalystTier:
        """Get the tier for a score using the configured thresholds.

        Args:
            score: Credibility score from 0-1.

        Returns:
            AnalystTier for the score.
        """
        if score >= self._settings.tier_top_threshold:
            return AnalystTier.TOP_TIER
        elif score >= self._settings.tier_rising_threshold:
            return AnalystTier.RISING
        elif score >= self._settings.tier_standard_threshold:
            return AnalystTier.STANDARD
        else:
            return AnalystTier.NEW

    def display_band(self, score: float) -> str:
        """Map a 0-1 score onto the 0-100 display bands.

        Returns:
            One of "Elite", "Expert", "Senior", "Analyst", "Rookie".
        """
        points = self._clamp(score) * 100
        s = self._settings
        if points >= s.band_elite_threshold:
            return "Elite"
        elif points >= s.band_expert_threshold:
            return "Expert"
        elif points >= s.band_senior_threshold:
            return "Senior"
        elif points >= s.band_analyst_threshold:
            return "Analyst"
        else:
            return "Rookie"

    def rescore(self, analyst: Analyst) -> Analyst:
        """Recompute and store the score and tier cache on an analyst."""
        analyst.credibility_score = self.score(analyst)
        analyst.tier = self.get_tier(analyst.credibility_score)
        return analyst
