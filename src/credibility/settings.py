# src/credibility/settings.py
"""Configuration for credibility scoring."""

from pydantic import BaseModel, Field, model_validator


class CredibilitySettings(BaseModel):
    """Settings for CredibilityScoreEngine."""

    # Recency blend, most recent window weighted highest
    lifetime_weight: float = Field(default=0.2, ge=0.0, le=1.0)
    last_90_days_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    last_30_days_weight: float = Field(default=0.5, ge=0.0, le=1.0)

    # Tier thresholds on the 0-1 score
    tier_top_threshold: float = Field(default=0.80, ge=0.0, le=1.0)
    tier_rising_threshold: float = Field(default=0.65, ge=0.0, le=1.0)
    tier_standard_threshold: float = Field(default=0.50, ge=0.0, le=1.0)

    # Display bands on the 0-100 scale
    band_elite_threshold: float = Field(default=90.0, ge=0.0, le=100.0)
    band_expert_threshold: float = Field(default=80.0, ge=0.0, le=100.0)
    band_senior_threshold: float = Field(default=65.0, ge=0.0, le=100.0)
    band_analyst_threshold: float = Field(default=50.0, ge=0.0, le=100.0)

    @model_validator(mode="after")
    def check_weights_and_thresholds(self) -> "CredibilitySettings":
        if self.lifetime_weight + self.last_90_days_weight + self.last_30_days_weight <= 0:
            raise ValueError("At least one recency weight must be positive")
        if not (
            self.tier_top_threshold
            >= self.tier_rising_threshold
            >= self.tier_standard_threshold
        ):
            raise ValueError("Tier thresholds must be non-increasing")
        if not (
            self.band_elite_threshold
            >= self.band_expert_threshold
            >= self.band_senior_threshold
            >= self.band_analyst_threshold
        ):
            raise ValueError("Display band thresholds must be non-increasing")
        return self
