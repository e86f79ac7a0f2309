# src/consensus/settings.py
"""Configuration for weighted consensus aggregation."""

from pydantic import BaseModel, Field


class ConsensusSettings(BaseModel):
    """Settings for ConsensusAggregator."""

    # Weight boost when the rated sector is one of the analyst's specializations
    specialization_bonus: float = Field(default=0.05, ge=0.0, le=1.0)
    default_score: float = Field(default=0.5, ge=0.0, le=1.0)
    max_age_days: int = Field(default=30, ge=1, le=3650)
