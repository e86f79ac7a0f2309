# src/orchestrator/settings.py
"""Configuration for the update orchestrator."""

from pydantic import BaseModel, Field


class OrchestratorSettings(BaseModel):
    """Settings for UpdateOrchestrator."""

    max_concurrent_updates: int = Field(default=3, ge=1, le=20)
    batch_delay_seconds: float = Field(default=5.0, ge=0.0)
    default_max_tickers: int = Field(default=10, ge=1, le=500)
    default_max_age_hours: float = Field(default=4.0, gt=0.0)
    # Smart cycles consider this many times max_tickers active candidates
    candidate_multiplier: int = Field(default=2, ge=1, le=10)
    evaluate_before_cycle: bool = True
    # Tickers whose earnings dates are tracked even without open recommendations
    watchlist: list[str] = Field(default_factory=list)
