# src/evaluation/settings.py
"""Configuration for recommendation evaluation."""

from pydantic import BaseModel, Field


DEFAULT_SECTOR_BENCHMARKS = {
    "Technology": "XLK",
    "Consumer Discretionary": "XLY",
    "Financials": "XLF",
    "Health Care": "XLV",
    "Industrials": "XLI",
    "Energy": "XLE",
    "Utilities": "XLU",
    "Materials": "XLB",
    "Real Estate": "XLRE",
    "Communication Services": "XLC",
    "Consumer Staples": "XLP",
}


class EvaluationSettings(BaseModel):
    """Settings for EvaluationCycle."""

    # Rating noise band: BUY needs >= +2%, SELL <= -2%, HOLD within +/-2%
    rating_threshold_percent: float = Field(default=2.0, gt=0.0, le=50.0)
    rating_neutral_band: bool = False
    price_target_tolerance_percent: float = Field(default=10.0, gt=0.0, le=100.0)
    eps_tolerance_percent: float = Field(default=10.0, gt=0.0, le=100.0)

    default_horizon_days: int = Field(default=30, ge=1, le=3650)
    default_confidence: float = Field(default=0.7, gt=0.0, le=1.0)

    use_benchmark: bool = True
    default_benchmark: str = "SPY"
    sector_benchmarks: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_SECTOR_BENCHMARKS)
    )

    max_concurrent_evaluations: int = Field(default=5, ge=1, le=50)

    def benchmark_for(self, sector: str | None) -> str:
        """Return the benchmark ETF for a sector, or the default."""
        if sector:
            return self.sector_benchmarks.get(sector, self.default_benchmark)
        return self.default_benchmark
