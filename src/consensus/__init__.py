"""Credibility-weighted consensus across analysts."""

from .aggregator import ConsensusAggregator
from .models import AnalystRating, ConsensusAction, ConsensusResult, RatingContribution
from .settings import ConsensusSettings

__all__ = [
    "AnalystRating",
    "ConsensusAction",
    "ConsensusAggregator",
    "ConsensusResult",
    "ConsensusSettings",
    "RatingContribution",
]
