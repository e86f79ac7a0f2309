"""Analyst records, recommendations and evaluations."""

from .models import (
    Action,
    Analyst,
    AnalystTier,
    Evaluation,
    HistoricalPerformance,
    Outcome,
    PredictionType,
    RecentPerformance,
    Recommendation,
    RecommendationStatus,
    TrackRecord,
)
from .recommendation_book import RecommendationBook
from .registry import AnalystRegistry

__all__ = [
    "Action",
    "Analyst",
    "AnalystRegistry",
    "AnalystTier",
    "Evaluation",
    "HistoricalPerformance",
    "Outcome",
    "PredictionType",
    "RecentPerformance",
    "Recommendation",
    "RecommendationBook",
    "RecommendationStatus",
    "TrackRecord",
]
