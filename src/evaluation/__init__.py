"""Evaluation of analyst recommendations against realized market data."""

from .evaluation_cycle import AnalystProfile, EvaluationCycle, EvaluatorSummary
from .outcome_rules import classify_rating, percent_change, within_tolerance
from .settings import DEFAULT_SECTOR_BENCHMARKS, EvaluationSettings

__all__ = [
    "AnalystProfile",
    "DEFAULT_SECTOR_BENCHMARKS",
    "EvaluationCycle",
    "EvaluationSettings",
    "EvaluatorSummary",
    "classify_rating",
    "percent_change",
    "within_tolerance",
]
