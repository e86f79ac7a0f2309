"""Analyst credibility scoring."""

from .score_engine import CredibilityBreakdown, CredibilityScoreEngine
from .settings import CredibilitySettings

__all__ = [
    "CredibilityBreakdown",
    "CredibilityScoreEngine",
    "CredibilitySettings",
]
