# src/api/services.py
"""Service container handed to the API application."""

from dataclasses import dataclass

from fastapi import Request

from src.analysts.recommendation_book import RecommendationBook
from src.analysts.registry import AnalystRegistry
from src.consensus.aggregator import ConsensusAggregator
from src.credibility.score_engine import CredibilityScoreEngine
from src.evaluation.evaluation_cycle import EvaluationCycle
from src.orchestrator.update_orchestrator import UpdateOrchestrator


@dataclass
class Services:
    """Explicitly constructed services used by the routes."""

    registry: AnalystRegistry
    book: RecommendationBook
    score_engine: CredibilityScoreEngine
    evaluation_cycle: EvaluationCycle
    consensus_aggregator: ConsensusAggregator
    orchestrator: UpdateOrchestrator


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the app's services."""
    return request.app.state.services
