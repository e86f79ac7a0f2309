# tests/api/test_api.py
"""Tests for the HTTP API."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from src.analysts.models import Analyst
from src.analysts.recommendation_book import RecommendationBook
from src.analysts.registry import AnalystRegistry
from src.api.app import create_app
from src.api.services import Services
from src.consensus.aggregator import ConsensusAggregator
from src.credibility.score_engine import CredibilityScoreEngine
from src.evaluation.evaluation_cycle import EvaluationCycle, EvaluatorSummary
from src.orchestrator.models import (
    AgentUpdateResult,
    BatchUpdateResult,
    EarningsCalendarResult,
    OrchestratorStatus,
)
from src.storage.document_store import JsonDocumentStore


@pytest.fixture
def market_data():
    provider = MagicMock()
    provider.get_price_at = AsyncMock(return_value=100.0)
    return provider


@pytest.fixture
def orchestrator():
    mock = MagicMock()
    mock.run_full_update_cycle = AsyncMock(return_value=BatchUpdateResult.empty())
    mock.run_smart_update_cycle = AsyncMock(
        return_value=BatchUpdateResult.from_results(
            [AgentUpdateResult(ticker="AAPL", success=True)], BatchUpdateResult.empty().start_time
        )
    )
    mock.update_ticker = AsyncMock(
        side_effect=lambda t: AgentUpdateResult(ticker=t.upper(), success=True)
    )
    mock.update_tickers_batch = AsyncMock(
        side_effect=lambda ts: BatchUpdateResult.from_results(
            [AgentUpdateResult(ticker=t, success=True) for t in ts],
            BatchUpdateResult.empty().start_time,
        )
    )
    mock.get_status = AsyncMock(
        return_value=OrchestratorStatus(
            active_tickers_count=2,
            tickers_needing_update=1,
            recent_tickers=["AAPL", "MSFT"],
            stale_tickers_to_update=["MSFT"],
        )
    )
    mock.get_active_tickers = AsyncMock(return_value=["AAPL", "MSFT"])
    mock.refresh_earnings_calendar = AsyncMock(
        return_value=EarningsCalendarResult.from_counts(2, 1, 0, datetime.now(timezone.utc))
    )
    return mock


@pytest.fixture
def services(tmp_path, market_data, orchestrator):
    store = JsonDocumentStore(tmp_path)
    registry = AnalystRegistry(store)
    book = RecommendationBook(store)
    engine = CredibilityScoreEngine()
    return Services(
        registry=registry,
        book=book,
        score_engine=engine,
        evaluation_cycle=EvaluationCycle(registry, book, engine, market_data),
        consensus_aggregator=ConsensusAggregator(registry, book),
        orchestrator=orchestrator,
    )


@pytest.fixture
def client(services):
    app = create_app(services)
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "ok"


class TestUpdateRoutes:
    def test_smart_update(self, client, orchestrator):
        response = client.post("/update", json={"type": "smart", "maxTickers": 5, "maxAgeHours": 2})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["result"]["success"] is True
        assert data["type"] == "smart"
        assert data["message"] == "smart update completed: 1/1 successful"
        orchestrator.run_smart_update_cycle.assert_awaited_once_with(5, 2.0)

    def test_full_update(self, client, orchestrator):
        response = client.post("/update", json={"type": "full"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["result"]["total_processed"] == 0
        orchestrator.run_full_update_cycle.assert_awaited_once_with(10)

    def test_single_ticker_update(self, client, orchestrator):
        response = client.post("/update", json={"type": "ticker", "ticker": "aapl"})

        data = response.json()
        assert data["result"]["total_processed"] == 1
        assert data["result"]["results"][0]["ticker"] == "AAPL"
        orchestrator.update_ticker.assert_awaited_once_with("aapl")

    def test_ticker_list_update(self, client, orchestrator):
        response = client.post("/update", json={"type": "ticker", "tickers": ["AAPL", "MSFT"]})

        assert response.json()["message"] == "ticker update completed: 2/2 successful"

    def test_all_tickers_failing_reports_failure(self, client, orchestrator):
        orchestrator.update_tickers_batch.side_effect = lambda ts: BatchUpdateResult.from_results(
            [AgentUpdateResult(ticker=t, success=False, error="News: down") for t in ts],
            BatchUpdateResult.empty().start_time,
        )

        response = client.post("/update", json={"type": "ticker", "tickers": ["AAPL", "MSFT"]})

        data = response.json()
        assert response.status_code == status.HTTP_200_OK
        assert data["success"] is False
        assert data["result"]["success"] is False
        assert data["message"] == "ticker update completed: 0/2 successful"

    def test_earnings_calendar_update(self, client, orchestrator):
        response = client.post("/update", json={"type": "earnings", "tickers": ["AAPL"]})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["type"] == "earnings"
        assert data["result"]["created"] == 2
        assert data["result"]["updated"] == 1
        assert data["message"].startswith(
            "Earnings calendar update completed: 2 created, 1 updated, 0 errors in "
        )
        orchestrator.refresh_earnings_calendar.assert_awaited_once_with(["AAPL"])

    def test_earnings_calendar_defaults_to_tracked_tickers(self, client, orchestrator):
        client.post("/update", json={"type": "earnings"})

        orchestrator.refresh_earnings_calendar.assert_awaited_once_with(None)

    def test_ticker_type_requires_ticker(self, client):
        response = client.post("/update", json={"type": "ticker"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "BAD_REQUEST"

    def test_invalid_type(self, client, orchestrator):
        response = client.post("/update", json={"type": "weekly"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "Invalid type" in response.json()["message"]
        orchestrator.run_full_update_cycle.assert_not_called()

    def test_unknown_field_rejected(self, client):
        response = client.post("/update", json={"type": "smart", "force": True})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_status(self, client):
        response = client.get("/update", params={"action": "status"})

        status_body = response.json()["status"]
        assert status_body["active_tickers_count"] == 2
        assert status_body["stale_tickers_to_update"] == ["MSFT"]

    def test_tickers(self, client, orchestrator):
        response = client.get("/update", params={"action": "tickers", "limit": 5})

        assert response.json() == {"success": True, "tickers": ["AAPL", "MSFT"], "count": 2}
        orchestrator.get_active_tickers.assert_awaited_once_with(5)

    def test_invalid_get_action(self, client):
        response = client.get("/update", params={"action": "purge"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unexpected_error_returns_500(self, client, orchestrator):
        orchestrator.get_status.side_effect = RuntimeError("boom")

        response = client.get("/update")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json() == {
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
        }


class TestEvaluateRoute:
    def test_run_evaluator_with_nothing_due(self, client):
        response = client.post("/evaluate", json={"action": "run_evaluator"})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["action"] == "run_evaluator"
        assert data["result"]["evaluated_count"] == 0
        assert data["result"]["errors"] == []
        assert data["duration_ms"] >= 0

    def test_passes_ticker_filter(self, client, services):
        summary = EvaluatorSummary(as_of=datetime.now(timezone.utc))
        services.evaluation_cycle.run_evaluator = AsyncMock(return_value=summary)

        client.post("/evaluate", json={"action": "run_evaluator", "ticker": "AAPL"})

        services.evaluation_cycle.run_evaluator.assert_awaited_once_with(ticker="AAPL")

    def test_invalid_action(self, client):
        response = client.post("/evaluate", json={"action": "evaluate_all"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestAnalystCredibilityRoutes:
    def test_initialize_analyst(self, client):
        body = {
            "action": "initialize_analyst",
            "analyst_id": "jdoe",
            "name": "J. Doe",
            "firm": "Acme Research",
            "specializations": ["Technology"],
        }

        first = client.post("/analyst-credibility", json=body)
        second = client.post("/analyst-credibility", json=body)

        assert first.json()["created"] is True
        analyst = first.json()["analyst"]
        assert analyst["credibility_score"] == 0.5
        assert analyst["display_band"] == "Analyst"
        assert second.json()["created"] is False

    def test_initialize_requires_analyst_id(self, client):
        response = client.post("/analyst-credibility", json={"action": "initialize_analyst"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_invalid_action(self, client):
        response = client.post("/analyst-credibility", json={"action": "delete_analyst"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "Invalid action" in response.json()["message"]

    def test_weighted_consensus_from_ratings(self, client, services):
        star = Analyst.with_defaults("star")
        star.credibility_score = 0.9
        client.portal.call(services.registry.save, star)

        response = client.post(
            "/analyst-credibility",
            json={
                "action": "calculate_weighted_consensus",
                "ticker": "AAPL",
                "ratings": [
                    {"analyst_id": "star", "action": "sell", "confidence": 1.0},
                    {"analyst_id": "unknown", "action": "BUY", "confidence": 1.0},
                ],
            },
        )

        consensus = response.json()["consensus"]
        assert consensus["action"] == "SELL"
        assert consensus["rating_count"] == 2

    def test_consensus_rejects_invalid_rating(self, client):
        response = client.post(
            "/analyst-credibility",
            json={
                "action": "calculate_weighted_consensus",
                "ticker": "AAPL",
                "ratings": [{"analyst_id": "a", "action": "STRONG_BUY"}],
            },
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_consensus_requires_ticker(self, client):
        response = client.post(
            "/analyst-credibility", json={"action": "calculate_weighted_consensus"}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_consensus_from_recorded_recommendations(self, client):
        client.post(
            "/analyst-credibility",
            json={
                "action": "record_recommendation",
                "analyst_id": "jdoe",
                "ticker": "AAPL",
                "recommendation_action": "BUY",
            },
        )

        response = client.post(
            "/analyst-credibility",
            json={"action": "calculate_weighted_consensus", "ticker": "AAPL"},
        )

        assert response.json()["consensus"]["action"] == "BUY"

    def test_record_recommendation(self, client):
        response = client.post(
            "/analyst-credibility",
            json={
                "action": "record_recommendation",
                "analyst_id": "jdoe",
                "ticker": "AAPL",
                "recommendation_action": "BUY",
                "sector": "Technology",
            },
        )

        recommendation = response.json()["recommendation"]
        assert recommendation["entry_price"] == 100.0
        assert recommendation["status"] == "OPEN"
        assert recommendation["benchmark"] == "XLK"

    def test_profile_and_top_analysts(self, client):
        client.post("/analyst-credibility", json={"action": "initialize_analyst", "analyst_id": "jdoe"})

        profile = client.get("/analyst-credibility", params={"analyst_id": "jdoe"})
        top = client.get("/analyst-credibility")

        assert profile.json()["analyst"]["analyst_id"] == "jdoe"
        assert profile.json()["recent_calls"] == []
        assert top.json()["count"] == 1

    def test_unknown_analyst_is_404(self, client):
        response = client.get("/analyst-credibility", params={"analyst_id": "nobody"})

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "NOT_FOUND"
