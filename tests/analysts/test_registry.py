# tests/analysts/test_registry.py
"""Tests for AnalystRegistry and RecommendationBook."""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from src.analysts.models import (
    Action,
    Analyst,
    Evaluation,
    Outcome,
    PredictionType,
    Recommendation,
    RecommendationStatus,
)
from src.analysts.recommendation_book import RecommendationBook
from src.analysts.registry import AnalystRegistry
from src.storage.document_store import JsonDocumentStore


@pytest.fixture
def store(tmp_path):
    return JsonDocumentStore(tmp_path)


@pytest.fixture
def registry(store):
    return AnalystRegistry(store)


@pytest.fixture
def book(store):
    return RecommendationBook(store)


def make_recommendation(rec_id: str, analyst_id: str = "a1", ticker: str = "AAPL", **kwargs):
    return Recommendation(
        recommendation_id=rec_id,
        analyst_id=analyst_id,
        ticker=ticker,
        action=Action.BUY,
        **kwargs,
    )


class TestAnalystRegistry:
    @pytest.mark.asyncio
    async def test_get_or_create_creates_defaults_once(self, registry):
        created = await registry.get_or_create("a1", name="Jane", firm="Acme")
        again = await registry.get_or_create("a1", name="Other")

        assert created.name == "Jane"
        assert again.name == "Jane"
        assert again.firm == "Acme"

    @pytest.mark.asyncio
    async def test_get_unknown_returns_none(self, registry):
        assert await registry.get("missing") is None

    @pytest.mark.asyncio
    async def test_get_many_skips_unknown(self, registry):
        await registry.save(Analyst.with_defaults("a1"))
        await registry.save(Analyst.with_defaults("a2"))

        analysts = await registry.get_many(["a1", "a2", "a1", "zz"])

        assert set(analysts) == {"a1", "a2"}

    @pytest.mark.asyncio
    async def test_apply_initializes_missing_analyst(self, registry):
        def mutate(analyst):
            analyst.track_record.total_predictions += 1
            return analyst

        analyst = await registry.apply("new", mutate)

        assert analyst.name == "Analyst_new"
        assert analyst.track_record.total_predictions == 1
        assert (await registry.get("new")).track_record.total_predictions == 1

    @pytest.mark.asyncio
    async def test_concurrent_apply_does_not_lose_updates(self, registry):
        await registry.save(Analyst.with_defaults("a1"))

        def mutate(analyst):
            analyst.track_record.total_predictions += 1
            return analyst

        await asyncio.gather(*[registry.apply("a1", mutate) for _ in range(20)])

        assert (await registry.get("a1")).track_record.total_predictions == 20

    @pytest.mark.asyncio
    async def test_top_analysts_ordered_by_score(self, registry):
        for analyst_id, score in [("low", 0.3), ("high", 0.9), ("mid", 0.6)]:
            analyst = Analyst.with_defaults(analyst_id)
            analyst.credibility_score = score
            await registry.save(analyst)

        top = await registry.top_analysts(limit=2)

        assert [a.analyst_id for a in top] == ["high", "mid"]


class TestRecommendationBook:
    @pytest.mark.asyncio
    async def test_save_and_get(self, book):
        await book.save(make_recommendation("r1"))

        rec = await book.get("r1")

        assert rec.ticker == "AAPL"
        assert rec.status == RecommendationStatus.OPEN

    @pytest.mark.asyncio
    async def test_open_recommendations_filters_ticker_and_age(self, book):
        now = datetime.now(timezone.utc)
        await book.save(make_recommendation("old", created_at=now - timedelta(days=40)))
        await book.save(make_recommendation("new", created_at=now - timedelta(days=1)))
        await book.save(make_recommendation("other", ticker="MSFT", created_at=now))

        recs = await book.open_recommendations(
            ticker="aapl", created_after=now - timedelta(days=30)
        )

        assert [r.recommendation_id for r in recs] == ["new"]

    @pytest.mark.asyncio
    async def test_close_with_evaluation(self, book):
        rec = make_recommendation("r1", entry_price=100.0)
        await book.save(rec)
        evaluation = Evaluation(
            recommendation_id="r1",
            analyst_id="a1",
            ticker="AAPL",
            action=Action.BUY,
            prediction_type=PredictionType.RATING,
            actual_value=110.0,
            outcome=Outcome.CORRECT,
        )

        stored, created = await book.close_with_evaluation(rec, evaluation)

        assert created is True
        assert stored.outcome == Outcome.CORRECT
        assert (await book.get("r1")).status == RecommendationStatus.CLOSED
        assert (await book.get_evaluation("r1")).outcome == Outcome.CORRECT
        assert await book.open_recommendations() == []
        assert len(await book.evaluations_for_analyst("a1")) == 1

    @pytest.mark.asyncio
    async def test_close_with_evaluation_only_first_claim_wins(self, book):
        rec = make_recommendation("r1", entry_price=100.0)
        await book.save(rec)

        def outcome_eval(outcome):
            return Evaluation(
                recommendation_id="r1",
                analyst_id="a1",
                ticker="AAPL",
                action=Action.BUY,
                prediction_type=PredictionType.RATING,
                actual_value=110.0,
                outcome=outcome,
            )

        results = await asyncio.gather(
            book.close_with_evaluation(rec, outcome_eval(Outcome.CORRECT)),
            book.close_with_evaluation(rec, outcome_eval(Outcome.INCORRECT)),
        )

        assert sorted(created for _, created in results) == [False, True]
        assert {stored.outcome for stored, _ in results} == {Outcome.CORRECT}
        assert (await book.get_evaluation("r1")).outcome == Outcome.CORRECT

    @pytest.mark.asyncio
    async def test_recent_for_analyst_newest_first(self, book):
        now = datetime.now(timezone.utc)
        for i in range(3):
            await book.save(make_recommendation(f"r{i}", created_at=now - timedelta(days=i)))

        recs = await book.recent_for_analyst("a1", limit=2)

        assert [r.recommendation_id for r in recs] == ["r0", "r1"]
