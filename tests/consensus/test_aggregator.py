# tests/consensus/test_aggregator.py
"""Tests for ConsensusAggregator."""
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from src.analysts.models import Action, Analyst, Recommendation
from src.analysts.recommendation_book import RecommendationBook
from src.analysts.registry import AnalystRegistry
from src.consensus.aggregator import ConsensusAggregator
from src.consensus.models import AnalystRating, ConsensusAction
from src.consensus.settings import ConsensusSettings
from src.storage.document_store import JsonDocumentStore


def make_analyst(
    analyst_id: str,
    score: float = 0.5,
    multiplier: float = 1.0,
    specializations: set[str] | None = None,
) -> Analyst:
    analyst = Analyst.with_defaults(
        analyst_id, specializations=specializations, weight_multiplier=multiplier
    )
    analyst.credibility_score = score
    return analyst


def rating(analyst_id: str, action: str, confidence: float = 1.0, target: float | None = None):
    return AnalystRating(
        analyst_id=analyst_id, action=action, confidence=confidence, target_price=target
    )


@pytest.fixture
def aggregator():
    return ConsensusAggregator(registry=MagicMock())


class TestCombine:
    def test_empty_ratings_give_no_rating(self, aggregator):
        result = aggregator.combine("aapl", [], {})

        assert result.ticker == "AAPL"
        assert result.action == ConsensusAction.NO_RATING
        assert result.target_price is None
        assert result.confidence == 0.0
        assert result.contributions == []

    def test_single_rating_wins_regardless_of_weight(self, aggregator):
        analysts = {"a1": make_analyst("a1", score=0.01, multiplier=0.1)}

        result = aggregator.combine("AAPL", [rating("a1", "SELL", confidence=0.05)], analysts)

        assert result.action == ConsensusAction.SELL
        assert result.confidence == pytest.approx(1.0)

    def test_single_rating_with_zero_score_still_wins(self, aggregator):
        analysts = {"a1": make_analyst("a1", score=0.0)}

        result = aggregator.combine("AAPL", [rating("a1", "HOLD")], analysts)

        assert result.action == ConsensusAction.HOLD

    def test_tie_prefers_buy_over_sell(self, aggregator):
        # weights: BUY 10, SELL 10, HOLD 1
        analysts = {
            "buyer": make_analyst("buyer", score=0.5, multiplier=20.0),
            "seller": make_analyst("seller", score=0.5, multiplier=20.0),
            "holder": make_analyst("holder", score=0.5, multiplier=2.0),
        }
        ratings = [rating("seller", "SELL"), rating("holder", "HOLD"), rating("buyer", "BUY")]

        result = aggregator.combine("AAPL", ratings, analysts)

        assert result.distribution == {"BUY": 10.0, "HOLD": 1.0, "SELL": 10.0}
        assert result.action == ConsensusAction.BUY

    def test_tie_prefers_hold_over_sell(self, aggregator):
        analysts = {"h": make_analyst("h"), "s": make_analyst("s")}

        result = aggregator.combine("AAPL", [rating("s", "SELL"), rating("h", "HOLD")], analysts)

        assert result.action == ConsensusAction.HOLD

    def test_credibility_outweighs_headcount(self, aggregator):
        analysts = {
            "star": make_analyst("star", score=0.95, multiplier=2.0),
            "n1": make_analyst("n1", score=0.3),
            "n2": make_analyst("n2", score=0.3),
        }
        ratings = [rating("star", "SELL"), rating("n1", "BUY"), rating("n2", "BUY")]

        result = aggregator.combine("AAPL", ratings, analysts)

        assert result.action == ConsensusAction.SELL
        assert result.confidence == pytest.approx(1.9 / 2.5)

    def test_unknown_analyst_uses_default_weight(self, aggregator):
        result = aggregator.combine("AAPL", [rating("ghost", "BUY", confidence=0.8)], {})

        contribution = result.contributions[0]
        assert contribution.credibility_score == 0.5
        assert contribution.weight_multiplier == 1.0
        assert contribution.weight == pytest.approx(0.4)

    def test_weighted_target_price(self, aggregator):
        analysts = {"a": make_analyst("a", score=0.75), "b": make_analyst("b", score=0.25)}
        ratings = [rating("a", "BUY", target=200.0), rating("b", "BUY", target=100.0)]

        result = aggregator.combine("AAPL", ratings, analysts)

        assert result.target_price == pytest.approx(175.0)

    def test_target_omitted_without_targets(self, aggregator):
        result = aggregator.combine("AAPL", [rating("a", "BUY")], {})

        assert result.target_price is None

    def test_specialization_bonus(self):
        aggregator = ConsensusAggregator(MagicMock(), settings=ConsensusSettings(specialization_bonus=0.1))
        analysts = {"a": make_analyst("a", specializations={"Technology"})}

        in_sector = aggregator.combine("AAPL", [rating("a", "BUY")], analysts, sector="Technology")
        off_sector = aggregator.combine("AAPL", [rating("a", "BUY")], analysts, sector="Energy")

        assert in_sector.contributions[0].weight == pytest.approx(0.55)
        assert off_sector.contributions[0].weight == pytest.approx(0.5)

    def test_contributing_analysts(self, aggregator):
        result = aggregator.combine("AAPL", [rating("a", "BUY"), rating("b", "SELL", 0.5)], {})

        assert result.contributing_analysts == {"a": 0.5, "b": 0.25}


class TestAnalystRating:
    def test_action_is_case_insensitive(self):
        assert rating("a", "buy").action == Action.BUY

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            AnalystRating(analyst_id="a", action="BUY", extra_field=1)

    def test_rejects_invalid_action(self):
        with pytest.raises(ValidationError):
            AnalystRating(analyst_id="a", action="STRONG_BUY")


class TestAggregate:
    @pytest.mark.asyncio
    async def test_empty_never_touches_registry(self):
        registry = MagicMock()
        registry.get_many = AsyncMock()
        aggregator = ConsensusAggregator(registry)

        result = await aggregator.aggregate("AAPL", [])

        assert result.action == ConsensusAction.NO_RATING
        registry.get_many.assert_not_called()

    @pytest.mark.asyncio
    async def test_registry_failure_falls_back_to_default_weights(self):
        registry = MagicMock()
        registry.get_many = AsyncMock(side_effect=RuntimeError("store down"))
        aggregator = ConsensusAggregator(registry)

        result = await aggregator.aggregate("AAPL", [rating("a", "SELL")])

        assert result.action == ConsensusAction.SELL
        assert result.contributions[0].credibility_score == 0.5

    @pytest.mark.asyncio
    async def test_consensus_for_ticker_uses_latest_open_recommendations(self, tmp_path):
        store = JsonDocumentStore(tmp_path)
        registry = AnalystRegistry(store)
        book = RecommendationBook(store)
        await registry.save(make_analyst("a1", score=0.9))
        await registry.save(make_analyst("a2", score=0.2))
        now = datetime.now(timezone.utc)

        for rec_id, analyst_id, action, days_ago in [
            ("old", "a1", Action.SELL, 60),
            ("r1", "a1", Action.SELL, 5),
            ("r2", "a1", Action.BUY, 1),
            ("r3", "a2", Action.SELL, 2),
        ]:
            await book.save(
                Recommendation(
                    recommendation_id=rec_id,
                    analyst_id=analyst_id,
                    ticker="AAPL",
                    action=action,
                    confidence=1.0,
                    created_at=now - timedelta(days=days_ago),
                )
            )

        aggregator = ConsensusAggregator(registry, book)
        result = await aggregator.consensus_for_ticker("AAPL")

        assert result.rating_count == 2
        assert result.action == ConsensusAction.BUY
        assert result.distribution["BUY"] == pytest.approx(0.9)
        assert result.distribution["SELL"] == pytest.approx(0.2)
