# src/consensus/aggregator.py
"""Credibility-weighted consensus across analyst ratings."""

import logging
from datetime import timedelta

from src.analysts.models import Action, Analyst, utc_now
from src.analysts.recommendation_book import RecommendationBook
from src.analysts.registry import AnalystRegistry
from src.consensus.models import (
    AnalystRating,
    ConsensusAction,
    ConsensusResult,
    RatingContribution,
)
from src.consensus.settings import ConsensusSettings

logger = logging.getLogger(__name__)


class ConsensusAggregator:
    """Combines analyst ratings for a ticker into one weighted consensus.

    Each rating weighs ``credibility_score * weight_multiplier * confidence``,
    boosted by ``1 + specialization_bonus`` when the ticker's sector is one of
    the analyst's specializations. The action with the largest summed weight
    wins; ties resolve BUY > HOLD > SELL > NO_RATING.

    Aggregation is read-only and never raises on lookup failures.
    """

    def __init__(
        self,
        registry: AnalystRegistry,
        book: RecommendationBook | None = None,
        settings: ConsensusSettings | None = None,
    ):
        """Initialize the aggregator.

        Args:
            registry: Source of analyst scores and multipliers.
            book: Recommendation book, needed by consensus_for_ticker.
            settings: Aggregation settings.
        """
        self._registry = registry
        self._book = book
        self._settings = settings or ConsensusSettings()

    async def aggregate(
        self,
        ticker: str,
        ratings: list[AnalystRating],
        sector: str | None = None,
    ) -> ConsensusResult:
        """Aggregate ratings using the analysts' current credibility.

        Args:
            ticker: Stock ticker symbol.
            ratings: Current ratings, at most one per analyst expected.
            sector: Sector of the ticker, for the specialization bonus.

        Returns:
            ConsensusResult for the ticker.
        """
        analysts: dict[str, Analyst] = {}
        if ratings:
            try:
                analysts = await self._registry.get_many([r.analyst_id for r in ratings])
            except Exception as e:
                logger.warning(
                    f"Analyst lookup failed for {ticker}, using default weights: {e}"
                )
        return self.combine(ticker, ratings, analysts, sector=sector)

    def combine(
        self,
        ticker: str,
        ratings: list[AnalystRating],
        analysts: dict[str, Analyst],
        sector: str | None = None,
    ) -> ConsensusResult:
        """Aggregate ratings against already loaded analysts. Pure.

        Analysts missing from ``analysts`` weigh with the default score and a
        multiplier of 1.
        """
        ticker = ticker.upper()
        if not ratings:
            return ConsensusResult(ticker=ticker)

        contributions = [
            self._contribution(rating, analysts.get(rating.analyst_id), sector)
            for rating in ratings
        ]

        distribution = {action.value: 0.0 for action in Action}
        for c in contributions:
            distribution[c.action.value] += c.weight

        winner = ConsensusAction.NO_RATING
        best = 0.0
        for action in ConsensusAction.precedence():
            weight = distribution.get(action.value, 0.0)
            # Strictly greater keeps the earlier action on ties
            if weight > best:
                winner, best = action, weight

        total = sum(distribution.values())
        confidence = best / total if total > 0 else 0.0

        if winner == ConsensusAction.NO_RATING:
            # Every rating has zero weight; fall back to the most preferred action present
            present = {c.action.value for c in contributions}
            winner = next(
                a for a in ConsensusAction.precedence() if a.value in present
            )

        return ConsensusResult(
            ticker=ticker,
            action=winner,
            distribution=distribution,
            confidence=confidence,
            target_price=self._weighted_target(contributions),
            contributions=contributions,
            rating_count=len(ratings),
        )

    def _contribution(
        self,
        rating: AnalystRating,
        analyst: Analyst | None,
        sector: str | None,
    ) -> RatingContribution:
        if analyst is None:
            score = self._settings.default_score
            multiplier = 1.0
            bonus = 0.0
        else:
            score = analyst.credibility_score
            multiplier = analyst.weight_multiplier
            bonus = (
                self._settings.specialization_bonus
                if sector and sector in analyst.specializations
                else 0.0
            )

        return RatingContribution(
            analyst_id=rating.analyst_id,
            action=rating.action,
            credibility_score=score,
            weight_multiplier=multiplier,
            confidence=rating.confidence,
            specialization_bonus=bonus,
            weight=score * multiplier * rating.confidence * (1 + bonus),
            target_price=rating.target_price,
        )

    @staticmethod
    def _weighted_target(contributions: list[RatingContribution]) -> float | None:
        with_target = [c for c in contributions if c.target_price is not None]
        if not with_target:
            return None

        total_weight = sum(c.weight for c in with_target)
        if total_weight <= 0:
            return sum(c.target_price for c in with_target) / len(with_target)
        return sum(c.target_price * c.weight for c in with_target) / total_weight

    async def consensus_for_ticker(
        self,
        ticker: str,
        max_age_days: int | None = None,
        sector: str | None = None,
    ) -> ConsensusResult:
        """Aggregate the OPEN recommendations recorded for a ticker.

        Only each analyst's latest recommendation newer than the cutoff
        counts.

        Args:
            ticker: Stock ticker symbol.
            max_age_days: Ignore recommendations older than this.
            sector: Sector override; defaults to the recommendations' sector.

        Returns:
            ConsensusResult for the ticker.
        """
        if self._book is None:
            raise RuntimeError("consensus_for_ticker requires a RecommendationBook")

        max_age_days = max_age_days or self._settings.max_age_days
        cutoff = utc_now() - timedelta(days=max_age_days)
        recommendations = await self._book.open_recommendations(
            ticker=ticker, created_after=cutoff
        )

        # Oldest first, so later entries replace earlier ones
        latest = {rec.analyst_id: rec for rec in recommendations}
        ratings = [
            AnalystRating(
                analyst_id=rec.analyst_id,
                action=rec.action,
                confidence=rec.confidence,
                target_price=rec.target_price,
            )
            for rec in latest.values()
        ]

        if sector is None:
            sector = next((r.sector for r in latest.values() if r.sector), None)

        result = await self.aggregate(ticker, ratings, sector=sector)
        logger.info(
            f"Consensus for {result.ticker}: {result.action.value} "
            f"({result.rating_count} ratings, confidence {result.confidence:.2f})"
        )
        return result
