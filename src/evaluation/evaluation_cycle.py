# src/evaluation/evaluation_cycle.py
"""Resolves recommendations into outcomes and updates analyst credibility."""

import asyncio
import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from src.analysts.models import (
    Action,
    Analyst,
    Evaluation,
    Outcome,
    PredictionType,
    Recommendation,
    RecommendationStatus,
    utc_now,
)
from src.analysts.recommendation_book import RecommendationBook
from src.analysts.registry import AnalystRegistry
from src.core.exceptions import CollaboratorError, EvaluationError, NotFoundError
from src.credibility.score_engine import CredibilityScoreEngine
from src.evaluation.outcome_rules import (
    EPS_DENOMINATOR_FLOOR,
    classify_rating,
    percent_change,
    within_tolerance,
)
from src.evaluation.settings import EvaluationSettings
from src.providers.base import MarketDataProvider

logger = logging.getLogger(__name__)

RECENT_WINDOWS = (
    (30, "last_30_days"),
    (90, "last_90_days"),
    (365, "last_year"),
)


@dataclass
class EvaluatorSummary:
    """Result of one evaluator run."""

    as_of: datetime
    evaluated_count: int = 0
    skipped_count: int = 0
    updated_analysts: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class AnalystProfile:
    """An analyst with recent calls and derived performance metrics."""

    analyst: Analyst
    recent_calls: list[Recommendation]
    evaluations: list[Evaluation]
    win_rate: float
    avg_alpha: float
    calls_by_action: dict[str, int]
    outcomes_by_action: dict[str, dict[str, int]]


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class EvaluationCycle:
    """Evaluates recommendations whose horizon has elapsed.

    Each resolved recommendation produces exactly one stored Evaluation and
    one atomic update of the owning analyst: counters are incremented, the
    per-category running average and rolling windows are refreshed, and the
    credibility score is recomputed.
    """

    def __init__(
        self,
        registry: AnalystRegistry,
        book: RecommendationBook,
        score_engine: CredibilityScoreEngine,
        market_data: MarketDataProvider,
        settings: EvaluationSettings | None = None,
    ):
        """Initialize the cycle.

        Args:
            registry: Analyst records.
            book: Recommendation and evaluation records.
            score_engine: Engine used to recompute credibility.
            market_data: Source of actual prices and EPS.
            settings: Thresholds and tolerances.
        """
        self._registry = registry
        self._book = book
        self._engine = score_engine
        self._market_data = market_data
        self._settings = settings or EvaluationSettings()
        self._analyst_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def evaluate(
        self,
        recommendation: Recommendation,
        actual_value: float,
        benchmark_return: float | None = None,
    ) -> Outcome:
        """Determine the outcome of a recommendation. Has no side effects.

        Args:
            recommendation: The call to judge.
            actual_value: Realized price (rating, price target) or EPS.
            benchmark_return: Benchmark move in percent over the same
                horizon. Rating calls are then judged on alpha.

        Returns:
            Outcome of the call.

        Raises:
            EvaluationError: If the recommendation lacks the value it must
                be compared against.
        """
        outcome, _, _ = self._judge(recommendation, actual_value, benchmark_return)
        return outcome

    def _judge(
        self,
        rec: Recommendation,
        actual_value: float,
        benchmark_return: float | None,
    ) -> tuple[Outcome, float | None, float | None]:
        """Return (outcome, absolute return %, alpha %)."""
        s = self._settings

        if rec.prediction_type == PredictionType.PRICE_TARGET:
            outcome = within_tolerance(
                actual_value, rec.target_price, s.price_target_tolerance_percent
            )
            return outcome, None, None

        if rec.prediction_type == PredictionType.EPS:
            outcome = within_tolerance(
                actual_value,
                rec.predicted_eps,
                s.eps_tolerance_percent,
                floor=EPS_DENOMINATOR_FLOOR,
            )
            return outcome, None, None

        if rec.entry_price is None:
            raise EvaluationError(
                f"Recommendation {rec.recommendation_id} has no entry price"
            )

        abs_return = percent_change(rec.entry_price, actual_value)
        alpha = abs_return - benchmark_return if benchmark_return is not None else None
        move = alpha if alpha is not None else abs_return
        outcome = classify_rating(
            rec.action, move, s.rating_threshold_percent, s.rating_neutral_band
        )
        return outcome, abs_return, alpha

    async def resolve(
        self,
        recommendation: Recommendation,
        actual_value: float,
        benchmark_return: float | None = None,
        evaluated_at: datetime | None = None,
    ) -> Evaluation:
        """Evaluate a recommendation and apply the outcome to its analyst.

        Resolving an already evaluated recommendation returns the stored
        evaluation and changes nothing.

        Args:
            recommendation: The call to resolve.
            actual_value: Realized price or EPS.
            benchmark_return: Benchmark move in percent, if known.
            evaluated_at: Evaluation timestamp, defaults to now.

        Returns:
            The evaluation for this recommendation.
        """
        evaluation, _ = await self._resolve(
            recommendation, actual_value, benchmark_return, evaluated_at
        )
        return evaluation

    async def _resolve(
        self,
        recommendation: Recommendation,
        actual_value: float,
        benchmark_return: float | None,
        evaluated_at: datetime | None,
    ) -> tuple[Evaluation, bool]:
        """Return (evaluation, whether this call created it)."""
        existing = await self._book.get_evaluation(recommendation.recommendation_id)
        if existing is not None:
            logger.debug(
                f"Recommendation {recommendation.recommendation_id} already evaluated"
            )
            return existing, False

        evaluated_at = _as_utc(evaluated_at or utc_now())
        outcome, abs_return, alpha = self._judge(
            recommendation, actual_value, benchmark_return
        )

        evaluation = Evaluation(
            recommendation_id=recommendation.recommendation_id,
            analyst_id=recommendation.analyst_id,
            ticker=recommendation.ticker,
            action=recommendation.action,
            prediction_type=recommendation.prediction_type,
            actual_value=actual_value,
            abs_return=abs_return,
            bench_return=benchmark_return,
            alpha=alpha,
            outcome=outcome,
            evaluated_at=evaluated_at,
        )
        evaluation, created = await self._book.close_with_evaluation(
            recommendation, evaluation
        )
        if not created:
            logger.info(
                f"Recommendation {recommendation.recommendation_id} was resolved "
                f"by a concurrent run"
            )
            return evaluation, False

        # Windows are read under the analyst lock so the last writer sees
        # every evaluation claimed before it
        async with self._analyst_locks[recommendation.analyst_id]:
            window_start = evaluated_at - timedelta(days=RECENT_WINDOWS[-1][0])
            window_evaluations = await self._book.evaluations_for_analyst(
                recommendation.analyst_id, since=window_start
            )
            analyst = await self._registry.apply(
                recommendation.analyst_id,
                lambda current: self._apply_outcome(
                    current, evaluation, window_evaluations
                ),
            )

        logger.info(
            f"Evaluated {recommendation.ticker} {recommendation.action.value} "
            f"({recommendation.prediction_type.value}) -> {outcome.value}; "
            f"analyst {analyst.analyst_id} credibility "
            f"{analyst.credibility_score:.3f}"
        )
        return evaluation, True

    def _apply_outcome(
        self,
        analyst: Analyst,
        evaluation: Evaluation,
        window_evaluations: list[Evaluation],
    ) -> Analyst:
        hit = 1.0 if evaluation.outcome == Outcome.CORRECT else 0.0

        track_record = analyst.track_record
        track_record.total_predictions += 1
        if evaluation.outcome == Outcome.CORRECT:
            track_record.accurate_predictions += 1
        track_record.last_updated = evaluation.evaluated_at

        # Incremental running average for the category
        history = analyst.historical_performance
        category = evaluation.prediction_type.value
        count = history.category_counts.get(category, 0) + 1
        history.category_counts[category] = count
        current = history.accuracy_for(category)
        setattr(history, category, current + (hit - current) / count)

        lifetime = track_record.accuracy_rate
        for days, attr in RECENT_WINDOWS:
            start = evaluation.evaluated_at - timedelta(days=days)
            in_window = [
                e for e in window_evaluations if _as_utc(e.evaluated_at) >= start
            ]
            if in_window:
                correct = sum(1 for e in in_window if e.outcome == Outcome.CORRECT)
                value = correct / len(in_window)
            else:
                value = lifetime
            setattr(analyst.recent_performance, attr, value)

        return self._engine.rescore(analyst)

    async def run_evaluator(
        self, as_of: datetime | None = None, ticker: str | None = None
    ) -> EvaluatorSummary:
        """Evaluate every OPEN recommendation whose horizon has elapsed.

        Each recommendation is evaluated independently; a failure is
        recorded in ``errors`` and does not stop the others.

        Args:
            as_of: Evaluation time, defaults to now.
            ticker: Restrict the run to one ticker.

        Returns:
            EvaluatorSummary of the run.
        """
        as_of = _as_utc(as_of or utc_now())
        summary = EvaluatorSummary(as_of=as_of)

        try:
            open_recs = await self._book.open_recommendations(ticker=ticker)
        except Exception as e:
            error_msg = f"Evaluator failed: {e}"
            logger.error(error_msg)
            summary.errors.append(error_msg)
            return summary

        due = [r for r in open_recs if r.is_due(as_of)]
        summary.skipped_count = len(open_recs) - len(due)
        logger.info(
            f"Found {len(open_recs)} open recommendations, {len(due)} due for evaluation"
        )

        semaphore = asyncio.Semaphore(self._settings.max_concurrent_evaluations)
        updated: set[str] = set()

        async def evaluate_one(rec: Recommendation) -> None:
            async with semaphore:
                try:
                    _, created = await self._evaluate_due(rec, as_of)
                    if created:
                        summary.evaluated_count += 1
                        updated.add(rec.analyst_id)
                    else:
                        summary.skipped_count += 1
                except Exception as e:
                    error_msg = (
                        f"Failed to evaluate recommendation {rec.recommendation_id}: {e}"
                    )
                    logger.error(error_msg)
                    summary.errors.append(error_msg)

        await asyncio.gather(*[evaluate_one(rec) for rec in due])

        summary.updated_analysts = sorted(updated)
        logger.info(
            f"Evaluator completed: {summary.evaluated_count} evaluated, "
            f"{len(summary.errors)} errors"
        )
        return summary

    async def _evaluate_due(
        self, rec: Recommendation, as_of: datetime
    ) -> tuple[Evaluation, bool]:
        resolved_at = min(rec.evaluate_at, as_of)

        if rec.prediction_type == PredictionType.EPS:
            actual = await self._market_data.get_reported_eps(rec.ticker, resolved_at)
            return await self._resolve(rec, actual, None, as_of)

        actual = await self._market_data.get_price_at(rec.ticker, resolved_at)
        if rec.prediction_type == PredictionType.PRICE_TARGET:
            return await self._resolve(rec, actual, None, as_of)

        if rec.entry_price is None:
            entry = await self._market_data.get_price_at(rec.ticker, rec.created_at)
            rec = rec.model_copy(update={"entry_price": entry})

        benchmark_return = None
        if self._settings.use_benchmark and rec.benchmark:
            bench_start = await self._market_data.get_price_at(rec.benchmark, rec.created_at)
            bench_end = await self._market_data.get_price_at(rec.benchmark, resolved_at)
            benchmark_return = percent_change(bench_start, bench_end)

        return await self._resolve(rec, actual, benchmark_return, as_of)

    async def record_recommendation(
        self,
        analyst_id: str,
        ticker: str,
        action: Action,
        confidence: float | None = None,
        horizon_days: int | None = None,
        prediction_type: PredictionType = PredictionType.RATING,
        target_price: float | None = None,
        predicted_eps: float | None = None,
        note: str | None = None,
        sector: str | None = None,
        analyst_name: str | None = None,
        firm: str = "Unknown",
        created_at: datetime | None = None,
    ) -> Recommendation:
        """Record a new recommendation, creating the analyst on first sight.

        The entry price is looked up immediately; if the lookup fails it is
        left empty and resolved by the evaluator later.

        Returns:
            The stored Recommendation.
        """
        created_at = _as_utc(created_at or utc_now())
        await self._registry.get_or_create(analyst_id, name=analyst_name, firm=firm)

        entry_price = None
        if prediction_type == PredictionType.RATING:
            try:
                entry_price = await self._market_data.get_price_at(ticker, created_at)
            except CollaboratorError as e:
                logger.warning(f"Entry price unavailable for {ticker}: {e}")

        recommendation = Recommendation(
            recommendation_id=uuid.uuid4().hex,
            analyst_id=analyst_id,
            ticker=ticker,
            action=action,
            confidence=confidence or self._settings.default_confidence,
            horizon_days=horizon_days or self._settings.default_horizon_days,
            prediction_type=prediction_type,
            target_price=target_price,
            predicted_eps=predicted_eps,
            entry_price=entry_price,
            benchmark=self._settings.benchmark_for(sector),
            note=note,
            sector=sector,
            status=RecommendationStatus.OPEN,
            created_at=created_at,
        )
        await self._book.save(recommendation)

        logger.info(
            f"Recorded recommendation: {action.value} {recommendation.ticker} "
            f"by analyst {analyst_id}"
        )
        return recommendation

    async def analyst_profile(self, analyst_id: str, limit: int = 20) -> AnalystProfile:
        """Build an analyst's profile from their recent calls.

        Raises:
            NotFoundError: If the analyst does not exist.
        """
        analyst = await self._registry.get(analyst_id)
        if analyst is None:
            raise NotFoundError(f"Analyst {analyst_id} not found")

        recent_calls = await self._book.recent_for_analyst(analyst_id, limit=limit)
        evaluations = [
            e
            for e in await asyncio.gather(
                *[self._book.get_evaluation(c.recommendation_id) for c in recent_calls]
            )
            if e is not None
        ]

        calls_by_action: dict[str, int] = {}
        outcomes_by_action: dict[str, dict[str, int]] = {}
        alphas: list[float] = []
        correct = 0
        for evaluation in evaluations:
            action = evaluation.action.value
            calls_by_action[action] = calls_by_action.get(action, 0) + 1
            outcomes = outcomes_by_action.setdefault(action, {})
            outcomes[evaluation.outcome.value] = outcomes.get(evaluation.outcome.value, 0) + 1
            if evaluation.outcome == Outcome.CORRECT:
                correct += 1
            if evaluation.alpha is not None:
                alphas.append(evaluation.alpha)

        return AnalystProfile(
            analyst=analyst,
            recent_calls=recent_calls,
            evaluations=evaluations,
            win_rate=correct / len(evaluations) if evaluations else 0.0,
            avg_alpha=sum(alphas) / len(alphas) if alphas else 0.0,
            calls_by_action=calls_by_action,
            outcomes_by_action=outcomes_by_action,
        )
