# src/orchestrator/update_orchestrator.py
"""Update orchestrator that keeps ticker data, scores and consensus fresh."""

import asyncio
import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Awaitable, Callable

from src.analysts.models import RecommendationStatus, utc_now
from src.analysts.recommendation_book import RECOMMENDATIONS_COLLECTION
from src.consensus.aggregator import ConsensusAggregator
from src.core.exceptions import CollaboratorError
from src.evaluation.evaluation_cycle import EvaluationCycle
from src.orchestrator.models import (
    AgentUpdateResult,
    BatchUpdateResult,
    EarningsCalendarResult,
    OrchestratorStatus,
    UpdateCycleType,
)
from src.orchestrator.settings import OrchestratorSettings
from src.providers.base import MarketDataProvider, NewsProvider
from src.storage.document_store import DocumentStore


logger = logging.getLogger(__name__)

EARNINGS_EVENTS_COLLECTION = "earnings_events"
STOCK_DATA_COLLECTION = "stock_data"
STOCK_NEWS_COLLECTION = "stock_news"
CONSENSUS_COLLECTION = "consensus"
METRICS_COLLECTION = "agent_metrics"


def _parse_timestamp(value) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _earnings_event_id(ticker: str, expected_date: datetime) -> str:
    return f"{ticker}_{expected_date.date().isoformat()}"


class UpdateOrchestrator:
    """Decides which tickers need refreshing and drives the refresh.

    Tickers are refreshed in windows of ``max_concurrent_updates`` run
    concurrently, with ``batch_delay_seconds`` of pacing between windows.
    Every failure is isolated to the smallest unit that still produces a
    result: one sub-task, one ticker, one cycle metric write.
    """

    def __init__(
        self,
        store: DocumentStore,
        news_provider: NewsProvider,
        market_data: MarketDataProvider,
        settings: OrchestratorSettings | None = None,
        consensus_aggregator: ConsensusAggregator | None = None,
        evaluation_cycle: EvaluationCycle | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the orchestrator.

        Args:
            store: Document store for ticker data and metrics.
            news_provider: Source of news and sentiment.
            market_data: Source of financial snapshots.
            settings: Concurrency and pacing settings.
            consensus_aggregator: Refreshes consensus snapshots when given.
            evaluation_cycle: Run before full cycles when given.
            sleep: Coroutine used for pacing between windows.
        """
        self._store = store
        self._news = news_provider
        self._market_data = market_data
        self._settings = settings or OrchestratorSettings()
        self._consensus = consensus_aggregator
        self._evaluation = evaluation_cycle
        self._sleep = sleep

    @property
    def settings(self) -> OrchestratorSettings:
        return self._settings

    async def get_active_tickers(self, limit: int = 20) -> list[str]:
        """Return tickers with upcoming earnings events, soonest first.

        Returns an empty list if the lookup fails.
        """
        try:
            docs = await self._store.query(
                EARNINGS_EVENTS_COLLECTION,
                where=[("expected_date", ">=", utc_now())],
                order_by="expected_date",
                limit=limit,
            )
        except Exception as e:
            logger.error(f"Error getting active tickers: {e}")
            return []

        tickers = [str(d["ticker"]).upper() for d in docs if d.get("ticker")]
        return list(dict.fromkeys(tickers))

    async def add_earnings_event(
        self, ticker: str, expected_date: datetime, **details
    ) -> str:
        """Register an upcoming earnings event, making the ticker active.

        An existing event for the same ticker and date is updated in place.

        Returns:
            Id of the event document.
        """
        ticker = ticker.upper()
        expected_date = _parse_timestamp(expected_date)
        doc_id = _earnings_event_id(ticker, expected_date)
        await self._store.set(
            EARNINGS_EVENTS_COLLECTION,
            doc_id,
            {
                "ticker": ticker,
                "expected_date": expected_date.isoformat(),
                "updated_at": utc_now().isoformat(),
                **details,
            },
            merge=True,
        )
        logger.info(f"Registered earnings event for {ticker} on {expected_date.date()}")
        return doc_id

    async def _calendar_tickers(self) -> list[str]:
        tickers = [t.upper() for t in self._settings.watchlist]
        docs = await self._store.query(
            RECOMMENDATIONS_COLLECTION,
            where=[("status", "==", RecommendationStatus.OPEN.value)],
        )
        tickers.extend(str(d["ticker"]).upper() for d in docs if d.get("ticker"))
        return list(dict.fromkeys(tickers))

    async def _refresh_earnings_for(self, ticker: str) -> str | None:
        """Upsert the next earnings event for a ticker.

        Returns:
            "created", "updated", or None when no upcoming date is known.
        """
        upcoming = await self._market_data.get_next_earnings(ticker)
        if upcoming is None:
            return None

        expected_date = _parse_timestamp(upcoming.expected_date)
        existing = await self._store.get(
            EARNINGS_EVENTS_COLLECTION, _earnings_event_id(ticker, expected_date)
        )
        await self.add_earnings_event(
            ticker,
            expected_date,
            eps_estimate=upcoming.eps_estimate,
            source=self._market_data.name,
        )
        return "created" if existing is None else "updated"

    async def refresh_earnings_calendar(
        self, tickers: list[str] | None = None
    ) -> EarningsCalendarResult:
        """Pull upcoming earnings dates and upsert them as earnings events.

        Tickers default to the watchlist plus every ticker with an open
        recommendation. Lookups run at most ``max_concurrent_updates`` at a
        time and a failing ticker only counts as an error.

        Args:
            tickers: Tickers to look up instead of the default universe.

        Returns:
            EarningsCalendarResult with created, updated and error counts.
        """
        start_time = utc_now()
        logger.info("Starting earnings calendar update")

        if tickers is None:
            try:
                tickers = await self._calendar_tickers()
            except Exception as e:
                logger.error(f"Error collecting tickers for earnings calendar: {e}")
                result = EarningsCalendarResult.from_counts(0, 0, 1, start_time)
                await self._log_earnings_update(result)
                return result
        tickers = list(dict.fromkeys(t.upper() for t in tickers))

        semaphore = asyncio.Semaphore(self._settings.max_concurrent_updates)

        async def refresh(ticker: str) -> str | None:
            async with semaphore:
                try:
                    return await self._refresh_earnings_for(ticker)
                except Exception as e:
                    logger.error(f"Earnings calendar update failed for {ticker}: {e}")
                    return "error"

        outcomes = await asyncio.gather(*[refresh(t) for t in tickers])
        result = EarningsCalendarResult.from_counts(
            created=outcomes.count("created"),
            updated=outcomes.count("updated"),
            errors=outcomes.count("error"),
            start_time=start_time,
        )
        logger.info(result.message)
        await self._log_earnings_update(result)
        return result

    async def should_update(
        self, ticker: str, max_age_hours: float | None = None
    ) -> bool:
        """Check if a ticker's data is stale.

        Args:
            ticker: Stock ticker symbol.
            max_age_hours: Staleness threshold.

        Returns:
            True when there is no record or timestamp, when the record is
            older than the threshold, or when the lookup fails.
        """
        if max_age_hours is None:
            max_age_hours = self._settings.default_max_age_hours

        try:
            doc = await self._store.get(STOCK_DATA_COLLECTION, ticker.upper())
            if doc is None:
                return True

            last_updated = _parse_timestamp(doc.get("last_updated"))
            if last_updated is None:
                return True

            age_hours = (utc_now() - last_updated).total_seconds() / 3600
            return age_hours > max_age_hours
        except Exception as e:
            logger.error(f"Error checking if ticker {ticker} needs update: {e}")
            return True

    async def update_ticker(self, ticker: str) -> AgentUpdateResult:
        """Refresh news and financial data for one ticker.

        Both sub-tasks run concurrently. The update succeeds if either one
        does; failures are reported as ``"News: ..."`` and
        ``"Financials: ..."`` joined by ``"; "``.

        Args:
            ticker: Stock ticker symbol.

        Returns:
            AgentUpdateResult for the ticker.
        """
        ticker = ticker.upper()
        logger.info(f"Starting update for {ticker}")

        try:
            news_result, financial_result = await asyncio.gather(
                self._update_news(ticker),
                self._update_financials(ticker),
                return_exceptions=True,
            )

            errors = []
            news_updated = not isinstance(news_result, BaseException)
            if news_updated:
                logger.info(f"News updated for {ticker}")
            else:
                logger.error(f"News update failed for {ticker}: {news_result}")
                errors.append(f"News: {str(news_result) or 'Unknown error'}")

            financials_updated = not isinstance(financial_result, BaseException)
            if financials_updated:
                logger.info(f"Financials updated for {ticker}")
            else:
                logger.error(f"Financial update failed for {ticker}: {financial_result}")
                errors.append(f"Financials: {str(financial_result) or 'Unknown error'}")

            result = AgentUpdateResult(
                ticker=ticker,
                success=news_updated or financials_updated,
                news_updated=news_updated,
                financials_updated=financials_updated,
                error="; ".join(errors) if errors else None,
            )
        except Exception as e:
            logger.error(f"Error updating ticker {ticker}: {e}")
            return AgentUpdateResult(ticker=ticker, success=False, error=str(e))

        if result.success:
            await self._mark_updated(result)
            result.consensus_updated = await self._refresh_consensus(ticker)
        return result

    async def _update_news(self, ticker: str) -> None:
        bundle = await self._news.fetch_news(ticker)
        await self._store.set(STOCK_NEWS_COLLECTION, ticker, asdict(bundle))

    async def _update_financials(self, ticker: str) -> None:
        snapshot = await self._market_data.get_financial_data(ticker)
        if not snapshot.success:
            raise CollaboratorError(snapshot.error or "Financial data fetch failed")

        data = asdict(snapshot)
        data.pop("success")
        data.pop("error")
        data["last_updated"] = snapshot.last_updated.isoformat()
        await self._store.set(STOCK_DATA_COLLECTION, ticker, data, merge=True)

    async def _mark_updated(self, result: AgentUpdateResult) -> None:
        try:
            await self._store.set(
                STOCK_DATA_COLLECTION,
                result.ticker,
                {
                    "last_updated": result.last_updated.isoformat(),
                    "news_updated": result.news_updated,
                    "financials_updated": result.financials_updated,
                },
                merge=True,
            )
        except Exception as e:
            logger.warning(f"Could not record update time for {result.ticker}: {e}")

    async def _refresh_consensus(self, ticker: str) -> bool:
        if self._consensus is None:
            return False
        try:
            consensus = await self._consensus.consensus_for_ticker(ticker)
            await self._store.set(
                CONSENSUS_COLLECTION, ticker, consensus.model_dump(mode="json")
            )
            return True
        except Exception as e:
            logger.warning(f"Consensus refresh failed for {ticker}: {e}")
            return False

    async def _safe_update(self, ticker: str) -> AgentUpdateResult:
        try:
            return await self.update_ticker(ticker)
        except Exception as e:
            logger.error(f"Batch update error for {ticker}: {e}")
            return AgentUpdateResult(ticker=ticker.upper(), success=False, error=str(e))

    async def update_tickers_batch(self, tickers: list[str]) -> BatchUpdateResult:
        """Refresh tickers in paced, concurrency-bounded windows.

        Args:
            tickers: Tickers to refresh.

        Returns:
            BatchUpdateResult with one result per ticker, in input order.
        """
        if not tickers:
            return BatchUpdateResult.empty()

        start_time = utc_now()
        window_size = self._settings.max_concurrent_updates
        results: list[AgentUpdateResult] = []
        logger.info(f"Starting batch update for {len(tickers)} tickers")

        for offset in range(0, len(tickers), window_size):
            window = tickers[offset:offset + window_size]
            results.extend(
                await asyncio.gather(*[self._safe_update(t) for t in window])
            )
            if offset + window_size < len(tickers):
                await self._sleep(self._settings.batch_delay_seconds)

        batch = BatchUpdateResult.from_results(results, start_time)
        logger.info(
            f"Batch update completed: {batch.success_count} success, "
            f"{batch.error_count} errors in {batch.duration_ms}ms"
        )
        return batch

    async def run_full_update_cycle(
        self, max_tickers: int | None = None
    ) -> BatchUpdateResult:
        """Refresh all active tickers up to a cap.

        Due recommendations are evaluated first when an evaluation cycle is
        wired, so the refreshed consensus reflects the latest scores.
        """
        max_tickers = max_tickers or self._settings.default_max_tickers
        logger.info("Starting full update cycle")

        if self._evaluation is not None and self._settings.evaluate_before_cycle:
            try:
                await self._evaluation.run_evaluator()
            except Exception as e:
                logger.error(f"Evaluator failed before update cycle: {e}")

        tickers = await self.get_active_tickers(max_tickers)
        if not tickers:
            logger.info("No active tickers found")
            return BatchUpdateResult.empty()

        logger.info(f"Found {len(tickers)} active tickers: {', '.join(tickers)}")
        result = await self.update_tickers_batch(tickers)
        await self._log_update_cycle(result, UpdateCycleType.FULL)
        return result

    async def get_tickers_to_update(
        self, max_tickers: int | None = None, max_age_hours: float | None = None
    ) -> list[str]:
        """Return up to ``max_tickers`` active tickers with stale data."""
        max_tickers = max_tickers or self._settings.default_max_tickers
        candidates = await self.get_active_tickers(
            max_tickers * self._settings.candidate_multiplier
        )

        stale: list[str] = []
        for ticker in candidates:
            if len(stale) >= max_tickers:
                break
            if await self.should_update(ticker, max_age_hours):
                stale.append(ticker)
        return stale

    async def run_smart_update_cycle(
        self, max_tickers: int | None = None, max_age_hours: float | None = None
    ) -> BatchUpdateResult:
        """Refresh only active tickers whose data is stale."""
        logger.info("Starting smart update cycle")
        tickers = await self.get_tickers_to_update(max_tickers, max_age_hours)
        if not tickers:
            logger.info("No tickers need updating")
            return BatchUpdateResult.empty()

        logger.info(f"Smart update will process {len(tickers)} tickers: {', '.join(tickers)}")
        result = await self.update_tickers_batch(tickers)
        await self._log_update_cycle(result, UpdateCycleType.SMART)
        return result

    async def get_status(self) -> OrchestratorStatus:
        """Return active and stale ticker counts with samples. Read-only."""
        active = await self.get_active_tickers(50)
        stale = await self.get_tickers_to_update(10, self._settings.default_max_age_hours)
        return OrchestratorStatus(
            active_tickers_count=len(active),
            tickers_needing_update=len(stale),
            recent_tickers=active[:10],
            stale_tickers_to_update=stale[:5],
        )

    async def _log_update_cycle(
        self, result: BatchUpdateResult, cycle_type: UpdateCycleType
    ) -> None:
        today = result.end_time.date().isoformat()
        try:
            await self._store.increment(
                METRICS_COLLECTION,
                today,
                {
                    "update_cycles": 1,
                    f"{cycle_type.value}_cycles": 1,
                    "total_tickers_processed": result.total_processed,
                    "successful_updates": result.success_count,
                    "failed_updates": result.error_count,
                    "total_duration_ms": result.duration_ms,
                },
                extra={
                    "date": today,
                    "last_update_cycle": result.end_time.isoformat(),
                    "updated_at": utc_now().isoformat(),
                },
            )
        except Exception as e:
            logger.error(f"Error logging update cycle metrics: {e}")

    async def _log_earnings_update(self, result: EarningsCalendarResult) -> None:
        today = result.end_time.date().isoformat()
        try:
            await self._store.increment(
                METRICS_COLLECTION,
                today,
                {
                    "earnings_calendar_updates": 1,
                    "earnings_created": result.created,
                    "earnings_updated": result.updated,
                    "earnings_errors": result.errors,
                },
                extra={
                    "date": today,
                    "last_earnings_update": result.end_time.isoformat(),
                    "updated_at": utc_now().isoformat(),
                },
            )
        except Exception as e:
            logger.error(f"Error logging earnings calendar metrics: {e}")
