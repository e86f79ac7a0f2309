# src/providers/yfinance_provider.py
"""Market data and news providers backed by yfinance."""

import asyncio
import logging
import math
from datetime import datetime, timedelta, timezone

import yfinance as yf

from src.core.exceptions import CollaboratorError
from src.providers.base import (
    EarningsDate,
    FinancialSnapshot,
    MarketDataProvider,
    NewsBundle,
    NewsItem,
    NewsProvider,
)
from src.providers.headline_sentiment import HeadlineSentimentAnalyzer

logger = logging.getLogger(__name__)


class YFinanceMarketDataProvider(MarketDataProvider):
    """Fetches snapshots and historical closes from Yahoo Finance."""

    def __init__(self, lookahead_days: int = 5):
        """Initialize the provider.

        Args:
            lookahead_days: Days searched forward from the requested date
                when it falls on a non-trading day.
        """
        super().__init__("yfinance")
        self.lookahead_days = lookahead_days

    async def get_financial_data(self, ticker: str) -> FinancialSnapshot:
        return await asyncio.to_thread(self._load_snapshot, ticker)

    def _load_snapshot(self, ticker: str) -> FinancialSnapshot:
        try:
            info = yf.Ticker(ticker).info
        except Exception as e:
            logger.error(f"Error fetching market data for {ticker}: {e}")
            return FinancialSnapshot(ticker=ticker, success=False, error=str(e))

        price = info.get("regularMarketPrice") or info.get("currentPrice")
        if price is None:
            return FinancialSnapshot(
                ticker=ticker, success=False, error=f"No price data for {ticker}"
            )

        return FinancialSnapshot(
            ticker=ticker,
            success=True,
            name=info.get("longName") or info.get("shortName"),
            price=price,
            change=info.get("regularMarketChange"),
            change_percent=info.get("regularMarketChangePercent"),
            volume=info.get("regularMarketVolume"),
            metrics={
                "market_cap": info.get("marketCap"),
                "pe_ratio": info.get("trailingPE"),
                "forward_eps": info.get("forwardEps"),
                "fifty_two_week_high": info.get("fiftyTwoWeekHigh"),
                "fifty_two_week_low": info.get("fiftyTwoWeekLow"),
                "sector": info.get("sector"),
            },
        )

    async def get_price_at(self, ticker: str, when: datetime) -> float:
        return await asyncio.to_thread(self._load_close, ticker, when)

    def _load_close(self, ticker: str, when: datetime) -> float:
        start = when.date()
        end = start + timedelta(days=self.lookahead_days)
        try:
            history = yf.Ticker(ticker).history(
                start=start.isoformat(), end=end.isoformat(), interval="1d"
            )
        except Exception as e:
            raise CollaboratorError(f"Price lookup failed for {ticker}: {e}") from e

        if history is None or history.empty:
            raise CollaboratorError(
                f"No price data available for {ticker} on {start.isoformat()}"
            )
        return float(history["Close"].iloc[0])

    async def get_reported_eps(self, ticker: str, when: datetime) -> float:
        return await asyncio.to_thread(self._load_reported_eps, ticker, when)

    def _load_reported_eps(self, ticker: str, when: datetime) -> float:
        try:
            earnings = yf.Ticker(ticker).get_earnings_dates(limit=12)
        except Exception as e:
            raise CollaboratorError(f"Earnings lookup failed for {ticker}: {e}") from e

        if earnings is None or earnings.empty or "Reported EPS" not in earnings:
            raise CollaboratorError(f"No earnings data available for {ticker}")

        reported = earnings["Reported EPS"].dropna()
        cutoff = when if when.tzinfo else when.replace(tzinfo=timezone.utc)
        reported = reported[reported.index <= cutoff]
        if reported.empty:
            raise CollaboratorError(
                f"No EPS reported for {ticker} on or before {cutoff.date().isoformat()}"
            )
        return float(reported.sort_index().iloc[-1])

    async def get_next_earnings(self, ticker: str) -> EarningsDate | None:
        return await asyncio.to_thread(self._load_next_earnings, ticker)

    def _load_next_earnings(self, ticker: str) -> EarningsDate | None:
        try:
            earnings = yf.Ticker(ticker).get_earnings_dates(limit=12)
        except Exception as e:
            raise CollaboratorError(f"Earnings calendar lookup failed for {ticker}: {e}") from e

        if earnings is None or earnings.empty:
            return None

        now = datetime.now(timezone.utc)
        upcoming = earnings[earnings.index >= now].sort_index()
        if upcoming.empty:
            return None

        expected = upcoming.index[0].to_pydatetime()
        estimate = None
        if "EPS Estimate" in upcoming:
            value = upcoming["EPS Estimate"].iloc[0]
            if not math.isnan(value):
                estimate = float(value)
        return EarningsDate(ticker=ticker, expected_date=expected, eps_estimate=estimate)


class YFinanceNewsProvider(NewsProvider):
    """Fetches recent headlines from Yahoo Finance and scores them."""

    def __init__(
        self,
        max_items: int = 10,
        sentiment_analyzer: HeadlineSentimentAnalyzer | None = None,
    ):
        super().__init__("yfinance_news")
        self.max_items = max_items
        self.sentiment_analyzer = sentiment_analyzer or HeadlineSentimentAnalyzer()

    async def fetch_news(self, ticker: str) -> NewsBundle:
        try:
            raw_items = await asyncio.to_thread(lambda: yf.Ticker(ticker).news or [])
        except Exception as e:
            raise CollaboratorError(f"News lookup failed for {ticker}: {e}") from e

        items = [self._parse_item(raw) for raw in raw_items[: self.max_items]]
        items = [item for item in items if item.title]
        try:
            score, label = await asyncio.to_thread(
                self.sentiment_analyzer.score_headlines, [item.title for item in items]
            )
        except Exception as e:
            raise CollaboratorError(f"Sentiment scoring failed for {ticker}: {e}") from e

        return NewsBundle(
            ticker=ticker,
            items=items,
            sentiment_score=score,
            sentiment_label=label,
            summary="; ".join(item.title for item in items[:3]),
        )

    @staticmethod
    def _parse_item(raw: dict) -> NewsItem:
        # Newer yfinance releases nest the fields under "content"
        content = raw.get("content") or raw
        published_at = None
        if content.get("pubDate"):
            published_at = datetime.fromisoformat(content["pubDate"].replace("Z", "+00:00"))
        elif raw.get("providerPublishTime"):
            published_at = datetime.fromtimestamp(raw["providerPublishTime"], tz=timezone.utc)

        url = raw.get("link")
        if isinstance(content.get("canonicalUrl"), dict):
            url = content["canonicalUrl"].get("url") or url

        publisher = raw.get("publisher")
        if isinstance(content.get("provider"), dict):
            publisher = content["provider"].get("displayName") or publisher

        return NewsItem(
            title=content.get("title") or "",
            url=url,
            publisher=publisher,
            published_at=published_at,
        )
