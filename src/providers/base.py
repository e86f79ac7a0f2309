# src/providers/base.py
"""Provider interfaces for market data and news."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.analysts.models import utc_now
from src.core.exceptions import CollaboratorError


@dataclass
class FinancialSnapshot:
    """Current market data for a ticker.

    Attributes:
        ticker: Stock ticker symbol.
        success: Whether the provider returned usable data.
        name: Company name.
        price: Last price.
        change: Absolute change since previous close.
        change_percent: Percent change since previous close.
        volume: Traded volume.
        metrics: Descriptive metrics (market cap, P/E, ...).
        error: Provider error message when success is False.
        last_updated: When the snapshot was taken.
    """

    ticker: str
    success: bool
    name: str | None = None
    price: float | None = None
    change: float | None = None
    change_percent: float | None = None
    volume: int | None = None
    metrics: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    last_updated: datetime = field(default_factory=utc_now)


@dataclass
class NewsItem:
    """A single news headline."""

    title: str
    url: str | None = None
    publisher: str | None = None
    published_at: datetime | None = None


@dataclass
class NewsBundle:
    """Recent news for a ticker with a derived sentiment signal.

    Attributes:
        ticker: Stock ticker symbol.
        items: Headlines, newest first.
        sentiment_score: Sentiment from -1.0 (negative) to 1.0 (positive).
        sentiment_label: "positive", "neutral" or "negative".
        summary: Short text summary of the headlines.
        last_updated: When the news was fetched.
    """

    ticker: str
    items: list[NewsItem] = field(default_factory=list)
    sentiment_score: float = 0.0
    sentiment_label: str = "neutral"
    summary: str = ""
    last_updated: datetime = field(default_factory=utc_now)


@dataclass
class EarningsDate:
    """Next scheduled earnings report for a ticker."""

    ticker: str
    expected_date: datetime
    eps_estimate: float | None = None


class MarketDataProvider(ABC):
    """Abstract source of current and historical prices."""

    def __init__(self, name: str):
        """Initialize the provider.

        Args:
            name: Identifier for this provider.
        """
        self.name = name

    @abstractmethod
    async def get_financial_data(self, ticker: str) -> FinancialSnapshot:
        """Return the current snapshot for a ticker."""

    @abstractmethod
    async def get_price_at(self, ticker: str, when: datetime) -> float:
        """Return the closing price of a ticker on the date of ``when``.

        Raises:
            CollaboratorError: If no price is available.
        """

    async def get_reported_eps(self, ticker: str, when: datetime) -> float:
        """Return the latest EPS reported on or before ``when``.

        Raises:
            CollaboratorError: If the provider has no earnings data.
        """
        raise CollaboratorError(f"{self.name} does not provide reported EPS")

    async def get_next_earnings(self, ticker: str) -> EarningsDate | None:
        """Return the next scheduled earnings report, or None if none is known.

        Raises:
            CollaboratorError: If the provider has no earnings calendar.
        """
        raise CollaboratorError(f"{self.name} does not provide an earnings calendar")


class NewsProvider(ABC):
    """Abstract source of recent news and sentiment."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    async def fetch_news(self, ticker: str) -> NewsBundle:
        """Return recent news for a ticker."""
