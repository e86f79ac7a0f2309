"""Market data and news collaborators."""

from .base import (
    EarningsDate,
    FinancialSnapshot,
    MarketDataProvider,
    NewsBundle,
    NewsItem,
    NewsProvider,
)
from .headline_sentiment import HeadlineSentimentAnalyzer
from .yfinance_provider import YFinanceMarketDataProvider, YFinanceNewsProvider

__all__ = [
    "EarningsDate",
    "FinancialSnapshot",
    "HeadlineSentimentAnalyzer",
    "MarketDataProvider",
    "NewsBundle",
    "NewsItem",
    "NewsProvider",
    "YFinanceMarketDataProvider",
    "YFinanceNewsProvider",
]
