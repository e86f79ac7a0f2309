# src/orchestrator/models.py
"""Data models for the update orchestrator."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from src.analysts.models import utc_now


class UpdateCycleType(str, Enum):
    """Kind of update requested."""

    FULL = "full"
    SMART = "smart"
    TICKER = "ticker"
    EARNINGS = "earnings"


class TickerUpdateState(Enum):
    """Conceptual refresh state of a ticker, derived from its latest result."""

    UNKNOWN = "unknown"
    NEEDS_UPDATE = "needs_update"
    IN_PROGRESS = "in_progress"
    UPDATED = "updated"
    PARTIALLY_UPDATED = "partially_updated"
    FAILED = "failed"


@dataclass
class AgentUpdateResult:
    """Result of refreshing one ticker."""

    ticker: str
    success: bool
    news_updated: bool = False
    financials_updated: bool = False
    consensus_updated: bool = False
    error: str | None = None
    last_updated: datetime = field(default_factory=utc_now)

    @property
    def state(self) -> TickerUpdateState:
        """Refresh state implied by this result."""
        if self.news_updated and self.financials_updated:
            return TickerUpdateState.UPDATED
        if self.success:
            return TickerUpdateState.PARTIALLY_UPDATED
        return TickerUpdateState.FAILED

    def to_dict(self) -> dict:
        return {
            "ticker": self.ticker,
            "success": self.success,
            "news_updated": self.news_updated,
            "financials_updated": self.financials_updated,
            "consensus_updated": self.consensus_updated,
            "error": self.error,
            "state": self.state.value,
            "last_updated": self.last_updated.isoformat(),
        }


@dataclass
class BatchUpdateResult:
    """Result of refreshing a batch of tickers.

    ``success_count + error_count == total_processed == len(results)``.
    """

    total_processed: int
    success_count: int
    error_count: int
    results: list[AgentUpdateResult]
    start_time: datetime
    end_time: datetime
    duration_ms: int

    @classmethod
    def empty(cls) -> "BatchUpdateResult":
        now = utc_now()
        return cls(
            total_processed=0,
            success_count=0,
            error_count=0,
            results=[],
            start_time=now,
            end_time=now,
            duration_ms=0,
        )

    @classmethod
    def from_results(
        cls, results: list[AgentUpdateResult], start_time: datetime
    ) -> "BatchUpdateResult":
        end_time = utc_now()
        success_count = sum(1 for r in results if r.success)
        return cls(
            total_processed=len(results),
            success_count=success_count,
            error_count=len(results) - success_count,
            results=results,
            start_time=start_time,
            end_time=end_time,
            duration_ms=int((end_time - start_time).total_seconds() * 1000),
        )

    @property
    def success(self) -> bool:
        """Overall success: at least one ticker refreshed, or nothing to do."""
        return self.total_processed == 0 or self.success_count > 0

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "total_processed": self.total_processed,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "results": [r.to_dict() for r in self.results],
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_ms": self.duration_ms,
        }


@dataclass
class EarningsCalendarResult:
    """Result of refreshing the earnings calendar."""

    created: int
    updated: int
    errors: int
    start_time: datetime
    end_time: datetime
    duration_ms: int

    @classmethod
    def from_counts(
        cls, created: int, updated: int, errors: int, start_time: datetime
    ) -> "EarningsCalendarResult":
        end_time = utc_now()
        return cls(
            created=created,
            updated=updated,
            errors=errors,
            start_time=start_time,
            end_time=end_time,
            duration_ms=int((end_time - start_time).total_seconds() * 1000),
        )

    @property
    def success(self) -> bool:
        """No lookup failed, or at least one event was written."""
        return self.errors == 0 or self.created + self.updated > 0

    @property
    def message(self) -> str:
        return (
            f"Earnings calendar update completed: {self.created} created, "
            f"{self.updated} updated, {self.errors} errors in {self.duration_ms}ms"
        )

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "created": self.created,
            "updated": self.updated,
            "errors": self.errors,
            "message": self.message,
            "duration_ms": self.duration_ms,
        }


@dataclass
class OrchestratorStatus:
    """Snapshot of what the orchestrator would work on."""

    active_tickers_count: int
    tickers_needing_update: int
    recent_tickers: list[str]
    stale_tickers_to_update: list[str]
    checked_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {
            "active_tickers_count": self.active_tickers_count,
            "tickers_needing_update": self.tickers_needing_update,
            "recent_tickers": self.recent_tickers,
            "stale_tickers_to_update": self.stale_tickers_to_update,
            "checked_at": self.checked_at.isoformat(),
        }
