"""Orchestrator module for scheduling ticker, score and consensus updates."""

from .models import (
    AgentUpdateResult,
    BatchUpdateResult,
    EarningsCalendarResult,
    OrchestratorStatus,
    TickerUpdateState,
    UpdateCycleType,
)
from .settings import OrchestratorSettings
from .update_orchestrator import UpdateOrchestrator

__all__ = [
    "AgentUpdateResult",
    "BatchUpdateResult",
    "EarningsCalendarResult",
    "OrchestratorSettings",
    "OrchestratorStatus",
    "TickerUpdateState",
    "UpdateCycleType",
    "UpdateOrchestrator",
]
