# src/api/routes/update.py
"""Ticker update routes."""

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from src.analysts.models import utc_now
from src.api.services import Services, get_services
from src.core.exceptions import ValidationError
from src.orchestrator.models import BatchUpdateResult, UpdateCycleType

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/update", tags=["Update"])


class UpdateRequest(BaseModel):
    """Body of POST /update. Accepts camelCase or snake_case keys."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    type: str = "smart"
    max_tickers: int = Field(default=10, ge=1, le=500, alias="maxTickers")
    max_age_hours: float = Field(default=4.0, gt=0.0, alias="maxAgeHours")
    ticker: str | None = None
    tickers: list[str] | None = None


@router.post("")
async def run_update(
    body: UpdateRequest, services: Services = Depends(get_services)
) -> dict:
    """Run a full, smart, ticker or earnings calendar update."""
    try:
        cycle_type = UpdateCycleType(body.type)
    except ValueError:
        raise ValidationError(
            'Invalid type. Must be "full", "smart", "ticker", or "earnings"'
        )

    orchestrator = services.orchestrator
    if cycle_type == UpdateCycleType.EARNINGS:
        calendar = await orchestrator.refresh_earnings_calendar(body.tickers)
        return {
            "success": calendar.success,
            "type": cycle_type.value,
            "result": calendar.to_dict(),
            "message": calendar.message,
        }

    if cycle_type == UpdateCycleType.FULL:
        result = await orchestrator.run_full_update_cycle(body.max_tickers)
    elif cycle_type == UpdateCycleType.SMART:
        result = await orchestrator.run_smart_update_cycle(
            body.max_tickers, body.max_age_hours
        )
    elif body.ticker:
        start_time = utc_now()
        single = await orchestrator.update_ticker(body.ticker)
        result = BatchUpdateResult.from_results([single], start_time)
    elif body.tickers is not None:
        result = await orchestrator.update_tickers_batch(body.tickers)
    else:
        raise ValidationError('ticker or tickers array is required for type "ticker"')

    return {
        "success": result.success,
        "type": cycle_type.value,
        "result": result.to_dict(),
        "message": (
            f"{cycle_type.value} update completed: "
            f"{result.success_count}/{result.total_processed} successful"
        ),
    }


@router.get("")
async def update_status(
    action: str = "status",
    limit: int = Query(default=20, ge=1, le=500),
    services: Services = Depends(get_services),
) -> dict:
    """Report orchestrator status or active tickers. Never mutates."""
    if action == "status":
        status = await services.orchestrator.get_status()
        return {"success": True, "status": status.to_dict()}

    if action == "tickers":
        tickers = await services.orchestrator.get_active_tickers(limit)
        return {"success": True, "tickers": tickers, "count": len(tickers)}

    raise ValidationError('Invalid action. Use "status" or "tickers"')
