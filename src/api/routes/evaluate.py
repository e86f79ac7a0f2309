# src/api/routes/evaluate.py
"""Recommendation evaluation routes."""

import time

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from src.api.services import Services, get_services
from src.core.exceptions import ValidationError

router = APIRouter(prefix="/evaluate", tags=["Evaluation"])


class EvaluateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    action: str
    ticker: str | None = None


@router.post("")
async def run_evaluation(
    body: EvaluateRequest, services: Services = Depends(get_services)
) -> dict:
    """Evaluate every due recommendation."""
    if body.action != "run_evaluator":
        raise ValidationError('Invalid action. Use "run_evaluator"')

    start = time.monotonic()
    summary = await services.evaluation_cycle.run_evaluator(ticker=body.ticker)
    duration_ms = int((time.monotonic() - start) * 1000)

    return {
        "success": True,
        "action": body.action,
        "result": {
            "evaluated_count": summary.evaluated_count,
            "skipped_count": summary.skipped_count,
            "updated_analysts": summary.updated_analysts,
            "errors": summary.errors,
            "as_of": summary.as_of.isoformat(),
        },
        "duration_ms": duration_ms,
    }
