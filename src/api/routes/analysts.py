# src/api/routes/analysts.py
"""Analyst credibility and consensus routes."""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from src.analysts.models import Action, Analyst, PredictionType
from src.api.services import Services, get_services
from src.consensus.models import AnalystRating
from src.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analyst-credibility", tags=["Analysts"])


class AnalystCredibilityRequest(BaseModel):
    """Body of POST /analyst-credibility."""

    model_config = ConfigDict(extra="forbid")

    action: str

    # initialize_analyst / record_recommendation
    analyst_id: str | None = None
    name: str | None = None
    firm: str = "Unknown"
    specializations: list[str] = Field(default_factory=list)
    weight_multiplier: float = Field(default=1.0, gt=0.0)

    # calculate_weighted_consensus / record_recommendation
    ticker: str | None = None
    sector: str | None = None
    ratings: list[AnalystRating] | None = None
    max_age_days: int | None = Field(default=None, ge=1)

    # record_recommendation
    recommendation_action: Action | None = None
    confidence: float | None = Field(default=None, gt=0.0, le=1.0)
    horizon_days: int | None = Field(default=None, ge=1)
    prediction_type: PredictionType = PredictionType.RATING
    target_price: float | None = Field(default=None, gt=0.0)
    predicted_eps: float | None = None
    note: str | None = None


def _analyst_view(services: Services, analyst: Analyst) -> dict:
    engine = services.score_engine
    return {
        **analyst.model_dump(mode="json"),
        "display_band": engine.display_band(analyst.credibility_score),
        "breakdown": asdict(engine.breakdown(analyst)),
    }


@router.get("")
async def get_analyst_credibility(
    analyst_id: str | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    services: Services = Depends(get_services),
) -> dict:
    """Return one analyst's profile, or the top analysts by credibility."""
    if analyst_id:
        profile = await services.evaluation_cycle.analyst_profile(analyst_id)
        return {
            "success": True,
            "analyst": _analyst_view(services, profile.analyst),
            "recent_calls": [c.model_dump(mode="json") for c in profile.recent_calls],
            "evaluations": [e.model_dump(mode="json") for e in profile.evaluations],
            "win_rate": profile.win_rate,
            "avg_alpha": profile.avg_alpha,
            "calls_by_action": profile.calls_by_action,
            "outcomes_by_action": profile.outcomes_by_action,
        }

    analysts = await services.registry.top_analysts(limit)
    return {
        "success": True,
        "top_analysts": [_analyst_view(services, a) for a in analysts],
        "count": len(analysts),
    }


@router.post("")
async def post_analyst_credibility(
    body: AnalystCredibilityRequest, services: Services = Depends(get_services)
) -> dict:
    """Initialize analysts, record recommendations or compute consensus."""
    if body.action == "initialize_analyst":
        return await _initialize_analyst(body, services)
    if body.action == "calculate_weighted_consensus":
        return await _calculate_weighted_consensus(body, services)
    if body.action == "record_recommendation":
        return await _record_recommendation(body, services)
    raise ValidationError(
        "Invalid action. Use initialize_analyst, calculate_weighted_consensus "
        "or record_recommendation"
    )


async def _initialize_analyst(body: AnalystCredibilityRequest, services: Services) -> dict:
    if not body.analyst_id:
        raise ValidationError("analyst_id is required for initialize_analyst")

    existing = await services.registry.get(body.analyst_id)
    if existing is not None:
        return {"success": True, "created": False, "analyst": _analyst_view(services, existing)}

    analyst = Analyst.with_defaults(
        body.analyst_id,
        name=body.name,
        firm=body.firm,
        specializations=set(body.specializations),
        weight_multiplier=body.weight_multiplier,
    )
    await services.registry.save(analyst)
    logger.info(f"Initialized analyst {analyst.analyst_id}")
    return {"success": True, "created": True, "analyst": _analyst_view(services, analyst)}


async def _calculate_weighted_consensus(
    body: AnalystCredibilityRequest, services: Services
) -> dict:
    if not body.ticker:
        raise ValidationError("ticker is required for calculate_weighted_consensus")

    aggregator = services.consensus_aggregator
    if body.ratings is not None:
        consensus = await aggregator.aggregate(body.ticker, body.ratings, sector=body.sector)
    else:
        consensus = await aggregator.consensus_for_ticker(
            body.ticker, max_age_days=body.max_age_days, sector=body.sector
        )
    return {"success": True, "consensus": consensus.model_dump(mode="json")}


async def _record_recommendation(
    body: AnalystCredibilityRequest, services: Services
) -> dict:
    if not body.analyst_id or not body.ticker or body.recommendation_action is None:
        raise ValidationError(
            "analyst_id, ticker and recommendation_action are required "
            "for record_recommendation"
        )

    recommendation = await services.evaluation_cycle.record_recommendation(
        analyst_id=body.analyst_id,
        ticker=body.ticker,
        action=body.recommendation_action,
        confidence=body.confidence,
        horizon_days=body.horizon_days,
        prediction_type=body.prediction_type,
        target_price=body.target_price,
        predicted_eps=body.predicted_eps,
        note=body.note,
        sector=body.sector,
        analyst_name=body.name,
        firm=body.firm,
    )
    return {"success": True, "recommendation": recommendation.model_dump(mode="json")}
