"""
Recommendation and criteria endpoints.
"""

from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from optionstrike.api.deps import get_engine
from optionstrike.db.repository import DEFAULT_ACTIVE_LIMIT
from optionstrike.engine.recommendation_engine import RecommendationEngine
from optionstrike.utils.error_handling import user_facing_error_message

router = APIRouter()
logger = logging.getLogger(__name__)


class CriteriaUpdate(BaseModel):
    """Partial criteria update; omitted fields keep their current value."""
    model_config = ConfigDict(extra="forbid")

    min_delta: Optional[float] = None
    min_premium_percentage: Optional[float] = None
    min_pop: Optional[float] = None
    max_pop: Optional[float] = None
    max_days_to_expiry: Optional[int] = None
    min_days_to_expiry: Optional[int] = None
    max_symbols_to_process: Optional[int] = None
    min_market_cap: Optional[float] = None
    min_volume: Optional[int] = None
    min_open_interest: Optional[int] = None
    batch_size: Optional[int] = None
    max_recommendations: Optional[int] = None
    risk_free_rate: Optional[float] = None


@router.get("/recommendations")
async def list_recommendations(
    limit: int = Query(DEFAULT_ACTIVE_LIMIT, ge=1, le=500),
    engine: RecommendationEngine = Depends(get_engine),
):
    """The current active recommendation set, best first."""
    recommendations = await engine.get_cached_recommendations(limit)
    return {
        "recommendations": [r.to_dict() for r in recommendations],
        "count": len(recommendations),
    }


@router.post("/recommendations/refresh")
async def refresh_recommendations(engine: RecommendationEngine = Depends(get_engine)):
    """Run the pipeline now. Joins a run that is already in progress."""
    try:
        recommendations = await engine.generate_recommendations()
    except Exception as e:
        logger.error(f"Recommendation refresh failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "error": user_facing_error_message(e),
                "summary": engine.last_run.to_dict() if engine.last_run else None,
            },
        )

    return {
        "recommendations": [r.to_dict() for r in recommendations],
        "summary": engine.last_run.to_dict() if engine.last_run else None,
    }


@router.get("/criteria")
async def get_criteria(engine: RecommendationEngine = Depends(get_engine)):
    return engine.criteria.to_dict()


@router.patch("/criteria")
async def update_criteria(update: CriteriaUpdate, engine: RecommendationEngine = Depends(get_engine)):
    try:
        criteria = engine.update_criteria(update.model_dump(exclude_none=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return criteria.to_dict()
