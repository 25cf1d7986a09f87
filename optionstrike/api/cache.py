"""
Cache maintenance endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException

from optionstrike.api.deps import get_engine
from optionstrike.engine.recommendation_engine import RecommendationEngine

router = APIRouter()


@router.get("/stats")
async def cache_stats(engine: RecommendationEngine = Depends(get_engine)):
    stats = await engine.cache.stats()
    if stats is None:
        raise HTTPException(status_code=500, detail="Could not read cache statistics")
    return stats


@router.post("/clear-expired")
async def clear_expired(engine: RecommendationEngine = Depends(get_engine)):
    """Delete entries past their stale window."""
    deleted = await engine.cache.clear_expired()
    if deleted < 0:
        raise HTTPException(status_code=500, detail="Could not clear expired cache entries")
    return {"deleted": deleted}


@router.delete("")
@router.delete("/")
async def clear_all(engine: RecommendationEngine = Depends(get_engine)):
    deleted = await engine.cache.clear_all()
    if deleted < 0:
        raise HTTPException(status_code=500, detail="Could not clear cache")
    return {"deleted": deleted}
