"""
Health check endpoints.
"""

import asyncio
import os

from fastapi import APIRouter, Depends

from optionstrike import __version__
from optionstrike.api.deps import get_engine
from optionstrike.engine.recommendation_engine import RecommendationEngine
from optionstrike.utils.timestamp import utc_now

router = APIRouter()


@router.get("")
@router.get("/")
async def health_check():
    """Basic health check."""
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "version": os.getenv("APP_VERSION") or __version__,
    }


@router.get("/apis")
async def api_health(engine: RecommendationEngine = Depends(get_engine)):
    """Ping both market data sources and report rate limiter usage."""
    earnings, options = await asyncio.gather(
        engine.earnings_gateway.check_health(),
        engine.options_gateway.check_health(),
    )
    all_ok = earnings["status"] == "OK" and options["status"] == "OK"
    return {
        "status": "healthy" if all_ok else "degraded",
        "earnings": {"source": engine.earnings_gateway.source_name, **earnings},
        "options": {"source": engine.options_gateway.source_name, **options},
        "engine": {
            "running": engine.is_running,
            "last_run": engine.last_run.to_dict() if engine.last_run else None,
        },
    }
