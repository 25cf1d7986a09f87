"""
Shared FastAPI dependencies.
"""

from fastapi import HTTPException, Request

from optionstrike.engine.recommendation_engine import RecommendationEngine


def get_engine(request: Request) -> RecommendationEngine:
    """The engine built at startup. Tests override this dependency."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Recommendation engine is not initialized")
    return engine
