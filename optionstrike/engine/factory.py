"""
Engine Factory - wires sources, gateways, cache and repository into a
RecommendationEngine.
"""

from __future__ import annotations
from typing import Callable, Optional
import logging

from sqlalchemy.orm import Session

from optionstrike.config import Settings
from optionstrike.data.base import EarningsDataSource, OptionsDataSource
from optionstrike.data.earnings import EarningsGateway
from optionstrike.data.factory import create_data_sources
from optionstrike.data.mock_data import MockEarningsSource, MockOptionsSource
from optionstrike.data.options import OptionsGateway
from optionstrike.db.cache_store import CacheStore
from optionstrike.db.repository import RecommendationRepository
from optionstrike.engine.criteria import RecommendationCriteria
from optionstrike.engine.recommendation_engine import RecommendationEngine
from optionstrike.utils.rate_limiter import RateLimiter, create_fmp_limiter, create_polygon_limiter

logger = logging.getLogger(__name__)

# Fixture sources have no vendor quota
MOCK_MAX_REQUESTS = 1000


def _limiter_for(source, max_retries: int) -> RateLimiter:
    if isinstance(source, (MockEarningsSource, MockOptionsSource)):
        return RateLimiter(MOCK_MAX_REQUESTS, name=source.name, max_retries=max_retries)
    if isinstance(source, EarningsDataSource):
        return create_fmp_limiter(max_retries=max_retries)
    return create_polygon_limiter(max_retries=max_retries)


def build_engine(
    settings: Settings,
    session_factory: Optional[Callable[[], Session]] = None,
    criteria: Optional[RecommendationCriteria] = None,
    force_mock: Optional[bool] = None,
    earnings_source: Optional[EarningsDataSource] = None,
    options_source: Optional[OptionsDataSource] = None,
) -> RecommendationEngine:
    """
    Build a fully wired engine.

    Sources default to the live/mock choice made by create_data_sources;
    session_factory defaults to the application database.
    """
    if session_factory is None:
        from optionstrike.db.database import SessionLocal
        session_factory = SessionLocal

    if earnings_source is None or options_source is None:
        default_earnings, default_options = create_data_sources(settings, force_mock)
        earnings_source = earnings_source or default_earnings
        options_source = options_source or default_options

    ttl = settings.cache_ttl()
    cache = CacheStore(session_factory, default_stale_minutes=ttl.stale)
    retries = settings.RATE_LIMIT_MAX_RETRIES

    earnings = EarningsGateway(earnings_source, cache, _limiter_for(earnings_source, retries), ttl)
    options = OptionsGateway(options_source, cache, _limiter_for(options_source, retries), ttl)
    repository = RecommendationRepository(session_factory)

    logger.info(f"[Engine] Wired {earnings_source.name} earnings and {options_source.name} options sources")
    return RecommendationEngine(earnings, options, repository, cache, criteria=criteria, ttl=ttl)
