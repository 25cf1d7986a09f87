"""
Data Source Factory - creates market data sources from configuration.

Live sources need API keys; when a key is missing (or mock mode is requested)
the canned fixture sources are used instead, with identical downstream flow.
"""

from __future__ import annotations
from typing import Any, Dict, Optional, Tuple
import logging

from optionstrike.config import Settings
from optionstrike.data.base import EarningsDataSource, OptionsDataSource
from optionstrike.data.fmp import FmpEarningsSource
from optionstrike.data.mock_data import MockEarningsSource, MockOptionsSource
from optionstrike.data.polygon import PolygonOptionsSource

logger = logging.getLogger(__name__)

EARNINGS_SOURCES = ("fmp", "mock")
OPTIONS_SOURCES = ("polygon", "mock")


def create_earnings_source(source_name: str, config: Dict[str, Any]) -> EarningsDataSource:
    """
    Create an earnings data source.

    Args:
        source_name: "fmp" or "mock"
        config: Source config (api_key, timeout, max_retries, latency_scale)

    Raises:
        ValueError: If source_name is not supported or required config is missing
    """
    source_name_lower = source_name.lower()

    if source_name_lower == "fmp":
        if not config.get("api_key"):
            raise ValueError(
                f"Missing 'api_key' in config for data source '{source_name}'. "
                f"Set FMP_API_KEY or 'data_sources.fmp.api_key' in config/secrets.yaml."
            )
        source = FmpEarningsSource(
            api_key=config["api_key"],
            timeout=config.get("timeout", 30.0),
            max_retries=config.get("max_retries", 3),
        )
    elif source_name_lower == "mock":
        source = MockEarningsSource(latency_scale=config.get("latency_scale", 1.0))
    else:
        raise ValueError(
            f"Unsupported earnings source: '{source_name}'. "
            f"Supported sources: {', '.join(EARNINGS_SOURCES)}"
        )

    logger.info(f"Created {source.name} earnings source")
    return source


def create_options_source(source_name: str, config: Dict[str, Any]) -> OptionsDataSource:
    """
    Create an options data source.

    Args:
        source_name: "polygon" or "mock"
        config: Source config (api_key, timeout, max_retries, latency_scale)

    Raises:
        ValueError: If source_name is not supported or required config is missing
    """
    source_name_lower = source_name.lower()

    if source_name_lower in ("polygon", "polygon.io"):
        if not config.get("api_key"):
            raise ValueError(
                f"Missing 'api_key' in config for data source '{source_name}'. "
                f"Set POLYGON_API_KEY or 'data_sources.polygon.api_key' in config/secrets.yaml."
            )
        source = PolygonOptionsSource(
            api_key=config["api_key"],
            timeout=config.get("timeout", 30.0),
            max_retries=config.get("max_retries", 3),
        )
    elif source_name_lower == "mock":
        source = MockOptionsSource(latency_scale=config.get("latency_scale", 1.0))
    else:
        raise ValueError(
            f"Unsupported options source: '{source_name}'. "
            f"Supported sources: {', '.join(OPTIONS_SOURCES)}"
        )

    logger.info(f"Created {source.name} options source")
    return source


def create_data_sources(
    settings: Settings,
    force_mock: Optional[bool] = None,
) -> Tuple[EarningsDataSource, OptionsDataSource]:
    """
    Create the earnings and options sources for the current settings.

    Mock sources are used when USE_MOCK_DATA is set, when either API key is
    missing, or when force_mock is True.
    """
    use_mock = settings.use_mock if force_mock is None else force_mock
    if use_mock and not settings.USE_MOCK_DATA and force_mock is None:
        logger.warning("API keys not configured, falling back to mock market data")

    if use_mock:
        mock = {"latency_scale": settings.MOCK_LATENCY_SCALE}
        return create_earnings_source("mock", mock), create_options_source("mock", mock)

    return (
        create_earnings_source("fmp", {**settings.http_config("fmp"), "api_key": settings.FMP_API_KEY}),
        create_options_source("polygon", {**settings.http_config("polygon"), "api_key": settings.POLYGON_API_KEY}),
    )
