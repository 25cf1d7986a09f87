"""
Data module - market data sources and gateways.

This module exports:
- EarningsDataSource / OptionsDataSource: Base classes for raw data sources
- FmpEarningsSource / PolygonOptionsSource: Live REST API sources
- MockEarningsSource / MockOptionsSource: Canned fixture sources
- EarningsGateway / OptionsGateway: Cached, rate-limited access used by the engine
- create_data_sources: Factory choosing live or mock sources from settings
"""

from optionstrike.data.base import EarningsDataSource, OptionsDataSource
from optionstrike.data.fmp import FmpEarningsSource
from optionstrike.data.polygon import PolygonOptionsSource
from optionstrike.data.mock_data import MockEarningsSource, MockOptionsSource
from optionstrike.data.earnings import EarningsGateway
from optionstrike.data.options import OptionsGateway
from optionstrike.data.factory import create_data_sources, create_earnings_source, create_options_source

__all__ = [
    "EarningsDataSource",
    "OptionsDataSource",
    "FmpEarningsSource",
    "PolygonOptionsSource",
    "MockEarningsSource",
    "MockOptionsSource",
    "EarningsGateway",
    "OptionsGateway",
    "create_data_sources",
    "create_earnings_source",
    "create_options_source",
]
