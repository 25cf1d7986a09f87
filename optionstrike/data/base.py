from __future__ import annotations
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, List


class EarningsDataSource(ABC):
    """
    Source of earnings-calendar data.

    Implementations return payloads in the vendor's raw shape so live and
    mock sources feed the exact same normalization code.
    """

    name: str = "earnings"

    @abstractmethod
    async def fetch_earnings_calendar(self, from_date: date, to_date: date) -> List[Dict[str, Any]]:
        """Rows of {symbol, date, eps, epsEstimated, revenue, revenueEstimated, marketCap?, time?}."""
        ...

    @abstractmethod
    async def fetch_eps_history(self, symbol: str, limit: int = 8) -> List[Dict[str, Any]]:
        """Quarterly rows with an 'eps' field, most recent first."""
        ...

    @abstractmethod
    async def fetch_company_profile(self, symbol: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def ping(self) -> str:
        """Cheap call proving the API is reachable. Returns a status message."""
        ...

    async def close(self) -> None:
        return None


class OptionsDataSource(ABC):
    """Source of stock prices and option-chain snapshots (raw vendor shape)."""

    name: str = "options"

    @abstractmethod
    async def fetch_previous_close(self, symbol: str) -> Dict[str, Any]:
        """{status, results: [{c, h, l, o, v, t}]}"""
        ...

    @abstractmethod
    async def fetch_options_snapshot(self, symbol: str) -> Dict[str, Any]:
        """{status, results: [{details, bid, ask, greeks, implied_volatility, ...}]}"""
        ...

    @abstractmethod
    async def ping(self) -> str:
        ...

    async def close(self) -> None:
        return None
