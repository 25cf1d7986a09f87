"""
Canned market data for development and demos.

The mock sources answer in the same raw shapes as FMP and Polygon so the
gateways normalize, filter and score mock data with exactly the code paths
used for live data. Dates are relative to the injected clock so the fixtures
never go stale.
"""

from __future__ import annotations
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List
import asyncio
import logging

from optionstrike.data.base import EarningsDataSource, OptionsDataSource
from optionstrike.utils.timestamp import utc_now

logger = logging.getLogger(__name__)

DEFAULT_MOCK_PRICE = 100.0

# symbol, days from today, eps, eps estimate, revenue, revenue estimate, market cap, time
MOCK_EARNINGS = [
    ("AAPL", 2, 2.18, 2.10, 119_580_000_000, 117_910_000_000, 2_900_000_000_000, "amc"),
    ("MSFT", 1, 2.93, 2.78, 62_020_000_000, 61_120_000_000, 3_000_000_000_000, "amc"),
    ("GOOGL", 4, 1.64, 1.59, 80_540_000_000, 79_130_000_000, 1_900_000_000_000, "amc"),
    ("TSLA", 1, 0.71, 0.73, 25_170_000_000, 25_870_000_000, 660_000_000_000, "amc"),
    ("NVDA", 6, 5.16, 4.64, 60_920_000_000, 57_970_000_000, 2_200_000_000_000, "amc"),
]

# Quarterly EPS, most recent first
MOCK_EPS_HISTORY = {
    "AAPL": [2.18, 1.46, 1.26, 1.52, 1.88, 1.29, 1.20, 1.52],
    "MSFT": [2.93, 2.99, 2.69, 2.45, 2.32, 2.35, 2.22, 2.23],
    "GOOGL": [1.64, 1.55, 1.44, 1.17, 1.05, 1.82, 1.21, 1.24],
    "TSLA": [0.71, 0.66, 0.91, 0.85, 1.19, 1.05, 0.76, 0.73],
    "NVDA": [5.16, 4.02, 2.70, 1.09, 0.88, 0.58, 0.27, 0.51],
}

# strike, days from today to expiration, bid, ask, delta, implied vol, volume, open interest
MOCK_OPTIONS = {
    "AAPL": {
        "price": 185.64,
        "puts": [
            (180.0, 7, 2.15, 2.25, -0.18, 0.28, 1250, 3420),
            (175.0, 7, 1.45, 1.55, -0.12, 0.26, 890, 2180),
            (182.5, 14, 4.60, 4.80, -0.27, 0.29, 1560, 4230),
        ],
    },
    "MSFT": {
        "price": 402.56,
        "puts": [
            (375.0, 7, 14.20, 14.50, -0.14, 0.38, 780, 1890),
            (380.0, 7, 14.50, 14.70, -0.15, 0.38, 1120, 2650),
            (395.0, 14, 8.20, 8.40, -0.19, 0.31, 640, 1410),
        ],
    },
    "TSLA": {
        "price": 207.83,
        "puts": [
            (192.5, 7, 8.10, 8.30, -0.16, 0.46, 2340, 5670),
            (190.0, 7, 7.35, 7.55, -0.13, 0.45, 1890, 4120),
            (200.0, 14, 4.85, 5.05, -0.22, 0.45, 2010, 3980),
        ],
    },
}

# milliseconds
EARNINGS_LATENCY = 600
PRICE_LATENCY = 500
OPTIONS_LATENCY = 800
PROFILE_LATENCY = 400


class _MockLatency:
    def __init__(self, latency_scale: float, sleep: Callable):
        self._latency_scale = latency_scale
        self._sleep = sleep

    async def simulate_delay(self, ms: int) -> None:
        if self._latency_scale > 0:
            await self._sleep(ms / 1000.0 * self._latency_scale)


class MockEarningsSource(EarningsDataSource, _MockLatency):
    name = "FMP (mock)"

    def __init__(
        self,
        latency_scale: float = 1.0,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable = asyncio.sleep,
    ):
        _MockLatency.__init__(self, latency_scale, sleep)
        self._clock = clock

    def _today(self) -> date:
        return self._clock().date()

    async def fetch_earnings_calendar(self, from_date: date, to_date: date) -> List[Dict[str, Any]]:
        await self.simulate_delay(EARNINGS_LATENCY)
        today = self._today()
        rows = []
        for symbol, offset, eps, eps_est, revenue, revenue_est, market_cap, when in MOCK_EARNINGS:
            day = today + timedelta(days=offset)
            if from_date <= day <= to_date:
                rows.append({
                    "symbol": symbol,
                    "date": day.isoformat(),
                    "eps": eps,
                    "epsEstimated": eps_est,
                    "revenue": revenue,
                    "revenueEstimated": revenue_est,
                    "marketCap": market_cap,
                    "time": when,
                })
        logger.debug(f"[Mock] Earnings calendar {from_date} to {to_date}: {len(rows)} rows")
        return rows

    async def fetch_eps_history(self, symbol: str, limit: int = 8) -> List[Dict[str, Any]]:
        await self.simulate_delay(EARNINGS_LATENCY // 2)
        history = MOCK_EPS_HISTORY.get(symbol, [])[:limit]
        today = self._today()
        return [
            {"symbol": symbol, "date": (today - timedelta(days=91 * i)).isoformat(), "eps": eps}
            for i, eps in enumerate(history)
        ]

    async def fetch_company_profile(self, symbol: str) -> List[Dict[str, Any]]:
        await self.simulate_delay(PROFILE_LATENCY)
        market_cap = next((row[6] for row in MOCK_EARNINGS if row[0] == symbol), 1_000_000_000)
        price = MOCK_OPTIONS.get(symbol, {}).get("price", DEFAULT_MOCK_PRICE)
        return [{
            "symbol": symbol,
            "companyName": f"{symbol} Inc.",
            "industry": "Technology",
            "sector": "Technology",
            "mktCap": market_cap,
            "beta": 1.2,
            "price": price,
        }]

    async def ping(self) -> str:
        return "Using mock data mode"


class MockOptionsSource(OptionsDataSource, _MockLatency):
    name = "Polygon.io (mock)"

    def __init__(
        self,
        latency_scale: float = 1.0,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable = asyncio.sleep,
    ):
        _MockLatency.__init__(self, latency_scale, sleep)
        self._clock = clock

    async def fetch_previous_close(self, symbol: str) -> Dict[str, Any]:
        await self.simulate_delay(PRICE_LATENCY)
        price = MOCK_OPTIONS.get(symbol, {}).get("price", DEFAULT_MOCK_PRICE)
        return {
            "ticker": symbol,
            "queryCount": 1,
            "resultsCount": 1,
            "adjusted": True,
            "results": [{
                "c": price,
                "h": round(price * 1.02, 2),
                "l": round(price * 0.98, 2),
                "o": round(price * 1.01, 2),
                "v": 1_000_000,
                "t": int(self._clock().timestamp() * 1000),
            }],
            "status": "OK",
        }

    async def fetch_options_snapshot(self, symbol: str) -> Dict[str, Any]:
        await self.simulate_delay(OPTIONS_LATENCY)
        fixture = MOCK_OPTIONS.get(symbol)
        if fixture is None:
            return {"status": "OK", "results": []}

        today = self._clock().date()
        results = []
        for strike, offset, bid, ask, delta, iv, volume, open_interest in fixture["puts"]:
            expiration = (today + timedelta(days=offset)).isoformat()
            mid = round((bid + ask) / 2, 2)
            results.append({
                "details": {"strike_price": strike, "expiration_date": expiration, "contract_type": "put"},
                "bid": bid,
                "ask": ask,
                "greeks": {"delta": delta},
                "implied_volatility": iv,
                "session": {"volume": volume},
                "open_interest": open_interest,
                "market_status": "open",
                "last_quote": {"price": mid},
            })
            # matching call so the put filter has something to drop
            results.append({
                "details": {"strike_price": strike, "expiration_date": expiration, "contract_type": "call"},
                "bid": bid,
                "ask": ask,
                "greeks": {"delta": 1.0 + delta},
                "implied_volatility": iv,
                "session": {"volume": volume},
                "open_interest": open_interest,
                "market_status": "open",
                "last_quote": {"price": mid},
            })
        return {"status": "OK", "results": results}

    async def ping(self) -> str:
        return "Using mock data mode"
