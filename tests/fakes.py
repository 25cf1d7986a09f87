"""
In-test fakes: a controllable clock and sleep, and market data sources that
answer in the vendors' raw shapes.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from optionstrike.data.base import EarningsDataSource, OptionsDataSource
from optionstrike.data.earnings import EarningsGateway
from optionstrike.data.options import OptionsGateway
from optionstrike.db.cache_store import CacheStore
from optionstrike.db.repository import RecommendationRepository
from optionstrike.engine.criteria import RecommendationCriteria
from optionstrike.engine.recommendation_engine import RecommendationEngine
from optionstrike.utils.rate_limiter import RateLimiter

NOW = datetime(2025, 7, 11, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingSleep:
    """Records requested delays without waiting."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def earnings_row(symbol: str, day: str, market_cap: Optional[float] = 50e9, revenue: float = 5e9) -> Dict[str, Any]:
    return {
        "symbol": symbol,
        "date": day,
        "eps": 1.2,
        "epsEstimated": 1.1,
        "revenue": revenue,
        "revenueEstimated": revenue * 0.98,
        "marketCap": market_cap,
        "time": "amc",
    }


def put_entry(
    strike: float,
    expiration: str,
    premium: float,
    delta: float = -0.15,
    iv: float = 0.30,
    volume: int = 500,
    open_interest: int = 1000,
    contract_type: str = "put",
) -> Dict[str, Any]:
    """Snapshot entry as quoted outside market hours (premium = last trade)."""
    return {
        "details": {"strike_price": strike, "expiration_date": expiration, "contract_type": contract_type},
        "bid": round(premium - 0.05, 2),
        "ask": round(premium + 0.05, 2),
        "greeks": {"delta": delta},
        "implied_volatility": iv,
        "session": {"volume": volume},
        "open_interest": open_interest,
        "market_status": "closed",
        "last_quote": {"price": premium},
    }


class FakeEarningsSource(EarningsDataSource):
    name = "FakeEarnings"

    def __init__(self, rows=None, eps_history=None, error: Optional[Exception] = None):
        self.rows = rows or []
        self.eps_history = eps_history or {}
        self.error = error
        self.calendar_calls = 0
        self.eps_calls: List[str] = []
        self.closed = False

    async def fetch_earnings_calendar(self, from_date, to_date):
        self.calendar_calls += 1
        if self.error is not None:
            raise self.error
        return self.rows

    async def fetch_eps_history(self, symbol, limit=8):
        self.eps_calls.append(symbol)
        history = self.eps_history.get(symbol)
        if isinstance(history, Exception):
            raise history
        return [{"symbol": symbol, "eps": eps} for eps in (history or [])][:limit]

    async def fetch_company_profile(self, symbol):
        if self.error is not None:
            raise self.error
        return [{"symbol": symbol, "companyName": f"{symbol} Corp", "mktCap": 50e9}]

    async def ping(self):
        if self.error is not None:
            raise self.error
        return "FakeEarnings is accessible"

    async def close(self):
        self.closed = True


class FakeOptionsSource(OptionsDataSource):
    name = "FakeOptions"

    def __init__(self, prices=None, snapshots=None, errors=None):
        self.prices: Dict[str, float] = prices or {}
        self.snapshots: Dict[str, List[Dict[str, Any]]] = snapshots or {}
        self.errors: Dict[str, Exception] = errors or {}
        self.snapshot_calls: List[str] = []
        self.closed = False

    async def fetch_previous_close(self, symbol):
        if symbol in self.errors:
            raise self.errors[symbol]
        return {"status": "OK", "results": [{"c": self.prices.get(symbol, 100.0)}]}

    async def fetch_options_snapshot(self, symbol):
        self.snapshot_calls.append(symbol)
        if symbol in self.errors:
            raise self.errors[symbol]
        return {"status": "OK", "results": self.snapshots.get(symbol, [])}

    async def ping(self):
        return "FakeOptions is accessible"

    async def close(self):
        self.closed = True


def open_limiter(name: str, sleep) -> RateLimiter:
    return RateLimiter(1000, name=name, sleep=sleep)


def build_test_engine(
    session_factory,
    clock: FixedClock,
    earnings_source: EarningsDataSource,
    options_source: OptionsDataSource,
    criteria: Optional[RecommendationCriteria] = None,
    sleep: Optional[RecordingSleep] = None,
    repository: Optional[RecommendationRepository] = None,
    options_gateway_cls=OptionsGateway,
) -> RecommendationEngine:
    sleep = sleep or RecordingSleep()
    cache = CacheStore(session_factory, clock=clock)
    earnings = EarningsGateway(
        earnings_source, cache, open_limiter("earnings", sleep), clock=clock, sleep=sleep, rng=lambda: 0.0
    )
    options = options_gateway_cls(options_source, cache, open_limiter("options", sleep), clock=clock, sleep=sleep)
    return RecommendationEngine(
        earnings,
        options,
        repository or RecommendationRepository(session_factory),
        cache,
        criteria=criteria,
        clock=clock,
        sleep=sleep,
        rng=lambda: 0.0,
    )
