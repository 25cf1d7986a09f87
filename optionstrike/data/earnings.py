"""
Earnings Gateway - fetches, filters and caches the earnings calendar.

Upstream failures are absorbed here: a failed calendar fetch falls back to
the stale cached copy or an empty list, and a failed EPS-growth lookup
degrades to 0 for that symbol.
"""

from __future__ import annotations
from datetime import date, datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple
import asyncio
import logging
import random
import re

from optionstrike.config import CacheTTL
from optionstrike.data.base import EarningsDataSource
from optionstrike.db.cache_store import CacheStore, company_profile_key, earnings_key, eps_growth_key
from optionstrike.models.earnings import EarningsEvent
from optionstrike.utils.error_handling import InvalidResponse, NotEnoughData, format_api_error_message
from optionstrike.utils.rate_limiter import RateLimiter
from optionstrike.utils.timestamp import utc_now

logger = logging.getLogger(__name__)

EXPANDED_DAYS_BACK = 3
EXPANDED_DAYS_FORWARD = 21
EPS_HISTORY_QUARTERS = 8
EPS_BATCH_SIZE = 5
EPS_BATCH_DELAY = (2.0, 3.0)
PROFILE_STAGGER_SECONDS = 0.1

_TICKER = re.compile(r"[A-Z]{1,5}")


def is_standard_ticker(symbol: Optional[str]) -> bool:
    """A plain US equity ticker: 1-5 uppercase letters, nothing else."""
    return isinstance(symbol, str) and _TICKER.fullmatch(symbol) is not None


def compute_eps_growth(history: List[Dict[str, Any]]) -> float:
    """
    Year-over-year EPS growth in percent from quarterly rows (most recent first).

    Raises:
        NotEnoughData: fewer than 2 quarters, or a zero year-ago EPS.
    """
    if not isinstance(history, list) or len(history) < 2:
        raise NotEnoughData("fewer than 2 quarters of EPS history")

    current = (history[0] or {}).get("eps") or 0.0
    year_ago = (history[4] or {}).get("eps") if len(history) > 4 else None
    year_ago = year_ago or 0.0
    if year_ago == 0:
        raise NotEnoughData("year-ago EPS is zero or missing")

    return (float(current) - float(year_ago)) / abs(float(year_ago)) * 100.0


def current_week_range(today: date) -> Tuple[date, date]:
    """Sunday through Saturday of the week containing today."""
    start = today - timedelta(days=(today.weekday() + 1) % 7)
    return start, start + timedelta(days=6)


def default_range(today: date, expanded: bool) -> Tuple[date, date]:
    if expanded:
        return today - timedelta(days=EXPANDED_DAYS_BACK), today + timedelta(days=EXPANDED_DAYS_FORWARD)
    start, end = current_week_range(today)
    return start, end + timedelta(days=7)


class EarningsGateway:
    def __init__(
        self,
        source: EarningsDataSource,
        cache: CacheStore,
        limiter: RateLimiter,
        ttl: Optional[CacheTTL] = None,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ):
        self._source = source
        self._cache = cache
        self._limiter = limiter
        self._ttl = ttl or CacheTTL()
        self._clock = clock
        self._sleep = sleep
        self._rng = rng

    @property
    def source_name(self) -> str:
        return self._source.name

    async def _gated(self, call: Callable[[], Awaitable[Any]]) -> Any:
        await self._limiter.acquire()
        return await call()

    async def _cache_both(self, key: str, value: Any, ttl_minutes: int) -> None:
        await self._cache.set(key, value, ttl_minutes, stale_minutes=self._ttl.stale)

    async def get_earnings_calendar(
        self,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        expanded: bool = True,
    ) -> List[EarningsEvent]:
        """
        Earnings events in [from_date, to_date], ticker-filtered and enriched
        with EPS growth.

        Never raises: on upstream failure returns the stale copy or [].
        """
        if from_date is None or to_date is None:
            from_date, to_date = default_range(self._clock().date(), expanded)

        key = earnings_key(from_date.isoformat(), to_date.isoformat(), expanded)

        cached = await self._cache.get(key)
        if cached is not None:
            logger.info(f"[Earnings] Using cached earnings calendar for {from_date} to {to_date}")
            return [EarningsEvent.from_dict(row) for row in cached]

        try:
            raw = await self._gated(lambda: self._source.fetch_earnings_calendar(from_date, to_date))
            if not isinstance(raw, list):
                raise InvalidResponse(self._source.name, "Invalid response format from earnings API")

            events = await self._process_earnings(raw)
        except Exception as e:
            logger.error(format_api_error_message(
                self._source.name, date=f"{from_date}..{to_date}", error=e,
                additional_info="earnings calendar fetch failed",
            ))
            stale = await self._cache.get_stale(key)
            if stale is not None:
                logger.warning(f"[Earnings] Using stale cached earnings data for {from_date} to {to_date}")
                return [EarningsEvent.from_dict(row) for row in stale]
            return []

        await self._cache_both(key, [e.to_dict() for e in events], self._ttl.earnings)
        logger.info(
            f"[Earnings] Fetched fresh earnings calendar for {from_date} to {to_date}: "
            f"{len(events)} companies"
        )
        return events

    async def _process_earnings(self, raw: List[Dict[str, Any]]) -> List[EarningsEvent]:
        rows = []
        for row in raw:
            symbol = row.get("symbol") if isinstance(row, dict) else None
            if not is_standard_ticker(symbol) or not row.get("date"):
                logger.debug(f"[Earnings] Filtered out {symbol!r}")
                continue
            rows.append(row)

        growth = await self._eps_growth_for(dict.fromkeys(row["symbol"] for row in rows))

        events = []
        for row in rows:
            try:
                events.append(EarningsEvent.from_vendor(row, eps_growth=growth.get(row["symbol"], 0.0)))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"[Earnings] Skipping malformed row for {row.get('symbol')}: {e}")
        return events

    async def _eps_growth_for(self, symbols: Iterable[str]) -> Dict[str, float]:
        """EPS growth for distinct symbols, batched with a jittered pause between batches."""
        symbols = list(symbols)
        growth: Dict[str, float] = {}

        for start in range(0, len(symbols), EPS_BATCH_SIZE):
            batch = symbols[start:start + EPS_BATCH_SIZE]
            results = await asyncio.gather(
                *(self.get_eps_growth(symbol) for symbol in batch),
                return_exceptions=True,
            )
            for symbol, result in zip(batch, results):
                if isinstance(result, BaseException):
                    logger.warning(f"[Earnings] EPS growth failed for {symbol}: {result}")
                    growth[symbol] = 0.0
                else:
                    growth[symbol] = result

            if start + EPS_BATCH_SIZE < len(symbols):
                low, high = EPS_BATCH_DELAY
                delay = low + (high - low) * self._rng()
                logger.debug(f"[Earnings] Waiting {delay:.1f}s before next EPS batch")
                await self._sleep(delay)

        return growth

    async def get_eps_growth(self, symbol: str) -> float:
        """
        Year-over-year EPS growth for symbol, cached for a day.

        Failures and thin history resolve to 0, which is cached too so a
        broken symbol is not retried on every calendar fetch.
        """
        key = eps_growth_key(symbol)
        cached = await self._cache.get(key)
        if cached is not None:
            return float(cached)

        try:
            history = await self._gated(
                lambda: self._source.fetch_eps_history(symbol, EPS_HISTORY_QUARTERS)
            )
            growth = compute_eps_growth(history)
        except NotEnoughData as e:
            logger.debug(f"[Earnings] Not enough EPS data for {symbol}: {e}")
            growth = 0.0
        except Exception as e:
            logger.warning(format_api_error_message(self._source.name, symbol=symbol, error=e,
                                                    additional_info="EPS growth defaults to 0"))
            growth = 0.0

        await self._cache.set(key, growth, self._ttl.eps_growth, stale_minutes=self._ttl.eps_growth)
        return growth

    async def get_company_profile(self, symbol: str) -> Dict[str, Any]:
        """
        Company profile for symbol, cached for a day.

        Raises the upstream error when nothing usable is cached.
        """
        key = company_profile_key(symbol)
        cached = await self._cache.get(key)
        if cached is not None:
            logger.debug(f"[Earnings] Using cached company profile for {symbol}")
            return cached[0]

        try:
            data = await self._gated(lambda: self._source.fetch_company_profile(symbol))
            if not isinstance(data, list) or not data:
                raise InvalidResponse(self._source.name, f"No profile data found for {symbol}")
        except Exception as e:
            logger.error(format_api_error_message(self._source.name, symbol=symbol, error=e))
            stale = await self._cache.get_stale(key)
            if stale is not None:
                logger.warning(f"[Earnings] Using stale cached company profile for {symbol}")
                return stale[0]
            raise

        await self._cache_both(key, data, self._ttl.profile)
        return data[0]

    async def get_multiple_earnings(self, symbols: Iterable[str]) -> Dict[str, Any]:
        """Company profiles for several symbols; per-symbol failures are collected."""
        results: Dict[str, Any] = {}
        errors: List[Dict[str, str]] = []

        for symbol in symbols:
            try:
                results[symbol] = await self.get_company_profile(symbol)
                await self._sleep(PROFILE_STAGGER_SECONDS)
            except Exception as e:
                logger.error(f"[Earnings] Failed to fetch profile for {symbol}: {e}")
                errors.append({"symbol": symbol, "error": str(e)})

        return {"results": results, "errors": errors, "timestamp": self._clock().isoformat()}

    def usage(self) -> Dict[str, Any]:
        return self._limiter.usage()

    async def close(self) -> None:
        await self._source.close()

    async def check_health(self) -> Dict[str, Any]:
        try:
            message = await self._gated(self._source.ping)
            status = "OK"
        except Exception as e:
            status, message = "ERROR", str(e)
        return {
            "status": status,
            "message": message,
            "timestamp": self._clock().isoformat(),
            "usage": self.usage(),
        }
