"""
Options Gateway - fetches and normalizes stock prices and put chains.

Unlike the earnings gateway, failures here propagate to the caller once the
stale-cache fallback is exhausted.
"""

from __future__ import annotations
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional
import asyncio
import logging

from optionstrike.config import CacheTTL
from optionstrike.data.base import OptionsDataSource
from optionstrike.db.cache_store import CacheStore, options_chain_key, stock_price_key
from optionstrike.models.option import OptionContract, OptionsChain
from optionstrike.utils.error_handling import InvalidResponse, UpstreamHTTPError, format_api_error_message
from optionstrike.utils.rate_limiter import RateLimiter
from optionstrike.utils.timestamp import utc_now

logger = logging.getLogger(__name__)

CHAIN_STAGGER_SECONDS = 0.2


def _number(value: Any, default: float = 0.0) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def normalize_put(raw: Dict[str, Any], symbol: str, stock_price: float) -> Optional[OptionContract]:
    """
    Convert one snapshot entry into an OptionContract.

    Returns None for calls and for contracts that break the put invariants
    (strike > 0, premium > 0, delta in [-1, 0], known expiration).
    """
    details = raw.get("details") or {}
    if details.get("contract_type") != "put":
        return None

    strike = _number(details.get("strike_price"))
    expiration = details.get("expiration_date")
    bid = _number(raw.get("bid"))
    ask = _number(raw.get("ask"))
    if raw.get("market_status") == "open":
        premium = (bid + ask) / 2
    else:
        premium = _number((raw.get("last_quote") or {}).get("price"))
    delta = _number((raw.get("greeks") or {}).get("delta"))

    if strike <= 0 or premium <= 0 or not expiration or not -1.0 <= delta <= 0.0:
        return None

    return OptionContract(
        symbol=symbol,
        strike=strike,
        expiration=str(expiration)[:10],
        premium=premium,
        delta=delta,
        implied_volatility=_number(raw.get("implied_volatility")),
        volume=int(_number((raw.get("session") or {}).get("volume"))),
        open_interest=int(_number(raw.get("open_interest"))),
        bid=bid,
        ask=ask,
        stock_price=stock_price,
    )


class OptionsGateway:
    def __init__(
        self,
        source: OptionsDataSource,
        cache: CacheStore,
        limiter: RateLimiter,
        ttl: Optional[CacheTTL] = None,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._source = source
        self._cache = cache
        self._limiter = limiter
        self._ttl = ttl or CacheTTL()
        self._clock = clock
        self._sleep = sleep

    @property
    def source_name(self) -> str:
        return self._source.name

    async def _gated(self, call: Callable[[], Awaitable[Any]]) -> Any:
        await self._limiter.acquire()
        return await call()

    async def get_stock_price(self, symbol: str) -> Dict[str, Any]:
        """Previous-close aggregate for symbol ({status, results: [{c, ...}]})."""
        key = stock_price_key(symbol)
        cached = await self._cache.get(key)
        if cached is not None:
            logger.debug(f"[Options] Using cached stock price for {symbol}")
            return cached

        try:
            data = await self._gated(lambda: self._source.fetch_previous_close(symbol))
            if not isinstance(data, dict):
                raise InvalidResponse(self._source.name, f"Unexpected price payload for {symbol}")
            if data.get("status") != "OK":
                raise UpstreamHTTPError(500, self._source.name, f"API error: {data.get('error') or 'Unknown error'}")
        except Exception as e:
            logger.error(format_api_error_message(self._source.name, symbol=symbol, error=e,
                                                  additional_info="stock price fetch failed"))
            stale = await self._cache.get_stale(key)
            if stale is not None:
                logger.warning(f"[Options] Using stale cached stock price for {symbol}")
                return stale
            raise

        await self._cache.set(key, data, self._ttl.stock, stale_minutes=self._ttl.stale)
        return data

    async def get_underlying_price(self, symbol: str) -> float:
        data = await self.get_stock_price(symbol)
        results = data.get("results") or []
        return _number(results[0].get("c")) if results else 0.0

    async def get_options_chain(self, symbol: str, expiration_date: Optional[str] = None) -> OptionsChain:
        """
        Put contracts for symbol, optionally limited to one expiration.

        Raises:
            RateLimitExceeded, UpstreamHTTPError, InvalidResponse: when the
                fetch fails and no stale copy is cached.
        """
        key = options_chain_key(symbol, expiration_date)
        cached = await self._cache.get(key)
        if cached is not None:
            logger.info(f"[Options] Using cached options chain for {symbol}")
            return OptionsChain.from_dict(cached)

        try:
            raw = await self._gated(lambda: self._source.fetch_options_snapshot(symbol))
            if not isinstance(raw, dict):
                raise InvalidResponse(self._source.name, f"Unexpected snapshot payload for {symbol}")
            if raw.get("status") != "OK":
                raise UpstreamHTTPError(500, self._source.name, f"API error: {raw.get('error') or 'Unknown error'}")

            chain = await self._process_snapshot(raw, symbol, expiration_date)
        except Exception as e:
            logger.error(format_api_error_message(self._source.name, symbol=symbol, error=e,
                                                  additional_info="options chain fetch failed"))
            stale = await self._cache.get_stale(key)
            if stale is not None:
                logger.warning(f"[Options] Using stale cached options chain for {symbol}")
                return OptionsChain.from_dict(stale)
            raise

        await self._cache.set(key, chain.to_dict(), self._ttl.options, stale_minutes=self._ttl.stale)
        logger.info(f"[Options] Fetched fresh options chain for {symbol}: {len(chain.options)} puts")
        return chain

    async def _process_snapshot(
        self,
        raw: Dict[str, Any],
        symbol: str,
        expiration_date: Optional[str],
    ) -> OptionsChain:
        underlying_price = await self.get_underlying_price(symbol)

        entries = raw.get("results")
        if not isinstance(entries, list):
            entries = []

        options: List[OptionContract] = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            if expiration_date and (entry.get("details") or {}).get("expiration_date") != expiration_date:
                continue
            contract = normalize_put(entry, symbol, underlying_price)
            if contract is not None:
                options.append(contract)

        return OptionsChain(
            symbol=symbol,
            underlying_price=underlying_price,
            options=options,
            timestamp=self._clock().isoformat(),
            status="OK",
        )

    async def get_multiple_options_chains(self, symbols: Iterable[str]) -> Dict[str, Any]:
        """
        Chains for several symbols, fetched one after another.

        Returns {results: {symbol: OptionsChain}, errors: [{symbol, error}], timestamp}.
        """
        results: Dict[str, OptionsChain] = {}
        errors: List[Dict[str, str]] = []

        for symbol in symbols:
            try:
                results[symbol] = await self.get_options_chain(symbol)
                await self._sleep(CHAIN_STAGGER_SECONDS)
            except Exception as e:
                logger.error(f"[Options] Failed to fetch options for {symbol}: {e}")
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
