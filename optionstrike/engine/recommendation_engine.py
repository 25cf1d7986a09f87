"""
Recommendation Engine - the pipeline from earnings calendar to ranked puts.

One run:
1. fetch earnings (extended range); on failure or no events, serve the
   cached active set
2. prioritize symbols and truncate to max_symbols_to_process
3. for each batch: fetch option chains, filter every contract, score the
   survivors; a failed batch is skipped and the run continues
4. rank by confidence, keep the top max_recommendations
5. persist as the new active generation and return it; if nothing survived,
   serve the cached active set

Any unexpected error falls back to the cached active set; only an error with
nothing cached reaches the caller.
"""

from __future__ import annotations
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional
import asyncio
import logging
import random

from optionstrike.config import CacheTTL
from optionstrike.data.earnings import EarningsGateway
from optionstrike.data.options import OptionsGateway
from optionstrike.db.cache_store import LATEST_RECOMMENDATIONS_KEY, CacheStore
from optionstrike.db.repository import DEFAULT_ACTIVE_LIMIT, RecommendationRepository
from optionstrike.engine.criteria import RecommendationCriteria, meets_basic_criteria
from optionstrike.engine.prioritization import prioritize_symbols
from optionstrike.models.earnings import EarningsEvent
from optionstrike.models.option import OptionsChain
from optionstrike.models.recommendation import Recommendation
from optionstrike.strategy import pricing
from optionstrike.utils.error_handling import PersistenceError, is_rate_limit_error
from optionstrike.utils.timestamp import isoformat_or_none, utc_now

logger = logging.getLogger(__name__)

BATCH_DELAY = (3.0, 5.0)


@dataclass
class RunSummary:
    started_at: datetime
    finished_at: Optional[datetime] = None
    source: str = "fresh"            # fresh | cached | fallback
    earnings_events: int = 0
    symbols_processed: int = 0
    batches_failed: int = 0
    candidates: int = 0
    recommendations: int = 0
    persisted: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["finished_at"] = isoformat_or_none(self.finished_at)
        return data


@dataclass
class _BatchResult:
    recommendations: List[Recommendation] = field(default_factory=list)
    symbols_processed: int = 0


class RecommendationEngine:
    def __init__(
        self,
        earnings_gateway: EarningsGateway,
        options_gateway: OptionsGateway,
        repository: RecommendationRepository,
        cache: CacheStore,
        criteria: Optional[RecommendationCriteria] = None,
        ttl: Optional[CacheTTL] = None,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
        archive: bool = True,
    ):
        self._earnings = earnings_gateway
        self._options = options_gateway
        self._repository = repository
        self._cache = cache
        self._criteria = criteria or RecommendationCriteria()
        self._ttl = ttl or CacheTTL()
        self._clock = clock
        self._sleep = sleep
        self._rng = rng
        self._archive = archive
        self._in_flight: Optional[asyncio.Future] = None
        self.last_run: Optional[RunSummary] = None

        logger.info(f"[Engine] Initialized with criteria: {self._criteria.to_dict()}")

    @property
    def criteria(self) -> RecommendationCriteria:
        return self._criteria

    @property
    def is_running(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    @property
    def earnings_gateway(self) -> EarningsGateway:
        return self._earnings

    @property
    def options_gateway(self) -> OptionsGateway:
        return self._options

    @property
    def cache(self) -> CacheStore:
        return self._cache

    def update_criteria(self, partial: Mapping[str, Any]) -> RecommendationCriteria:
        """Swap in new criteria; a run already in flight keeps its own copy."""
        self._criteria = self._criteria.updated(partial)
        return self._criteria

    async def generate_recommendations(
        self,
        criteria: Optional[RecommendationCriteria] = None,
    ) -> List[Recommendation]:
        """
        Run the pipeline once.

        Runs are single-flight: a call made while a run is in progress joins
        that run and receives its result instead of starting another.
        """
        if self._in_flight is not None and not self._in_flight.done():
            logger.info("[Engine] Run already in progress, joining it")
            return await asyncio.shield(self._in_flight)

        task = asyncio.ensure_future(self._run(criteria or self._criteria))
        self._in_flight = task
        task.add_done_callback(self._clear_in_flight)
        return await asyncio.shield(task)

    def _clear_in_flight(self, task: asyncio.Future) -> None:
        if self._in_flight is task:
            self._in_flight = None

    async def _run(self, criteria: RecommendationCriteria) -> List[Recommendation]:
        now = self._clock()
        summary = RunSummary(started_at=now)
        self.last_run = summary
        logger.info("[Engine] Starting recommendation generation")

        try:
            try:
                earnings = await self._earnings.get_earnings_calendar(expanded=True)
            except Exception as e:
                if is_rate_limit_error(e):
                    logger.warning(f"[Engine] Rate limit hit fetching earnings, using cached recommendations: {e}")
                else:
                    logger.error(f"[Engine] Error fetching earnings data: {e}")
                summary.error = str(e)
                return await self._serve_cached(summary, "fallback")

            summary.earnings_events = len(earnings)
            if not earnings:
                logger.info("[Engine] No earnings found for the current period, using cached recommendations")
                return await self._serve_cached(summary, "cached")

            self._archive_earnings(earnings)

            symbols = prioritize_symbols(earnings, criteria)
            earnings_by_symbol: Dict[str, EarningsEvent] = {}
            for event in earnings:
                earnings_by_symbol.setdefault(event.symbol, event)

            candidates: List[Recommendation] = []
            batches = [symbols[i:i + criteria.batch_size] for i in range(0, len(symbols), criteria.batch_size)]
            for index, batch in enumerate(batches, start=1):
                logger.info(f"[Engine] Processing batch {index}/{len(batches)}: {batch}")
                try:
                    result = await self._process_batch(batch, earnings_by_symbol, criteria, now)
                    candidates.extend(result.recommendations)
                    summary.symbols_processed += result.symbols_processed
                    logger.info(f"[Engine] Batch {index} complete: {len(result.recommendations)} candidates")
                except Exception as e:
                    summary.batches_failed += 1
                    logger.error(f"[Engine] Error processing batch {index}, skipping: {e}")

                if index < len(batches):
                    low, high = BATCH_DELAY
                    delay = low + (high - low) * self._rng()
                    logger.debug(f"[Engine] Waiting {delay:.1f}s before next batch")
                    await self._sleep(delay)

            summary.candidates = len(candidates)
            ranked = sorted(candidates, key=lambda r: r.confidence_score, reverse=True)
            ranked = ranked[:criteria.max_recommendations]

            if not ranked:
                logger.info("[Engine] No new recommendations generated, using cached recommendations")
                return await self._serve_cached(summary, "cached")

            for rec in ranked[:5]:
                logger.info(
                    f"[Engine] Top: {rec.symbol} {rec.strike_price}P {rec.expiration_date} "
                    f"confidence={rec.confidence_score:.1f} pop={rec.pop:.1f} premium={rec.premium:.2f}"
                )

            await self._save(ranked, summary)
            summary.source = "fresh"
            summary.recommendations = len(ranked)
            return ranked

        except Exception as e:
            logger.error(f"[Engine] Error generating recommendations: {e}", exc_info=True)
            summary.error = str(e)
            fallback = await self.get_cached_recommendations()
            if fallback:
                logger.info(f"[Engine] Returning {len(fallback)} cached recommendations as fallback")
                self._finish(summary, "fallback", len(fallback))
                return fallback
            self._finish(summary, "fallback", 0)
            raise
        finally:
            if summary.finished_at is None:
                summary.finished_at = self._clock()

    def _finish(self, summary: RunSummary, source: str, count: int) -> None:
        summary.source = source
        summary.recommendations = count
        summary.finished_at = self._clock()

    async def _serve_cached(self, summary: RunSummary, source: str) -> List[Recommendation]:
        cached = await self.get_cached_recommendations()
        self._finish(summary, source, len(cached))
        return cached

    async def _process_batch(
        self,
        symbols: List[str],
        earnings_by_symbol: Mapping[str, EarningsEvent],
        criteria: RecommendationCriteria,
        now: datetime,
    ) -> _BatchResult:
        chains = await self._options.get_multiple_options_chains(symbols)
        if chains["errors"]:
            failed = ", ".join(err["symbol"] for err in chains["errors"])
            logger.warning(f"[Engine] No options data for: {failed}")

        result = _BatchResult()
        for symbol in symbols:
            earnings = earnings_by_symbol.get(symbol)
            chain = chains["results"].get(symbol)
            if earnings is None or chain is None:
                logger.debug(f"[Engine] Skipping {symbol} - missing earnings or options data")
                continue

            self._archive_chain(chain)
            try:
                recommendations = self.process_symbol(symbol, earnings, chain, criteria, now)
            except Exception as e:
                logger.error(f"[Engine] Error processing {symbol}: {e}")
                continue

            result.recommendations.extend(recommendations)
            result.symbols_processed += 1
        return result

    def process_symbol(
        self,
        symbol: str,
        earnings: EarningsEvent,
        chain: OptionsChain,
        criteria: Optional[RecommendationCriteria] = None,
        now: Optional[datetime] = None,
    ) -> List[Recommendation]:
        """Filter and score every contract in one symbol's chain."""
        criteria = criteria or self._criteria
        now = now or self._clock()
        stock_price = chain.underlying_price

        if not stock_price or stock_price <= 0:
            logger.info(f"[Engine] Skipping {symbol} - invalid stock price: {stock_price}")
            return []

        recommendations = []
        passed_basic = 0
        for option in chain.options:
            if not meets_basic_criteria(option, stock_price, earnings.date, criteria, now):
                continue
            passed_basic += 1

            years = pricing.time_to_expiry(option.expiration, now)
            pop = pricing.probability_of_profit(
                stock_price, option.strike, years, criteria.risk_free_rate, option.implied_volatility
            )
            if pop < criteria.min_pop or pop > criteria.max_pop:
                logger.debug(f"[Engine] {symbol} {option.strike}P failed POP band: {pop:.1f}%")
                continue

            premium_pct = pricing.premium_percentage(option.premium, stock_price)
            score = pricing.confidence_score(
                option.implied_volatility,
                option.open_interest,
                option.volume,
                earnings.eps_growth or 0.0,
                pop,
                premium_pct,
            )
            recommendations.append(Recommendation(
                symbol=symbol,
                strike_price=option.strike,
                expiration_date=option.expiration,
                premium=option.premium,
                confidence_score=score,
                pop=pop,
                delta=abs(option.delta),
                implied_volatility=option.implied_volatility,
                premium_percentage=premium_pct,
                max_loss=pricing.max_loss(option.strike, option.premium),
                breakeven=pricing.breakeven(option.strike, option.premium),
                earnings_date=earnings.date,
                volume=option.volume,
                open_interest=option.open_interest,
                stock_price=stock_price,
                eps_growth=earnings.eps_growth or 0.0,
                created_at=now,
            ))

        logger.info(
            f"[Engine] {symbol}: {len(chain.options)} puts analyzed, {passed_basic} passed basic criteria, "
            f"{len(recommendations)} recommended"
        )
        return recommendations

    async def _save(self, recommendations: List[Recommendation], summary: RunSummary) -> None:
        """
        Persist the new active generation, then refresh the latest copy in
        the cache. The cache copy is written even if persistence failed.
        """
        try:
            self._repository.replace_active(recommendations)
            summary.persisted = True
        except PersistenceError as e:
            logger.error(f"[Engine] Recommendations not persisted, previous set stays active: {e}")
            summary.error = str(e)

        await self._cache.set(
            LATEST_RECOMMENDATIONS_KEY,
            [r.to_dict() for r in recommendations],
            self._ttl.recommendations,
            stale_minutes=self._ttl.stale,
        )

    async def get_cached_recommendations(self, limit: int = DEFAULT_ACTIVE_LIMIT) -> List[Recommendation]:
        """
        The last known good set: the persisted active generation, or the
        latest cached copy when the store is empty or unreachable.
        """
        try:
            active = self._repository.get_active(limit)
            if active:
                return active
        except PersistenceError as e:
            logger.warning(f"[Engine] Error fetching active recommendations: {e}")

        cached = await self._cache.get_stale(LATEST_RECOMMENDATIONS_KEY)
        if not cached:
            return []
        try:
            return [Recommendation.from_dict(row) for row in cached][:limit]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"[Engine] Ignoring malformed cached recommendations: {e}")
            return []

    def _archive_earnings(self, events: Iterable[EarningsEvent]) -> None:
        if not self._archive:
            return
        try:
            self._repository.save_earnings_snapshot(events)
        except PersistenceError as e:
            logger.warning(f"[Engine] Could not archive earnings: {e}")

    def _archive_chain(self, chain: OptionsChain) -> None:
        if not self._archive or not chain.options:
            return
        try:
            self._repository.save_options_snapshot(chain)
        except PersistenceError as e:
            logger.warning(f"[Engine] Could not archive options for {chain.symbol}: {e}")

    async def run_forever(self, stop_event: asyncio.Event, interval_minutes: float = 60) -> None:
        """Regenerate every interval_minutes until stop_event is set."""
        interval = interval_minutes * 60

        while not stop_event.is_set():
            try:
                recommendations = await self.generate_recommendations()
                logger.info(f"[Engine] Scheduled run produced {len(recommendations)} recommendations")
            except Exception as e:
                logger.error(f"[Engine] Scheduled run failed with nothing cached: {e}")

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    async def close(self) -> None:
        await self._earnings.close()
        await self._options.close()

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.is_running,
            "criteria": self._criteria.to_dict(),
            "last_run": self.last_run.to_dict() if self.last_run else None,
            "usage": {
                "earnings": self._earnings.usage(),
                "options": self._options.usage(),
            },
        }
