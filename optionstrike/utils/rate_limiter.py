"""
Client-side rate limiting for upstream APIs.

Free-tier market data APIs reject requests past a fixed per-minute quota.
Each upstream source gets its own RateLimiter instance that tracks a sliding
window of request timestamps and spaces calls out with exponential backoff.
"""

from __future__ import annotations
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, Optional
import asyncio
import logging
import random
import time

from optionstrike.utils.error_handling import RateLimitExceeded

logger = logging.getLogger(__name__)

POLYGON_MAX_REQUESTS = 5
FMP_MAX_REQUESTS = 250
DEFAULT_WINDOW_SECONDS = 60.0


class RateLimiter:
    """Sliding-window request gate for a single named API source."""

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        name: str = "API",
        max_retries: int = 3,
        backoff_base: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ):
        if max_requests <= 0:
            raise ValueError(f"max_requests must be positive, got {max_requests}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {window_seconds}")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.name = name
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self._clock = clock
        self._sleep = sleep
        self._rng = rng
        self._requests: Deque[float] = deque()
        self._retry_count = 0

    def _prune(self, now: float) -> None:
        window_start = now - self.window_seconds
        while self._requests and self._requests[0] <= window_start:
            self._requests.popleft()

    def _backoff(self, attempt: int) -> float:
        jitter = 0.5 + 0.5 * self._rng()
        return self.backoff_base * (2 ** attempt) * jitter

    async def acquire(self) -> None:
        """
        Wait until a request slot is free and record the request.

        Each caller has its own retry budget, so concurrent waiters do not
        use up each other's attempts.

        Raises:
            RateLimitExceeded: after max_retries consecutive throttled attempts
                by this caller. The exception carries the suggested wait in seconds.
        """
        attempts = 0
        while True:
            now = self._clock()
            self._prune(now)

            if len(self._requests) < self.max_requests:
                self._requests.append(now)
                self._retry_count = 0
                logger.debug(
                    f"[RateLimiter] {self.name}: {len(self._requests)}/{self.max_requests} "
                    f"requests in current window"
                )
                return

            wait_time = max(0.0, self.window_seconds - (now - self._requests[0]))

            if attempts >= self.max_retries:
                self._retry_count = 0
                logger.warning(
                    f"[RateLimiter] {self.name}: retry budget exhausted, "
                    f"need to wait {wait_time:.1f}s"
                )
                raise RateLimitExceeded(self.name, retry_after=wait_time)

            delay = wait_time + self._backoff(attempts)
            attempts += 1
            self._retry_count = attempts
            logger.warning(
                f"[RateLimiter] {self.name}: limit reached, waiting {delay:.1f}s "
                f"(retry {attempts}/{self.max_retries})"
            )
            await self._sleep(delay)

    def usage(self) -> Dict[str, Any]:
        """Current usage statistics for observability."""
        now = self._clock()
        self._prune(now)
        current = len(self._requests)
        reset_time: Optional[float] = (
            self._requests[-1] + self.window_seconds if self._requests else None
        )
        return {
            "name": self.name,
            "current": current,
            "max": self.max_requests,
            "remaining": max(0, self.max_requests - current),
            "retry_count": self._retry_count,
            "max_retries": self.max_retries,
            "reset_time": reset_time,
        }

    def reset(self) -> None:
        self._requests.clear()
        self._retry_count = 0
        logger.info(f"[RateLimiter] {self.name} rate limiter reset")


def create_polygon_limiter(max_retries: int = 3, **kwargs: Any) -> RateLimiter:
    """Polygon.io free tier: 5 requests per minute."""
    return RateLimiter(POLYGON_MAX_REQUESTS, DEFAULT_WINDOW_SECONDS, "Polygon.io", max_retries=max_retries, **kwargs)


def create_fmp_limiter(max_retries: int = 3, **kwargs: Any) -> RateLimiter:
    """Financial Modeling Prep free tier: 250 requests per minute."""
    return RateLimiter(FMP_MAX_REQUESTS, DEFAULT_WINDOW_SECONDS, "FMP", max_retries=max_retries, **kwargs)
