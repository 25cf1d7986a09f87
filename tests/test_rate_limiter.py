import asyncio

import pytest

from optionstrike.utils.error_handling import RateLimitExceeded
from optionstrike.utils.rate_limiter import RateLimiter, create_fmp_limiter, create_polygon_limiter


class FakeTime:
    """Monotonic clock that sleep() can optionally advance."""

    def __init__(self, advance_on_sleep=True):
        self.now = 0.0
        self.sleeps = []
        self.advance_on_sleep = advance_on_sleep

    def clock(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        if self.advance_on_sleep:
            self.now += seconds


def make_limiter(fake, max_requests=2, max_retries=3):
    return RateLimiter(
        max_requests=max_requests,
        window_seconds=60,
        name="Test",
        max_retries=max_retries,
        backoff_base=1.0,
        clock=fake.clock,
        sleep=fake.sleep,
        rng=lambda: 0.0,
    )


def test_acquire_within_quota_does_not_wait():
    fake = FakeTime()
    limiter = make_limiter(fake, max_requests=3)

    async def run():
        for _ in range(3):
            await limiter.acquire()

    asyncio.run(run())
    assert fake.sleeps == []
    assert limiter.usage()["remaining"] == 0


def test_acquire_waits_for_window_plus_backoff():
    fake = FakeTime()
    limiter = make_limiter(fake)

    async def run():
        await limiter.acquire()
        await limiter.acquire()
        await limiter.acquire()

    asyncio.run(run())
    # window remainder (60s) plus backoff 1 * 2^0 * 0.5
    assert fake.sleeps == [60.5]
    usage = limiter.usage()
    assert usage["current"] == 1
    assert usage["retry_count"] == 0


def test_retry_budget_exhausted_raises_and_resets():
    fake = FakeTime(advance_on_sleep=False)
    limiter = make_limiter(fake, max_requests=1, max_retries=2)

    async def run():
        await limiter.acquire()
        await limiter.acquire()

    with pytest.raises(RateLimitExceeded) as exc_info:
        asyncio.run(run())

    assert fake.sleeps == [60.5, 61.0]
    assert exc_info.value.retry_after == pytest.approx(60.0)
    assert exc_info.value.source == "Test"
    assert limiter.usage()["retry_count"] == 0


def test_old_requests_leave_the_window():
    fake = FakeTime()
    limiter = make_limiter(fake, max_requests=1)

    async def run():
        await limiter.acquire()
        fake.now += 61
        await limiter.acquire()

    asyncio.run(run())
    assert fake.sleeps == []


def test_usage_and_reset():
    fake = FakeTime()
    limiter = make_limiter(fake, max_requests=5)
    asyncio.run(limiter.acquire())

    usage = limiter.usage()
    assert usage == {
        "name": "Test",
        "current": 1,
        "max": 5,
        "remaining": 4,
        "retry_count": 0,
        "max_retries": 3,
        "reset_time": 60.0,
    }

    limiter.reset()
    assert limiter.usage()["current"] == 0
    assert limiter.usage()["reset_time"] is None


def test_invalid_limits_rejected():
    with pytest.raises(ValueError):
        RateLimiter(max_requests=0)
    with pytest.raises(ValueError):
        RateLimiter(window_seconds=0)


def test_vendor_quotas():
    assert create_polygon_limiter().max_requests == 5
    assert create_fmp_limiter().max_requests == 250
    assert create_fmp_limiter(max_retries=1).max_retries == 1


class SharedTime(FakeTime):
    """Sleep yields to other waiters; the window frees after the given sleeps."""

    def __init__(self, free_after=()):
        super().__init__(advance_on_sleep=False)
        self.free_after = set(free_after)

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        if len(self.sleeps) in self.free_after:
            self.now += 61
        await asyncio.sleep(0)


def gather_waiters(limiter, count):
    async def run():
        return await asyncio.gather(*(limiter.acquire() for _ in range(count)), return_exceptions=True)

    return asyncio.run(run())


def test_concurrent_waiters_each_get_full_retry_budget():
    fake = SharedTime()
    limiter = make_limiter(fake, max_requests=2, max_retries=3)
    asyncio.run(limiter.acquire())
    asyncio.run(limiter.acquire())

    results = gather_waiters(limiter, 5)

    assert all(isinstance(r, RateLimitExceeded) for r in results)
    # every waiter backs off max_retries times before giving up
    assert fake.sleeps == [60.5] * 5 + [61.0] * 5 + [62.0] * 5


def test_concurrent_waiters_succeed_as_the_window_frees():
    fake = SharedTime(free_after=(5, 8, 9))
    limiter = make_limiter(fake, max_requests=2, max_retries=3)
    asyncio.run(limiter.acquire())
    asyncio.run(limiter.acquire())

    results = gather_waiters(limiter, 5)

    assert results == [None] * 5
    assert fake.sleeps == [60.5] * 5 + [61.0] * 3 + [62.0]
    assert limiter.usage()["retry_count"] == 0
