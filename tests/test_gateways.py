"""
Earnings and options gateway tests: normalization, caching and fallbacks.
"""

import asyncio

import pytest

from optionstrike.data.earnings import EarningsGateway, compute_eps_growth, default_range, is_standard_ticker
from optionstrike.data.options import OptionsGateway, normalize_put
from optionstrike.db.cache_store import eps_growth_key, options_chain_key
from optionstrike.utils.error_handling import NotEnoughData, RateLimitExceeded, UpstreamHTTPError
from tests.fakes import (
    FakeEarningsSource,
    FakeOptionsSource,
    RecordingSleep,
    earnings_row,
    open_limiter,
    put_entry,
)


def earnings_gateway(source, cache, clock, sleep=None):
    sleep = sleep or RecordingSleep()
    return EarningsGateway(source, cache, open_limiter("earnings", sleep), clock=clock, sleep=sleep, rng=lambda: 0.0)


def options_gateway(source, cache, clock):
    sleep = RecordingSleep()
    return OptionsGateway(source, cache, open_limiter("options", sleep), clock=clock, sleep=sleep)


# Earnings

def test_is_standard_ticker():
    assert is_standard_ticker("AAPL")
    assert not is_standard_ticker("")
    assert not is_standard_ticker(None)
    assert not is_standard_ticker("BRK.B")
    assert not is_standard_ticker("ABC-W")
    assert not is_standard_ticker("AB12")
    assert not is_standard_ticker("ABCDEF")
    for symbol in ("abc", "^VIX", "A B", "A&B", "BRK_B", "Abc"):
        assert not is_standard_ticker(symbol), symbol
    assert not is_standard_ticker(123)


def test_compute_eps_growth():
    assert compute_eps_growth([{"eps": 1.2}, {}, {}, {}, {"eps": 1.0}]) == pytest.approx(20.0)
    assert compute_eps_growth([{"eps": 0.5}, {}, {}, {}, {"eps": -1.0}]) == pytest.approx(150.0)
    with pytest.raises(NotEnoughData):
        compute_eps_growth([{"eps": 1.0}])
    with pytest.raises(NotEnoughData):
        compute_eps_growth([{"eps": 1.0}, {"eps": 0.9}])


def test_default_range(clock):
    today = clock().date()
    start, end = default_range(today, expanded=True)
    assert (start.isoformat(), end.isoformat()) == ("2025-07-08", "2025-08-01")
    # 2025-07-11 is a Friday; week starts Sunday the 6th, plus one week
    start, end = default_range(today, expanded=False)
    assert (start.isoformat(), end.isoformat()) == ("2025-07-06", "2025-07-19")


def test_calendar_filters_and_enriches(cache, clock):
    source = FakeEarningsSource(
        rows=[
            earnings_row("ABC", "2025-07-15"),
            earnings_row("BRK.B", "2025-07-15"),
            earnings_row("XY1", "2025-07-16"),
            earnings_row("^VIX", "2025-07-16"),
            earnings_row("abc", "2025-07-16"),
        ],
        eps_history={"ABC": [1.2, 1.1, 1.0, 0.9, 1.0]},
    )
    gateway = earnings_gateway(source, cache, clock)

    events = asyncio.run(gateway.get_earnings_calendar())

    assert [e.symbol for e in events] == ["ABC"]
    assert events[0].eps_growth == pytest.approx(20.0)
    assert events[0].market_cap == 50e9
    assert source.eps_calls == ["ABC"]


def test_calendar_served_from_cache(cache, clock):
    source = FakeEarningsSource(rows=[earnings_row("ABC", "2025-07-15")])
    gateway = earnings_gateway(source, cache, clock)

    asyncio.run(gateway.get_earnings_calendar())
    events = asyncio.run(gateway.get_earnings_calendar())

    assert source.calendar_calls == 1
    assert events[0].symbol == "ABC"


def test_calendar_falls_back_to_stale_copy(cache, clock):
    source = FakeEarningsSource(rows=[earnings_row("ABC", "2025-07-15")])
    gateway = earnings_gateway(source, cache, clock)
    asyncio.run(gateway.get_earnings_calendar())

    clock.advance(hours=5)
    source.error = RateLimitExceeded("FakeEarnings", retry_after=30)
    events = asyncio.run(gateway.get_earnings_calendar())

    assert source.calendar_calls == 2
    assert [e.symbol for e in events] == ["ABC"]


def test_calendar_failure_without_cache_returns_empty(cache, clock):
    source = FakeEarningsSource(error=UpstreamHTTPError(500, "FakeEarnings", "boom"))
    assert asyncio.run(earnings_gateway(source, cache, clock).get_earnings_calendar()) == []


def test_eps_growth_failure_cached_as_zero(cache, clock):
    source = FakeEarningsSource(eps_history={"ABC": UpstreamHTTPError(500, "FakeEarnings", "boom")})
    gateway = earnings_gateway(source, cache, clock)

    assert asyncio.run(gateway.get_eps_growth("ABC")) == 0.0
    assert asyncio.run(cache.get(eps_growth_key("ABC"))) == 0.0
    assert asyncio.run(gateway.get_eps_growth("ABC")) == 0.0
    assert source.eps_calls == ["ABC"]


def test_eps_growth_batches_pause_between_batches(cache, clock):
    symbols = ["AA", "BB", "CC", "DD", "EE", "FF", "GG"]
    source = FakeEarningsSource(rows=[earnings_row(s, "2025-07-15") for s in symbols])
    sleep = RecordingSleep()
    gateway = earnings_gateway(source, cache, clock, sleep=sleep)

    events = asyncio.run(gateway.get_earnings_calendar())

    assert len(events) == 7
    assert sleep.calls == [2.0]


def test_company_profile(cache, clock):
    gateway = earnings_gateway(FakeEarningsSource(), cache, clock)
    profile = asyncio.run(gateway.get_company_profile("ABC"))
    assert profile["companyName"] == "ABC Corp"


def test_company_profile_failure_raises_without_cache(cache, clock):
    source = FakeEarningsSource(error=UpstreamHTTPError(503, "FakeEarnings", "down"))
    with pytest.raises(UpstreamHTTPError):
        asyncio.run(earnings_gateway(source, cache, clock).get_company_profile("ABC"))


def test_multiple_earnings_collect_errors(cache, clock):
    source = FakeEarningsSource()
    sleep = RecordingSleep()
    gateway = earnings_gateway(source, cache, clock, sleep=sleep)
    asyncio.run(gateway.get_company_profile("ABC"))

    source.error = UpstreamHTTPError(503, "FakeEarnings", "down")
    result = asyncio.run(gateway.get_multiple_earnings(["ABC", "XYZ"]))

    assert result["results"]["ABC"]["companyName"] == "ABC Corp"
    assert [e["symbol"] for e in result["errors"]] == ["XYZ"]
    assert sleep.calls == [0.1]


def test_earnings_health_check(cache, clock):
    ok = asyncio.run(earnings_gateway(FakeEarningsSource(), cache, clock).check_health())
    assert ok["status"] == "OK"
    assert ok["usage"]["current"] == 1

    source = FakeEarningsSource(error=UpstreamHTTPError(401, "FakeEarnings", "bad key"))
    failed = asyncio.run(earnings_gateway(source, cache, clock).check_health())
    assert failed["status"] == "ERROR"
    assert "bad key" in failed["message"]


# Options

def test_normalize_put_uses_last_trade_when_closed():
    contract = normalize_put(put_entry(95.0, "2025-07-18", 4.0), "ABC", 100.0)
    assert contract.premium == 4.0
    assert contract.delta == -0.15
    assert contract.volume == 500
    assert contract.open_interest == 1000
    assert contract.stock_price == 100.0


def test_normalize_put_uses_mid_when_open():
    raw = put_entry(95.0, "2025-07-18", 4.0)
    raw["market_status"] = "open"
    raw["bid"], raw["ask"] = 3.8, 4.4
    assert normalize_put(raw, "ABC", 100.0).premium == pytest.approx(4.1)


@pytest.mark.parametrize("raw", [
    put_entry(95.0, "2025-07-18", 4.0, contract_type="call"),
    put_entry(0.0, "2025-07-18", 4.0),
    put_entry(95.0, "2025-07-18", 0.0),
    put_entry(95.0, "2025-07-18", 4.0, delta=0.4),
    put_entry(95.0, None, 4.0),
])
def test_normalize_put_drops_invalid_contracts(raw):
    assert normalize_put(raw, "ABC", 100.0) is None


def test_options_chain_keeps_valid_puts(cache, clock):
    source = FakeOptionsSource(
        prices={"ABC": 100.0},
        snapshots={"ABC": [
            put_entry(95.0, "2025-07-18", 4.0),
            put_entry(95.0, "2025-07-18", 4.0, contract_type="call"),
            put_entry(90.0, "2025-07-25", 0.0),
            put_entry(92.0, "2025-07-25", 3.0),
        ]},
    )
    chain = asyncio.run(options_gateway(source, cache, clock).get_options_chain("ABC"))

    assert chain.underlying_price == 100.0
    assert [(o.strike, o.expiration) for o in chain.options] == [(95.0, "2025-07-18"), (92.0, "2025-07-25")]


def test_options_chain_expiration_filter(cache, clock):
    source = FakeOptionsSource(snapshots={"ABC": [
        put_entry(95.0, "2025-07-18", 4.0),
        put_entry(92.0, "2025-07-25", 3.0),
    ]})
    chain = asyncio.run(options_gateway(source, cache, clock).get_options_chain("ABC", "2025-07-25"))
    assert [o.strike for o in chain.options] == [92.0]


def test_options_chain_falls_back_to_stale_copy(cache, clock):
    source = FakeOptionsSource(snapshots={"ABC": [put_entry(95.0, "2025-07-18", 4.0)]})
    gateway = options_gateway(source, cache, clock)
    asyncio.run(gateway.get_options_chain("ABC"))

    clock.advance(minutes=30)
    source.errors["ABC"] = UpstreamHTTPError(502, "FakeOptions", "bad gateway")
    chain = asyncio.run(gateway.get_options_chain("ABC"))

    assert len(chain.options) == 1
    assert source.snapshot_calls == ["ABC", "ABC"]


def test_options_chain_failure_propagates_without_cache(cache, clock):
    source = FakeOptionsSource(errors={"ABC": RateLimitExceeded("FakeOptions", 12)})
    with pytest.raises(RateLimitExceeded):
        asyncio.run(options_gateway(source, cache, clock).get_options_chain("ABC"))
    assert asyncio.run(cache.get_stale(options_chain_key("ABC"))) is None


def test_stock_price_requires_ok_status(cache, clock):
    class NotOkSource(FakeOptionsSource):
        async def fetch_previous_close(self, symbol):
            return {"status": "ERROR", "error": "unknown ticker"}

    with pytest.raises(UpstreamHTTPError, match="unknown ticker"):
        asyncio.run(options_gateway(NotOkSource(), cache, clock).get_stock_price("ZZZ"))


def test_multiple_chains_collect_errors(cache, clock):
    source = FakeOptionsSource(
        snapshots={"ABC": [put_entry(95.0, "2025-07-18", 4.0)]},
        errors={"BAD": UpstreamHTTPError(404, "FakeOptions", "not found")},
    )
    result = asyncio.run(options_gateway(source, cache, clock).get_multiple_options_chains(["ABC", "BAD"]))

    assert list(result["results"]) == ["ABC"]
    assert result["errors"][0]["symbol"] == "BAD"
    assert "not found" in result["errors"][0]["error"]
