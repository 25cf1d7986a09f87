"""
HTTP client and vendor source tests against httpx.MockTransport.
"""

import asyncio
from datetime import date

import httpx
import pytest

from optionstrike.data.fmp import FmpEarningsSource
from optionstrike.data.http_client import ApiClient
from optionstrike.data.polygon import PolygonOptionsSource
from optionstrike.utils.error_handling import InvalidResponse, UpstreamHTTPError
from tests.fakes import RecordingSleep


def make_client(handler, max_retries=3):
    sleep = RecordingSleep()
    client = ApiClient(
        "https://api.example.com",
        source="Example",
        timeout=5.0,
        max_retries=max_retries,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep=sleep,
    )
    return client, sleep


def test_server_error_is_retried_with_backoff():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(502, text="bad gateway")
        return httpx.Response(200, json=[{"ok": True}])

    client, sleep = make_client(handler)
    assert asyncio.run(client.get("/thing")) == [{"ok": True}]
    assert len(calls) == 3
    assert sleep.calls == [1, 2]


def test_client_error_fails_immediately():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(401, text="unauthorized")

    client, sleep = make_client(handler)
    with pytest.raises(UpstreamHTTPError) as exc_info:
        asyncio.run(client.get("/thing"))
    assert exc_info.value.status == 401
    assert len(calls) == 1
    assert sleep.calls == []


def test_too_many_requests_retried_until_budget_spent():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(429, text="Too Many Requests")

    client, sleep = make_client(handler, max_retries=3)
    with pytest.raises(UpstreamHTTPError) as exc_info:
        asyncio.run(client.get("/thing"))
    assert exc_info.value.status == 429
    assert len(calls) == 4
    assert sleep.calls == [1, 2, 4]


def test_backoff_is_capped():
    client, sleep = make_client(lambda request: httpx.Response(503), max_retries=5)
    with pytest.raises(UpstreamHTTPError):
        asyncio.run(client.get("/thing"))
    assert sleep.calls == [1, 2, 4, 8, 10.0]


def test_timeout_becomes_upstream_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client, sleep = make_client(handler, max_retries=1)
    with pytest.raises(UpstreamHTTPError) as exc_info:
        asyncio.run(client.get("/slow"))
    assert exc_info.value.status == 0
    assert "timeout" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, httpx.ReadTimeout)


def test_non_json_body_is_invalid_response():
    client, sleep = make_client(lambda request: httpx.Response(200, text="<html>oops</html>"))
    with pytest.raises(InvalidResponse):
        asyncio.run(client.get("/thing"))
    assert sleep.calls == []


def test_error_body_with_ok_status():
    client, _ = make_client(
        lambda request: httpx.Response(200, json={"Error Message": "Invalid API KEY."}),
        max_retries=0,
    )
    with pytest.raises(UpstreamHTTPError, match="Invalid API KEY"):
        asyncio.run(client.get("/thing"))


def test_fmp_calendar_request():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=[{"symbol": "ABC", "date": "2025-07-15"}])

    source = FmpEarningsSource(
        "secret",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        base_url="https://fmp.test/api/v3",
    )
    rows = asyncio.run(source.fetch_earnings_calendar(date(2025, 7, 8), date(2025, 8, 1)))

    assert rows == [{"symbol": "ABC", "date": "2025-07-15"}]
    assert seen["path"] == "/api/v3/earning_calendar"
    assert seen["params"] == {"from": "2025-07-08", "to": "2025-08-01", "apikey": "secret"}


def test_polygon_previous_close_request():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"status": "OK", "results": [{"c": 101.5}]})

    source = PolygonOptionsSource(
        "secret",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        base_url="https://polygon.test",
    )
    data = asyncio.run(source.fetch_previous_close("ABC"))

    assert data["results"][0]["c"] == 101.5
    assert seen["path"] == "/v2/aggs/ticker/ABC/prev"
    assert seen["params"] == {"adjusted": "true", "apikey": "secret"}


@pytest.mark.parametrize("source_cls", [FmpEarningsSource, PolygonOptionsSource])
def test_sources_require_api_key(source_cls):
    with pytest.raises(ValueError):
        source_cls("  ")
