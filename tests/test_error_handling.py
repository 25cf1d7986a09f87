from optionstrike.utils.error_handling import (
    RATE_LIMIT_USER_MESSAGE,
    InvalidResponse,
    PersistenceError,
    RateLimitExceeded,
    UpstreamHTTPError,
    is_api_error,
    should_retry_error,
    user_facing_error_message,
)


def test_is_api_error():
    assert is_api_error(RateLimitExceeded("FMP"))
    assert is_api_error(UpstreamHTTPError(500, "Polygon.io"))
    assert is_api_error(RuntimeError("401 Unauthorized"))
    assert is_api_error(RuntimeError("read timeout"))
    assert not is_api_error(RuntimeError("division by zero"))


def test_user_facing_error_message():
    assert user_facing_error_message(RateLimitExceeded("FMP", retry_after=30)) == RATE_LIMIT_USER_MESSAGE
    assert user_facing_error_message(UpstreamHTTPError(429, "FMP")) == RATE_LIMIT_USER_MESSAGE
    assert user_facing_error_message(PersistenceError("disk full")).startswith("Recommendations could not be saved")

    assert user_facing_error_message(UpstreamHTTPError(503, "Polygon.io", "down")) == (
        "Market data provider error: [Polygon.io] HTTP 503: down"
    )
    assert user_facing_error_message(InvalidResponse("FMP", "not a list")).startswith("Market data provider error")
    # untyped errors that look like vendor failures are still reported as such
    assert user_facing_error_message(RuntimeError("403 Forbidden")) == "Market data provider error: 403 Forbidden"
    assert user_facing_error_message(RuntimeError("boom")) == "Recommendation generation failed: boom"


def test_should_retry_error():
    assert should_retry_error(UpstreamHTTPError(429, "FMP"))
    assert should_retry_error(UpstreamHTTPError(502, "FMP"))
    assert not should_retry_error(UpstreamHTTPError(404, "FMP"))
    assert not should_retry_error(InvalidResponse("FMP", "bad"))
    assert not should_retry_error(RuntimeError("401 unauthorized"))
    assert should_retry_error(RuntimeError("connect timeout"))
