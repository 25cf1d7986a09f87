"""
Utility modules for the recommendation pipeline.

This module exports the error types and the rate limiter for convenience.
"""

from optionstrike.utils.error_handling import (
    OptionStrikeError,
    RateLimitExceeded,
    InvalidResponse,
    UpstreamHTTPError,
    PersistenceError,
    NotEnoughData,
    is_api_error,
    is_rate_limit_error,
    format_api_error_message,
    should_retry_error,
    user_facing_error_message,
)
from optionstrike.utils.rate_limiter import (
    RateLimiter,
    create_polygon_limiter,
    create_fmp_limiter,
)
from optionstrike.utils.timestamp import utc_now, parse_date, to_utc_datetime

__all__ = [
    "OptionStrikeError",
    "RateLimitExceeded",
    "InvalidResponse",
    "UpstreamHTTPError",
    "PersistenceError",
    "NotEnoughData",
    "is_api_error",
    "is_rate_limit_error",
    "format_api_error_message",
    "should_retry_error",
    "user_facing_error_message",
    "RateLimiter",
    "create_polygon_limiter",
    "create_fmp_limiter",
    "utc_now",
    "parse_date",
    "to_utc_datetime",
]
