"""
Error types and error handling utilities for API calls and data operations.

This module provides the exception hierarchy used across the pipeline and the
common error handling patterns for API rate limits, authentication errors and
network issues.
"""

from __future__ import annotations
from typing import Optional


class OptionStrikeError(Exception):
    """Base class for all pipeline errors."""


class RateLimitExceeded(OptionStrikeError):
    """A local rate gate or the upstream API refused further calls."""

    def __init__(self, source: str, retry_after: float = 0.0, message: Optional[str] = None):
        self.source = source
        self.retry_after = retry_after
        if message is None:
            message = (
                f"Rate limit exceeded for {source}. "
                f"Please wait {max(0, round(retry_after))} seconds."
            )
        super().__init__(message)


class InvalidResponse(OptionStrikeError):
    """Upstream returned a malformed or unexpected payload."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"[{source}] {message}")


class UpstreamHTTPError(OptionStrikeError):
    """Non-2xx response (or an error body) from an upstream API."""

    def __init__(self, status: int, source: str, message: str = ""):
        self.status = status
        self.source = source
        super().__init__(f"[{source}] HTTP {status}: {message}" if message else f"[{source}] HTTP {status}")


class PersistenceError(OptionStrikeError):
    """A write to the relational store failed."""


class NotEnoughData(OptionStrikeError):
    """Insufficient history to compute a derived metric."""


# Common API error keywords that indicate rate limits or authentication issues
API_ERROR_KEYWORDS = [
    'rate limit',
    '429',
    'too many requests',
    'limit exceeded',
    'quota',
    '403',
    '401',
    'payment required',
    '402',
    'timeout',
    'unauthorized',
    'forbidden',
]

RATE_LIMIT_KEYWORDS = ['rate limit', '429', 'too many requests', 'limit exceeded', 'quota']

RATE_LIMIT_USER_MESSAGE = (
    "Market data providers are rate limiting requests right now. "
    "Try again in a minute or switch to demo data."
)


def is_api_error(exception: Exception) -> bool:
    """
    Check if an exception represents an API error (rate limits, authentication
    issues, etc.) rather than a local failure.

    Args:
        exception: Exception to check

    Returns:
        True if this is an API error, False otherwise
    """
    if isinstance(exception, (RateLimitExceeded, UpstreamHTTPError)):
        return True
    error_str = str(exception).lower()
    return any(keyword in error_str for keyword in API_ERROR_KEYWORDS)


def is_rate_limit_error(exception: Exception) -> bool:
    """
    Check if an exception is rate-limit flavoured.

    Typed errors are checked first; anything else falls back to inspecting
    the message, since vendors report quota problems in free text.
    """
    if isinstance(exception, RateLimitExceeded):
        return True
    if isinstance(exception, UpstreamHTTPError) and exception.status == 429:
        return True
    error_str = str(exception).lower()
    return any(keyword in error_str for keyword in RATE_LIMIT_KEYWORDS)


def format_api_error_message(
    source: str,
    symbol: Optional[str] = None,
    date: Optional[str] = None,
    error: Optional[Exception] = None,
    additional_info: Optional[str] = None,
) -> str:
    """
    Format a standardized API error message.

    Args:
        source: Data source name (e.g., "FMP", "Polygon")
        symbol: Optional symbol that was being fetched
        date: Optional date or date range that was being fetched
        error: Optional exception that occurred
        additional_info: Optional additional information to include

    Returns:
        Formatted error message string

    Examples:
        >>> msg = format_api_error_message("Polygon", symbol="AAPL", error=e)
        >>> logger.error(msg)
    """
    parts = [f"[{source}]"]

    if symbol:
        parts.append(f"symbol={symbol}")
    if date:
        parts.append(f"date={date}")

    if error:
        parts.append(f"error: {error}")

    if additional_info:
        parts.append(additional_info)

    return " ".join(parts)


def should_retry_error(exception: Exception) -> bool:
    """
    Determine if an error should trigger a retry.

    Rate limits (429), 5xx responses, timeouts and transport failures are
    retryable. Other 4xx responses and malformed payloads are not.
    """
    if isinstance(exception, InvalidResponse):
        return False
    if isinstance(exception, UpstreamHTTPError):
        if exception.status == 429:
            return True
        if 400 <= exception.status < 500:
            return False
        return True

    error_str = str(exception).lower()

    # Don't retry authentication errors
    if any(keyword in error_str for keyword in ['401', '403', 'unauthorized', 'forbidden', 'payment required', '402']):
        return False

    # Retry rate limits and timeouts
    if any(keyword in error_str for keyword in ['rate limit', '429', 'too many requests', 'timeout']):
        return True

    return False


def user_facing_error_message(exception: Exception) -> str:
    """Message for a caller that has nothing cached to fall back on."""
    if is_rate_limit_error(exception):
        return RATE_LIMIT_USER_MESSAGE
    if isinstance(exception, PersistenceError):
        return "Recommendations could not be saved. Check the database connection."
    if isinstance(exception, InvalidResponse) or is_api_error(exception):
        return f"Market data provider error: {exception}"
    return f"Recommendation generation failed: {exception}"
