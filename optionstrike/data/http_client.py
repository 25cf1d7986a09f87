from __future__ import annotations
from typing import Any, Dict, Optional
import asyncio
import logging

import httpx

from optionstrike.utils.error_handling import (
    InvalidResponse,
    UpstreamHTTPError,
    format_api_error_message,
    should_retry_error,
)

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 10.0


class ApiClient:
    """
    JSON-over-HTTP client for one upstream API.

    Every call has an explicit timeout. Failures are retried with exponential
    backoff capped at 10s; client errors (4xx) other than 429 fail immediately.
    """

    def __init__(
        self,
        base_url: str,
        source: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        client: Optional[httpx.AsyncClient] = None,
        sleep=asyncio.sleep,
    ):
        self.base_url = base_url.rstrip("/")
        self.source = source
        self._timeout = timeout
        self._max_retries = max_retries
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._sleep = sleep

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{endpoint}"
        last_error: Optional[Exception] = None

        for attempt in range(self._max_retries + 1):
            try:
                logger.debug(f"[{self.source}] GET {endpoint} (attempt {attempt + 1}/{self._max_retries + 1})")
                return await self._request(url, endpoint, params)
            except (UpstreamHTTPError, InvalidResponse) as e:
                last_error = e
                if not should_retry_error(e):
                    logger.error(format_api_error_message(self.source, error=e, additional_info="not retrying"))
                    raise
            except httpx.TimeoutException as e:
                last_error = UpstreamHTTPError(0, self.source, f"timeout after {self._timeout}s on {endpoint}")
                last_error.__cause__ = e
            except httpx.HTTPError as e:
                last_error = UpstreamHTTPError(0, self.source, f"network error on {endpoint}: {e}")
                last_error.__cause__ = e

            if attempt == self._max_retries:
                break

            delay = min(2 ** attempt, MAX_BACKOFF_SECONDS)
            logger.warning(f"[{self.source}] Request failed, retrying in {delay}s: {last_error}")
            await self._sleep(delay)

        logger.error(format_api_error_message(self.source, error=last_error, additional_info="max retries reached"))
        raise last_error

    async def _request(self, url: str, endpoint: str, params: Optional[Dict[str, Any]]) -> Any:
        resp = await self._client.get(url, params=params, timeout=self._timeout)

        if resp.status_code < 200 or resp.status_code >= 300:
            raise UpstreamHTTPError(resp.status_code, self.source, resp.text[:200])

        try:
            data = resp.json()
        except ValueError as e:
            raise InvalidResponse(self.source, f"Response from {endpoint} is not valid JSON") from e

        # Vendors report some failures inside a 200 body
        if isinstance(data, dict):
            if data.get("error"):
                raise UpstreamHTTPError(resp.status_code, self.source, str(data["error"]))
            if data.get("status") == "ERROR":
                raise UpstreamHTTPError(
                    resp.status_code, self.source, data.get("message") or "API returned error status"
                )
            if "Error Message" in data:
                raise UpstreamHTTPError(resp.status_code, self.source, str(data["Error Message"]))

        return data

    async def close(self) -> None:
        await self._client.aclose()
