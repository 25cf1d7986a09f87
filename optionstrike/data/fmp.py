from __future__ import annotations
from datetime import date
from typing import Any, Dict, List, Optional
import logging

import httpx

from optionstrike.data.base import EarningsDataSource
from optionstrike.data.http_client import ApiClient
from optionstrike.utils.error_handling import InvalidResponse

logger = logging.getLogger(__name__)


class FmpEarningsSource(EarningsDataSource):
    """Financial Modeling Prep earnings calendar and company data."""

    BASE_URL = "https://financialmodelingprep.com/api/v3"
    name = "FMP"

    def __init__(
        self,
        api_key: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
    ):
        if not api_key or not api_key.strip():
            error_msg = (
                "❌ Authentication error: FMP API key is missing or empty.\n"
                "   Set FMP_API_KEY in the environment or data_sources.fmp.api_key "
                "in config/secrets.yaml, or enable USE_MOCK_DATA."
            )
            logger.error(error_msg)
            raise ValueError(error_msg)

        self._api_key = api_key.strip()
        self._api = ApiClient(
            base_url or self.BASE_URL,
            source=self.name,
            timeout=timeout,
            max_retries=max_retries,
            client=client,
        )

    def _params(self, **params: Any) -> Dict[str, Any]:
        params["apikey"] = self._api_key
        return params

    async def fetch_earnings_calendar(self, from_date: date, to_date: date) -> List[Dict[str, Any]]:
        return await self._api.get(
            "/earning_calendar",
            self._params(**{"from": from_date.isoformat(), "to": to_date.isoformat()}),
        )

    async def fetch_eps_history(self, symbol: str, limit: int = 8) -> List[Dict[str, Any]]:
        return await self._api.get(f"/historical/earning_calendar/{symbol}", self._params(limit=limit))

    async def fetch_company_profile(self, symbol: str) -> List[Dict[str, Any]]:
        return await self._api.get(f"/profile/{symbol}", self._params())

    async def ping(self) -> str:
        data = await self._api.get("/profile/AAPL", self._params())
        if not isinstance(data, list) or not data:
            raise InvalidResponse(self.name, "Invalid response from FMP API")
        return "FMP API is accessible"

    async def close(self) -> None:
        await self._api.close()
