from __future__ import annotations
from typing import Any, Dict, Optional
import logging

import httpx

from optionstrike.data.base import OptionsDataSource
from optionstrike.data.http_client import ApiClient

logger = logging.getLogger(__name__)


class PolygonOptionsSource(OptionsDataSource):
    """Polygon.io previous-close aggregates and options snapshots."""

    BASE_URL = "https://api.polygon.io"
    name = "Polygon.io"

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
                "❌ Authentication error: Polygon API key is missing or empty.\n"
                "   Set POLYGON_API_KEY in the environment or data_sources.polygon.api_key "
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

    async def fetch_previous_close(self, symbol: str) -> Dict[str, Any]:
        return await self._api.get(
            f"/v2/aggs/ticker/{symbol}/prev",
            {"adjusted": "true", "apikey": self._api_key},
        )

    async def fetch_options_snapshot(self, symbol: str) -> Dict[str, Any]:
        return await self._api.get(f"/v3/snapshot/options/{symbol}", {"apikey": self._api_key})

    async def ping(self) -> str:
        data = await self._api.get("/v1/marketstatus/now", {"apikey": self._api_key})
        market = data.get("market", "unknown") if isinstance(data, dict) else "unknown"
        return f"Polygon API is accessible. Market: {market}"

    async def close(self) -> None:
        await self._api.close()
