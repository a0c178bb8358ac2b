from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from pnl_indexer.app.domain.ports.out import HistoricalPriceSource

logger = logging.getLogger(__name__)

DEFAULT_COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"


class CoinGeckoHistoricalPriceFetcher(HistoricalPriceSource):
    """
    Day-granular USD prices from CoinGecko's /coins/{id}/history endpoint.

    Non-2xx answers and payloads without market data are treated as "no
    price" rather than errors.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        base_url: str = DEFAULT_COINGECKO_BASE_URL,
        api_key: str | None = None,
    ) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key

    async def fetch_usd_price(self, *, price_id: str, day: date) -> Decimal | None:
        headers = {"accept": "application/json"}
        if self._api_key:
            headers["x-cg-demo-api-key"] = self._api_key

        r = await self._client.get(
            f"{self._base_url}/coins/{price_id}/history",
            params={"date": day.strftime("%d-%m-%Y"), "localization": "false"},
            headers=headers,
        )
        if r.status_code != 200:
            logger.debug("CoinGecko %s for %s on %s", r.status_code, price_id, day)
            return None

        return _usd_price(r.json())

    async def aclose(self) -> None:
        await self._client.aclose()


def _usd_price(payload: Any) -> Decimal | None:
    try:
        usd = payload["market_data"]["current_price"]["usd"]
    except (KeyError, TypeError):
        return None
    if isinstance(usd, bool) or not isinstance(usd, (int, float, str)):
        return None
    try:
        price = Decimal(str(usd))
    except InvalidOperation:
        return None
    return price if price.is_finite() else None
