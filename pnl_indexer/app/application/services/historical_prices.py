from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Final

from pnl_indexer.app.domain.assets import STABLE_SYMBOLS, SYMBOL_TO_COINGECKO_ID, normalize_symbol
from pnl_indexer.app.domain.ports.out import HistoricalPriceSource, KeyValueCache

logger = logging.getLogger(__name__)

USD_QUANT: Final[Decimal] = Decimal("0.00000001")
STABLE_PRICE: Final[Decimal] = Decimal(1)


def utc_day(ts: datetime) -> date:
    if ts.tzinfo is None:
        return ts.date()
    return ts.astimezone(timezone.utc).date()


def usd_value(amount_token: Decimal, price: Decimal | None) -> Decimal | None:
    if price is None:
        return None
    return (amount_token * price).quantize(USD_QUANT)


class HistoricalPriceResolver:
    """
    Resolve (symbol, timestamp) to a USD price for that UTC calendar day.

    - stablecoins short-circuit to exactly 1,
    - other symbols go through the CoinGecko id table,
    - answers (misses included) are cached per (price id, day) until
      clear_cache(), which the runner calls at the start of every run.

    Returns None for unmapped symbols and failed lookups.
    """

    def __init__(
        self,
        *,
        source: HistoricalPriceSource,
        cache: KeyValueCache[tuple[str, date], Decimal | None],
    ) -> None:
        self._source = source
        self._cache = cache

    async def resolve(self, symbol: str, at: datetime) -> Decimal | None:
        normalized = normalize_symbol(symbol)
        if normalized in STABLE_SYMBOLS:
            return STABLE_PRICE

        price_id = SYMBOL_TO_COINGECKO_ID.get(normalized)
        if price_id is None:
            return None

        key = (price_id, utc_day(at))
        if key in self._cache:
            return self._cache.get(key)

        try:
            price = await self._source.fetch_usd_price(price_id=price_id, day=key[1])
        except Exception:
            logger.warning("Price lookup failed for %s on %s", price_id, key[1], exc_info=True)
            price = None

        self._cache.set(key, price)
        return price

    def clear_cache(self) -> None:
        self._cache.clear()
