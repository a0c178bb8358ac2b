from __future__ import annotations

import logging

from pnl_indexer.app.domain.assets import (
    DEFAULT_DECIMALS,
    KNOWN_TOKEN_METADATA,
    UNKNOWN_SYMBOL,
    normalize_symbol,
)
from pnl_indexer.app.domain.models import TokenMetadata
from pnl_indexer.app.domain.ports.out import Erc20TokenMetadataFetcher, KeyValueCache

logger = logging.getLogger(__name__)


class TokenMetadataResolver:
    """
    Resolve a reserve address to {symbol, decimals}.

    Order: cache -> static known-token table -> on-chain eth_call -> defaults
    (UNKNOWN / 18). Failures never raise: a bad token only costs precision.
    """

    def __init__(
        self,
        *,
        fetcher: Erc20TokenMetadataFetcher,
        cache: KeyValueCache[str, TokenMetadata],
    ) -> None:
        self._fetcher = fetcher
        self._cache = cache

    async def resolve(self, asset_address: str) -> TokenMetadata:
        key = asset_address.lower()
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        known = KNOWN_TOKEN_METADATA.get(key)
        if known is not None:
            self._cache.set(key, known)
            return known

        try:
            meta = await self._fetcher.fetch(token_address=key)
        except Exception:
            logger.warning("Token metadata lookup failed for %s; using defaults", key, exc_info=True)
            meta = {}

        raw_decimals = meta.get("decimals")
        decimals = raw_decimals if isinstance(raw_decimals, int) and 0 <= raw_decimals <= 255 else None

        resolved = TokenMetadata(
            symbol=normalize_symbol(meta.get("symbol") or UNKNOWN_SYMBOL),
            decimals=DEFAULT_DECIMALS if decimals is None else decimals,
        )
        if decimals is None or resolved.symbol == UNKNOWN_SYMBOL:
            logger.info("Incomplete token metadata for %s: %s", key, resolved)

        self._cache.set(key, resolved)
        return resolved

    def clear_cache(self) -> None:
        self._cache.clear()
