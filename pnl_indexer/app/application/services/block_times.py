from __future__ import annotations

from datetime import datetime

from pnl_indexer.app.domain.ports.out import KeyValueCache, LendingPoolChainReader


class BlockTimeResolver:
    """Memoized block number -> UTC block timestamp."""

    def __init__(
        self,
        *,
        reader: LendingPoolChainReader,
        cache: KeyValueCache[int, datetime],
    ) -> None:
        self._reader = reader
        self._cache = cache

    async def resolve(self, block_number: int) -> datetime:
        cached = self._cache.get(block_number)
        if cached is not None:
            return cached
        ts = await self._reader.get_block_timestamp(block_number)
        self._cache.set(block_number, ts)
        return ts
