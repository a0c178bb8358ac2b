from __future__ import annotations

import logging

from pnl_indexer.app.domain.errors import CursorRegressionError
from pnl_indexer.app.domain.ports.out import IndexerCursorStore

logger = logging.getLogger(__name__)


def bootstrap_start_block(*, safe_block: int, lookback_blocks: int) -> int:
    if lookback_blocks < 0:
        raise ValueError("lookback_blocks must be non-negative")
    return max(0, safe_block - lookback_blocks)


class CursorManager:
    """
    Owns pnl_indexer_state for one chain.

    States: uninitialized -> bootstrapped -> advancing. The stored value is
    always the last block whose events are durably persisted, so a run
    resumes at cursor + 1. advance() must only be called after the chunk's
    events were written.
    """

    def __init__(self, *, store: IndexerCursorStore, chain_id: int) -> None:
        self._store = store
        self._chain_id = chain_id

    async def start_block(self, *, protocol: str, safe_block: int, lookback_blocks: int) -> int:
        cursor = await self._store.get_cursor(chain_id=self._chain_id, protocol=protocol)
        if cursor is not None:
            return cursor.cursor_block + 1

        start = bootstrap_start_block(safe_block=safe_block, lookback_blocks=lookback_blocks)
        # Nothing persisted yet: remember the block just before the start
        await self._store.save_cursor(
            chain_id=self._chain_id,
            protocol=protocol,
            cursor_block=start - 1,
        )
        logger.info(
            "Bootstrapped cursor: chain_id=%s protocol=%s start_block=%s",
            self._chain_id,
            protocol,
            start,
        )
        return start

    async def advance(self, *, protocol: str, block: int) -> None:
        cursor = await self._store.get_cursor(chain_id=self._chain_id, protocol=protocol)
        if cursor is not None and block < cursor.cursor_block:
            raise CursorRegressionError(
                chain_id=self._chain_id,
                protocol=protocol,
                current=cursor.cursor_block,
                requested=block,
            )
        await self._store.save_cursor(chain_id=self._chain_id, protocol=protocol, cursor_block=block)
