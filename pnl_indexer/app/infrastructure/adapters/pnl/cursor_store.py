from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine

from pnl_indexer.app.domain.models import IndexerCursor
from pnl_indexer.app.infrastructure.db.utc import as_utc
from pnl_indexer.app.infrastructure.db.models.pnl.pnl_indexer_state import PnlIndexerStateDB
from pnl_indexer.app.infrastructure.db.upsert import build_upsert


class SqlAlchemyIndexerCursorStore:
    """
    IndexerCursorStore implementation on pnl_indexer_state.

    Writes are upserts keyed by (chain_id, protocol); cursor_block and
    last_indexed_block always carry the same value.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def get_cursor(self, *, chain_id: int, protocol: str) -> IndexerCursor | None:
        t = PnlIndexerStateDB
        stmt = select(t.chain_id, t.protocol, t.cursor_block, t.updated_at).where(
            t.chain_id == chain_id,
            t.protocol == protocol,
        )
        async with self._engine.connect() as conn:
            row = (await conn.execute(stmt)).mappings().one_or_none()

        if row is None:
            return None

        return IndexerCursor(
            chain_id=row["chain_id"],
            protocol=row["protocol"],
            cursor_block=int(row["cursor_block"]),
            updated_at=as_utc(row["updated_at"]),
        )

    async def save_cursor(self, *, chain_id: int, protocol: str, cursor_block: int) -> None:
        async with self._engine.begin() as conn:
            stmt = build_upsert(conn, PnlIndexerStateDB, index_elements=("chain_id", "protocol"))
            await conn.execute(
                stmt,
                {
                    "chain_id": chain_id,
                    "protocol": protocol,
                    "cursor_block": cursor_block,
                    "last_indexed_block": cursor_block,
                    "updated_at": datetime.now(timezone.utc),
                },
            )
