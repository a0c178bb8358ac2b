from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Final, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine

from pnl_indexer.app.domain.models import ActivityEvent
from pnl_indexer.app.infrastructure.db.models.pnl.wallet_activity_events import (
    WalletActivityEventsDB,
)
from pnl_indexer.app.infrastructure.db.models.pnl.wallet_pnl_pending import WalletPnlPendingDB
from pnl_indexer.app.infrastructure.db.upsert import build_upsert, chunks
from pnl_indexer.app.infrastructure.db.utc import as_utc

logger = logging.getLogger(__name__)

_DEFAULT_BATCH_SIZE: Final[int] = 500
_EVENT_KEY: Final[tuple[str, ...]] = ("chain_id", "tx_hash", "log_index")
_PENDING_KEY: Final[tuple[str, ...]] = ("wallet_address", "chain_id")


class SqlAlchemyActivityEventStore:
    """
    ActivityEventStore implementation on wallet_activity_events.

    Strategy:
    - bulk INSERT ... ON CONFLICT (chain_id, tx_hash, log_index) DO UPDATE,
      so a replayed block range rewrites rows with identical values;
    - batches of batch_size rows, all inside one transaction per call,
      so a failed batch leaves nothing of the chunk behind;
    - every touched wallet is marked in wallet_pnl_pending in that same
      transaction.
    """

    def __init__(self, engine: AsyncEngine, *, batch_size: int = _DEFAULT_BATCH_SIZE) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._engine = engine
        self._batch_size = batch_size

    async def upsert_events(self, events: Sequence[ActivityEvent]) -> int:
        if not events:
            return 0

        now = datetime.now(timezone.utc)
        payload = [self._to_row(e, updated_at=now) for e in events]

        pending = [
            {"wallet_address": wallet, "chain_id": chain_id, "marked_at": now}
            for wallet, chain_id in sorted({(r["wallet_address"], r["chain_id"]) for r in payload})
        ]

        async with self._engine.begin() as conn:
            stmt = build_upsert(conn, WalletActivityEventsDB, index_elements=_EVENT_KEY)
            for batch_idx, batch in enumerate(chunks(payload, self._batch_size), start=1):
                await conn.execute(stmt, list(batch))
                logger.debug(
                    "Upserted activity batch %s (%s rows)",
                    batch_idx,
                    len(batch),
                )

            # Queue the ledger rebuild atomically with the events
            mark = build_upsert(conn, WalletPnlPendingDB, index_elements=_PENDING_KEY)
            for batch in chunks(pending, self._batch_size):
                await conn.execute(mark, list(batch))

        return len(payload)

    async def list_pending_wallets(self, *, chain_id: int) -> list[str]:
        t = WalletPnlPendingDB
        stmt = select(t.wallet_address).where(t.chain_id == chain_id).order_by(t.wallet_address)
        async with self._engine.connect() as conn:
            return list((await conn.execute(stmt)).scalars().all())

    async def list_wallet_events(
        self,
        *,
        wallet_address: str,
        chain_id: int,
    ) -> list[ActivityEvent]:
        t = WalletActivityEventsDB
        stmt = (
            select(
                t.chain_id,
                t.protocol,
                t.wallet_address,
                t.action,
                t.asset_address,
                t.asset_symbol,
                t.amount_raw,
                t.amount_token,
                t.amount_usd,
                t.tx_hash,
                t.log_index,
                t.block_number,
                t.block_time,
            )
            .where(
                t.wallet_address == wallet_address.lower(),
                t.chain_id == chain_id,
            )
            # Replay order is load-bearing for the ledger
            .order_by(t.block_number.asc(), t.log_index.asc())
        )

        async with self._engine.connect() as conn:
            result = await conn.execute(stmt)
            rows = result.mappings().all()

        return [
            ActivityEvent(
                chain_id=r["chain_id"],
                protocol=r["protocol"],
                wallet_address=r["wallet_address"],
                action=r["action"],
                asset_address=r["asset_address"],
                asset_symbol=r["asset_symbol"],
                amount_raw=int(r["amount_raw"]),
                amount_token=Decimal(r["amount_token"]),
                amount_usd=None if r["amount_usd"] is None else Decimal(r["amount_usd"]),
                tx_hash=r["tx_hash"],
                log_index=r["log_index"],
                block_number=r["block_number"],
                block_time=as_utc(r["block_time"]),
            )
            for r in rows
        ]

    @staticmethod
    def _to_row(event: ActivityEvent, *, updated_at: datetime) -> dict[str, Any]:
        return {
            "chain_id": event.chain_id,
            "protocol": event.protocol,
            "wallet_address": event.wallet_address.lower(),
            "action": event.action,
            "asset_address": event.asset_address.lower(),
            "asset_symbol": event.asset_symbol,
            "amount_raw": Decimal(event.amount_raw),
            "amount_token": event.amount_token,
            "amount_usd": event.amount_usd,
            "tx_hash": event.tx_hash.lower(),
            "log_index": event.log_index,
            "block_number": event.block_number,
            "block_time": event.block_time,
            "updated_at": updated_at,
        }
