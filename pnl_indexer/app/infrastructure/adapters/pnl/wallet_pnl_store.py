from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Final, Sequence

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncEngine

from pnl_indexer.app.domain.models import WalletDailyPnl, WalletPosition
from pnl_indexer.app.infrastructure.db.models.pnl.wallet_pnl_daily import WalletPnlDailyDB
from pnl_indexer.app.infrastructure.db.models.pnl.wallet_pnl_pending import WalletPnlPendingDB
from pnl_indexer.app.infrastructure.db.models.pnl.wallet_pnl_positions import (
    WalletPnlPositionsDB,
)
from pnl_indexer.app.infrastructure.db.upsert import chunks

logger = logging.getLogger(__name__)

_DEFAULT_BATCH_SIZE: Final[int] = 500


class SqlAlchemyWalletPnlStore:
    """
    WalletPnlStore implementation on wallet_pnl_positions / wallet_pnl_daily.

    replace_wallet_pnl is a replace-set: DELETE every row of the wallet,
    then bulk INSERT the fresh replay, in a single transaction. Readers see
    either the previous replay or the new one, never a mix. The wallet's
    wallet_pnl_pending marker is cleared by the same transaction.
    """

    def __init__(self, engine: AsyncEngine, *, batch_size: int = _DEFAULT_BATCH_SIZE) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._engine = engine
        self._batch_size = batch_size

    async def replace_wallet_pnl(
        self,
        *,
        wallet_address: str,
        chain_id: int,
        positions: Sequence[WalletPosition],
        daily: Sequence[WalletDailyPnl],
    ) -> None:
        wallet = wallet_address.lower()
        now = datetime.now(timezone.utc)

        position_rows = [
            {
                "wallet_address": wallet,
                "chain_id": chain_id,
                "protocol": p.protocol,
                "asset_address": p.asset_address,
                "asset_symbol": p.asset_symbol,
                "principal_usd": p.principal_usd,
                "realized_pnl_usd": p.realized_pnl_usd,
                "total_deposit_usd": p.total_deposit_usd,
                "total_withdraw_usd": p.total_withdraw_usd,
                "last_event_block": p.last_event_block,
                "updated_at": now,
            }
            for p in positions
        ]
        daily_rows = [
            {
                "wallet_address": wallet,
                "chain_id": chain_id,
                "day": d.day,
                "realized_pnl_usd": d.realized_pnl_usd,
                "cumulative_realized_pnl_usd": d.cumulative_realized_pnl_usd,
                "event_count": d.event_count,
                "updated_at": now,
            }
            for d in daily
        ]

        async with self._engine.begin() as conn:
            for model in (WalletPnlPositionsDB, WalletPnlDailyDB, WalletPnlPendingDB):
                await conn.execute(
                    delete(model).where(
                        model.wallet_address == wallet,
                        model.chain_id == chain_id,
                    )
                )

            for batch in chunks(position_rows, self._batch_size):
                await conn.execute(insert(WalletPnlPositionsDB), list(batch))
            for batch in chunks(daily_rows, self._batch_size):
                await conn.execute(insert(WalletPnlDailyDB), list(batch))

        logger.debug(
            "Replaced wallet pnl: wallet=%s chain_id=%s positions=%s days=%s",
            wallet,
            chain_id,
            len(position_rows),
            len(daily_rows),
        )

    async def list_positions(
        self,
        *,
        wallet_address: str,
        chain_id: int,
    ) -> list[WalletPosition]:
        t = WalletPnlPositionsDB
        stmt = (
            select(
                t.wallet_address,
                t.chain_id,
                t.protocol,
                t.asset_address,
                t.asset_symbol,
                t.principal_usd,
                t.realized_pnl_usd,
                t.total_deposit_usd,
                t.total_withdraw_usd,
                t.last_event_block,
            )
            .where(t.wallet_address == wallet_address.lower(), t.chain_id == chain_id)
            .order_by(t.realized_pnl_usd.desc(), t.protocol, t.asset_address)
        )
        async with self._engine.connect() as conn:
            rows = (await conn.execute(stmt)).mappings().all()

        return [
            WalletPosition(
                wallet_address=r["wallet_address"],
                chain_id=r["chain_id"],
                protocol=r["protocol"],
                asset_address=r["asset_address"],
                asset_symbol=r["asset_symbol"],
                principal_usd=Decimal(r["principal_usd"]),
                realized_pnl_usd=Decimal(r["realized_pnl_usd"]),
                total_deposit_usd=Decimal(r["total_deposit_usd"]),
                total_withdraw_usd=Decimal(r["total_withdraw_usd"]),
                last_event_block=r["last_event_block"],
            )
            for r in rows
        ]

    async def list_daily(
        self,
        *,
        wallet_address: str,
        chain_id: int,
        since: date | None = None,
    ) -> list[WalletDailyPnl]:
        t = WalletPnlDailyDB
        stmt = select(
            t.wallet_address,
            t.chain_id,
            t.day,
            t.realized_pnl_usd,
            t.cumulative_realized_pnl_usd,
            t.event_count,
        ).where(t.wallet_address == wallet_address.lower(), t.chain_id == chain_id)
        if since is not None:
            stmt = stmt.where(t.day >= since)
        stmt = stmt.order_by(t.day.asc())

        async with self._engine.connect() as conn:
            rows = (await conn.execute(stmt)).mappings().all()

        return [
            WalletDailyPnl(
                wallet_address=r["wallet_address"],
                chain_id=r["chain_id"],
                day=r["day"],
                realized_pnl_usd=Decimal(r["realized_pnl_usd"]),
                cumulative_realized_pnl_usd=Decimal(r["cumulative_realized_pnl_usd"]),
                event_count=r["event_count"],
            )
            for r in rows
        ]
