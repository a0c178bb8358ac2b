from __future__ import annotations

import logging

from pnl_indexer.app.application.services.rebuild_wallet_pnl import rebuild_wallet_pnl
from pnl_indexer.app.config import settings
from pnl_indexer.app.infrastructure.db.engine import create_app_async_engine
from pnl_indexer.app.infrastructure.factories.pnl_indexer_factory import pnl_stores_factory

logger = logging.getLogger(__name__)


async def rebuild_wallet_pnl_task(
    *,
    wallet_address: str,
    chain_id: int | None = None,
    backend: str = "sqlalchemy",
) -> None:
    """Task: recompute one wallet's positions and daily PnL from stored events."""
    chain_id = chain_id or settings.chain_id
    engine = create_app_async_engine()
    try:
        stores = pnl_stores_factory(backend=backend, engine=engine)
        ledger = await rebuild_wallet_pnl(
            event_store=stores.events,
            pnl_store=stores.pnl,
            wallet_address=wallet_address,
            chain_id=chain_id,
        )
    finally:
        await engine.dispose()

    logger.info(
        "Rebuilt wallet %s on chain %s: positions=%s days=%s",
        wallet_address.lower(),
        chain_id,
        len(ledger.positions),
        len(ledger.daily),
    )
