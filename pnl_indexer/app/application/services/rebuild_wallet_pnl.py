from __future__ import annotations

import logging

from pnl_indexer.app.application.services.ledger import replay_wallet_ledger
from pnl_indexer.app.domain.models import WalletLedger
from pnl_indexer.app.domain.ports.out import ActivityEventStore, WalletPnlStore

logger = logging.getLogger(__name__)


async def rebuild_wallet_pnl(
    *,
    event_store: ActivityEventStore,
    pnl_store: WalletPnlStore,
    wallet_address: str,
    chain_id: int,
) -> WalletLedger:
    wallet = wallet_address.lower()
    events = await event_store.list_wallet_events(wallet_address=wallet, chain_id=chain_id)
    ledger = replay_wallet_ledger(wallet_address=wallet, chain_id=chain_id, events=events)

    await pnl_store.replace_wallet_pnl(
        wallet_address=wallet,
        chain_id=chain_id,
        positions=ledger.positions,
        daily=ledger.daily,
    )

    logger.debug(
        "Rebuilt wallet pnl: wallet=%s chain_id=%s events=%s positions=%s days=%s",
        wallet,
        chain_id,
        len(events),
        len(ledger.positions),
        len(ledger.daily),
    )
    return ledger
