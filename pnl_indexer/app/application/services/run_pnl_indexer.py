from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from pnl_indexer.app.application.services.index_protocol import (
    PnlIndexerDependencies,
    ScanOptions,
    index_protocol,
)
from pnl_indexer.app.application.services.rebuild_wallet_pnl import rebuild_wallet_pnl
from pnl_indexer.app.domain.models import ZERO_ADDRESS, LendingPool, RunReport
from pnl_indexer.app.domain.ports.out import WalletPnlStore

logger = logging.getLogger(__name__)


def safe_block_for(head: int, finality_blocks: int) -> int:
    if finality_blocks < 0:
        raise ValueError("finality_blocks must be non-negative")
    return head - finality_blocks if head > finality_blocks else head


def configured_pools(pools: Sequence[LendingPool]) -> list[LendingPool]:
    return [
        p
        for p in pools
        if p.pool_address and p.pool_address.lower() != ZERO_ADDRESS
    ]


async def run_pnl_indexer(
    *,
    deps: PnlIndexerDependencies,
    pnl_store: WalletPnlStore,
    chain_id: int,
    pools: Sequence[LendingPool],
    options: ScanOptions,
    rebuild_concurrency: int = 1,
) -> RunReport:
    """
    One full indexing run.

    Pools are indexed sequentially up to head - finality. Afterwards, and
    also when indexing fails part way, every wallet still marked pending
    in the event store gets its ledger rebuilt from scratch, so committed
    events are never left without their derived rows.

    Token and price caches are dropped at the start of the run, so a
    lookup that failed on a previous run is retried.
    """
    active = configured_pools(pools)
    if not active:
        raise ValueError("No lending pools configured")
    if rebuild_concurrency <= 0:
        raise ValueError("rebuild_concurrency must be positive")

    deps.tokens.clear_cache()
    deps.prices.clear_cache()

    head = await deps.reader.get_block_number()
    report = RunReport(
        chain_id=chain_id,
        latest_block=head,
        safe_block=safe_block_for(head, options.finality_blocks),
    )

    try:
        for pool in active:
            protocol_report = await index_protocol(
                deps=deps,
                chain_id=chain_id,
                pool=pool,
                safe_block=report.safe_block,
                options=options,
            )
            report.protocols.append(protocol_report)
    finally:
        pending = await deps.event_store.list_pending_wallets(chain_id=chain_id)
        await _rebuild_wallets(
            deps=deps,
            pnl_store=pnl_store,
            chain_id=chain_id,
            wallets=pending,
            concurrency=rebuild_concurrency,
        )
        report.wallets_rebuilt = len(pending)

    logger.info(
        "PnL indexer run complete: chain_id=%s head=%s safe_block=%s events=%s wallets_rebuilt=%s",
        chain_id,
        head,
        report.safe_block,
        sum(p.events for p in report.protocols),
        report.wallets_rebuilt,
    )
    return report


async def _rebuild_wallets(
    *,
    deps: PnlIndexerDependencies,
    pnl_store: WalletPnlStore,
    chain_id: int,
    wallets: Sequence[str],
    concurrency: int,
) -> None:
    if not wallets:
        return

    semaphore = asyncio.Semaphore(concurrency)

    async def _rebuild(wallet: str) -> None:
        async with semaphore:
            await rebuild_wallet_pnl(
                event_store=deps.event_store,
                pnl_store=pnl_store,
                wallet_address=wallet,
                chain_id=chain_id,
            )

    async with asyncio.TaskGroup() as tg:
        for wallet in wallets:
            tg.create_task(_rebuild(wallet))
