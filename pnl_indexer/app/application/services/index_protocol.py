from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from pnl_indexer.app.application.services.block_times import BlockTimeResolver
from pnl_indexer.app.application.services.cursor_manager import CursorManager
from pnl_indexer.app.application.services.event_mapper import map_pool_event
from pnl_indexer.app.application.services.historical_prices import (
    HistoricalPriceResolver,
    usd_value,
)
from pnl_indexer.app.application.services.scan_pool_logs import (
    DEFAULT_MIN_WINDOW,
    scan_pool_logs,
)
from pnl_indexer.app.application.services.token_metadata import TokenMetadataResolver
from pnl_indexer.app.domain.models import (
    ActivityEvent,
    LendingPool,
    ProtocolIndexReport,
    RawPoolLog,
)
from pnl_indexer.app.domain.ports.out import (
    ActivityEventStore,
    LendingPoolChainReader,
    PoolEventDecoder,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanOptions:
    max_window: int = 1500
    min_window: int = DEFAULT_MIN_WINDOW
    lookback_blocks: int = 80_000
    finality_blocks: int = 20


@dataclass(frozen=True)
class PnlIndexerDependencies:
    reader: LendingPoolChainReader
    decoder: PoolEventDecoder
    event_store: ActivityEventStore
    cursors: CursorManager
    tokens: TokenMetadataResolver
    prices: HistoricalPriceResolver
    block_times: BlockTimeResolver


async def to_activity_events(
    *,
    logs: Sequence[RawPoolLog],
    deps: PnlIndexerDependencies,
    chain_id: int,
    protocol: str,
) -> list[ActivityEvent]:
    """
    Decode, map and enrich a window of raw pool logs.

    Logs that are not lending actions, or whose wallet is the zero address,
    are dropped silently.
    """
    events: list[ActivityEvent] = []
    for log in logs:
        decoded = deps.decoder.decode(log)
        if decoded is None:
            continue
        action = map_pool_event(decoded)
        if action is None:
            continue

        meta = await deps.tokens.resolve(action.asset_address)
        block_time = await deps.block_times.resolve(log.block_number)
        amount_token = Decimal(action.amount_raw).scaleb(-meta.decimals)
        price = await deps.prices.resolve(meta.symbol, block_time)

        events.append(
            ActivityEvent(
                chain_id=chain_id,
                protocol=protocol,
                wallet_address=action.wallet_address,
                action=action.action,
                asset_address=action.asset_address,
                asset_symbol=meta.symbol,
                amount_raw=action.amount_raw,
                amount_token=amount_token,
                amount_usd=usd_value(amount_token, price),
                tx_hash=log.tx_hash.lower(),
                log_index=log.log_index,
                block_number=log.block_number,
                block_time=block_time,
            )
        )
    return events


async def index_protocol(
    *,
    deps: PnlIndexerDependencies,
    chain_id: int,
    pool: LendingPool,
    safe_block: int,
    options: ScanOptions,
) -> ProtocolIndexReport:
    """
    Index one lending pool from its cursor up to safe_block.

    Every window is persisted before the cursor moves past it, so a failure
    mid-run leaves the cursor at the last fully written window.
    """
    start = await deps.cursors.start_block(
        protocol=pool.protocol,
        safe_block=safe_block,
        lookback_blocks=options.lookback_blocks,
    )
    report = ProtocolIndexReport(protocol=pool.protocol, from_block=start, to_block=start - 1)

    if start > safe_block:
        report.up_to_date = True
        logger.info(
            "Protocol up to date: chain_id=%s protocol=%s cursor=%s safe_block=%s",
            chain_id,
            pool.protocol,
            start - 1,
            safe_block,
        )
        return report

    logger.info(
        "Indexing lending pool: chain_id=%s protocol=%s pool=%s blocks=[%s, %s]",
        chain_id,
        pool.protocol,
        pool.pool_address,
        start,
        safe_block,
    )

    current = start
    while current <= safe_block:
        scan = await scan_pool_logs(
            reader=deps.reader,
            pool_address=pool.pool_address,
            topics=deps.decoder.topics,
            from_block=current,
            ceiling=safe_block,
            max_window=options.max_window,
            min_window=min(options.min_window, options.max_window),
        )

        events = await to_activity_events(
            logs=scan.logs,
            deps=deps,
            chain_id=chain_id,
            protocol=pool.protocol,
        )
        if events:
            await deps.event_store.upsert_events(events)
        await deps.cursors.advance(protocol=pool.protocol, block=scan.to_block)

        report.chunks += 1
        report.events += len(events)
        report.affected_wallets.update(e.wallet_address for e in events)
        report.to_block = scan.to_block

        logger.debug(
            "Window indexed: protocol=%s blocks=[%s, %s] logs=%s events=%s",
            pool.protocol,
            scan.from_block,
            scan.to_block,
            len(scan.logs),
            len(events),
        )
        current = scan.to_block + 1

    report.up_to_date = True
    logger.info(
        "Finished lending pool: chain_id=%s protocol=%s blocks=[%s, %s] chunks=%s events=%s wallets=%s",
        chain_id,
        pool.protocol,
        report.from_block,
        report.to_block,
        report.chunks,
        report.events,
        len(report.affected_wallets),
    )
    return report
