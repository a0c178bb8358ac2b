from __future__ import annotations

import logging

from pnl_indexer.app.domain.models import RunReport
from pnl_indexer.app.infrastructure.db.engine import create_app_async_engine
from pnl_indexer.app.infrastructure.factories.pnl_indexer_factory import pnl_indexer_factory

logger = logging.getLogger(__name__)


async def index_lending_events_task(
    *,
    backend: str = "sqlalchemy",
) -> RunReport:
    """
    Task: one indexing run over every configured lending pool.

    - scans pool logs from the stored cursor up to head - finality,
    - upserts priced wallet_activity_events,
    - rebuilds wallet_pnl_positions / wallet_pnl_daily for touched wallets.
    """
    engine = create_app_async_engine()
    try:
        runner = pnl_indexer_factory(backend=backend, engine=engine)
        try:
            report = await runner.run()
        finally:
            await runner.aclose()
    finally:
        await engine.dispose()

    for p in report.protocols:
        logger.info(
            "%s: blocks=[%s, %s] chunks=%s events=%s wallets=%s",
            p.protocol,
            p.from_block,
            p.to_block,
            p.chunks,
            p.events,
            len(p.affected_wallets),
        )
    return report
