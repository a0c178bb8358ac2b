from __future__ import annotations

from pnl_indexer.app.application.services.pnl_worker import PnlIndexerWorker
from pnl_indexer.app.config import settings
from pnl_indexer.app.infrastructure.db.engine import create_app_async_engine
from pnl_indexer.app.infrastructure.factories.pnl_indexer_factory import pnl_indexer_factory


async def pnl_worker_task(*, backend: str = "sqlalchemy") -> None:
    """Long-running task: index every PNL_INDEXER_INTERVAL_SECONDS until cancelled."""
    engine = create_app_async_engine()
    runner = pnl_indexer_factory(backend=backend, engine=engine)
    worker = PnlIndexerWorker(
        run=runner.run,
        interval_seconds=settings.run_interval_seconds,
        enabled=settings.enable_pnl_indexer,
    )
    try:
        await worker.run_forever()
    finally:
        await runner.aclose()
        await engine.dispose()
