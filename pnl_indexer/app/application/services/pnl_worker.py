from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from pnl_indexer.app.domain.models import RunReport

logger = logging.getLogger(__name__)

RunFn = Callable[[], Awaitable[RunReport]]


class PnlIndexerWorker:
    """
    Periodic scheduler around one indexing run.

    At most one run is in flight; a tick that finds a run active is skipped,
    not queued. A failed run is logged and retried on the next tick.
    """

    def __init__(
        self,
        *,
        run: RunFn,
        interval_seconds: float = 600,
        enabled: bool = True,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._run = run
        self._interval = interval_seconds
        self._enabled = enabled
        self._lock = asyncio.Lock()
        self._ticks: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def trigger(self) -> RunReport | None:
        if not self._enabled or self._lock.locked():
            return None
        async with self._lock:
            return await self._run()

    async def tick(self) -> RunReport | None:
        try:
            return await self.trigger()
        except Exception:
            logger.exception("PnL indexer run failed")
            return None

    async def run_forever(self) -> None:
        if not self._enabled:
            logger.info("PnL indexer worker disabled via ENABLE_PNL_INDEXER=false")
            return

        logger.info("PnL indexer worker started: interval=%ss", self._interval)
        while True:
            # trigger() drops the tick while a run is still active
            task = asyncio.create_task(self.tick())
            self._ticks.add(task)
            task.add_done_callback(self._ticks.discard)
            await asyncio.sleep(self._interval)
