from __future__ import annotations

import logging
from typing import Final, Sequence

from pnl_indexer.app.domain.errors import BlockWindowExhaustedError
from pnl_indexer.app.domain.models import BlockRange, LogScanResult
from pnl_indexer.app.domain.ports.out import LendingPoolChainReader

logger = logging.getLogger(__name__)

DEFAULT_MIN_WINDOW: Final[int] = 64


async def scan_pool_logs(
    *,
    reader: LendingPoolChainReader,
    pool_address: str,
    topics: Sequence[bytes],
    from_block: int,
    ceiling: int,
    max_window: int,
    min_window: int = DEFAULT_MIN_WINDOW,
) -> LogScanResult:
    """
    Fetch pool logs for one block window starting at from_block.

    The first attempt covers max_window blocks (capped at ceiling). Any
    provider/transport error halves the window and retries from the same
    from_block; once the window would drop below min_window the run fails
    with BlockWindowExhaustedError chained to the last provider error.

    The returned to_block is where the successful window ended, which can
    be short of ceiling when the provider throttled us.
    """
    BlockRange(from_block=from_block, to_block=ceiling).validate()
    if max_window <= 0 or min_window <= 0:
        raise ValueError("window sizes must be positive")
    if min_window > max_window:
        raise ValueError("min_window must be <= max_window")

    window = max_window
    while True:
        to_block = min(from_block + window - 1, ceiling)
        try:
            logs = await reader.get_logs(
                address=pool_address,
                topics=topics,
                from_block=from_block,
                to_block=to_block,
            )
        except Exception as exc:
            window //= 2
            if window < min_window:
                raise BlockWindowExhaustedError(
                    f"eth_getLogs failed for {pool_address} from block {from_block} "
                    f"down to the minimum window of {min_window} blocks"
                ) from exc
            logger.warning(
                "eth_getLogs failed for blocks [%s, %s] (%s); retrying with window=%s",
                from_block,
                to_block,
                exc,
                window,
            )
            continue

        return LogScanResult(logs=logs, from_block=from_block, to_block=to_block)
