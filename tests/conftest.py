"""Pytest configuration and fixtures."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable

import pytest
from eth_abi import encode as abi_encode
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from pnl_indexer.app.domain.models import ActivityEvent, RawPoolLog
from pnl_indexer.app.infrastructure.db.db_base import BaseDB
from pnl_indexer.app.infrastructure.db.models.pnl import (  # noqa: F401
    pnl_indexer_state,
    wallet_activity_events,
    wallet_pnl_daily,
    wallet_pnl_pending,
    wallet_pnl_positions,
)
from pnl_indexer.app.infrastructure.decoders.lending_pool.pool_events_decoder import (
    LENDING_POOL_EVENTS,
    PoolEventAbi,
)

WALLET = "0x1111111111111111111111111111111111111111"
OTHER_WALLET = "0x2222222222222222222222222222222222222222"
WETH = "0x82af49447d8a07e3bd95bd0d56f35241523fbab1"
USDC = "0xaf88d065e77c8cc2239327c5edb3a432268e5831"
AAVE_POOL = "0x794a61358d6845594f94dc1db02a252b5b4814ad"
CHAIN_ID = 42161


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
async def async_engine():
    """In-memory SQLite engine with every pnl table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(BaseDB.metadata.create_all)
    yield engine
    await engine.dispose()


# ============================================================================
# Raw pool logs
# ============================================================================


def find_event_abi(signature: str) -> PoolEventAbi:
    for evt in LENDING_POOL_EVENTS:
        if evt.signature == signature:
            return evt
    raise KeyError(signature)


def build_pool_log(
    signature: str,
    args: dict[str, Any],
    *,
    block_number: int = 100,
    log_index: int = 0,
    tx_hash: str | None = None,
    address: str = AAVE_POOL,
) -> RawPoolLog:
    """Encode `args` the way a pool contract would emit them."""
    evt = find_event_abi(signature)
    topics = [evt.topic0]
    data_types: list[str] = []
    data_values: list[Any] = []
    for inp in evt.inputs:
        if inp.indexed:
            topics.append(abi_encode([inp.type], [args[inp.name]]))
        else:
            data_types.append(inp.type)
            data_values.append(args[inp.name])

    return RawPoolLog(
        address=address,
        topics=tuple(topics),
        data=abi_encode(data_types, data_values),
        block_number=block_number,
        tx_hash=tx_hash or "0x" + f"{block_number:032x}{log_index:032x}",
        log_index=log_index,
    )


@pytest.fixture
def pool_log() -> Callable[..., RawPoolLog]:
    return build_pool_log


# ============================================================================
# Activity events
# ============================================================================


def build_activity_event(
    action: str,
    amount_usd: Decimal | str | None,
    *,
    day: int = 1,
    block_number: int | None = None,
    log_index: int = 0,
    wallet: str = WALLET,
    asset: str = WETH,
    symbol: str = "WETH",
    protocol: str = "aave-v3",
    amount_token: Decimal | str = "1",
) -> ActivityEvent:
    block = block_number if block_number is not None else day * 1_000 + log_index
    return ActivityEvent(
        chain_id=CHAIN_ID,
        protocol=protocol,
        wallet_address=wallet,
        action=action,  # type: ignore[arg-type]
        asset_address=asset,
        asset_symbol=symbol,
        amount_raw=int(Decimal(amount_token) * 10**6),
        amount_token=Decimal(amount_token),
        amount_usd=None if amount_usd is None else Decimal(amount_usd),
        tx_hash="0x" + f"{block:064x}",
        log_index=log_index,
        block_number=block,
        block_time=datetime(2025, 1, day, 12, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def activity_event() -> Callable[..., ActivityEvent]:
    return build_activity_event
