"""End-to-end indexing runs against an in-memory chain and SQLite."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Sequence
from unittest.mock import AsyncMock

import pytest
from conftest import AAVE_POOL, CHAIN_ID, OTHER_WALLET, WALLET, WETH, build_pool_log
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from pnl_indexer.app.application.services.block_times import BlockTimeResolver
from pnl_indexer.app.application.services.cursor_manager import CursorManager
from pnl_indexer.app.application.services.historical_prices import HistoricalPriceResolver
from pnl_indexer.app.application.services.index_protocol import (
    PnlIndexerDependencies,
    ScanOptions,
    index_protocol,
)
from pnl_indexer.app.application.services.pnl_worker import PnlIndexerWorker
from pnl_indexer.app.application.services.run_pnl_indexer import (
    run_pnl_indexer,
    safe_block_for,
)
from pnl_indexer.app.application.services.token_metadata import TokenMetadataResolver
from pnl_indexer.app.domain.errors import BlockWindowExhaustedError
from pnl_indexer.app.domain.models import ZERO_ADDRESS, LendingPool, RawPoolLog
from pnl_indexer.app.infrastructure.adapters.pnl.activity_events_store import (
    SqlAlchemyActivityEventStore,
)
from pnl_indexer.app.infrastructure.adapters.pnl.cursor_store import SqlAlchemyIndexerCursorStore
from pnl_indexer.app.infrastructure.adapters.pnl.wallet_pnl_store import SqlAlchemyWalletPnlStore
from pnl_indexer.app.infrastructure.cache import InMemoryCache
from pnl_indexer.app.infrastructure.db.models.pnl.wallet_activity_events import (
    WalletActivityEventsDB,
)
from pnl_indexer.app.infrastructure.decoders.lending_pool.pool_events_decoder import (
    LendingPoolEventDecoder,
)

GENESIS = datetime(2025, 1, 1, tzinfo=timezone.utc)
FIRST_BLOCK = 9_000
SUPPLY = "Supply(address,address,address,uint256,uint16)"
WITHDRAW = "Withdraw(address,address,address,uint256)"


class FakeChain:
    """In-memory pool logs; one block every 100 seconds from FIRST_BLOCK."""

    def __init__(self, logs: Sequence[RawPoolLog], *, head: int, max_span: int = 100_000) -> None:
        self.logs = list(logs)
        self.head = head
        self.max_span = max_span
        self.fail_from: int | None = None
        self.calls: list[tuple[int, int]] = []

    async def get_block_number(self) -> int:
        return self.head

    async def get_block_timestamp(self, block_number: int) -> datetime:
        return GENESIS + timedelta(seconds=(block_number - FIRST_BLOCK) * 100)

    async def get_logs(self, *, address, topics, from_block, to_block):
        self.calls.append((from_block, to_block))
        if to_block - from_block + 1 > self.max_span:
            raise ValueError("block range is too wide")
        if self.fail_from is not None and to_block >= self.fail_from:
            raise ConnectionError("upstream unavailable")
        wanted = set(topics)
        return [
            log
            for log in self.logs
            if log.address == address.lower()
            and from_block <= log.block_number <= to_block
            and log.topics[0] in wanted
        ]


class RecordingCursorStore(SqlAlchemyIndexerCursorStore):
    def __init__(self, engine) -> None:
        super().__init__(engine)
        self.saved: list[int] = []

    async def save_cursor(self, *, chain_id, protocol, cursor_block):
        self.saved.append(cursor_block)
        await super().save_cursor(chain_id=chain_id, protocol=protocol, cursor_block=cursor_block)


def weth_price(*, price_id, day):
    return {1: Decimal("2000"), 2: Decimal("2500")}.get(day.day)


def chain_logs() -> list[RawPoolLog]:
    return [
        # day 1: supply 1 WETH @ 2000
        build_pool_log(
            SUPPLY,
            {"reserve": WETH, "user": WALLET, "onBehalfOf": WALLET, "amount": 10**18, "referralCode": 0},
            block_number=9_100,
        ),
        # day 2: withdraw 1 WETH @ 2500
        build_pool_log(
            WITHDRAW,
            {"reserve": WETH, "user": WALLET, "to": WALLET, "amount": 10**18},
            block_number=9_900,
            log_index=4,
        ),
        build_pool_log(
            WITHDRAW,
            {"reserve": WETH, "user": OTHER_WALLET, "to": ZERO_ADDRESS, "amount": 5},
            block_number=9_900,
            log_index=5,
        ),
    ]


@pytest.fixture
def chain():
    return FakeChain(chain_logs(), head=10_020)


@pytest.fixture
def cursor_store(async_engine):
    return RecordingCursorStore(async_engine)


@pytest.fixture
def event_store(async_engine):
    return SqlAlchemyActivityEventStore(async_engine)


@pytest.fixture
def pnl_store(async_engine):
    return SqlAlchemyWalletPnlStore(async_engine)


@pytest.fixture
def price_source():
    source = AsyncMock()
    source.fetch_usd_price.side_effect = weth_price
    return source


@pytest.fixture
def deps(chain, cursor_store, event_store, price_source):
    return PnlIndexerDependencies(
        reader=chain,
        decoder=LendingPoolEventDecoder(),
        event_store=event_store,
        cursors=CursorManager(store=cursor_store, chain_id=CHAIN_ID),
        tokens=TokenMetadataResolver(fetcher=AsyncMock(), cache=InMemoryCache()),
        prices=HistoricalPriceResolver(source=price_source, cache=InMemoryCache()),
        block_times=BlockTimeResolver(reader=chain, cache=InMemoryCache()),
    )


OPTIONS = ScanOptions(max_window=500, min_window=64, lookback_blocks=1_000, finality_blocks=20)
POOLS = [
    LendingPool(protocol="aave-v3", pool_address=AAVE_POOL),
    LendingPool(protocol="radiant-v2", pool_address=ZERO_ADDRESS),
]


async def run(deps, pnl_store, **kwargs):
    return await run_pnl_indexer(
        deps=deps,
        pnl_store=pnl_store,
        chain_id=CHAIN_ID,
        pools=POOLS,
        options=OPTIONS,
        **kwargs,
    )


async def count_events(engine) -> int:
    async with engine.connect() as conn:
        return (await conn.execute(select(func.count()).select_from(WalletActivityEventsDB))).scalar_one()


@pytest.mark.parametrize(("head", "finality", "expected"), [(10_020, 20, 10_000), (15, 20, 15), (20, 20, 20)])
def test_safe_block(head, finality, expected):
    assert safe_block_for(head, finality) == expected


async def test_full_run_indexes_and_rebuilds(deps, pnl_store, cursor_store, event_store):
    report = await run(deps, pnl_store)

    assert report.safe_block == 10_000
    [aave] = report.protocols
    assert (aave.from_block, aave.to_block) == (9_000, 10_000)
    assert aave.events == 2
    assert aave.chunks == 3
    assert report.wallets_rebuilt == 1

    events = await event_store.list_wallet_events(wallet_address=WALLET, chain_id=CHAIN_ID)
    assert [(e.action, e.amount_token, e.amount_usd) for e in events] == [
        ("deposit", Decimal("1"), Decimal("2000")),
        ("withdraw", Decimal("1"), Decimal("2500")),
    ]
    assert events[0].asset_symbol == "WETH"

    [pos] = await pnl_store.list_positions(wallet_address=WALLET, chain_id=CHAIN_ID)
    assert pos.realized_pnl_usd == Decimal("500")
    assert pos.principal_usd == Decimal("0")

    cursor = await cursor_store.get_cursor(chain_id=CHAIN_ID, protocol="aave-v3")
    assert cursor.cursor_block == 10_000
    assert cursor_store.saved[0] == 8_999
    assert cursor_store.saved == sorted(cursor_store.saved)


async def test_second_run_is_up_to_date(deps, pnl_store, async_engine, chain):
    await run(deps, pnl_store)
    calls = len(chain.calls)

    report = await run(deps, pnl_store)

    assert report.protocols[0].up_to_date is True
    assert report.protocols[0].chunks == 0
    assert report.wallets_rebuilt == 0
    assert len(chain.calls) == calls
    assert await count_events(async_engine) == 2


async def test_rescanning_same_range_is_idempotent(deps, pnl_store, async_engine, cursor_store, event_store):
    await run(deps, pnl_store)
    before = await event_store.list_wallet_events(wallet_address=WALLET, chain_id=CHAIN_ID)

    # rewind below the already indexed range
    await SqlAlchemyIndexerCursorStore(async_engine).save_cursor(
        chain_id=CHAIN_ID, protocol="aave-v3", cursor_block=8_999
    )
    report = await run(deps, pnl_store)

    assert report.protocols[0].events == 2
    assert await count_events(async_engine) == 2
    assert await event_store.list_wallet_events(wallet_address=WALLET, chain_id=CHAIN_ID) == before
    [pos] = await pnl_store.list_positions(wallet_address=WALLET, chain_id=CHAIN_ID)
    assert pos.realized_pnl_usd == Decimal("500")


async def test_range_too_large_persists_smaller_window(deps, chain, cursor_store):
    chain.max_span = 300

    report = await index_protocol(
        deps=deps,
        chain_id=CHAIN_ID,
        pool=POOLS[0],
        safe_block=10_000,
        options=OPTIONS,
    )

    # 500 rejected, 250 accepted
    assert chain.calls[:2] == [(9_000, 9_499), (9_000, 9_249)]
    assert cursor_store.saved[1] == 9_249
    assert report.to_block == 10_000


async def test_failed_window_keeps_cursor_at_last_written_block(deps, pnl_store, chain, cursor_store, async_engine):
    chain.fail_from = 9_600

    with pytest.raises(BlockWindowExhaustedError):
        await run(deps, pnl_store)

    cursor = await cursor_store.get_cursor(chain_id=CHAIN_ID, protocol="aave-v3")
    assert cursor.cursor_block < 9_600
    # the day-1 supply was committed before the failure
    assert await count_events(async_engine) == 1
    # and its ledger was rebuilt even though the run failed
    [pos] = await pnl_store.list_positions(wallet_address=WALLET, chain_id=CHAIN_ID)
    assert pos.principal_usd == Decimal("2000")
    assert await deps.event_store.list_pending_wallets(chain_id=CHAIN_ID) == []


async def test_unpriced_event_is_stored_with_null_usd(deps, pnl_store, price_source, event_store):
    price_source.fetch_usd_price.side_effect = TimeoutError("coingecko timeout")

    await run(deps, pnl_store)

    events = await event_store.list_wallet_events(wallet_address=WALLET, chain_id=CHAIN_ID)
    assert [e.amount_usd for e in events] == [None, None]
    assert events[0].amount_token == Decimal("1")
    assert await pnl_store.list_positions(wallet_address=WALLET, chain_id=CHAIN_ID) == []


async def test_no_configured_pools(deps, pnl_store):
    with pytest.raises(ValueError):
        await run_pnl_indexer(
            deps=deps,
            pnl_store=pnl_store,
            chain_id=CHAIN_ID,
            pools=[LendingPool(protocol="aave-v3", pool_address="")],
            options=OPTIONS,
        )


class FlakyPnlStore(SqlAlchemyWalletPnlStore):
    def __init__(self, engine, *, failures: int) -> None:
        super().__init__(engine)
        self.failures = failures

    async def replace_wallet_pnl(self, **kwargs):
        if self.failures:
            self.failures -= 1
            raise SQLAlchemyError("connection reset")
        await super().replace_wallet_pnl(**kwargs)


class FailingEventStore(SqlAlchemyActivityEventStore):
    async def upsert_events(self, events):
        raise SQLAlchemyError("disk full")


async def test_failed_rebuild_is_retried_next_run(deps, async_engine):
    pnl_store = FlakyPnlStore(async_engine, failures=1)

    with pytest.raises(ExceptionGroup):
        await run(deps, pnl_store)
    assert await pnl_store.list_positions(wallet_address=WALLET, chain_id=CHAIN_ID) == []

    report = await run(deps, pnl_store)

    assert report.protocols[0].events == 0
    assert report.wallets_rebuilt == 1
    [pos] = await pnl_store.list_positions(wallet_address=WALLET, chain_id=CHAIN_ID)
    assert pos.realized_pnl_usd == Decimal("500")


async def test_event_write_failure_keeps_cursor(deps, pnl_store, cursor_store, async_engine):
    deps = replace(deps, event_store=FailingEventStore(async_engine))

    with pytest.raises(SQLAlchemyError, match="disk full"):
        await run(deps, pnl_store)

    cursor = await cursor_store.get_cursor(chain_id=CHAIN_ID, protocol="aave-v3")
    assert cursor.cursor_block == 8_999
    assert cursor_store.saved == [8_999]
    assert await count_events(async_engine) == 0


async def test_worker_retries_price_miss_on_next_run(deps, pnl_store, price_source, event_store, async_engine):
    outage = True

    def flaky_price(*, price_id, day):
        if outage:
            raise TimeoutError("coingecko timeout")
        return weth_price(price_id=price_id, day=day)

    price_source.fetch_usd_price.side_effect = flaky_price
    worker = PnlIndexerWorker(run=lambda: run(deps, pnl_store))

    await worker.trigger()
    events = await event_store.list_wallet_events(wallet_address=WALLET, chain_id=CHAIN_ID)
    assert [e.amount_usd for e in events] == [None, None]

    outage = False
    await SqlAlchemyIndexerCursorStore(async_engine).save_cursor(
        chain_id=CHAIN_ID, protocol="aave-v3", cursor_block=8_999
    )
    await worker.trigger()

    events = await event_store.list_wallet_events(wallet_address=WALLET, chain_id=CHAIN_ID)
    assert [e.amount_usd for e in events] == [Decimal("2000"), Decimal("2500")]
    [pos] = await pnl_store.list_positions(wallet_address=WALLET, chain_id=CHAIN_ID)
    assert pos.realized_pnl_usd == Decimal("500")
