from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict

import httpx
from sqlalchemy.ext.asyncio import AsyncEngine
from web3 import AsyncHTTPProvider, AsyncWeb3

from pnl_indexer.app.application.services.block_times import BlockTimeResolver
from pnl_indexer.app.application.services.cursor_manager import CursorManager
from pnl_indexer.app.application.services.historical_prices import HistoricalPriceResolver
from pnl_indexer.app.application.services.index_protocol import (
    PnlIndexerDependencies,
    ScanOptions,
)
from pnl_indexer.app.application.services.run_pnl_indexer import run_pnl_indexer
from pnl_indexer.app.application.services.token_metadata import TokenMetadataResolver
from pnl_indexer.app.config import Settings, settings
from pnl_indexer.app.domain.models import LendingPool, RunReport
from pnl_indexer.app.domain.ports.out import ActivityEventStore, WalletPnlStore
from pnl_indexer.app.infrastructure.adapters.pnl.activity_events_store import (
    SqlAlchemyActivityEventStore,
)
from pnl_indexer.app.infrastructure.adapters.pnl.cursor_store import SqlAlchemyIndexerCursorStore
from pnl_indexer.app.infrastructure.adapters.pnl.wallet_pnl_store import SqlAlchemyWalletPnlStore
from pnl_indexer.app.infrastructure.cache import InMemoryCache
from pnl_indexer.app.infrastructure.decoders.lending_pool.pool_events_decoder import (
    LendingPoolEventDecoder,
)
from pnl_indexer.app.infrastructure.fetchers.coingecko_price_fetcher import (
    CoinGeckoHistoricalPriceFetcher,
)
from pnl_indexer.app.infrastructure.fetchers.erc20_tokens_fetcher import (
    Web3Erc20TokenMetadataFetcher,
)
from pnl_indexer.app.infrastructure.rpc.web3_chain_reader import Web3LendingPoolChainReader

_BLOCK_TIME_CACHE_SIZE = 50_000


@dataclass
class PnlIndexerRunner:
    """A fully wired indexer for one chain; `run()` performs one indexing run."""

    deps: PnlIndexerDependencies
    pnl_store: WalletPnlStore
    chain_id: int
    pools: list[LendingPool]
    options: ScanOptions
    rebuild_concurrency: int
    http_client: httpx.AsyncClient

    async def run(self) -> RunReport:
        return await run_pnl_indexer(
            deps=self.deps,
            pnl_store=self.pnl_store,
            chain_id=self.chain_id,
            pools=self.pools,
            options=self.options,
            rebuild_concurrency=self.rebuild_concurrency,
        )

    async def aclose(self) -> None:
        await self.http_client.aclose()


@dataclass(frozen=True)
class PnlStores:
    events: ActivityEventStore
    pnl: WalletPnlStore


PnlIndexerFactory = Callable[[AsyncEngine, Settings], PnlIndexerRunner]
PnlStoresFactory = Callable[[AsyncEngine, Settings], PnlStores]


def _make_sqlalchemy_stores(engine: AsyncEngine, cfg: Settings) -> PnlStores:
    return PnlStores(
        events=SqlAlchemyActivityEventStore(engine, batch_size=cfg.write_batch_size),
        pnl=SqlAlchemyWalletPnlStore(engine, batch_size=cfg.write_batch_size),
    )


def _make_sqlalchemy_indexer(engine: AsyncEngine, cfg: Settings) -> PnlIndexerRunner:
    """
    Wire dependencies for SQLAlchemy backend:
    - AsyncWeb3 provider (per-chain RPC URL) shared by log scans, block times and eth_call
    - httpx client for CoinGecko history
    - token metadata and daily price caches, cleared by every run
    - bounded block-time cache kept across runs (block times never change)
    """
    chain_id = cfg.chain_id
    w3 = AsyncWeb3(
        AsyncHTTPProvider(
            cfg.rpc_url(chain_id),
            request_kwargs={"timeout": cfg.rpc_timeout_seconds},
        )
    )
    http_client = httpx.AsyncClient(timeout=cfg.price_timeout_seconds)
    api_key = cfg.coingecko_api_key.get_secret_value() if cfg.coingecko_api_key else None

    reader = Web3LendingPoolChainReader(w3=w3)
    stores = _make_sqlalchemy_stores(engine, cfg)

    deps = PnlIndexerDependencies(
        reader=reader,
        decoder=LendingPoolEventDecoder(),
        event_store=stores.events,
        cursors=CursorManager(store=SqlAlchemyIndexerCursorStore(engine), chain_id=chain_id),
        tokens=TokenMetadataResolver(
            fetcher=Web3Erc20TokenMetadataFetcher(w3=w3),
            cache=InMemoryCache(),
        ),
        prices=HistoricalPriceResolver(
            source=CoinGeckoHistoricalPriceFetcher(
                client=http_client,
                base_url=cfg.coingecko_base_url,
                api_key=api_key,
            ),
            cache=InMemoryCache(),
        ),
        block_times=BlockTimeResolver(
            reader=reader,
            cache=InMemoryCache(max_entries=_BLOCK_TIME_CACHE_SIZE),
        ),
    )

    return PnlIndexerRunner(
        deps=deps,
        pnl_store=stores.pnl,
        chain_id=chain_id,
        pools=cfg.lending_pools(),
        options=ScanOptions(
            max_window=cfg.max_chunk_size,
            min_window=cfg.min_chunk_size,
            lookback_blocks=cfg.lookback_blocks,
            finality_blocks=cfg.finality_blocks,
        ),
        rebuild_concurrency=cfg.rebuild_concurrency,
        http_client=http_client,
    )


_PNL_INDEXER_REGISTRY: Dict[str, PnlIndexerFactory] = {
    "sqlalchemy": _make_sqlalchemy_indexer,
}

_PNL_STORES_REGISTRY: Dict[str, PnlStoresFactory] = {
    "sqlalchemy": _make_sqlalchemy_stores,
}


def pnl_indexer_factory(
    *,
    backend: str,
    engine: AsyncEngine,
    cfg: Settings = settings,
) -> PnlIndexerRunner:
    try:
        factory = _PNL_INDEXER_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported PnL indexer backend: {backend!r}")
    return factory(engine, cfg)


def pnl_stores_factory(
    *,
    backend: str,
    engine: AsyncEngine,
    cfg: Settings = settings,
) -> PnlStores:
    try:
        factory = _PNL_STORES_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported PnL store backend: {backend!r}")
    return factory(engine, cfg)
