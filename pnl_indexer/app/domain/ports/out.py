from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Hashable, Protocol, Sequence, TypeVar

from pnl_indexer.app.domain.models import (
    ActivityEvent,
    DecodedPoolEvent,
    IndexerCursor,
    RawPoolLog,
    WalletDailyPnl,
    WalletPosition,
)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class LendingPoolChainReader(Protocol):
    """
    Port for the upstream EVM node.

    Implementations wrap a JSON-RPC provider. Any provider/transport error
    is raised as-is; retry policy belongs to the caller.
    """

    async def get_block_number(self) -> int: ...

    async def get_block_timestamp(self, block_number: int) -> datetime: ...

    async def get_logs(
        self,
        *,
        address: str,
        topics: Sequence[bytes],
        from_block: int,
        to_block: int,
    ) -> list[RawPoolLog]: ...


class PoolEventDecoder(Protocol):
    def decode(self, log: RawPoolLog) -> DecodedPoolEvent | None:
        """
        Decode a pool log (topics + data) into its event name and arguments.

        Return None if the log is not one of the known pool events.
        """
        ...

    @property
    def topics(self) -> list[bytes]: ...


class Erc20TokenMetadataFetcher(Protocol):
    """
    Low-level dependency used by the token metadata resolver.

    Implementations should perform eth_call against the ERC-20 contract and return:
      - symbol (str | None)
      - decimals (int | None)

    token_address is a 0x-prefixed hex string.
    """

    async def fetch(self, *, token_address: str) -> dict[str, Any]: ...


class HistoricalPriceSource(Protocol):
    """
    Port for a day-granular USD price history service.

    Return None when the service has no price for that day or the request failed.
    """

    async def fetch_usd_price(self, *, price_id: str, day: date) -> Decimal | None: ...


class KeyValueCache(Protocol[K, V]):
    def get(self, key: K) -> V | None: ...

    def set(self, key: K, value: V) -> None: ...

    def __contains__(self, key: object) -> bool: ...

    def clear(self) -> None: ...


class IndexerCursorStore(Protocol):
    """
    Port for persisted scan progress, one row per (chain_id, protocol).
    """

    async def get_cursor(self, *, chain_id: int, protocol: str) -> IndexerCursor | None: ...

    async def save_cursor(self, *, chain_id: int, protocol: str, cursor_block: int) -> None: ...


class ActivityEventStore(Protocol):
    """
    Port for the append-only (upsert) wallet activity log.

    Implementations must be idempotent on (chain_id, tx_hash, log_index) and
    must persist one call atomically, together with a pending-rebuild marker
    for every wallet the call touched.
    """

    async def upsert_events(self, events: Sequence[ActivityEvent]) -> int: ...

    async def list_wallet_events(
        self,
        *,
        wallet_address: str,
        chain_id: int,
    ) -> list[ActivityEvent]: ...

    async def list_pending_wallets(self, *, chain_id: int) -> list[str]: ...


class WalletPnlStore(Protocol):
    """
    Port for the derived per-wallet ledger tables.
    """

    async def replace_wallet_pnl(
        self,
        *,
        wallet_address: str,
        chain_id: int,
        positions: Sequence[WalletPosition],
        daily: Sequence[WalletDailyPnl],
    ) -> None: ...

    async def list_positions(
        self,
        *,
        wallet_address: str,
        chain_id: int,
    ) -> list[WalletPosition]: ...

    async def list_daily(
        self,
        *,
        wallet_address: str,
        chain_id: int,
        since: date | None = None,
    ) -> list[WalletDailyPnl]: ...
