from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal

Action = Literal["deposit", "withdraw", "borrow", "repay"]

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

AAVE_V3 = "aave-v3"
RADIANT_V2 = "radiant-v2"


@dataclass(frozen=True)
class BlockRange:
    from_block: int
    to_block: int

    def validate(self) -> None:
        if self.from_block < 0 or self.to_block < 0:
            raise ValueError("Block numbers must be non-negative")
        if self.from_block > self.to_block:
            raise ValueError("from_block must be <= to_block")


@dataclass(frozen=True)
class LendingPool:
    """One indexed lending protocol: a protocol id and its pool contract."""

    protocol: str
    pool_address: str


@dataclass(frozen=True)
class RawPoolLog:
    """
    Provider-agnostic EVM log emitted by a lending pool.

    topics[0] is the event selector; tx_hash is lowercase 0x-hex.
    """

    address: str
    topics: tuple[bytes, ...]
    data: bytes
    block_number: int
    tx_hash: str
    log_index: int


@dataclass(frozen=True)
class LogScanResult:
    logs: list[RawPoolLog]
    from_block: int
    to_block: int


@dataclass(frozen=True)
class DecodedPoolEvent:
    event_name: str
    signature: str
    args: dict[str, Any]


@dataclass(frozen=True)
class CanonicalAction:
    action: Action
    wallet_address: str
    asset_address: str
    amount_raw: int


@dataclass(frozen=True)
class TokenMetadata:
    symbol: str
    decimals: int


@dataclass(frozen=True)
class ActivityEvent:
    """
    One persisted lending action.

    Identity: (chain_id, tx_hash, log_index).
    amount_usd is None when no historical price could be resolved.
    """

    chain_id: int
    protocol: str
    wallet_address: str
    action: Action
    asset_address: str
    asset_symbol: str
    amount_raw: int
    amount_token: Decimal
    amount_usd: Decimal | None
    tx_hash: str
    log_index: int
    block_number: int
    block_time: datetime


@dataclass(frozen=True)
class IndexerCursor:
    chain_id: int
    protocol: str
    cursor_block: int
    updated_at: datetime


@dataclass
class WalletPosition:
    wallet_address: str
    chain_id: int
    protocol: str
    asset_address: str
    asset_symbol: str
    principal_usd: Decimal = Decimal(0)
    realized_pnl_usd: Decimal = Decimal(0)
    total_deposit_usd: Decimal = Decimal(0)
    total_withdraw_usd: Decimal = Decimal(0)
    last_event_block: int | None = None

    def has_activity(self) -> bool:
        return any(
            v > 0
            for v in (
                self.principal_usd,
                self.realized_pnl_usd,
                self.total_deposit_usd,
                self.total_withdraw_usd,
            )
        )


@dataclass(frozen=True)
class WalletDailyPnl:
    wallet_address: str
    chain_id: int
    day: date
    realized_pnl_usd: Decimal
    cumulative_realized_pnl_usd: Decimal
    event_count: int


@dataclass(frozen=True)
class WalletLedger:
    positions: list[WalletPosition]
    daily: list[WalletDailyPnl]


@dataclass
class ProtocolIndexReport:
    protocol: str
    from_block: int
    to_block: int
    up_to_date: bool = False
    chunks: int = 0
    events: int = 0
    affected_wallets: set[str] = field(default_factory=set)


@dataclass
class RunReport:
    chain_id: int
    latest_block: int
    safe_block: int
    protocols: list[ProtocolIndexReport] = field(default_factory=list)
    wallets_rebuilt: int = 0
