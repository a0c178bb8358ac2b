from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Final

from pnl_indexer.app.domain.models import WalletDailyPnl, WalletPosition
from pnl_indexer.app.domain.ports.out import WalletPnlStore

DEFAULT_HISTORY_DAYS: Final[int] = 30
MAX_HISTORY_DAYS: Final[int] = 365

_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


@dataclass(frozen=True)
class WalletPnlSummary:
    total_realized_usd: Decimal
    active_principal_usd: Decimal
    total_deposited_usd: Decimal
    total_withdrawn_usd: Decimal
    tracked_assets: int


@dataclass(frozen=True)
class WalletPnlHistory:
    wallet_address: str
    chain_id: int
    days: int
    points: list[WalletDailyPnl]
    positions: list[WalletPosition]
    summary: WalletPnlSummary
    indexed: bool


def clamp_days(days: int | None) -> int:
    if days is None:
        return DEFAULT_HISTORY_DAYS
    return max(1, min(MAX_HISTORY_DAYS, days))


async def get_wallet_pnl_history(
    *,
    store: WalletPnlStore,
    wallet_address: str,
    chain_id: int,
    days: int | None = DEFAULT_HISTORY_DAYS,
    today: date | None = None,
) -> WalletPnlHistory:
    """
    Read model for a wallet's realized PnL over the last `days` UTC days.

    `indexed` is False when the wallet has no rows at all, which lets a
    caller tell "never seen" apart from "zero PnL".
    """
    wallet = (wallet_address or "").strip().lower()
    if not _ADDRESS_RE.match(wallet):
        raise ValueError(f"Invalid wallet address: {wallet_address!r}")

    window = clamp_days(days)
    today = today or datetime.now(timezone.utc).date()
    cutoff = today - timedelta(days=window - 1)

    points = await store.list_daily(wallet_address=wallet, chain_id=chain_id, since=cutoff)
    positions = await store.list_positions(wallet_address=wallet, chain_id=chain_id)

    summary = WalletPnlSummary(
        total_realized_usd=sum((p.realized_pnl_usd for p in positions), Decimal(0)),
        active_principal_usd=sum((p.principal_usd for p in positions), Decimal(0)),
        total_deposited_usd=sum((p.total_deposit_usd for p in positions), Decimal(0)),
        total_withdrawn_usd=sum((p.total_withdraw_usd for p in positions), Decimal(0)),
        tracked_assets=len(positions),
    )

    return WalletPnlHistory(
        wallet_address=wallet,
        chain_id=chain_id,
        days=window,
        points=points,
        positions=positions,
        summary=summary,
        indexed=bool(points or positions),
    )
