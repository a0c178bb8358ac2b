from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable

from pnl_indexer.app.application.services.historical_prices import USD_QUANT, utc_day
from pnl_indexer.app.domain.models import (
    ActivityEvent,
    WalletDailyPnl,
    WalletLedger,
    WalletPosition,
)

ZERO = Decimal(0)


@dataclass
class _DayBucket:
    realized: Decimal = ZERO
    event_count: int = 0


def _usd(event: ActivityEvent) -> Decimal:
    if event.amount_usd is None:
        return ZERO
    return max(ZERO, event.amount_usd)


def _q(value: Decimal) -> Decimal:
    return value.quantize(USD_QUANT)


def replay_wallet_ledger(
    *,
    wallet_address: str,
    chain_id: int,
    events: Iterable[ActivityEvent],
) -> WalletLedger:
    """
    Replay a wallet's activity into per-asset positions and daily realized PnL.

    Events are processed in (block_number, log_index) order regardless of
    the input order. Per (protocol, asset) a USD principal is tracked:
    deposits add to it, withdrawals above it realize the excess as profit.
    Borrow and repay are counted but do not move principal.

    Positions with no USD activity at all are dropped.
    """
    wallet = wallet_address.lower()
    ordered = sorted(events, key=lambda e: (e.block_number, e.log_index))

    positions: dict[tuple[str, str], WalletPosition] = {}
    days: dict[date, _DayBucket] = defaultdict(_DayBucket)

    for ev in ordered:
        key = (ev.protocol, ev.asset_address.lower())
        pos = positions.get(key)
        if pos is None:
            pos = WalletPosition(
                wallet_address=wallet,
                chain_id=chain_id,
                protocol=ev.protocol,
                asset_address=key[1],
                asset_symbol=ev.asset_symbol,
            )
            positions[key] = pos

        amount = _usd(ev)
        realized = ZERO

        if ev.action == "deposit":
            pos.principal_usd += amount
            pos.total_deposit_usd += amount
        elif ev.action == "withdraw":
            pos.total_withdraw_usd += amount
            realized = max(ZERO, amount - pos.principal_usd)
            pos.principal_usd = max(ZERO, pos.principal_usd - amount)
            pos.realized_pnl_usd += realized

        pos.asset_symbol = ev.asset_symbol or pos.asset_symbol
        pos.last_event_block = ev.block_number

        bucket = days[utc_day(ev.block_time)]
        bucket.realized += realized
        bucket.event_count += 1

    kept: list[WalletPosition] = []
    for pos in positions.values():
        pos.principal_usd = _q(pos.principal_usd)
        pos.realized_pnl_usd = _q(pos.realized_pnl_usd)
        pos.total_deposit_usd = _q(pos.total_deposit_usd)
        pos.total_withdraw_usd = _q(pos.total_withdraw_usd)
        if pos.has_activity():
            kept.append(pos)
    kept.sort(key=lambda p: (-p.realized_pnl_usd, p.protocol, p.asset_address))

    daily: list[WalletDailyPnl] = []
    cumulative = ZERO
    for day in sorted(days):
        bucket = days[day]
        day_realized = _q(bucket.realized)
        cumulative += day_realized
        daily.append(
            WalletDailyPnl(
                wallet_address=wallet,
                chain_id=chain_id,
                day=day,
                realized_pnl_usd=day_realized,
                cumulative_realized_pnl_usd=cumulative,
                event_count=bucket.event_count,
            )
        )

    return WalletLedger(positions=kept, daily=daily)
