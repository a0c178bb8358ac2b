from __future__ import annotations

import typer

from pnl_indexer.app.application.services.wallet_pnl_history import (
    DEFAULT_HISTORY_DAYS,
    WalletPnlHistory,
    get_wallet_pnl_history,
)
from pnl_indexer.app.config import settings
from pnl_indexer.app.infrastructure.db.engine import create_app_async_engine
from pnl_indexer.app.infrastructure.factories.pnl_indexer_factory import pnl_stores_factory


def format_history(history: WalletPnlHistory) -> str:
    s = history.summary
    lines = [
        f"wallet={history.wallet_address} chain_id={history.chain_id} days={history.days} indexed={history.indexed}",
        f"realized=${s.total_realized_usd} principal=${s.active_principal_usd} "
        f"deposited=${s.total_deposited_usd} withdrawn=${s.total_withdrawn_usd} assets={s.tracked_assets}",
    ]
    for p in history.positions:
        lines.append(
            f"  {p.protocol:<12} {p.asset_symbol:<8} principal=${p.principal_usd} realized=${p.realized_pnl_usd}"
        )
    for d in history.points:
        lines.append(
            f"  {d.day.isoformat()} realized=${d.realized_pnl_usd} "
            f"cumulative=${d.cumulative_realized_pnl_usd} events={d.event_count}"
        )
    return "\n".join(lines)


async def wallet_pnl_history_task(
    *,
    wallet_address: str,
    days: int = DEFAULT_HISTORY_DAYS,
    chain_id: int | None = None,
    backend: str = "sqlalchemy",
) -> WalletPnlHistory:
    """Task: print a wallet's realized PnL history and position summary."""
    engine = create_app_async_engine()
    try:
        stores = pnl_stores_factory(backend=backend, engine=engine)
        history = await get_wallet_pnl_history(
            store=stores.pnl,
            wallet_address=wallet_address,
            chain_id=chain_id or settings.chain_id,
            days=days,
        )
    finally:
        await engine.dispose()

    typer.echo(format_history(history))
    return history
