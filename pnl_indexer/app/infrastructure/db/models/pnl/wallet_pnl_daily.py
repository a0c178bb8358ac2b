from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, Integer, Numeric, PrimaryKeyConstraint, Text
from sqlalchemy.orm import Mapped, mapped_column

from pnl_indexer.app.infrastructure.db.db_base import BaseDB


class WalletPnlDailyDB(BaseDB):
    """
    Daily realized PnL series per (wallet, chain, UTC day).

    cumulative_realized_pnl_usd is the prefix sum over the wallet's whole
    history, so the series is always rebuilt in full.
    """

    __tablename__ = "wallet_pnl_daily"
    __table_args__ = (PrimaryKeyConstraint("wallet_address", "chain_id", "day"),)

    wallet_address: Mapped[str] = mapped_column(Text, nullable=False)
    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False)

    realized_pnl_usd: Mapped[Decimal] = mapped_column(Numeric(38, 8), nullable=False)
    cumulative_realized_pnl_usd: Mapped[Decimal] = mapped_column(Numeric(38, 8), nullable=False)
    event_count: Mapped[int] = mapped_column(Integer, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
