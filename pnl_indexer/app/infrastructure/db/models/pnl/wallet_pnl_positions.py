from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, DateTime, Index, Integer, Numeric, PrimaryKeyConstraint, Text
from sqlalchemy.orm import Mapped, mapped_column

from pnl_indexer.app.infrastructure.db.db_base import BaseDB


class WalletPnlPositionsDB(BaseDB):
    """
    Realized-PnL position per (wallet, chain, protocol, asset).

    Derived table: rows are replaced wholesale for a wallet on every ledger
    rebuild and never patched in place.
    """

    __tablename__ = "wallet_pnl_positions"
    __table_args__ = (
        PrimaryKeyConstraint("wallet_address", "chain_id", "protocol", "asset_address"),
        Index("ix_wallet_pnl_positions_chain_wallet", "chain_id", "wallet_address"),
    )

    wallet_address: Mapped[str] = mapped_column(Text, nullable=False)
    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    protocol: Mapped[str] = mapped_column(Text, nullable=False)
    asset_address: Mapped[str] = mapped_column(Text, nullable=False)
    asset_symbol: Mapped[str] = mapped_column(Text, nullable=False)

    principal_usd: Mapped[Decimal] = mapped_column(Numeric(38, 8), nullable=False)
    realized_pnl_usd: Mapped[Decimal] = mapped_column(Numeric(38, 8), nullable=False)
    total_deposit_usd: Mapped[Decimal] = mapped_column(Numeric(38, 8), nullable=False)
    total_withdraw_usd: Mapped[Decimal] = mapped_column(Numeric(38, 8), nullable=False)

    last_event_block: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
