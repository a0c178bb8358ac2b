from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, PrimaryKeyConstraint, Text
from sqlalchemy.orm import Mapped, mapped_column

from pnl_indexer.app.infrastructure.db.db_base import BaseDB


class WalletPnlPendingDB(BaseDB):
    """
    Wallets whose derived pnl rows are behind wallet_activity_events.

    A row is written in the same transaction as the wallet's new events and
    removed in the same transaction as its ledger replace-set, so a run that
    dies in between leaves the wallet queued for the next run.
    """

    __tablename__ = "wallet_pnl_pending"
    __table_args__ = (PrimaryKeyConstraint("wallet_address", "chain_id"),)

    wallet_address: Mapped[str] = mapped_column(Text, nullable=False)
    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)

    marked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
