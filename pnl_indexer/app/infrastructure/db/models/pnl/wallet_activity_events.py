from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    DateTime,
    Index,
    Integer,
    Numeric,
    PrimaryKeyConstraint,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from pnl_indexer.app.infrastructure.db.db_base import BaseDB


class WalletActivityEventsDB(BaseDB):
    """
    Wallet-scoped lending activity (deposit / withdraw / borrow / repay).

    One row = one pool log attributed to a wallet, enriched with token
    metadata and a best-effort historical USD value.

    Idempotency:
      - PK matches the canonical event identity: (chain_id, tx_hash, log_index)
    """

    __tablename__ = "wallet_activity_events"
    __table_args__ = (
        PrimaryKeyConstraint("chain_id", "tx_hash", "log_index"),
        # Ledger replay reads one wallet's history in chain order
        Index(
            "ix_wallet_activity_chain_wallet_order",
            "chain_id",
            "wallet_address",
            "block_number",
            "log_index",
        ),
        Index(
            "ix_wallet_activity_chain_protocol_block",
            "chain_id",
            "protocol",
            "block_number",
        ),
    )
    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------
    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    tx_hash: Mapped[str] = mapped_column(Text, nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)

    protocol: Mapped[str] = mapped_column(Text, nullable=False)
    wallet_address: Mapped[str] = mapped_column(Text, nullable=False)  # lowercase 0x-hex
    action: Mapped[str] = mapped_column(Text, nullable=False)
    # -------------------------------------------------------------------------
    # Asset and amounts
    # -------------------------------------------------------------------------
    asset_address: Mapped[str] = mapped_column(Text, nullable=False)
    asset_symbol: Mapped[str] = mapped_column(Text, nullable=False)

    # uint256 fits in NUMERIC(78, 0)
    amount_raw: Mapped[Decimal] = mapped_column(Numeric(78, 0), nullable=False)
    amount_token: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    # NULL when no historical price was available
    amount_usd: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    # -------------------------------------------------------------------------
    # Chain position / time
    # -------------------------------------------------------------------------
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    block_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
