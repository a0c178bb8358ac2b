from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, PrimaryKeyConstraint, Text
from sqlalchemy.orm import Mapped, mapped_column

from pnl_indexer.app.infrastructure.db.db_base import BaseDB


class PnlIndexerStateDB(BaseDB):
    """
    Scan progress per (chain_id, protocol).

    cursor_block is the last block whose events are durably stored in
    wallet_activity_events; the next run resumes at cursor_block + 1.
    A freshly bootstrapped row holds start_block - 1 (may be -1).
    """

    __tablename__ = "pnl_indexer_state"
    __table_args__ = (PrimaryKeyConstraint("chain_id", "protocol"),)

    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    protocol: Mapped[str] = mapped_column(Text, nullable=False)

    cursor_block: Mapped[int] = mapped_column(BigInteger, nullable=False)
    last_indexed_block: Mapped[int] = mapped_column(BigInteger, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
