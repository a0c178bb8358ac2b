"""create_pnl_tables

Revision ID: 2026_02_03_101500
Revises:
Create Date: 2026-02-03 10:15:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '2026_02_03_101500'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'pnl_indexer_state',
        sa.Column('chain_id', sa.Integer(), nullable=False),
        sa.Column('protocol', sa.Text(), nullable=False),
        sa.Column('cursor_block', sa.BigInteger(), nullable=False),
        sa.Column('last_indexed_block', sa.BigInteger(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('chain_id', 'protocol'),
    )

    op.create_table(
        'wallet_activity_events',
        sa.Column('chain_id', sa.Integer(), nullable=False),
        sa.Column('tx_hash', sa.Text(), nullable=False),
        sa.Column('log_index', sa.Integer(), nullable=False),
        sa.Column('protocol', sa.Text(), nullable=False),
        sa.Column('wallet_address', sa.Text(), nullable=False),
        sa.Column('action', sa.Text(), nullable=False),
        sa.Column('asset_address', sa.Text(), nullable=False),
        sa.Column('asset_symbol', sa.Text(), nullable=False),
        sa.Column('amount_raw', sa.Numeric(78, 0), nullable=False),
        sa.Column('amount_token', sa.Numeric(), nullable=False),
        sa.Column('amount_usd', sa.Numeric(), nullable=True),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('block_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('chain_id', 'tx_hash', 'log_index'),
    )
    op.create_index(
        'ix_wallet_activity_chain_wallet_order',
        'wallet_activity_events',
        ['chain_id', 'wallet_address', 'block_number', 'log_index'],
    )
    op.create_index(
        'ix_wallet_activity_chain_protocol_block',
        'wallet_activity_events',
        ['chain_id', 'protocol', 'block_number'],
    )

    op.create_table(
        'wallet_pnl_positions',
        sa.Column('wallet_address', sa.Text(), nullable=False),
        sa.Column('chain_id', sa.Integer(), nullable=False),
        sa.Column('protocol', sa.Text(), nullable=False),
        sa.Column('asset_address', sa.Text(), nullable=False),
        sa.Column('asset_symbol', sa.Text(), nullable=False),
        sa.Column('principal_usd', sa.Numeric(38, 8), nullable=False),
        sa.Column('realized_pnl_usd', sa.Numeric(38, 8), nullable=False),
        sa.Column('total_deposit_usd', sa.Numeric(38, 8), nullable=False),
        sa.Column('total_withdraw_usd', sa.Numeric(38, 8), nullable=False),
        sa.Column('last_event_block', sa.BigInteger(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('wallet_address', 'chain_id', 'protocol', 'asset_address'),
    )
    op.create_index(
        'ix_wallet_pnl_positions_chain_wallet',
        'wallet_pnl_positions',
        ['chain_id', 'wallet_address'],
    )

    op.create_table(
        'wallet_pnl_daily',
        sa.Column('wallet_address', sa.Text(), nullable=False),
        sa.Column('chain_id', sa.Integer(), nullable=False),
        sa.Column('day', sa.Date(), nullable=False),
        sa.Column('realized_pnl_usd', sa.Numeric(38, 8), nullable=False),
        sa.Column('cumulative_realized_pnl_usd', sa.Numeric(38, 8), nullable=False),
        sa.Column('event_count', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('wallet_address', 'chain_id', 'day'),
    )

    op.create_table(
        'wallet_pnl_pending',
        sa.Column('wallet_address', sa.Text(), nullable=False),
        sa.Column('chain_id', sa.Integer(), nullable=False),
        sa.Column('marked_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('wallet_address', 'chain_id'),
    )


def downgrade() -> None:
    op.drop_table('wallet_pnl_pending')
    op.drop_table('wallet_pnl_daily')
    op.drop_index('ix_wallet_pnl_positions_chain_wallet', table_name='wallet_pnl_positions')
    op.drop_table('wallet_pnl_positions')
    op.drop_index('ix_wallet_activity_chain_protocol_block', table_name='wallet_activity_events')
    op.drop_index('ix_wallet_activity_chain_wallet_order', table_name='wallet_activity_events')
    op.drop_table('wallet_activity_events')
    op.drop_table('pnl_indexer_state')
