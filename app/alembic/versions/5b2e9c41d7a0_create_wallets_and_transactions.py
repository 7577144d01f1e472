"""create wallets and transactions tables

Revision ID: 5b2e9c41d7a0
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '5b2e9c41d7a0'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'wallets',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('address', sa.String(length=42), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_wallets_id'), 'wallets', ['id'], unique=False)
    op.create_index(op.f('ix_wallets_address'), 'wallets', ['address'], unique=True)

    tx_status_enum = sa.Enum('success', 'failed', name='tx_status')
    # SQLite has no exact 78-digit numeric; values are kept as decimal text there.
    uint256 = sa.Numeric(78, 0).with_variant(sa.String(length=78), 'sqlite')

    op.create_table(
        'transactions',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('hash', sa.String(length=66), nullable=False),
        sa.Column('from_address', sa.String(length=42), nullable=False),
        sa.Column('to_address', sa.String(length=42), nullable=False),
        sa.Column('amount', sa.String(), nullable=False),
        sa.Column('block_number', uint256, nullable=False),
        sa.Column('gas_used', uint256, nullable=True),
        sa.Column('gas_price', uint256, nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('status', tx_status_enum, nullable=False),
        sa.Column('wallet_id', sa.UUID(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id'], ),
    )
    op.create_index(op.f('ix_transactions_id'), 'transactions', ['id'], unique=False)
    op.create_index(op.f('ix_transactions_hash'), 'transactions', ['hash'], unique=True)
    op.create_index('ix_transactions_from_timestamp', 'transactions', ['from_address', 'timestamp'], unique=False)
    op.create_index('ix_transactions_to_timestamp', 'transactions', ['to_address', 'timestamp'], unique=False)
    op.create_index('ix_transactions_wallet_id', 'transactions', ['wallet_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_transactions_wallet_id', table_name='transactions')
    op.drop_index('ix_transactions_to_timestamp', table_name='transactions')
    op.drop_index('ix_transactions_from_timestamp', table_name='transactions')
    op.drop_index(op.f('ix_transactions_hash'), table_name='transactions')
    op.drop_index(op.f('ix_transactions_id'), table_name='transactions')
    op.drop_table('transactions')
    sa.Enum(name='tx_status').drop(op.get_bind(), checkfirst=True)
    op.drop_index(op.f('ix_wallets_address'), table_name='wallets')
    op.drop_index(op.f('ix_wallets_id'), table_name='wallets')
    op.drop_table('wallets')
