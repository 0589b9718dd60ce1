"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the warehouse schema from scratch:
- users: staff accounts with a single flat role
- items: stock item master data
- items_history: append-only audit trail of item mutations
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # users: authentication and attribution
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='viewer'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username', name='uq_users_username'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_username', 'users', ['username'])

    # ============================================================================
    # items: stock master data
    # ============================================================================
    op.create_table(
        'items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('category', sa.String(length=120), nullable=True),
        sa.Column('location', sa.String(length=120), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku', name='uq_items_sku'),
        sa.CheckConstraint('quantity >= 0', name='ck_items_quantity_nonnegative'),
        sa.CheckConstraint('price >= 0', name='ck_items_price_nonnegative'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_items_created_at', 'items', ['created_at'])

    # ============================================================================
    # items_history: append-only, no FK so rows outlive deleted items
    # ============================================================================
    op.create_table(
        'items_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=16), nullable=False),
        sa.Column('old_data', sa.JSON(), nullable=True),
        sa.Column('new_data', sa.JSON(), nullable=True),
        sa.Column('changed_by', sa.String(length=64), nullable=False),
        sa.Column('changed_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_items_history_item_id', 'items_history', ['item_id'])
    op.create_index('ix_items_history_changed_at', 'items_history', ['changed_at'])
    op.create_index('ix_items_history_changed_by', 'items_history', ['changed_by'])


def downgrade():
    op.drop_index('ix_items_history_changed_by', table_name='items_history')
    op.drop_index('ix_items_history_changed_at', table_name='items_history')
    op.drop_index('ix_items_history_item_id', table_name='items_history')
    op.drop_table('items_history')
    op.drop_index('ix_items_created_at', table_name='items')
    op.drop_table('items')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_table('users')
