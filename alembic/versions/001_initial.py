"""Initial migration - create servers, items and subscriptions.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create servers table
    op.create_table(
        'servers',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column('schedule_hours', sa.Integer(), nullable=True),
        sa.Column('destination_id', sa.BigInteger(), nullable=True),
        sa.Column('last_ran_at', sa.BigInteger(), nullable=True),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
    )

    # Create items table
    op.create_table(
        'items',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('updated_at', sa.BigInteger(), nullable=False),
        sa.Column('preview_url', sa.String(), nullable=True),
        sa.Column('fetched_at', sa.BigInteger(), nullable=False),
    )
    op.create_index('ix_items_name', 'items', ['name'])

    # Create subscriptions table
    op.create_table(
        'subscriptions',
        sa.Column('server_id', sa.BigInteger(), primary_key=True),
        sa.Column('item_id', sa.BigInteger(), primary_key=True),
        sa.Column('last_notified_at', sa.BigInteger(), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['server_id'], ['servers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['item_id'], ['items.id']),
        sa.UniqueConstraint('server_id', 'item_id', name='uq_server_item'),
    )
    op.create_index('ix_subscriptions_item_id', 'subscriptions', ['item_id'])


def downgrade() -> None:
    op.drop_index('ix_subscriptions_item_id', table_name='subscriptions')
    op.drop_table('subscriptions')
    op.drop_index('ix_items_name', table_name='items')
    op.drop_table('items')
    op.drop_table('servers')
