"""Create listing lifecycle tables: users, listings, listing_lifecycle_events.

Listing lifecycle:
- Active: created_at + tier duration (free 48h, premium 720h)
- Archived: expires_at = archived_at + 7 day retention
- Deleted: removed by the downstream cleanup process

Changes:
- Create users table (tier + subscription fields used for tier resolution)
- Create listings table with archive bookkeeping columns
- Create listing_lifecycle_events table for the audit trail

Revision ID: 001_create_listing_lifecycle
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_create_listing_lifecycle'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create lifecycle tables."""

    # -------------------------------------------------------------------------
    # 1. users
    # -------------------------------------------------------------------------
    print("  Creating users table...")

    op.create_table(
        'users',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('account_tier', sa.String(length=16), nullable=True),
        sa.Column('subscription_status', sa.String(length=32), nullable=True),
        sa.Column('subscription_end_date', sa.DateTime(), nullable=True),
        sa.Column('stripe_subscription_id', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    # -------------------------------------------------------------------------
    # 2. listings
    # -------------------------------------------------------------------------
    print("  Creating listings table...")

    op.create_table(
        'listings',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('title', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('account_tier', sa.String(length=16), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('original_created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('archived_at', sa.DateTime(), nullable=True),
        sa.Column('archived_reason', sa.String(length=32), nullable=True),
        sa.Column('previous_status', sa.String(length=16), nullable=True),
        sa.Column('previous_expires_at', sa.DateTime(), nullable=True),
        sa.Column('restored_at', sa.DateTime(), nullable=True),
        sa.Column('restored_reason', sa.String(length=64), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_listings_user_id', 'listings', ['user_id'], unique=False)
    op.create_index('ix_listings_status', 'listings', ['status'], unique=False)
    op.create_index('ix_listings_status_updated_at', 'listings', ['status', 'updated_at'], unique=False)

    print("  Created listings table with 3 indexes")

    # -------------------------------------------------------------------------
    # 3. listing_lifecycle_events
    # -------------------------------------------------------------------------
    print("  Creating listing_lifecycle_events table...")

    op.create_table(
        'listing_lifecycle_events',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('listing_id', sa.String(length=64), nullable=False),
        sa.Column('event_type', sa.String(length=32), nullable=False),
        sa.Column('event_timestamp', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('initiated_by', sa.String(length=32), nullable=False),
        sa.Column('reason', sa.String(length=64), nullable=True),
        sa.Column('event_metadata', sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(['listing_id'], ['listings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_listing_lifecycle_events_listing_id', 'listing_lifecycle_events', ['listing_id'], unique=False)

    print("  Migration complete!")


def downgrade() -> None:
    """Drop lifecycle tables."""

    print("  Dropping listing_lifecycle_events table...")
    op.drop_index('ix_listing_lifecycle_events_listing_id', table_name='listing_lifecycle_events')
    op.drop_table('listing_lifecycle_events')

    print("  Dropping listings table...")
    op.drop_index('ix_listings_status_updated_at', table_name='listings')
    op.drop_index('ix_listings_status', table_name='listings')
    op.drop_index('ix_listings_user_id', table_name='listings')
    op.drop_table('listings')

    print("  Dropping users table...")
    op.drop_table('users')

    print("  Downgrade complete!")
