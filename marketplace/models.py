# marketplace/models.py
"""
Marketplace listing lifecycle models.

Tables:
- User: account tier and subscription snapshot (read-only for this service)
- Listing: items offered for sale, with lifecycle/archive bookkeeping
- ListingLifecycleEvent: immutable audit trail of lifecycle transitions
"""

from datetime import datetime
from enum import Enum
import uuid

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
)

from marketplace.database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------

class ListingStatus(str, Enum):
    """Lifecycle status of a listing."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"
    REJECTED = "rejected"
    SOLD = "sold"
    DELETED = "deleted"


class ArchiveReason(str, Enum):
    """Why a listing was archived."""
    TIER_DURATION_EXCEEDED = "tier_duration_exceeded"
    INACTIVE_TIMEOUT = "inactive_timeout"
    MANUAL = "manual"
    REPORTED = "reported"


class AccountTier(str, Enum):
    """Account subscription level."""
    FREE = "free"
    PREMIUM = "premium"


class OverrideAction(str, Enum):
    """Operator actions on a single listing."""
    ARCHIVE = "archive"
    REACTIVATE = "reactivate"
    REFRESH = "refresh"


class LifecycleEventType(str, Enum):
    """Audit event types for listing lifecycle transitions."""
    ARCHIVED = "archived"
    REACTIVATED = "reactivated"
    REFRESHED = "refreshed"
    RESTORED = "restored"


# -----------------------------------------------------------------------------
# User
# -----------------------------------------------------------------------------

class User(Base):
    """Marketplace account. Only the billing fields used for tier resolution live here."""
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, default=_new_id)
    account_tier = Column(String(16), nullable=True)  # free | premium
    subscription_status = Column(String(32), nullable=True)  # active, trialing, canceled, none
    subscription_end_date = Column(DateTime, nullable=True)
    stripe_subscription_id = Column(String(255), nullable=True)  # admin_* for admin grants
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# -----------------------------------------------------------------------------
# Listing
# -----------------------------------------------------------------------------

class Listing(Base):
    """
    A card offered for sale.

    Lifecycle:
    - Created active by the listing flow (outside this service)
    - Archived by the expiration sweep or an operator
    - Deleted by the downstream cleanup once expires_at (retention) passes
    """
    __tablename__ = "listings"

    id = Column(String(64), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)
    title = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default=ListingStatus.ACTIVE.value)

    # Tier snapshot used when the listing's duration was last computed
    account_tier = Column(String(16), nullable=True)

    # Start of the current lifetime; legacy rows may be missing it (treated as "now" when swept)
    created_at = Column(DateTime, nullable=True, default=datetime.utcnow)
    # First listing instant, kept when reactivation restarts the lifetime
    original_created_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=True)

    # Archive bookkeeping
    archived_at = Column(DateTime, nullable=True)
    archived_reason = Column(String(32), nullable=True)
    previous_status = Column(String(16), nullable=True)
    previous_expires_at = Column(DateTime, nullable=True)

    # Set when an archived listing is restored
    restored_at = Column(DateTime, nullable=True)
    restored_reason = Column(String(64), nullable=True)

    __table_args__ = (
        Index("ix_listings_status", "status"),
        Index("ix_listings_status_updated_at", "status", "updated_at"),
    )


# -----------------------------------------------------------------------------
# ListingLifecycleEvent
# -----------------------------------------------------------------------------

class ListingLifecycleEvent(Base):
    """Immutable audit trail of listing lifecycle transitions."""
    __tablename__ = "listing_lifecycle_events"

    id = Column(String(64), primary_key=True, default=_new_id)
    listing_id = Column(
        String(64),
        ForeignKey("listings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event_type = Column(String(32), nullable=False)
    event_timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
    initiated_by = Column(String(32), nullable=False)  # cron, admin, cli
    reason = Column(String(64), nullable=True)
    event_metadata = Column(JSON, nullable=True)
