# marketplace/services/lifecycle/__init__.py
"""
Listing lifecycle services.

Listing states handled here:
- Active: within created_at + tier duration (free 48h, premium 30d)
- Archived: past its lifetime or idle too long; retained 7 days
- Deleted: removed by the downstream cleanup process (not here)

Services:
- tier_policy: Tier -> lifetime/retention table
- tier_resolver: Account tier lookup with an injectable TTL cache
- listing_store: Listing reads and conditional batched writes
- sweep: Scheduled expiration/archival sweep
- override_service: Operator archive/reactivate/refresh, single checks, restores
- stats_service: Counts for status endpoints
"""

from marketplace.services.lifecycle.errors import (
    InvalidActionError,
    ListingLifecycleError,
    ListingNotFoundError,
)
from marketplace.services.lifecycle.listing_store import (
    ListingRecord,
    ListingStore,
    StatusUpdate,
)
from marketplace.services.lifecycle.override_service import (
    ExpirationCheck,
    RestoreResult,
    apply_override,
    check_listing_expiration,
    restore_premium_listings,
)
from marketplace.services.lifecycle.stats_service import get_lifecycle_stats
from marketplace.services.lifecycle.sweep import SweepResult, run_expiration_sweep
from marketplace.services.lifecycle.tier_policy import TierPolicy, get_tier_policy
from marketplace.services.lifecycle.tier_resolver import (
    CachedTierResolver,
    SubscriptionTierResolver,
    TierCache,
    TierResolver,
)

__all__ = [
    # Errors
    "ListingLifecycleError",
    "ListingNotFoundError",
    "InvalidActionError",
    # Store
    "ListingStore",
    "ListingRecord",
    "StatusUpdate",
    # Tiers
    "TierPolicy",
    "get_tier_policy",
    "TierResolver",
    "SubscriptionTierResolver",
    "CachedTierResolver",
    "TierCache",
    # Sweep
    "run_expiration_sweep",
    "SweepResult",
    # Operator tools
    "apply_override",
    "check_listing_expiration",
    "restore_premium_listings",
    "ExpirationCheck",
    "RestoreResult",
    "get_lifecycle_stats",
]
