# marketplace/services/lifecycle/stats_service.py
"""Lifecycle statistics for the admin dashboard and CLI."""

from datetime import datetime
from typing import Optional

from marketplace.models import ListingStatus
from marketplace.services.lifecycle.listing_store import ListingStore
from marketplace.services.lifecycle.tier_policy import TIER_POLICIES


def get_lifecycle_stats(store: ListingStore, now: Optional[datetime] = None) -> dict:
    """
    Listing counts by status, plus archived listings whose retention window
    has passed (pending deletion by the cleanup process).
    """
    now = now or datetime.utcnow()
    counts = store.count_by_status()

    by_status = {status.value: counts.get(status.value, 0) for status in ListingStatus}
    # Keep unexpected statuses visible rather than dropping them
    for status, count in counts.items():
        by_status.setdefault(status, count)

    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "pending_deletion": store.count_pending_deletion(now),
        "policies": {
            tier: {
                "listing_duration_hours": policy.listing_duration_hours,
                "retention_days": policy.retention_days,
            }
            for tier, policy in TIER_POLICIES.items()
        },
        "generated_at": now,
    }
