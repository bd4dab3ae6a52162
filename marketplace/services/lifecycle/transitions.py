# marketplace/services/lifecycle/transitions.py
"""
Listing status transitions shared by the sweep and the operator tools.

Builds StatusUpdate objects; nothing here touches the database.
"""

from datetime import datetime
from typing import Optional

from marketplace.models import ArchiveReason, LifecycleEventType, ListingStatus
from marketplace.services.lifecycle.listing_store import ListingRecord, StatusUpdate
from marketplace.services.lifecycle.tier_policy import TierPolicy


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def compute_expiration(record: ListingRecord, policy: TierPolicy, now: datetime) -> datetime:
    """
    When the listing's tier lifetime ends.

    A missing created_at counts as "now", so malformed rows are never
    treated as already expired.
    """
    created_at = record.created_at or now
    return created_at + policy.listing_duration


def build_archive_update(
    record: ListingRecord,
    reason: ArchiveReason,
    policy: TierPolicy,
    now: datetime,
    expiration_time: Optional[datetime] = None,
) -> StatusUpdate:
    """
    Archive transition: status=archived plus retention expiry.

    Only applies while the row still has the status it was read with, so a
    second run (or an overlapping one) cannot overwrite archived_at.
    """
    return StatusUpdate(
        listing_id=record.id,
        expected_status=record.status,
        values={
            "status": ListingStatus.ARCHIVED.value,
            "archived_at": now,
            "archived_reason": reason.value,
            "expires_at": now + policy.retention,
            "previous_status": record.status,
            "previous_expires_at": record.expires_at,
            "account_tier": policy.tier,
            "updated_at": now,
        },
        event_type=LifecycleEventType.ARCHIVED.value,
        reason=reason.value,
        event_metadata={
            "previous_status": record.status,
            "account_tier": policy.tier,
            "created_at": _iso(record.created_at),
            "expiration_time": _iso(expiration_time),
        },
    )


def build_reactivate_update(record: ListingRecord, policy: TierPolicy, now: datetime) -> StatusUpdate:
    """
    Back to active with a fresh full-tier lifetime and no archive metadata.

    The sweep measures lifetime from created_at, so the lifetime restarts
    there; the first creation instant moves to original_created_at.
    """
    return StatusUpdate(
        listing_id=record.id,
        expected_status=record.status,
        values={
            "status": ListingStatus.ACTIVE.value,
            "created_at": now,
            "original_created_at": record.original_created_at or record.created_at,
            "expires_at": now + policy.listing_duration,
            "archived_at": None,
            "archived_reason": None,
            "previous_status": None,
            "previous_expires_at": None,
            "account_tier": policy.tier,
            "updated_at": now,
        },
        event_type=LifecycleEventType.REACTIVATED.value,
        event_metadata={
            "previous_status": record.status,
            "account_tier": policy.tier,
        },
    )


def build_refresh_update(record: ListingRecord, now: datetime) -> StatusUpdate:
    """Touch updated_at only. Not a lifecycle transition."""
    return StatusUpdate(
        listing_id=record.id,
        values={"updated_at": now},
        event_type=LifecycleEventType.REFRESHED.value,
    )


def build_restore_update(
    record: ListingRecord,
    policy: TierPolicy,
    expires_at: datetime,
    now: datetime,
    restored_reason: str,
) -> StatusUpdate:
    """Undo an archive, returning the listing to its previous status."""
    return StatusUpdate(
        listing_id=record.id,
        expected_status=ListingStatus.ARCHIVED.value,
        values={
            "status": record.previous_status or ListingStatus.ACTIVE.value,
            "expires_at": expires_at,
            "archived_at": None,
            "archived_reason": None,
            "previous_status": None,
            "previous_expires_at": None,
            "restored_at": now,
            "restored_reason": restored_reason,
            "account_tier": policy.tier,
            "updated_at": now,
        },
        event_type=LifecycleEventType.RESTORED.value,
        reason=restored_reason,
        event_metadata={"archived_reason": record.archived_reason},
    )
