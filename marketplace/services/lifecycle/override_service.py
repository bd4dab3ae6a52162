# marketplace/services/lifecycle/override_service.py
"""
Operator tools for single listings.

- apply_override: force archive / reactivate / refresh outside the sweep
- check_listing_expiration: run the sweep's expiry rule for one listing now
- restore_premium_listings: undo tier archives that a premium lifetime
  would not have triggered (e.g. the owner upgraded after being swept)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from marketplace.models import AccountTier, ArchiveReason, ListingStatus, OverrideAction
from marketplace.services.lifecycle.errors import InvalidActionError, ListingNotFoundError
from marketplace.services.lifecycle.listing_store import ListingRecord, ListingStore
from marketplace.services.lifecycle.tier_policy import get_tier_policy
from marketplace.services.lifecycle.tier_resolver import TierResolver, resolve_tier_or_fallback
from marketplace.services.lifecycle.transitions import (
    build_archive_update,
    build_reactivate_update,
    build_refresh_update,
    build_restore_update,
    compute_expiration,
)

logger = logging.getLogger(__name__)

# Reasons an operator may give for a manual archive
MANUAL_ARCHIVE_REASONS = {ArchiveReason.MANUAL.value, ArchiveReason.REPORTED.value}

PREMIUM_RESTORE_REASON = "premium_user_correction"


def parse_action(action: str) -> OverrideAction:
    """Parse an action token, raising InvalidActionError for anything unknown."""
    token = (action or "").strip().lower()
    try:
        return OverrideAction(token)
    except ValueError:
        valid = ", ".join(a.value for a in OverrideAction)
        raise InvalidActionError(
            f"Invalid action '{action}'",
            details=f"Action must be one of: {valid}",
        )


def _parse_archive_reason(reason: Optional[str]) -> ArchiveReason:
    if not reason:
        return ArchiveReason.MANUAL
    token = reason.strip().lower()
    if token not in MANUAL_ARCHIVE_REASONS:
        raise InvalidActionError(
            f"Invalid archive reason '{reason}'",
            details=f"Reason must be one of: {', '.join(sorted(MANUAL_ARCHIVE_REASONS))}",
        )
    return ArchiveReason(token)


def _require_listing(store: ListingStore, listing_id: str) -> ListingRecord:
    record = store.get_listing(listing_id)
    if record is None:
        raise ListingNotFoundError(listing_id)
    return record


def apply_override(
    store: ListingStore,
    resolver: TierResolver,
    listing_id: str,
    action: str,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
    initiated_by: str = "admin",
) -> ListingRecord:
    """
    Apply an operator action to one listing immediately.

    Args:
        store: Listing accessor
        resolver: Tier resolver (reactivate uses the owner's full tier duration)
        listing_id: Listing to change
        action: archive | reactivate | refresh
        reason: Archive reason, manual (default) or reported
        now: Reference instant, defaults to utcnow
        initiated_by: Recorded on the lifecycle event

    Returns:
        The listing as stored after the action

    Raises:
        InvalidActionError: Unknown action or archive reason
        ListingNotFoundError: No such listing
    """
    parsed = parse_action(action)
    archive_reason = _parse_archive_reason(reason) if parsed == OverrideAction.ARCHIVE else None
    now = now or datetime.utcnow()

    record = _require_listing(store, listing_id)

    if parsed == OverrideAction.ARCHIVE:
        if record.status == ListingStatus.ARCHIVED.value:
            logger.info(f"Listing {listing_id} already archived, nothing to do")
            return record
        tier, _ = resolve_tier_or_fallback(resolver, record.user_id)
        update = build_archive_update(record, archive_reason, get_tier_policy(tier), now)

    elif parsed == OverrideAction.REACTIVATE:
        tier, _ = resolve_tier_or_fallback(resolver, record.user_id)
        update = build_reactivate_update(record, get_tier_policy(tier), now)

    else:
        update = build_refresh_update(record, now)

    applied = store.apply_status_update(listing_id, update, initiated_by=initiated_by)
    if not applied:
        logger.warning(
            f"Listing {listing_id} changed before {parsed.value} could apply",
            extra={"event": "override_skipped", "listing_id": listing_id},
        )
    else:
        logger.info(
            f"Applied {parsed.value} to listing {listing_id}",
            extra={"event": "override_applied", "listing_id": listing_id, "initiated_by": initiated_by},
        )

    return _require_listing(store, listing_id)


@dataclass
class ExpirationCheck:
    """Outcome of checking one listing against its tier lifetime."""
    listing_id: str
    status: str
    archived: bool
    account_tier: Optional[str] = None
    expires_at: Optional[datetime] = None


def check_listing_expiration(
    store: ListingStore,
    resolver: TierResolver,
    listing_id: str,
    now: Optional[datetime] = None,
    initiated_by: str = "admin",
) -> ExpirationCheck:
    """
    Archive one listing now if its tier lifetime has elapsed.

    Non-active listings are reported as they are.
    """
    now = now or datetime.utcnow()
    record = _require_listing(store, listing_id)

    if record.status != ListingStatus.ACTIVE.value:
        return ExpirationCheck(
            listing_id=record.id,
            status=record.status,
            archived=False,
            account_tier=record.account_tier,
            expires_at=record.expires_at,
        )

    tier, _ = resolve_tier_or_fallback(resolver, record.user_id)
    policy = get_tier_policy(tier)
    expiration_time = compute_expiration(record, policy, now)

    if now <= expiration_time:
        return ExpirationCheck(
            listing_id=record.id,
            status=record.status,
            archived=False,
            account_tier=policy.tier,
            expires_at=expiration_time,
        )

    update = build_archive_update(
        record,
        ArchiveReason.TIER_DURATION_EXCEEDED,
        policy,
        now,
        expiration_time=expiration_time,
    )
    applied = store.apply_status_update(listing_id, update, initiated_by=initiated_by)
    current = _require_listing(store, listing_id)

    if applied:
        logger.info(
            f"Listing {listing_id} expired at {expiration_time.isoformat()}, archived",
            extra={"event": "listing_archived", "listing_id": listing_id, "account_tier": policy.tier},
        )

    return ExpirationCheck(
        listing_id=current.id,
        status=current.status,
        archived=applied,
        account_tier=policy.tier,
        expires_at=current.expires_at,
    )


@dataclass
class RestoreResult:
    """Outcome of restoring a premium user's tier-archived listings."""
    user_id: str
    status: str  # skipped | no_listings | restored
    total_found: int = 0
    restored_count: int = 0
    restored_listing_ids: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def restore_premium_listings(
    store: ListingStore,
    resolver: TierResolver,
    user_id: str,
    now: Optional[datetime] = None,
    initiated_by: str = "admin",
) -> RestoreResult:
    """
    Restore listings archived for tier_duration_exceeded that a premium
    lifetime would still cover. Only runs for users currently on premium.
    """
    now = now or datetime.utcnow()

    tier, _ = resolve_tier_or_fallback(resolver, user_id)
    if tier != AccountTier.PREMIUM.value:
        logger.info(f"User {user_id} is not premium, no restoration needed")
        return RestoreResult(user_id=user_id, status="skipped")

    archived = store.fetch_archived_listings_for_user(
        user_id,
        reason=ArchiveReason.TIER_DURATION_EXCEEDED.value,
    )
    if not archived:
        return RestoreResult(user_id=user_id, status="no_listings")

    result = RestoreResult(user_id=user_id, status="restored", total_found=len(archived))
    premium = get_tier_policy(AccountTier.PREMIUM.value)

    for record in archived:
        should_expire_at = compute_expiration(record, premium, now)
        if now >= should_expire_at:
            logger.debug(f"Listing {record.id} is past its premium lifetime too, leaving archived")
            continue

        update = build_restore_update(record, premium, should_expire_at, now, PREMIUM_RESTORE_REASON)
        try:
            if store.apply_status_update(record.id, update, initiated_by=initiated_by):
                result.restored_count += 1
                result.restored_listing_ids.append(record.id)
        except Exception as e:
            logger.error(
                f"Error restoring listing {record.id}: {e}",
                extra={"event": "restore_failed", "listing_id": record.id, "user_id": user_id},
            )
            result.errors.append(f"Listing {record.id}: {e}")

    logger.info(
        f"Restored {result.restored_count} of {result.total_found} archived listings for user {user_id}",
        extra={"event": "restore_complete", "user_id": user_id, "items_processed": result.restored_count},
    )
    return result
