# marketplace/services/lifecycle/sweep.py
"""
Listing expiration sweep.

Runs on an external schedule (hourly cron). Each run:

1. Loads active listings and archives those past created_at + tier duration
   (reason tier_duration_exceeded)
2. Loads inactive listings untouched for INACTIVE_TIMEOUT_DAYS and archives
   them (reason inactive_timeout)
3. Commits staged archives in independent batches of at most batch_size

Idempotent: archived listings are no longer selected, and every update is
conditional on the status it was read with. A failed batch is rolled back
and logged; the remaining batches still run. Mutual exclusion between
overlapping runs is left to the scheduler.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from marketplace.logging_config import log_stage, new_trace_id
from marketplace.models import ArchiveReason
from marketplace.services.lifecycle.listing_store import ListingRecord, ListingStore, StatusUpdate
from marketplace.services.lifecycle.tier_policy import get_tier_policy
from marketplace.services.lifecycle.tier_resolver import TierResolver, resolve_tier_or_fallback
from marketplace.services.lifecycle.transitions import build_archive_update, compute_expiration

logger = logging.getLogger(__name__)

# Backing store's per-transaction write limit
MAX_BATCH_SIZE = 500
DEFAULT_INACTIVE_TIMEOUT_DAYS = 7


@dataclass
class ArchivedListingTrace:
    """One archived (or, in a dry run, archivable) listing."""
    listing_id: str
    user_id: str
    reason: str
    account_tier: str
    expiration_time: Optional[datetime] = None
    batch_number: Optional[int] = None


@dataclass
class SweepResult:
    """Summary of one sweep run."""
    success: bool = True
    dry_run: bool = False
    timestamp: datetime = field(default_factory=datetime.utcnow)
    active_scanned: int = 0
    inactive_scanned: int = 0
    total_archived: int = 0
    total_deleted: int = 0
    total_skipped: int = 0
    completed_batches: int = 0
    failed_batches: int = 0
    fallback_tier_lookups: int = 0
    archived: List[ArchivedListingTrace] = field(default_factory=list)
    failed_listing_ids: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)


@dataclass
class _StagedArchive:
    update: StatusUpdate
    trace: ArchivedListingTrace


def _chunks(items: List[_StagedArchive], size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _stage(
    record: ListingRecord,
    reason: ArchiveReason,
    resolver: TierResolver,
    now: datetime,
    result: SweepResult,
    check_lifetime: bool,
) -> Optional[_StagedArchive]:
    tier, used_fallback = resolve_tier_or_fallback(resolver, record.user_id)
    if used_fallback:
        result.fallback_tier_lookups += 1
    policy = get_tier_policy(tier)

    expiration_time = None
    if check_lifetime:
        expiration_time = compute_expiration(record, policy, now)
        if now <= expiration_time:
            return None

    return _StagedArchive(
        update=build_archive_update(record, reason, policy, now, expiration_time=expiration_time),
        trace=ArchivedListingTrace(
            listing_id=record.id,
            user_id=record.user_id,
            reason=reason.value,
            account_tier=policy.tier,
            expiration_time=expiration_time,
        ),
    )


def _stage_all(
    records: List[ListingRecord],
    reason: ArchiveReason,
    resolver: TierResolver,
    now: datetime,
    result: SweepResult,
    staged: Dict[str, _StagedArchive],
    check_lifetime: bool,
) -> None:
    for record in records:
        if record.id in staged:
            # First staging wins; the listing is archived once
            continue
        try:
            archive = _stage(record, reason, resolver, now, result, check_lifetime)
        except Exception as e:
            logger.error(
                f"Error processing listing {record.id}: {e}",
                extra={"event": "listing_failed", "listing_id": record.id},
            )
            result.errors.append(f"Listing {record.id}: {e}")
            result.failed_listing_ids.append(record.id)
            continue

        if archive is not None:
            staged[record.id] = archive


def _commit_batches(
    store: ListingStore,
    staged: List[_StagedArchive],
    batch_size: int,
    initiated_by: str,
    result: SweepResult,
) -> None:
    for batch_number, batch in enumerate(_chunks(staged, batch_size), start=1):
        listing_ids = [item.update.listing_id for item in batch]
        try:
            applied = set(store.apply_batch([item.update for item in batch], initiated_by=initiated_by))
        except Exception as e:
            result.failed_batches += 1
            result.failed_listing_ids.extend(listing_ids)
            result.errors.append(f"Batch {batch_number}: {e}")
            logger.error(
                f"Batch {batch_number} failed, {len(batch)} listings left for next run: {e}",
                extra={
                    "event": "batch_failed",
                    "batch_number": batch_number,
                    "listing_ids": listing_ids,
                    "items_failed": len(batch),
                },
            )
            continue

        result.completed_batches += 1
        for item in batch:
            if item.update.listing_id in applied:
                item.trace.batch_number = batch_number
                result.archived.append(item.trace)
                result.total_archived += 1
            else:
                result.total_skipped += 1

        logger.info(
            f"Committed batch {batch_number} with {len(applied)} archives",
            extra={
                "event": "batch_committed",
                "batch_number": batch_number,
                "listing_ids": sorted(applied),
                "items_processed": len(applied),
            },
        )


def run_expiration_sweep(
    store: ListingStore,
    resolver: TierResolver,
    now: Optional[datetime] = None,
    batch_size: int = MAX_BATCH_SIZE,
    inactive_timeout_days: int = DEFAULT_INACTIVE_TIMEOUT_DAYS,
    dry_run: bool = False,
    initiated_by: str = "cron",
) -> SweepResult:
    """
    Archive tier-expired active listings and timed-out inactive listings.

    Args:
        store: Listing accessor
        resolver: Account tier resolver (lookup failures fall back to free)
        now: Reference instant, defaults to utcnow
        batch_size: Max listings per committed batch (capped at 500)
        inactive_timeout_days: Idle window for inactive listings
        dry_run: Stage and report, but write nothing
        initiated_by: Recorded on lifecycle events (cron, admin, cli)

    Returns:
        SweepResult with counts and a per-listing trace

    Raises:
        Storage errors while loading listings. Nothing has been written at
        that point, and the next run retries from scratch.
    """
    now = now or datetime.utcnow()
    batch_size = max(1, min(batch_size, MAX_BATCH_SIZE))
    result = SweepResult(dry_run=dry_run, timestamp=now)
    trace_id = new_trace_id()

    logger.info(
        f"Starting expiration sweep (dry_run={dry_run}, batch_size={batch_size})",
        extra={"event": "sweep_start", "initiated_by": initiated_by},
    )

    staged: Dict[str, _StagedArchive] = {}

    with log_stage("load_active", trace_id=trace_id):
        active = store.fetch_active_listings()
    result.active_scanned = len(active)
    _stage_all(active, ArchiveReason.TIER_DURATION_EXCEEDED, resolver, now, result, staged, check_lifetime=True)

    inactive_cutoff = now - timedelta(days=inactive_timeout_days)
    with log_stage("load_inactive", trace_id=trace_id):
        inactive = store.fetch_inactive_listings_older_than(inactive_cutoff)
    result.inactive_scanned = len(inactive)
    _stage_all(inactive, ArchiveReason.INACTIVE_TIMEOUT, resolver, now, result, staged, check_lifetime=False)

    logger.info(
        f"Found {len(staged)} listings to archive "
        f"({result.active_scanned} active, {result.inactive_scanned} inactive scanned)",
        extra={"event": "sweep_staged", "items_processed": len(staged)},
    )

    if dry_run:
        result.archived = [item.trace for item in staged.values()]
        result.total_archived = len(staged)
    else:
        with log_stage("commit", trace_id=trace_id):
            _commit_batches(store, list(staged.values()), batch_size, initiated_by, result)

    if result.errors:
        result.success = False

    logger.info(
        f"Expiration sweep complete: {result.total_archived} archived, "
        f"{result.failed_batches} failed batches, {result.error_count} errors",
        extra={
            "event": "sweep_complete",
            "items_processed": result.total_archived,
            "items_failed": len(result.failed_listing_ids),
        },
    )
    return result
