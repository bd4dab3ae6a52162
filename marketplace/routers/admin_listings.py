# marketplace/routers/admin_listings.py
"""
Admin endpoints for listing lifecycle management.

POST   /v1/admin/listings/override              - Archive, reactivate or refresh one listing
POST   /v1/admin/listings/{listing_id}/check    - Archive one listing now if expired
POST   /v1/admin/listings/restore-premium       - Restore a premium user's tier archives
POST   /v1/admin/listings/sweep                 - Run the expiration sweep (supports dry run)
GET    /v1/admin/listings/lifecycle/status      - Counts by status, pending deletion
DELETE /v1/admin/tier-cache/{user_id}           - Drop a cached account tier
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from marketplace.auth import require_admin_key
from marketplace.config import get_settings
from marketplace.dependencies import get_listing_store, get_tier_cache, get_tier_resolver
from marketplace.schemas.lifecycle import (
    AdminSweepRequest,
    AdminSweepResponse,
    ArchivedListingItem,
    ErrorResponse,
    ExpirationCheckResponse,
    LifecycleStatsResponse,
    OverrideRequest,
    OverrideResponse,
    RestorePremiumRequest,
    RestorePremiumResponse,
    SweepSummary,
)
from marketplace.services.lifecycle import (
    ListingStore,
    TierCache,
    TierResolver,
    apply_override,
    check_listing_expiration,
    get_lifecycle_stats,
    restore_premium_listings,
    run_expiration_sweep,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin", tags=["admin-listings"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


@router.post("/listings/override", response_model=OverrideResponse, responses=ERROR_RESPONSES)
def override_listing(
    request: OverrideRequest,
    _: None = Depends(require_admin_key),
    store: ListingStore = Depends(get_listing_store),
    resolver: TierResolver = Depends(get_tier_resolver),
) -> OverrideResponse:
    """
    Apply an operator action to a single listing, bypassing the sweep schedule.

    - `archive`: archive now (reason `manual` or `reported`), 7 day retention
    - `reactivate`: back to active with a fresh full-tier lifetime
    - `refresh`: bump `updatedAt` only
    """
    listing = apply_override(
        store,
        resolver,
        request.listing_id,
        request.action,
        reason=request.reason,
        initiated_by="admin",
    )

    return OverrideResponse(
        listing_id=listing.id,
        status=listing.status,
        expires_at=listing.expires_at,
        updated_at=listing.updated_at,
        archived_at=listing.archived_at,
        archived_reason=listing.archived_reason,
    )


@router.post(
    "/listings/{listing_id}/check",
    response_model=ExpirationCheckResponse,
    responses=ERROR_RESPONSES,
)
def check_listing(
    listing_id: str,
    _: None = Depends(require_admin_key),
    store: ListingStore = Depends(get_listing_store),
    resolver: TierResolver = Depends(get_tier_resolver),
) -> ExpirationCheckResponse:
    """
    Check one listing against its tier lifetime and archive it if expired.

    Useful for listings the scheduled sweep has not reached yet.
    """
    check = check_listing_expiration(store, resolver, listing_id, initiated_by="admin")

    return ExpirationCheckResponse(
        listing_id=check.listing_id,
        status=check.status,
        archived=check.archived,
        account_tier=check.account_tier,
        expires_at=check.expires_at,
    )


@router.post("/listings/restore-premium", response_model=RestorePremiumResponse)
def restore_premium(
    request: RestorePremiumRequest,
    _: None = Depends(require_admin_key),
    store: ListingStore = Depends(get_listing_store),
    resolver: TierResolver = Depends(get_tier_resolver),
    cache: TierCache = Depends(get_tier_cache),
) -> RestorePremiumResponse:
    """
    Restore listings archived for tier duration that a premium lifetime still covers.

    The user's cached tier is dropped first so a fresh upgrade is seen.
    """
    cache.invalidate(request.user_id)
    result = restore_premium_listings(store, resolver, request.user_id, initiated_by="admin")

    return RestorePremiumResponse(
        user_id=result.user_id,
        status=result.status,
        total_found=result.total_found,
        restored_count=result.restored_count,
        restored_listing_ids=result.restored_listing_ids,
        errors=result.errors,
    )


@router.post("/listings/sweep", response_model=AdminSweepResponse)
def trigger_sweep(
    request: AdminSweepRequest,
    _: None = Depends(require_admin_key),
    store: ListingStore = Depends(get_listing_store),
    resolver: TierResolver = Depends(get_tier_resolver),
) -> AdminSweepResponse:
    """
    Run the expiration sweep on demand.

    With `dry_run` the listings that would be archived are returned and
    nothing is written.
    """
    try:
        result = run_expiration_sweep(
            store,
            resolver,
            batch_size=request.batch_size,
            inactive_timeout_days=get_settings().INACTIVE_TIMEOUT_DAYS,
            dry_run=request.dry_run,
            initiated_by="admin",
        )
    except Exception as exc:
        logger.error(f"Admin sweep failed: {exc}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Sweep failed: {exc}")

    return AdminSweepResponse(
        success=result.success,
        dry_run=result.dry_run,
        summary=SweepSummary(
            total_archived=result.total_archived,
            total_deleted=result.total_deleted,
            completed_batches=result.completed_batches,
            failed_batches=result.failed_batches,
            error_count=result.error_count,
            timestamp=result.timestamp,
        ),
        active_scanned=result.active_scanned,
        inactive_scanned=result.inactive_scanned,
        total_skipped=result.total_skipped,
        fallback_tier_lookups=result.fallback_tier_lookups,
        archived=[
            ArchivedListingItem(
                listing_id=item.listing_id,
                user_id=item.user_id,
                reason=item.reason,
                account_tier=item.account_tier,
                expiration_time=item.expiration_time,
                batch_number=item.batch_number,
            )
            for item in result.archived
        ],
        failed_listing_ids=result.failed_listing_ids,
        errors=result.errors,
    )


@router.get("/listings/lifecycle/status", response_model=LifecycleStatsResponse)
def lifecycle_status(
    _: None = Depends(require_admin_key),
    store: ListingStore = Depends(get_listing_store),
) -> LifecycleStatsResponse:
    """Listing counts by status and archived listings past retention."""
    return LifecycleStatsResponse(**get_lifecycle_stats(store))


@router.delete("/tier-cache/{user_id}")
def invalidate_tier_cache(
    user_id: str,
    _: None = Depends(require_admin_key),
    cache: TierCache = Depends(get_tier_cache),
) -> dict:
    """Forget a user's cached tier, e.g. right after a subscription change."""
    cache.invalidate(user_id)
    return {"status": "ok", "user_id": user_id}
