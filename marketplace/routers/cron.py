# marketplace/routers/cron.py
"""
Scheduler-triggered endpoints.

GET|POST /v1/cron/archive-expired - Run the listing expiration sweep
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from marketplace.auth import require_cron_secret
from marketplace.config import get_settings
from marketplace.dependencies import get_listing_store, get_tier_resolver
from marketplace.schemas.lifecycle import ErrorResponse, SweepResponse, SweepSummary
from marketplace.services.lifecycle import ListingStore, TierResolver, run_expiration_sweep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/cron", tags=["cron"])


@router.api_route(
    "/archive-expired",
    methods=["GET", "POST"],
    response_model=SweepResponse,
    responses={401: {"description": "Missing or invalid bearer credential"}, 500: {"model": ErrorResponse}},
)
def archive_expired_listings(
    authorized_as: str = Depends(require_cron_secret),
    store: ListingStore = Depends(get_listing_store),
    resolver: TierResolver = Depends(get_tier_resolver),
):
    """
    Archive expired active listings and timed-out inactive listings.

    Invoked hourly by the scheduler with `Authorization: Bearer <CRON_SECRET>`.
    Safe to re-run: already archived listings are not selected again.
    """
    settings = get_settings()
    logger.info(f"Archive sweep authorized as {authorized_as}", extra={"initiated_by": authorized_as})

    try:
        result = run_expiration_sweep(
            store,
            resolver,
            batch_size=settings.SWEEP_BATCH_SIZE,
            inactive_timeout_days=settings.INACTIVE_TIMEOUT_DAYS,
            initiated_by=authorized_as,
        )
    except Exception as exc:
        logger.error(f"Archive sweep failed: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Failed to process listings",
                "details": str(exc),
                "timestamp": datetime.utcnow().isoformat(),
            },
        )

    return SweepResponse(
        message="Successfully processed listings",
        summary=SweepSummary(
            total_archived=result.total_archived,
            total_deleted=result.total_deleted,
            completed_batches=result.completed_batches,
            failed_batches=result.failed_batches,
            error_count=result.error_count,
            timestamp=result.timestamp,
        ),
    )
