# marketplace/schemas/lifecycle.py
"""
Schemas for listing lifecycle endpoints.

Cron and override payloads use camelCase on the wire to match the
marketplace front end; Python attributes stay snake_case.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -----------------------------------------------------------------------------
# Errors
# -----------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Error object returned by lifecycle endpoints."""

    error: str
    details: str | None = None


# -----------------------------------------------------------------------------
# Sweep
# -----------------------------------------------------------------------------


class SweepSummary(CamelModel):
    """Counts from one sweep run."""

    total_archived: int
    total_deleted: int
    completed_batches: int
    failed_batches: int = 0
    error_count: int = 0
    timestamp: datetime


class SweepResponse(CamelModel):
    """Response from the scheduled sweep trigger."""

    message: str
    summary: SweepSummary


class ArchivedListingItem(CamelModel):
    """Per-listing trace entry."""

    listing_id: str
    user_id: str
    reason: str
    account_tier: str
    expiration_time: datetime | None = None
    batch_number: int | None = None


class AdminSweepRequest(BaseModel):
    """Request to run the sweep from the admin API."""

    batch_size: int = Field(500, ge=1, le=500, description="Max listings committed per batch")
    dry_run: bool = Field(False, description="Preview only, don't archive")


class AdminSweepResponse(CamelModel):
    """Detailed sweep result for operators."""

    success: bool
    dry_run: bool
    summary: SweepSummary
    active_scanned: int
    inactive_scanned: int
    total_skipped: int
    fallback_tier_lookups: int
    archived: list[ArchivedListingItem] = Field(default_factory=list)
    failed_listing_ids: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Manual override
# -----------------------------------------------------------------------------


class OverrideRequest(CamelModel):
    """Operator action on a single listing."""

    listing_id: str = Field(..., min_length=1, description="Listing to change")
    # Validated by the service so unknown tokens return 400, not 422
    action: str = Field(..., description="archive | reactivate | refresh")
    reason: str | None = Field(None, description="Archive reason: manual (default) or reported")


class OverrideResponse(CamelModel):
    """State of the listing after an override."""

    listing_id: str
    status: str
    expires_at: datetime | None = None
    updated_at: datetime | None = None
    archived_at: datetime | None = None
    archived_reason: str | None = None


class ExpirationCheckResponse(CamelModel):
    """Outcome of a single-listing expiration check."""

    listing_id: str
    status: str
    archived: bool
    account_tier: str | None = None
    expires_at: datetime | None = None


class RestorePremiumRequest(CamelModel):
    """Restore a premium user's tier-archived listings."""

    user_id: str = Field(..., min_length=1)


class RestorePremiumResponse(CamelModel):
    """Restoration outcome."""

    user_id: str
    status: str
    total_found: int
    restored_count: int
    restored_listing_ids: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Stats
# -----------------------------------------------------------------------------


class LifecycleStatsResponse(BaseModel):
    """Listing counts by lifecycle status."""

    total: int
    by_status: dict[str, int]
    pending_deletion: int
    policies: dict[str, Any]
    generated_at: datetime
