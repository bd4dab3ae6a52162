"""
Pydantic schemas for API request/response validation.
"""

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
    SweepResponse,
    SweepSummary,
)

__all__ = [
    "ErrorResponse",
    "SweepSummary",
    "SweepResponse",
    "ArchivedListingItem",
    "AdminSweepRequest",
    "AdminSweepResponse",
    "OverrideRequest",
    "OverrideResponse",
    "ExpirationCheckResponse",
    "RestorePremiumRequest",
    "RestorePremiumResponse",
    "LifecycleStatsResponse",
]
