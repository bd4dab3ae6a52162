# marketplace/dependencies.py
"""FastAPI dependencies for lifecycle services."""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.services.lifecycle import (
    CachedTierResolver,
    ListingStore,
    SubscriptionTierResolver,
    TierCache,
    TierResolver,
)


def get_tier_cache(request: Request) -> TierCache:
    """The app-scoped tier cache created at startup."""
    return request.app.state.tier_cache


def get_listing_store(db: Session = Depends(get_db)) -> ListingStore:
    return ListingStore(db)


def get_tier_resolver(
    db: Session = Depends(get_db),
    cache: TierCache = Depends(get_tier_cache),
) -> TierResolver:
    return CachedTierResolver(SubscriptionTierResolver(db), cache)
