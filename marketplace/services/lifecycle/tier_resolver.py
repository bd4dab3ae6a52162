# marketplace/services/lifecycle/tier_resolver.py
"""
Account tier resolution.

The sweep only needs "what tier is this user on right now". That question is
answered by a TierResolver so the sweep stays decoupled from billing:

- SubscriptionTierResolver: reads the users table (tier field + subscription)
- CachedTierResolver: wraps any resolver with an injected TierCache

Resolution may be a few minutes stale. The worst case is a listing archived
slightly late, which the sweep tolerates.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Optional

from cachetools import TTLCache
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.models import AccountTier, User

logger = logging.getLogger(__name__)

PREMIUM_SUBSCRIPTION_STATUSES = {"active", "trialing"}
ADMIN_SUBSCRIPTION_PREFIX = "admin_"


class TierResolver(ABC):
    """Capability interface: resolve a user's current account tier."""

    @abstractmethod
    def resolve(self, user_id: str) -> str:
        """
        Return the tier label for a user.

        May raise on lookup failure; callers that must keep making progress
        use resolve_tier_or_fallback().
        """


class SubscriptionTierResolver(TierResolver):
    """
    Resolve tiers from the users table.

    The highest tier wins across three sources:
    1. The account_tier field
    2. An active/trialing subscription, or a canceled one still in its paid period
    3. An admin-granted subscription (stripe id prefixed with admin_)

    A missing user resolves to free.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = datetime.utcnow):
        self.db = db
        self.clock = clock

    def resolve(self, user_id: str) -> str:
        try:
            user = self.db.query(User).filter(User.id == user_id).first()
        except SQLAlchemyError:
            # Leave the session usable for the caller's next query
            self.db.rollback()
            raise

        if user is None:
            logger.debug(f"No user record for {user_id}, defaulting to free tier")
            return AccountTier.FREE.value

        if (user.account_tier or "").lower() == AccountTier.PREMIUM.value:
            return AccountTier.PREMIUM.value

        if self._subscription_grants_premium(user):
            return AccountTier.PREMIUM.value

        return AccountTier.FREE.value

    def _subscription_grants_premium(self, user: User) -> bool:
        status = (user.subscription_status or "").lower()

        if status in PREMIUM_SUBSCRIPTION_STATUSES:
            return True

        # Canceled subscriptions stay premium until the paid period ends
        if status == "canceled" and user.subscription_end_date is not None:
            if self.clock() < user.subscription_end_date:
                return True

        subscription_id = user.stripe_subscription_id or ""
        if subscription_id.startswith(ADMIN_SUBSCRIPTION_PREFIX) and status != "none":
            return True

        return False


class TierCache:
    """
    TTL cache of resolved tiers, keyed by user id.

    Owned by whoever builds resolvers (the FastAPI app, the CLI run) and
    passed in explicitly. Entries expire after ttl_seconds; invalidate() drops
    a single user, e.g. after a subscription change.
    """

    def __init__(
        self,
        maxsize: int = 1024,
        ttl_seconds: int = 300,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl_seconds, timer=timer)
        self._lock = threading.Lock()

    def get(self, user_id: str) -> Optional[str]:
        with self._lock:
            return self._cache.get(user_id)

    def set(self, user_id: str, tier: str) -> None:
        with self._lock:
            self._cache[user_id] = tier

    def invalidate(self, user_id: str) -> None:
        with self._lock:
            self._cache.pop(user_id, None)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


class CachedTierResolver(TierResolver):
    """Read-through cache in front of another resolver. Failures are not cached."""

    def __init__(self, inner: TierResolver, cache: TierCache):
        self.inner = inner
        self.cache = cache

    def resolve(self, user_id: str) -> str:
        cached = self.cache.get(user_id)
        if cached is not None:
            return cached

        tier = self.inner.resolve(user_id)
        self.cache.set(user_id, tier)
        return tier


def resolve_tier_or_fallback(resolver: TierResolver, user_id: Optional[str]) -> tuple[str, bool]:
    """
    Resolve a tier, falling back to free on any lookup failure.

    Returns (tier, used_fallback).
    """
    if not user_id:
        return AccountTier.FREE.value, True

    try:
        return resolver.resolve(user_id), False
    except Exception as e:
        logger.warning(
            f"Tier lookup failed for user {user_id}, using free tier: {e}",
            extra={"event": "tier_lookup_failed", "user_id": user_id},
        )
        return AccountTier.FREE.value, True
