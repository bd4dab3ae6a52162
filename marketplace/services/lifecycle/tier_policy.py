# marketplace/services/lifecycle/tier_policy.py
"""
Account tier policy table.

Maps an account tier to how long its listings stay active and how long
archived listings are retained before the cleanup process may delete them.
Unknown tiers fall back to the free policy so the sweep always makes progress.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from marketplace.models import AccountTier


@dataclass(frozen=True)
class TierPolicy:
    """Listing lifetime rules for one account tier."""
    tier: str
    listing_duration_hours: int
    retention_days: int

    @property
    def listing_duration(self) -> timedelta:
        return timedelta(hours=self.listing_duration_hours)

    @property
    def retention(self) -> timedelta:
        return timedelta(days=self.retention_days)


TIER_POLICIES = {
    AccountTier.FREE.value: TierPolicy(
        tier=AccountTier.FREE.value,
        listing_duration_hours=48,
        retention_days=7,
    ),
    AccountTier.PREMIUM.value: TierPolicy(
        tier=AccountTier.PREMIUM.value,
        listing_duration_hours=720,  # 30 days
        retention_days=7,
    ),
}

# Most restrictive policy, used for unknown tiers and failed lookups
FALLBACK_POLICY = TIER_POLICIES[AccountTier.FREE.value]


def get_tier_policy(tier: Optional[str]) -> TierPolicy:
    """Return the policy for a tier label, falling back to free for anything unknown."""
    if not tier:
        return FALLBACK_POLICY
    label = tier.value if isinstance(tier, AccountTier) else str(tier)
    return TIER_POLICIES.get(label.strip().lower(), FALLBACK_POLICY)
