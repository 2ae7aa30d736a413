# core/pricing.py
"""ADA pricing for paid tiers (single source of truth for amounts + feature lists)."""
from __future__ import annotations

from dataclasses import dataclass

import config
from utils.subscription_store import Scope, SubscriptionTier

MIN_MONTHS = 1
MAX_MONTHS = 12


@dataclass(frozen=True)
class TierPrice:
    tier: SubscriptionTier
    monthly_ada: float
    scope: Scope
    features: tuple[str, ...]


TIER_PRICING: dict[str, TierPrice] = {
    "Premium": TierPrice(
        tier="Premium",
        monthly_ada=config.PRICE_PREMIUM_ADA,
        scope="personal",
        features=(
            "Unlimited animations for you, in any server",
            "No personal hourly limit",
            "Sticker and emoji sizes",
        ),
    ),
    "Server": TierPrice(
        tier="Server",
        monthly_ada=config.PRICE_SERVER_ADA,
        scope="guild",
        features=(
            "Unlimited animations for every member of this server",
            "No shared server pool",
            "All Premium features for everyone",
        ),
    ),
}


def get_tier_price(tier: str) -> TierPrice:
    try:
        return TIER_PRICING[tier]
    except KeyError:
        raise ValueError(f"Invalid tier: {tier}") from None


def scope_for_tier(tier: str) -> Scope:
    return get_tier_price(tier).scope


def calculate_payment_amount(tier: str, months: int) -> float:
    """Total ADA due for `months` of `tier`."""
    m = int(months)
    if m < MIN_MONTHS or m > MAX_MONTHS:
        raise ValueError(f"Duration must be between {MIN_MONTHS} and {MAX_MONTHS} months, got {m}")
    return round(get_tier_price(tier).monthly_ada * m, 6)
