# core/entitlements.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from utils.subscription_store import SubscriptionStore

Tier = Literal["Standard", "Premium", "Server", "Admin", "VIP"]

# Tiers that cover everyone in the guild, so the free shared pool is skipped.
GUILD_PREMIUM_TIERS: frozenset[str] = frozenset({"Admin", "VIP", "Server"})


@dataclass(frozen=True)
class EntitlementContext:
    user_id: int
    guild_id: Optional[int] = None
    channel_id: Optional[int] = None


@dataclass(frozen=True)
class Entitlement:
    tier: Tier
    # None => unlimited
    hourly_quota: Optional[int]
    source: str  # "admin" | "vip_channel" | "guild_subscription" | "personal_subscription" | "default"

    @property
    def unlimited(self) -> bool:
        return self.hourly_quota is None

    @property
    def exempts_guild_pool(self) -> bool:
        return self.tier in GUILD_PREMIUM_TIERS


def _as_id(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        v = int(value)
    except (TypeError, ValueError):
        return None
    return v if v > 0 else None


def check_context(ctx: EntitlementContext) -> EntitlementContext:
    """Fail fast on a context without a usable user id.

    guild/channel ids are optional; anything unparsable there is treated as
    absent. A bad user id is a caller bug and is never defaulted to a tier.
    """
    uid = ctx.user_id
    if isinstance(uid, bool) or not isinstance(uid, int) or uid <= 0:
        raise ValueError(f"EntitlementContext.user_id must be a positive int, got {uid!r}")
    return EntitlementContext(
        user_id=uid,
        guild_id=_as_id(ctx.guild_id),
        channel_id=_as_id(ctx.channel_id),
    )


class EntitlementResolver:
    """Map (user, guild, channel) to the tier and hourly quota that apply.

    First match wins:
      1. configured admin user          -> Admin, unlimited
      2. configured VIP channel         -> VIP, unlimited
      3. active guild subscription      -> Server, unlimited
      4. active personal subscription   -> its tier, unlimited
      5. otherwise                      -> Standard, standard_hourly_limit
    """

    def __init__(
        self,
        *,
        subscriptions: SubscriptionStore,
        admin_user_id: Optional[int],
        vip_channel_id: Optional[int],
        standard_hourly_limit: int,
    ) -> None:
        self.subscriptions = subscriptions
        self.admin_user_id = _as_id(admin_user_id)
        self.vip_channel_id = _as_id(vip_channel_id)
        self.standard_hourly_limit = max(0, int(standard_hourly_limit))

    def resolve(self, ctx: EntitlementContext) -> Entitlement:
        ctx = check_context(ctx)

        if self.admin_user_id is not None and ctx.user_id == self.admin_user_id:
            return Entitlement(tier="Admin", hourly_quota=None, source="admin")

        if self.vip_channel_id is not None and ctx.channel_id == self.vip_channel_id:
            return Entitlement(tier="VIP", hourly_quota=None, source="vip_channel")

        if ctx.guild_id is not None and self.subscriptions.has_active_server_subscription(ctx.guild_id):
            return Entitlement(tier="Server", hourly_quota=None, source="guild_subscription")

        personal = self.subscriptions.get_active_subscription(ctx.user_id, "personal")
        if personal is not None:
            # A personal record only ever buys personal access, whatever tier
            # string it carries.
            return Entitlement(tier="Premium", hourly_quota=None, source="personal_subscription")

        return Entitlement(tier="Standard", hourly_quota=self.standard_hourly_limit, source="default")
