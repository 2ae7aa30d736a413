# core/admission.py
"""
Admission control for /stickerize.

One synchronous call per request decides admit/deny from:
  - the caller's effective tier (core/entitlements.py)
  - their personal hourly counter
  - for free guilds, the guild's shared hourly + daily pool

Nothing here does I/O or builds display text. The command layer turns the
returned Verdict into a message.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Literal, Optional

import config
from core.entitlements import (
    Entitlement,
    EntitlementContext,
    EntitlementResolver,
    Tier,
    check_context,
)
from utils.subscription_store import SubscriptionStore
from utils.usage_ledger import UsageLedger

Reason = Literal["ok", "personal_limit", "guild_hourly_limit", "guild_daily_limit"]


@dataclass(frozen=True)
class AdmissionPolicy:
    admin_user_id: Optional[int] = None
    vip_channel_id: Optional[int] = None
    standard_hourly_limit: int = 10
    guild_hourly_limit: int = 5
    guild_daily_limit: int = 25

    @classmethod
    def from_config(cls) -> "AdmissionPolicy":
        return cls(
            admin_user_id=config.ADMIN_USER_ID,
            vip_channel_id=config.VIP_CHANNEL_ID,
            standard_hourly_limit=config.STANDARD_HOURLY_LIMIT,
            guild_hourly_limit=config.FREE_GUILD_HOURLY_LIMIT,
            guild_daily_limit=config.FREE_GUILD_DAILY_LIMIT,
        )


@dataclass(frozen=True)
class Verdict:
    admitted: bool
    tier: Tier
    # None => unlimited
    limit: Optional[int]
    reason: Reason
    # Epoch seconds when the blocking (or, on admit, the personal) window resets.
    reset_at: Optional[float] = None
    # Personal uses left this window after this request. None => unlimited.
    remaining: Optional[int] = None
    # Shared guild uses left (min of hourly/daily). None => pool not applied.
    guild_remaining: Optional[int] = None


@dataclass(frozen=True)
class UsageSnapshot:
    tier: Tier
    personal_used: int
    personal_limit: Optional[int]
    personal_reset_at: float
    guild_pool_applies: bool
    guild_hourly_used: int = 0
    guild_hourly_limit: int = 0
    guild_hourly_reset_at: Optional[float] = None
    guild_daily_used: int = 0
    guild_daily_limit: int = 0
    guild_daily_reset_at: Optional[float] = None


class AdmissionController:
    """Owns the usage ledger; built once at startup and shared by commands.

    admit() holds a lock across the whole check-then-increment sequence so two
    requests for the same subject can never both squeeze under the limit. On
    the bot's event loop the call has no await points anyway.
    """

    def __init__(
        self,
        *,
        policy: AdmissionPolicy,
        subscriptions: SubscriptionStore,
        ledger: Optional[UsageLedger] = None,
    ) -> None:
        self.policy = policy
        self.ledger = ledger if ledger is not None else UsageLedger()
        self.resolver = EntitlementResolver(
            subscriptions=subscriptions,
            admin_user_id=policy.admin_user_id,
            vip_channel_id=policy.vip_channel_id,
            standard_hourly_limit=policy.standard_hourly_limit,
        )
        self._lock = threading.Lock()

    def resolve(self, user_id: int, guild_id: int | None = None, channel_id: int | None = None) -> Entitlement:
        return self.resolver.resolve(EntitlementContext(user_id, guild_id, channel_id))

    def admit(self, user_id: int, guild_id: int | None = None, channel_id: int | None = None) -> Verdict:
        ctx = check_context(EntitlementContext(user_id, guild_id, channel_id))

        with self._lock:
            ent = self.resolver.resolve(ctx)
            quota = ent.hourly_quota

            # 1) personal budget (checked first so the user hears about their
            #    own limit even when the guild pool still has room)
            uc = self.ledger.get_or_init_user_counter(ctx.user_id)
            if quota is not None and uc.count >= quota:
                return Verdict(
                    admitted=False,
                    tier=ent.tier,
                    limit=quota,
                    reason="personal_limit",
                    reset_at=uc.reset_at,
                    remaining=0,
                )

            # 2) shared free-guild pool
            use_pool = ctx.guild_id is not None and not ent.exempts_guild_pool
            guild_remaining: Optional[int] = None
            if use_pool:
                gc = self.ledger.get_or_init_guild_counter(ctx.guild_id)
                if gc.hourly_count >= self.policy.guild_hourly_limit:
                    return Verdict(
                        admitted=False,
                        tier=ent.tier,
                        limit=quota,
                        reason="guild_hourly_limit",
                        reset_at=gc.hourly_reset_at,
                        remaining=self._remaining(quota, uc.count),
                        guild_remaining=0,
                    )
                if gc.daily_count >= self.policy.guild_daily_limit:
                    return Verdict(
                        admitted=False,
                        tier=ent.tier,
                        limit=quota,
                        reason="guild_daily_limit",
                        reset_at=gc.daily_reset_at,
                        remaining=self._remaining(quota, uc.count),
                        guild_remaining=0,
                    )

            # 3) admit + count
            uc = self.ledger.increment_user(ctx.user_id)
            if use_pool:
                gc = self.ledger.increment_guild(ctx.guild_id)
                guild_remaining = max(
                    0,
                    min(
                        self.policy.guild_hourly_limit - gc.hourly_count,
                        self.policy.guild_daily_limit - gc.daily_count,
                    ),
                )

            return Verdict(
                admitted=True,
                tier=ent.tier,
                limit=quota,
                reason="ok",
                reset_at=uc.reset_at,
                remaining=self._remaining(quota, uc.count),
                guild_remaining=guild_remaining,
            )

    def snapshot(self, user_id: int, guild_id: int | None = None, channel_id: int | None = None) -> UsageSnapshot:
        """Current usage without consuming anything (for /limits)."""
        ctx = check_context(EntitlementContext(user_id, guild_id, channel_id))
        with self._lock:
            ent = self.resolver.resolve(ctx)
            uc = self.ledger.get_or_init_user_counter(ctx.user_id)
            use_pool = ctx.guild_id is not None and not ent.exempts_guild_pool
            if not use_pool:
                return UsageSnapshot(
                    tier=ent.tier,
                    personal_used=uc.count,
                    personal_limit=ent.hourly_quota,
                    personal_reset_at=uc.reset_at,
                    guild_pool_applies=False,
                )
            gc = self.ledger.get_or_init_guild_counter(ctx.guild_id)
            return UsageSnapshot(
                tier=ent.tier,
                personal_used=uc.count,
                personal_limit=ent.hourly_quota,
                personal_reset_at=uc.reset_at,
                guild_pool_applies=True,
                guild_hourly_used=gc.hourly_count,
                guild_hourly_limit=self.policy.guild_hourly_limit,
                guild_hourly_reset_at=gc.hourly_reset_at,
                guild_daily_used=gc.daily_count,
                guild_daily_limit=self.policy.guild_daily_limit,
                guild_daily_reset_at=gc.daily_reset_at,
            )

    def prune(self, idle_seconds: float) -> int:
        with self._lock:
            return self.ledger.prune(idle_seconds)

    def reset_usage(self, *, user_id: int | None = None, guild_id: int | None = None) -> None:
        """Forget a user's and/or a guild's counters (admin override)."""
        if user_id is None and guild_id is None:
            raise ValueError("reset_usage needs a user_id or a guild_id")
        with self._lock:
            if user_id is not None:
                self.ledger.reset_user(user_id)
            if guild_id is not None:
                self.ledger.reset_guild(guild_id)

    @staticmethod
    def _remaining(quota: Optional[int], used: int) -> Optional[int]:
        if quota is None:
            return None
        return max(0, int(quota) - int(used))
