# utils/subscription_store.py
"""Subscription state (personal + guild), held in memory.

The entitlement resolver reads this synchronously on every request, so the
authoritative copy lives in process memory. Durability is a listener's job:
utils/subscription_db.py loads rows at startup and writes every change back.

Expiry is lazy: nothing sweeps old records. A read that finds an "active"
record past its end time flips it to inactive and tells the listeners.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, Literal, Optional

log = logging.getLogger("subscriptions")

Scope = Literal["personal", "guild"]
SubscriptionTier = Literal["Premium", "Server"]

SCOPES: tuple[Scope, ...] = ("personal", "guild")
SUBSCRIPTION_TIERS: tuple[SubscriptionTier, ...] = ("Premium", "Server")

# Billing months are flat 30 days.
MONTH_SECONDS = 30 * 24 * 60 * 60


@dataclass
class Subscription:
    subject_id: int
    scope: Scope
    tier: SubscriptionTier
    start_time: float
    end_time: float
    amount_paid: float
    source_tx_id: str
    active: bool = True
    duration_months: int = 0
    purchaser_id: Optional[int] = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    def is_active_at(self, now: float) -> bool:
        return bool(self.active) and now < self.end_time


@dataclass(frozen=True)
class SubscriptionStats:
    total: int
    active: int
    tier_counts: dict[str, int]
    total_revenue_ada: float


Listener = Callable[[Subscription], None]


def _check_scope(scope: str) -> Scope:
    if scope not in SCOPES:
        raise ValueError(f"Invalid subscription scope: {scope!r}")
    return scope  # type: ignore[return-value]


def _check_tier(tier: str) -> SubscriptionTier:
    if tier not in SUBSCRIPTION_TIERS:
        raise ValueError(f"Invalid subscription tier: {tier!r}")
    return tier  # type: ignore[return-value]


class SubscriptionStore:
    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._subs: dict[tuple[Scope, int], Subscription] = {}
        self._listeners: list[Listener] = []

    def now(self) -> float:
        return float(self._clock())

    def add_listener(self, fn: Listener) -> None:
        self._listeners.append(fn)

    def _notify(self, sub: Subscription) -> None:
        # Listeners get a copy: they run later (async) and must not see
        # subsequent in-place edits half-applied.
        snapshot = replace(sub)
        for fn in self._listeners:
            try:
                fn(snapshot)
            except Exception:
                log.exception("Subscription listener failed (subject=%s scope=%s)", sub.subject_id, sub.scope)

    # -------------------------
    # Loading
    # -------------------------

    def load(self, subs: Iterable[Subscription]) -> int:
        """Replace in-memory state (startup). Does not notify listeners."""
        self._subs.clear()
        n = 0
        for s in subs:
            self._subs[(_check_scope(s.scope), int(s.subject_id))] = s
            n += 1
        return n

    # -------------------------
    # Reads
    # -------------------------

    def get_subscription(self, subject_id: int, scope: Scope) -> Subscription | None:
        """Raw record, active or not. No expiry side effects."""
        return self._subs.get((_check_scope(scope), int(subject_id)))

    def get_active_subscription(self, subject_id: int, scope: Scope) -> Subscription | None:
        sub = self.get_subscription(subject_id, scope)
        if sub is None:
            return None
        if sub.is_active_at(self.now()):
            return sub
        if sub.active:
            self._expire(sub)
        return None

    def has_active_subscription(self, user_id: int) -> bool:
        return self.get_active_subscription(user_id, "personal") is not None

    def has_active_server_subscription(self, guild_id: int) -> bool:
        return self.get_active_subscription(guild_id, "guild") is not None

    def active_subscriptions(self, scope: Scope | None = None) -> list[Subscription]:
        now = self.now()
        out: list[Subscription] = []
        for (sc, _sid), sub in self._subs.items():
            if scope is not None and sc != scope:
                continue
            if sub.is_active_at(now):
                out.append(sub)
        return out

    def stats(self) -> SubscriptionStats:
        now = self.now()
        tier_counts: dict[str, int] = {t: 0 for t in SUBSCRIPTION_TIERS}
        active = 0
        revenue = 0.0
        for sub in self._subs.values():
            revenue += float(sub.amount_paid or 0)
            if sub.is_active_at(now):
                active += 1
                tier_counts[sub.tier] = tier_counts.get(sub.tier, 0) + 1
        return SubscriptionStats(
            total=len(self._subs),
            active=active,
            tier_counts=tier_counts,
            total_revenue_ada=round(revenue, 6),
        )

    # -------------------------
    # Writes
    # -------------------------

    def _expire(self, sub: Subscription) -> None:
        sub.active = False
        sub.updated_at = self.now()
        log.info("Subscription expired: scope=%s subject=%s tier=%s", sub.scope, sub.subject_id, sub.tier)
        self._notify(sub)

    def upsert_subscription(
        self,
        subject_id: int,
        scope: Scope,
        tier: SubscriptionTier,
        end_time: float,
        amount_paid: float,
        tx_id: str,
        *,
        duration_months: int = 0,
        purchaser_id: int | None = None,
    ) -> Subscription:
        """Create or overwrite the one record for (scope, subject).

        An existing record keeps its start time (restarted if it had lapsed) and
        accumulates the amount paid; everything else is taken from the new payment.
        """
        sc = _check_scope(scope)
        t = _check_tier(tier)
        sid = int(subject_id)
        if not sid:
            raise ValueError("subject_id is required")

        now = self.now()
        key = (sc, sid)
        sub = self._subs.get(key)
        if sub is None:
            sub = Subscription(
                subject_id=sid,
                scope=sc,
                tier=t,
                start_time=now,
                end_time=float(end_time),
                amount_paid=float(amount_paid or 0),
                source_tx_id=str(tx_id),
                active=True,
                duration_months=int(duration_months or 0),
                purchaser_id=(int(purchaser_id) if purchaser_id else None),
                created_at=now,
                updated_at=now,
            )
            self._subs[key] = sub
        else:
            if not sub.is_active_at(now):
                sub.start_time = now
            sub.tier = t
            sub.end_time = float(end_time)
            sub.amount_paid = float(sub.amount_paid or 0) + float(amount_paid or 0)
            sub.source_tx_id = str(tx_id)
            sub.active = True
            sub.duration_months = int(sub.duration_months or 0) + int(duration_months or 0)
            if purchaser_id:
                sub.purchaser_id = int(purchaser_id)
            sub.updated_at = now

        log.info(
            "Subscription upserted: scope=%s subject=%s tier=%s end=%s tx=%s",
            sc, sid, t, int(sub.end_time), tx_id,
        )
        self._notify(sub)
        return sub

    def grant(
        self,
        subject_id: int,
        scope: Scope,
        tier: SubscriptionTier,
        months: int,
        amount_paid: float,
        tx_id: str,
        *,
        purchaser_id: int | None = None,
    ) -> Subscription:
        """Add `months` of access, stacking on top of any time still left."""
        m = int(months)
        if m < 1:
            raise ValueError("months must be >= 1")

        now = self.now()
        existing = self.get_active_subscription(subject_id, scope)
        start_from = max(now, existing.end_time) if existing is not None else now
        return self.upsert_subscription(
            subject_id,
            scope,
            tier,
            start_from + m * MONTH_SECONDS,
            amount_paid,
            tx_id,
            duration_months=m,
            purchaser_id=purchaser_id,
        )
