"""Tests for utils/subscription_store.py."""
from __future__ import annotations

import pytest

from utils.subscription_store import MONTH_SECONDS, Subscription


class TestGrant:

    def test_grant_creates_active_record(self, store, clock):
        sub = store.grant(1, "personal", "Premium", 2, 30.0, "tx1")
        assert sub.active
        assert sub.start_time == clock.t
        assert sub.end_time == clock.t + 2 * MONTH_SECONDS
        assert store.has_active_subscription(1)

    def test_grant_stacks_on_remaining_time(self, store, clock):
        store.grant(1, "personal", "Premium", 1, 15.0, "tx1")
        clock.advance(10 * 86400)
        sub = store.grant(1, "personal", "Premium", 1, 15.0, "tx2")
        assert sub.end_time == clock.t - 10 * 86400 + 2 * MONTH_SECONDS
        assert sub.amount_paid == 30.0
        assert sub.duration_months == 2
        assert sub.source_tx_id == "tx2"
        assert sub.start_time == clock.t - 10 * 86400

    def test_grant_after_expiry_starts_from_now(self, store, clock):
        store.grant(1, "personal", "Premium", 1, 15.0, "tx1")
        clock.advance(MONTH_SECONDS + 100)
        sub = store.grant(1, "personal", "Premium", 1, 15.0, "tx2")
        assert sub.end_time == clock.t + MONTH_SECONDS
        assert sub.active

    def test_regrant_after_lapse_restarts_start_time(self, store, clock):
        store.grant(1, "personal", "Premium", 1, 15.0, "tx1")
        clock.advance(MONTH_SECONDS + 100)
        assert not store.has_active_subscription(1)
        sub = store.grant(1, "personal", "Premium", 1, 15.0, "tx2")
        assert sub.start_time == clock.t
        assert sub.amount_paid == 30.0

    def test_grant_rejects_zero_months(self, store):
        with pytest.raises(ValueError):
            store.grant(1, "personal", "Premium", 0, 0, "tx")

    def test_bad_scope_and_tier_rejected(self, store, clock):
        with pytest.raises(ValueError):
            store.upsert_subscription(1, "team", "Premium", clock.t + 10, 0, "tx")  # type: ignore[arg-type]
        with pytest.raises(ValueError):
            store.upsert_subscription(1, "personal", "Ultra", clock.t + 10, 0, "tx")  # type: ignore[arg-type]


class TestExpiry:

    def test_expired_record_flips_inactive_and_notifies_once(self, store, clock):
        seen: list[Subscription] = []
        store.add_listener(seen.append)
        store.grant(1, "personal", "Premium", 1, 15.0, "tx")
        assert len(seen) == 1

        clock.advance(MONTH_SECONDS)
        assert store.get_active_subscription(1, "personal") is None
        assert store.get_subscription(1, "personal").active is False
        assert len(seen) == 2 and seen[-1].active is False

        # second read: already inactive, no new notification
        assert store.get_active_subscription(1, "personal") is None
        assert len(seen) == 2

    def test_scopes_are_separate(self, store):
        store.grant(1, "guild", "Server", 1, 100.0, "tx")
        assert store.has_active_server_subscription(1)
        assert not store.has_active_subscription(1)

    def test_listener_errors_do_not_break_writes(self, store):
        def boom(_sub):
            raise RuntimeError("db down")

        store.add_listener(boom)
        sub = store.grant(1, "personal", "Premium", 1, 15.0, "tx")
        assert sub.active

    def test_listener_gets_a_copy(self, store):
        seen: list[Subscription] = []
        store.add_listener(seen.append)
        sub = store.grant(1, "personal", "Premium", 1, 15.0, "tx")
        assert seen[0] is not sub
        assert seen[0] == sub


class TestReads:

    def test_load_replaces_state_without_notifying(self, store, clock):
        seen = []
        store.add_listener(seen.append)
        n = store.load(
            [
                Subscription(1, "personal", "Premium", clock.t, clock.t + 100, 15.0, "a"),
                Subscription(2, "guild", "Server", clock.t, clock.t + 100, 100.0, "b"),
            ]
        )
        assert n == 2
        assert seen == []
        assert store.has_active_server_subscription(2)

    def test_active_subscriptions_filters_scope_and_expiry(self, store, clock):
        store.grant(1, "personal", "Premium", 1, 15.0, "a")
        store.grant(2, "guild", "Server", 1, 100.0, "b")
        store.upsert_subscription(3, "personal", "Premium", clock.t - 1, 15.0, "c")
        assert {s.subject_id for s in store.active_subscriptions()} == {1, 2}
        assert [s.subject_id for s in store.active_subscriptions("guild")] == [2]

    def test_stats(self, store, clock):
        store.grant(1, "personal", "Premium", 1, 15.0, "a")
        store.grant(2, "guild", "Server", 1, 100.0, "b")
        store.grant(3, "personal", "Premium", 1, 15.0, "c")
        clock.advance(MONTH_SECONDS)
        store.grant(3, "personal", "Premium", 1, 15.0, "d")

        st = store.stats()
        assert st.total == 3
        assert st.active == 1
        assert st.tier_counts == {"Premium": 1, "Server": 0}
        assert st.total_revenue_ada == 145.0
