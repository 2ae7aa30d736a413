"""Admission decisions (core/admission.py)."""
from __future__ import annotations

import threading

import pytest

from core.admission import AdmissionController, AdmissionPolicy
from utils.usage_ledger import DAY_SECONDS, HOUR_SECONDS

GUILD = 10
CHANNEL = 20


class TestPersonalQuota:

    def test_standard_user_gets_ten_per_hour_in_dms(self, controller):
        verdicts = [controller.admit(1) for _ in range(11)]
        assert all(v.admitted for v in verdicts[:10])
        last = verdicts[10]
        assert not last.admitted
        assert last.reason == "personal_limit"
        assert last.tier == "Standard"
        assert last.limit == 10
        assert last.remaining == 0

    def test_remaining_counts_down(self, controller):
        assert controller.admit(1).remaining == 9
        assert controller.admit(1).remaining == 8

    def test_denied_request_does_not_consume(self, controller, ledger):
        for _ in range(12):
            controller.admit(1)
        assert ledger.get_or_init_user_counter(1).count == 10

    def test_personal_reset_after_an_hour(self, controller, clock):
        for _ in range(10):
            controller.admit(1)
        denied = controller.admit(1)
        assert denied.reset_at == clock.t + HOUR_SECONDS

        clock.advance(HOUR_SECONDS)
        assert controller.admit(1).admitted

    def test_clock_moving_backwards_still_denies(self, controller, clock, ledger):
        for _ in range(10):
            assert controller.admit(1).admitted
        clock.advance(-2 * HOUR_SECONDS)
        v = controller.admit(1)
        assert not v.admitted
        assert v.reason == "personal_limit"
        assert ledger.get_or_init_user_counter(1).count == 10

    def test_premium_is_unlimited(self, controller, store):
        store.grant(1, "personal", "Premium", 1, 15, "tx")
        verdicts = [controller.admit(1) for _ in range(50)]
        assert all(v.admitted for v in verdicts)
        assert verdicts[-1].tier == "Premium"
        assert verdicts[-1].limit is None
        assert verdicts[-1].remaining is None


class TestGuildPool:

    def test_five_different_users_drain_the_hourly_pool(self, controller):
        for uid in range(1, 6):
            assert controller.admit(uid, GUILD, CHANNEL).admitted
        v = controller.admit(6, GUILD, CHANNEL)
        assert not v.admitted
        assert v.reason == "guild_hourly_limit"
        assert v.guild_remaining == 0

    def test_pool_reports_remaining(self, controller):
        assert controller.admit(1, GUILD, CHANNEL).guild_remaining == 4

    def test_pool_is_per_guild(self, controller):
        for uid in range(1, 6):
            controller.admit(uid, GUILD, CHANNEL)
        assert controller.admit(6, GUILD + 1, CHANNEL).admitted

    def test_dm_usage_does_not_touch_any_pool(self, controller, ledger):
        controller.admit(1)
        assert ledger.size() == (1, 0)

    def test_personal_limit_reported_before_pool(self, controller, ledger):
        # user already spent their hour elsewhere; pool in this guild is fresh
        for _ in range(10):
            controller.admit(1)
        v = controller.admit(1, GUILD, CHANNEL)
        assert v.reason == "personal_limit"
        assert ledger.get_or_init_guild_counter(GUILD).hourly_count == 0

    def test_pool_denial_does_not_consume_personal(self, controller, ledger):
        for uid in range(2, 7):
            controller.admit(uid, GUILD, CHANNEL)
        v = controller.admit(1, GUILD, CHANNEL)
        assert not v.admitted
        assert ledger.get_or_init_user_counter(1).count == 0
        assert v.remaining == 10

    def test_daily_pool_caps_after_hourly_resets(self, controller, clock):
        uid = 100
        for hour in range(5):
            for _ in range(5):
                assert controller.admit(uid, GUILD, CHANNEL).admitted
                uid += 1
            clock.advance(HOUR_SECONDS)

        v = controller.admit(uid, GUILD, CHANNEL)
        assert not v.admitted
        assert v.reason == "guild_daily_limit"

        clock.advance(DAY_SECONDS)
        assert controller.admit(uid, GUILD, CHANNEL).admitted

    def test_premium_user_still_uses_free_pool(self, controller, store):
        store.grant(1, "personal", "Premium", 1, 15, "tx")
        for uid in range(2, 7):
            controller.admit(uid, GUILD, CHANNEL)
        v = controller.admit(1, GUILD, CHANNEL)
        assert not v.admitted
        assert v.reason == "guild_hourly_limit"

    @pytest.mark.parametrize("setup", ["server", "vip", "admin"])
    def test_exempt_tiers_skip_the_pool(self, controller, store, ledger, setup):
        uid, channel = 1, CHANNEL
        if setup == "server":
            store.grant(GUILD, "guild", "Server", 1, 100, "tx")
        elif setup == "vip":
            channel = 555
        else:
            uid = 999
        for _ in range(30):
            assert controller.admit(uid, GUILD, channel).admitted
        assert ledger.size()[1] == 0

    def test_server_subscription_makes_every_member_unlimited(self, controller, store):
        store.grant(GUILD, "guild", "Server", 1, 100, "tx")
        v = None
        for _ in range(20):
            v = controller.admit(7, GUILD, CHANNEL)
        assert v.admitted and v.tier == "Server" and v.guild_remaining is None


class TestScenario:

    def test_free_user_in_free_guild(self, controller, clock):
        # U1 uses 4, four other users use 1 each: pool exhausted at 5 (U1 4 + U2 1)
        for _ in range(4):
            assert controller.admit(1, GUILD, CHANNEL).admitted
        assert controller.admit(2, GUILD, CHANNEL).admitted
        v = controller.admit(3, GUILD, CHANNEL)
        assert v.reason == "guild_hourly_limit"

        # U1 is still under their personal 10, but the guild pool blocks them
        assert controller.admit(1, GUILD, CHANNEL).reason == "guild_hourly_limit"

        # outside the guild U1 has 6 left
        for _ in range(6):
            assert controller.admit(1).admitted
        assert controller.admit(1).reason == "personal_limit"


class TestPreconditions:

    @pytest.mark.parametrize("bad", [None, 0, -1, "42"])
    def test_bad_user_id_raises(self, controller, bad):
        with pytest.raises(ValueError):
            controller.admit(bad)  # type: ignore[arg-type]

    def test_bad_user_id_consumes_nothing(self, controller, ledger):
        with pytest.raises(ValueError):
            controller.admit(0, GUILD)
        assert ledger.size() == (0, 0)


class TestSnapshot:

    def test_snapshot_reads_without_consuming(self, controller, ledger):
        controller.admit(1, GUILD, CHANNEL)
        snap = controller.snapshot(1, GUILD, CHANNEL)
        assert snap.personal_used == 1
        assert snap.guild_pool_applies
        assert snap.guild_hourly_used == 1
        assert snap.guild_daily_used == 1
        assert ledger.get_or_init_user_counter(1).count == 1

    def test_snapshot_for_premium_in_dm(self, controller, store):
        store.grant(1, "personal", "Premium", 1, 15, "tx")
        snap = controller.snapshot(1)
        assert snap.tier == "Premium"
        assert snap.personal_limit is None
        assert not snap.guild_pool_applies


class TestResetUsage:

    def test_reset_user_reopens_personal_quota(self, controller, ledger):
        for _ in range(5):
            controller.admit(1, GUILD, CHANNEL)
        controller.reset_usage(user_id=1)
        assert ledger.get_or_init_user_counter(1).count == 0
        # the guild pool is untouched
        assert ledger.get_or_init_guild_counter(GUILD).hourly_count == 5

    def test_reset_guild_reopens_the_pool(self, controller, ledger):
        for uid in range(1, 6):
            controller.admit(uid, GUILD, CHANNEL)
        assert not controller.admit(6, GUILD, CHANNEL).admitted
        controller.reset_usage(guild_id=GUILD)
        assert controller.admit(6, GUILD, CHANNEL).admitted
        assert ledger.get_or_init_user_counter(1).count == 1

    def test_reset_needs_a_subject(self, controller):
        with pytest.raises(ValueError):
            controller.reset_usage()


def test_concurrent_admits_never_exceed_quota(store):
    ctl = AdmissionController(policy=AdmissionPolicy(standard_hourly_limit=10), subscriptions=store)
    results = []
    lock = threading.Lock()

    def worker():
        for _ in range(10):
            v = ctl.admit(1)
            with lock:
                results.append(v.admitted)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(results) == 10


def test_policy_from_config_reads_limits(monkeypatch):
    import config

    monkeypatch.setattr(config, "STANDARD_HOURLY_LIMIT", 3)
    monkeypatch.setattr(config, "FREE_GUILD_HOURLY_LIMIT", 2)
    monkeypatch.setattr(config, "FREE_GUILD_DAILY_LIMIT", 7)
    monkeypatch.setattr(config, "ADMIN_USER_ID", 123)
    p = AdmissionPolicy.from_config()
    assert (p.standard_hourly_limit, p.guild_hourly_limit, p.guild_daily_limit) == (3, 2, 7)
    assert p.admin_user_id == 123
