"""Tests for the in-memory usage counters (utils/usage_ledger.py)."""
from __future__ import annotations

from utils.usage_ledger import DAY_SECONDS, HOUR_SECONDS


class TestUserCounter:

    def test_new_counter_starts_at_zero_with_hour_window(self, ledger, clock):
        c = ledger.get_or_init_user_counter(1)
        assert c.count == 0
        assert c.reset_at == clock.t + HOUR_SECONDS

    def test_increment_accumulates_within_window(self, ledger):
        for _ in range(3):
            ledger.increment_user(1)
        assert ledger.get_or_init_user_counter(1).count == 3

    def test_window_resets_lazily_on_read(self, ledger, clock):
        ledger.increment_user(1)
        ledger.increment_user(1)
        clock.advance(HOUR_SECONDS)
        c = ledger.get_or_init_user_counter(1)
        assert c.count == 0
        assert c.reset_at == clock.t + HOUR_SECONDS

    def test_increment_after_expiry_counts_from_one(self, ledger, clock):
        ledger.increment_user(1)
        clock.advance(HOUR_SECONDS + 5)
        assert ledger.increment_user(1).count == 1

    def test_clock_moving_backwards_keeps_the_window(self, ledger, clock):
        for _ in range(4):
            ledger.increment_user(1)
        reset_at = ledger.get_or_init_user_counter(1).reset_at
        clock.advance(-2 * HOUR_SECONDS)
        c = ledger.get_or_init_user_counter(1)
        assert c.count == 4
        assert c.reset_at == reset_at

    def test_users_are_independent(self, ledger):
        ledger.increment_user(1)
        assert ledger.get_or_init_user_counter(2).count == 0


class TestGuildCounter:

    def test_increment_bumps_both_windows(self, ledger):
        c = ledger.increment_guild(10)
        assert (c.hourly_count, c.daily_count) == (1, 1)

    def test_hourly_resets_without_touching_daily(self, ledger, clock):
        for _ in range(4):
            ledger.increment_guild(10)
        clock.advance(HOUR_SECONDS)
        c = ledger.get_or_init_guild_counter(10)
        assert c.hourly_count == 0
        assert c.daily_count == 4

    def test_clock_moving_backwards_keeps_both_windows(self, ledger, clock):
        for _ in range(3):
            ledger.increment_guild(10)
        clock.advance(-2 * HOUR_SECONDS)
        c = ledger.get_or_init_guild_counter(10)
        assert (c.hourly_count, c.daily_count) == (3, 3)

    def test_daily_resets_after_a_day(self, ledger, clock):
        ledger.increment_guild(10)
        clock.advance(DAY_SECONDS)
        c = ledger.get_or_init_guild_counter(10)
        assert (c.hourly_count, c.daily_count) == (0, 0)
        assert c.daily_reset_at == clock.t + DAY_SECONDS


class TestPrune:

    def test_prune_drops_only_long_idle_entries(self, ledger, clock):
        ledger.increment_user(1)
        ledger.increment_guild(10)
        clock.advance(HOUR_SECONDS + 60)
        ledger.increment_user(2)

        # user 1's window ended 60s ago: not idle enough yet
        assert ledger.prune(idle_seconds=120) == 0

        clock.advance(120)
        assert ledger.prune(idle_seconds=120) == 1
        assert ledger.size() == (1, 1)

    def test_prune_keeps_guild_until_daily_window_lapses(self, ledger, clock):
        ledger.increment_guild(10)
        clock.advance(HOUR_SECONDS * 2)
        assert ledger.prune(idle_seconds=0) == 0
        clock.advance(DAY_SECONDS)
        assert ledger.prune(idle_seconds=0) == 1
        assert ledger.size() == (0, 0)

    def test_prune_waits_for_an_hourly_window_that_outlasts_the_day(self, ledger, clock):
        ledger.increment_guild(10)
        clock.advance(DAY_SECONDS - 60)
        c = ledger.get_or_init_guild_counter(10)
        assert c.hourly_reset_at > c.daily_reset_at

        clock.advance(120)
        assert ledger.prune(idle_seconds=0) == 0
        clock.advance(HOUR_SECONDS)
        assert ledger.prune(idle_seconds=0) == 1

    def test_pruned_counter_reads_back_as_fresh(self, ledger, clock):
        for _ in range(5):
            ledger.increment_user(1)
        clock.advance(DAY_SECONDS)
        ledger.prune(idle_seconds=0)
        assert ledger.get_or_init_user_counter(1).count == 0
