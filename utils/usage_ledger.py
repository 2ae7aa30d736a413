# utils/usage_ledger.py
"""In-memory rolling-window usage counters, keyed by user or guild.

Windows reset lazily: a counter whose reset time has passed is zeroed the
first time it is read, never by a timer. Nothing here is persisted; a restart
starts everyone at zero again.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

HOUR_SECONDS = 60 * 60
DAY_SECONDS = 24 * HOUR_SECONDS

Clock = Callable[[], float]


@dataclass
class UsageCounter:
    subject_id: int
    count: int
    reset_at: float


@dataclass
class GuildUsageCounter:
    subject_id: int
    hourly_count: int
    hourly_reset_at: float
    daily_count: int
    daily_reset_at: float


class UsageLedger:
    """Per-user hourly counters plus per-guild hourly+daily counters."""

    def __init__(
        self,
        *,
        clock: Clock = time.time,
        user_window_seconds: int = HOUR_SECONDS,
        guild_hourly_window_seconds: int = HOUR_SECONDS,
        guild_daily_window_seconds: int = DAY_SECONDS,
    ) -> None:
        self._clock = clock
        self.user_window_seconds = int(user_window_seconds)
        self.guild_hourly_window_seconds = int(guild_hourly_window_seconds)
        self.guild_daily_window_seconds = int(guild_daily_window_seconds)
        self._users: dict[int, UsageCounter] = {}
        self._guilds: dict[int, GuildUsageCounter] = {}

    def now(self) -> float:
        return float(self._clock())

    # -------------------------
    # Reads (with lazy reset)
    # -------------------------

    def get_or_init_user_counter(self, user_id: int) -> UsageCounter:
        uid = int(user_id)
        now = self.now()
        c = self._users.get(uid)
        if c is None:
            c = UsageCounter(subject_id=uid, count=0, reset_at=now + self.user_window_seconds)
            self._users[uid] = c
        elif now >= c.reset_at:
            c.count = 0
            c.reset_at = now + self.user_window_seconds
        return c

    def get_or_init_guild_counter(self, guild_id: int) -> GuildUsageCounter:
        gid = int(guild_id)
        now = self.now()
        c = self._guilds.get(gid)
        if c is None:
            c = GuildUsageCounter(
                subject_id=gid,
                hourly_count=0,
                hourly_reset_at=now + self.guild_hourly_window_seconds,
                daily_count=0,
                daily_reset_at=now + self.guild_daily_window_seconds,
            )
            self._guilds[gid] = c
            return c

        # Each window rolls over on its own schedule.
        if now >= c.hourly_reset_at:
            c.hourly_count = 0
            c.hourly_reset_at = now + self.guild_hourly_window_seconds
        if now >= c.daily_reset_at:
            c.daily_count = 0
            c.daily_reset_at = now + self.guild_daily_window_seconds
        return c

    # -------------------------
    # Writes
    # -------------------------

    def increment_user(self, user_id: int) -> UsageCounter:
        # Caller has already read through get_or_init_user_counter, so the
        # window is current. Re-reading keeps a stray call from mis-counting.
        c = self.get_or_init_user_counter(user_id)
        c.count += 1
        return c

    def increment_guild(self, guild_id: int) -> GuildUsageCounter:
        c = self.get_or_init_guild_counter(guild_id)
        c.hourly_count += 1
        c.daily_count += 1
        return c

    # -------------------------
    # Housekeeping
    # -------------------------

    def prune(self, idle_seconds: float) -> int:
        """Drop counters whose window ran out more than `idle_seconds` ago.

        An expired counter would read back as zero anyway, so evicting it is
        indistinguishable from the lazy reset. Returns the number removed.
        """
        cutoff = self.now() - max(0.0, float(idle_seconds))

        stale_users = [uid for uid, c in self._users.items() if c.reset_at <= cutoff]
        for uid in stale_users:
            del self._users[uid]

        # Guild entries go only once BOTH windows have lapsed; an hourly window
        # opened late in the day can end after the daily one.
        stale_guilds = [
            gid
            for gid, c in self._guilds.items()
            if c.daily_reset_at <= cutoff and c.hourly_reset_at <= cutoff
        ]
        for gid in stale_guilds:
            del self._guilds[gid]

        return len(stale_users) + len(stale_guilds)

    def size(self) -> tuple[int, int]:
        """(user entries, guild entries)"""
        return len(self._users), len(self._guilds)

    def reset_guild(self, guild_id: int) -> None:
        self._guilds.pop(int(guild_id), None)

    def reset_user(self, user_id: int) -> None:
        self._users.pop(int(user_id), None)
