"""core/ui_messages.py

Helpers for sending consistent messages/embeds, plus the text for admission
denials and usage snapshots (the admission core only returns structured data).
"""

from __future__ import annotations

import time
from typing import Optional

import discord

import config
from core import ui_embeds
from core.admission import UsageSnapshot, Verdict
from core.ui import discord_timestamp, safe_send, safe_send_embed

UPSELL_PERSONAL = (
    f"Upgrade to **Premium** ({config.PRICE_PREMIUM_ADA:g} ADA/month) for unlimited animations. "
    "See `/subscribe`."
)
UPSELL_SERVER = (
    f"Ask a server admin about **Server** ({config.PRICE_SERVER_ADA:g} ADA/month): unlimited for everyone here, "
    "or get **Premium** for yourself. See `/subscribe`."
)


async def send_success(
    interaction: discord.Interaction,
    description: str,
    *,
    ephemeral: bool = True,
    title: Optional[str] = None,
) -> None:
    await safe_send_embed(interaction, ui_embeds.success(description, title=title), ephemeral=ephemeral)


async def send_error(
    interaction: discord.Interaction,
    description: str,
    *,
    ephemeral: bool = True,
    title: Optional[str] = None,
) -> None:
    await safe_send_embed(interaction, ui_embeds.error(description, title=title), ephemeral=ephemeral)


async def send_warning(
    interaction: discord.Interaction,
    description: str,
    *,
    ephemeral: bool = True,
    title: Optional[str] = None,
) -> None:
    await safe_send_embed(interaction, ui_embeds.warning(description, title=title), ephemeral=ephemeral)


# -------------------------
# Admission rendering
# -------------------------

def _reset_text(epoch_s: Optional[float]) -> str:
    if not epoch_s:
        return ""
    return f" Resets {discord_timestamp(epoch_s)}."


def render_denial(verdict: Verdict) -> str:
    """User-facing text for a denied Verdict."""
    reset = _reset_text(verdict.reset_at)
    if verdict.reason == "personal_limit":
        return (
            f"You've used all **{verdict.limit}** animations for this hour.{reset}\n\n{UPSELL_PERSONAL}"
        )
    if verdict.reason == "guild_hourly_limit":
        return (
            f"This server's shared free pool ({config.FREE_GUILD_HOURLY_LIMIT}/hour) is used up.{reset}\n\n"
            f"{UPSELL_SERVER}"
        )
    if verdict.reason == "guild_daily_limit":
        return (
            f"This server's shared free pool ({config.FREE_GUILD_DAILY_LIMIT}/day) is used up.{reset}\n\n"
            f"{UPSELL_SERVER}"
        )
    return "You can't animate right now." + reset


def render_admit_footer(verdict: Verdict) -> str:
    if verdict.remaining is None:
        return f"{verdict.tier}: unlimited"
    parts = [f"{verdict.remaining}/{verdict.limit} left this hour"]
    if verdict.guild_remaining is not None:
        parts.append(f"server pool: {verdict.guild_remaining} left")
    return " • ".join(parts)


def render_snapshot(snap: UsageSnapshot, *, now: Optional[float] = None) -> str:
    now = time.time() if now is None else now
    lines = [f"**Tier:** {snap.tier}"]
    if snap.personal_limit is None:
        lines.append("**Personal:** unlimited")
    else:
        left = max(0, snap.personal_limit - snap.personal_used)
        line = f"**Personal:** {snap.personal_used}/{snap.personal_limit} used this hour ({left} left)"
        if snap.personal_used and snap.personal_reset_at > now:
            line += f", resets {discord_timestamp(snap.personal_reset_at)}"
        lines.append(line)

    if snap.guild_pool_applies:
        lines.append(
            f"**Server pool (hour):** {snap.guild_hourly_used}/{snap.guild_hourly_limit}"
            + (f", resets {discord_timestamp(snap.guild_hourly_reset_at)}" if snap.guild_hourly_used and snap.guild_hourly_reset_at else "")
        )
        lines.append(
            f"**Server pool (day):** {snap.guild_daily_used}/{snap.guild_daily_limit}"
            + (f", resets {discord_timestamp(snap.guild_daily_reset_at)}" if snap.guild_daily_used and snap.guild_daily_reset_at else "")
        )
    elif snap.tier in ("Server", "VIP", "Admin"):
        lines.append("**Server pool:** not applied")
    return "\n".join(lines)
