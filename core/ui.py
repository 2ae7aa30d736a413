from __future__ import annotations

import time
from typing import Optional

import discord


async def safe_ephemeral_send(interaction: discord.Interaction, content: str) -> None:
    """Safely send an ephemeral message.

    Uses followups if the initial interaction response has already been used.
    Never raises.
    """
    try:
        if interaction.response.is_done():
            await interaction.followup.send(content, ephemeral=True)
        else:
            await interaction.response.send_message(content, ephemeral=True)
    except Exception:
        pass


async def safe_send(interaction: discord.Interaction, content: str, *, ephemeral: bool = False) -> None:
    """Safely send a message (ephemeral optional)."""
    try:
        if interaction.response.is_done():
            await interaction.followup.send(content, ephemeral=ephemeral)
        else:
            await interaction.response.send_message(content, ephemeral=ephemeral)
    except Exception:
        pass


async def safe_send_embed(interaction: discord.Interaction, embed: discord.Embed, *, ephemeral: bool = False) -> None:
    """Safely send an embed (ephemeral optional)."""
    try:
        if interaction.response.is_done():
            await interaction.followup.send(embed=embed, ephemeral=ephemeral)
        else:
            await interaction.response.send_message(embed=embed, ephemeral=ephemeral)
    except Exception:
        pass


async def safe_send_file(
    interaction: discord.Interaction,
    file: discord.File,
    *,
    content: Optional[str] = None,
    ephemeral: bool = False,
) -> bool:
    """Send a file attachment. Returns False instead of raising."""
    try:
        if interaction.response.is_done():
            await interaction.followup.send(content=content, file=file, ephemeral=ephemeral)
        else:
            await interaction.response.send_message(content=content, file=file, ephemeral=ephemeral)
        return True
    except Exception:
        return False


async def safe_defer(interaction: discord.Interaction, *, ephemeral: bool = True) -> None:
    """Safely defer an interaction response."""
    try:
        if not interaction.response.is_done():
            await interaction.response.defer(ephemeral=ephemeral, thinking=True)
    except Exception:
        pass


def format_retry_after(seconds: Optional[int]) -> str:
    if not seconds or seconds <= 0:
        return ""
    seconds = int(seconds)
    if seconds < 60:
        return f" Try again in {seconds}s."
    minutes, sec = divmod(seconds, 60)
    if minutes < 60:
        return f" Try again in {minutes}m {sec}s."
    hours, minutes = divmod(minutes, 60)
    return f" Try again in {hours}h {minutes}m."


def seconds_until(epoch_s: Optional[float], *, now: Optional[float] = None) -> int:
    if not epoch_s:
        return 0
    return max(0, int(float(epoch_s) - (time.time() if now is None else now)))


def discord_timestamp(epoch_s: float, style: str = "R") -> str:
    """Client-localized timestamp markup (<t:...:R> renders "in 12 minutes")."""
    return f"<t:{int(epoch_s)}:{style}>"
