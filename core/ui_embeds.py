"""core/ui_embeds.py

Standard embed builders used across commands.

Embeds are intentionally minimal (title + description + footer).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import discord

import config

BRAND_COLOR = discord.Color.from_rgb(88, 101, 242)
PREMIUM_COLOR = discord.Color.gold()


def _brand_name() -> str:
    return str(getattr(config, "BOT_NAME", "Stickerize Bot") or "Stickerize Bot")


def _base_embed(*, title: str, description: str, color: Optional[discord.Color] = None) -> discord.Embed:
    e = discord.Embed(title=title, description=description, color=color or BRAND_COLOR)
    e.timestamp = datetime.now(timezone.utc)
    e.set_footer(text=_brand_name())
    return e


def success(description: str, *, title: Optional[str] = None) -> discord.Embed:
    return _base_embed(title=title or "✅ Success", description=description, color=discord.Color.green())


def error(description: str, *, title: Optional[str] = None) -> discord.Embed:
    return _base_embed(title=title or "❌ Error", description=description, color=discord.Color.red())


def warning(description: str, *, title: Optional[str] = None) -> discord.Embed:
    return _base_embed(title=title or "⚠️ Limit reached", description=description, color=discord.Color.orange())


def info(description: str, *, title: Optional[str] = None) -> discord.Embed:
    return _base_embed(title=title or "ℹ️ Info", description=description)


def premium(description: str, *, title: Optional[str] = None) -> discord.Embed:
    return _base_embed(title=title or "⭐ Premium", description=description, color=PREMIUM_COLOR)
