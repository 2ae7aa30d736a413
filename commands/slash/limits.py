# commands/slash/limits.py
from __future__ import annotations

import discord
from discord import app_commands
from discord.ext import commands

from core import ui_embeds
from core.ui import safe_send_embed
from core.ui_messages import render_snapshot


class SlashLimits(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    @app_commands.command(name="limits", description="See your remaining animations and this server's shared pool")
    async def limits(self, interaction: discord.Interaction):
        admission = self.bot.admission  # type: ignore[attr-defined]
        snap = admission.snapshot(
            interaction.user.id,
            interaction.guild.id if interaction.guild else None,
            interaction.channel_id,
        )
        embed = ui_embeds.info(render_snapshot(snap), title="📊 Your usage")
        if snap.personal_limit is not None:
            embed.add_field(name="Want more?", value="`/subscribe` for unlimited animations.", inline=False)
        await safe_send_embed(interaction, embed, ephemeral=True)


async def setup(bot: commands.Bot):
    await bot.add_cog(SlashLimits(bot))
