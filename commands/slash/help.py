import discord
from discord.ext import commands
from discord import app_commands

import config
from core import ui_embeds
from core.ui import safe_send_embed


def get_help_text() -> str:
    payments = (
        "**Premium**\n"
        f"⭐ `/subscribe` — Premium {config.PRICE_PREMIUM_ADA:g} ADA/mo, Server {config.PRICE_SERVER_ADA:g} ADA/mo\n"
        "🧾 `/verify-payment` — Activate with your transaction hash\n"
        "📋 `/subscription` — Your status and this server's\n\n"
    ) if config.PAYMENTS_ENABLED else (
        "**Premium**\n"
        "📋 `/subscription` — Your status and this server's\n\n"
    )

    return (
        "**Animate**\n"
        "🎞️ `/stickerize` — Upload an image, get an animated sticker or emoji\n"
        "📊 `/limits` — What you have left\n\n"
        + payments
        + "**Limits**\n"
        f"Free: {config.STANDARD_HOURLY_LIMIT} animations per hour each. In servers without a Server plan, "
        f"free members also share a pool of {config.FREE_GUILD_HOURLY_LIMIT}/hour and "
        f"{config.FREE_GUILD_DAILY_LIMIT}/day.\n"
        "Premium and Server plans are unlimited."
    )


class SlashHelp(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    @app_commands.command(name="help", description="How to use the bot")
    async def help(self, interaction: discord.Interaction):
        await safe_send_embed(
            interaction,
            ui_embeds.info(get_help_text(), title=f"🎨 {config.BOT_NAME}"),
            ephemeral=True,
        )


async def setup(bot: commands.Bot):
    await bot.add_cog(SlashHelp(bot))
