# commands/slash/subscription.py
"""Slash commands for ADA-paid subscriptions: pricing, redemption, status."""
from __future__ import annotations

import logging

import discord
from discord import app_commands
from discord.ext import commands

import config
from core import ui_embeds
from core.payments import redeem_payment
from core.pricing import MAX_MONTHS, TIER_PRICING, calculate_payment_amount
from core.ui import discord_timestamp, safe_defer, safe_send_embed
from core.ui_messages import send_error, send_success
from utils.cardano import get_cardano_client
from utils.subscription_store import Subscription, SubscriptionStore

log = logging.getLogger("bot.subscription")

TIER_CHOICES = [
    app_commands.Choice(name=f"Premium ({config.PRICE_PREMIUM_ADA:g} ADA/month, personal)", value="Premium"),
    app_commands.Choice(name=f"Server ({config.PRICE_SERVER_ADA:g} ADA/month, whole server)", value="Server"),
]


def _sub_line(sub: Subscription | None) -> str:
    if sub is None:
        return "None"
    return f"**{sub.tier}** until {discord_timestamp(sub.end_time, 'f')} ({discord_timestamp(sub.end_time)})"


class SlashSubscription(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    @property
    def store(self) -> SubscriptionStore:
        return self.bot.subscriptions  # type: ignore[attr-defined]

    async def _payments_ready(self, interaction: discord.Interaction) -> bool:
        if config.PAYMENTS_ENABLED and config.PAYMENT_WALLET_ADDRESS:
            return True
        await send_error(interaction, "Payments are not enabled on this bot right now.")
        return False

    @app_commands.command(name="subscribe", description="Get payment instructions for Premium or Server")
    @app_commands.describe(tier="Which plan", duration=f"Months (1-{MAX_MONTHS})")
    @app_commands.choices(tier=TIER_CHOICES)
    async def subscribe(
        self,
        interaction: discord.Interaction,
        tier: app_commands.Choice[str],
        duration: app_commands.Range[int, 1, 12] = 1,
    ):
        if not await self._payments_ready(interaction):
            return
        price = TIER_PRICING[tier.value]
        if price.scope == "guild" and interaction.guild is None:
            await send_error(interaction, "Run this inside the server you want to upgrade.")
            return

        amount = calculate_payment_amount(tier.value, duration)
        features = "\n".join(f"• {f}" for f in price.features)
        desc = (
            f"Send **{amount:g} ADA** to:\n```{config.PAYMENT_WALLET_ADDRESS}```\n"
            f"Then run `/verify-payment` with the transaction hash, tier **{tier.value}** "
            f"and duration **{duration}**.\n\n**Includes**\n{features}"
        )
        embed = ui_embeds.premium(desc, title=f"⭐ {tier.value}: {duration} month(s)")
        if price.scope == "guild" and interaction.guild is not None:
            embed.add_field(name="Server", value=interaction.guild.name, inline=False)
        await safe_send_embed(interaction, embed, ephemeral=True)

    @app_commands.command(name="verify-payment", description="Activate a subscription from an ADA transaction")
    @app_commands.describe(
        transaction_hash="The 64-character transaction hash",
        tier="Which plan you paid for",
        duration="Months you paid for",
    )
    @app_commands.choices(tier=TIER_CHOICES)
    async def verify_payment(
        self,
        interaction: discord.Interaction,
        transaction_hash: str,
        tier: app_commands.Choice[str],
        duration: app_commands.Range[int, 1, 12] = 1,
    ):
        if not await self._payments_ready(interaction):
            return
        await safe_defer(interaction, ephemeral=True)

        result = await redeem_payment(
            store=self.store,
            cardano=get_cardano_client(),
            user_id=interaction.user.id,
            guild_id=interaction.guild.id if interaction.guild else None,
            tier=tier.value,
            months=duration,
            tx_hash=transaction_hash,
        )
        if not result.ok:
            await send_error(interaction, result.message, title="❌ Payment not verified")
            return

        sub = result.subscription
        paid = result.verification.amount_ada if result.verification else result.expected_ada
        await send_success(
            interaction,
            f"{result.message}\nPaid **{paid:g} ADA**. Active until {discord_timestamp(sub.end_time, 'f')}.",
            title="✅ Payment verified",
        )

    @app_commands.command(name="subscription", description="Show your subscription and this server's")
    async def subscription(self, interaction: discord.Interaction):
        personal = self.store.get_active_subscription(interaction.user.id, "personal")
        embed = ui_embeds.info("", title="⭐ Subscription status")
        embed.add_field(name="You", value=_sub_line(personal), inline=False)
        if interaction.guild is not None:
            guild_sub = self.store.get_active_subscription(interaction.guild.id, "guild")
            embed.add_field(name=interaction.guild.name, value=_sub_line(guild_sub), inline=False)
        if personal is None:
            embed.add_field(name="Upgrade", value="`/subscribe` to see plans.", inline=False)
        await safe_send_embed(interaction, embed, ephemeral=True)


async def setup(bot: commands.Bot):
    await bot.add_cog(SlashSubscription(bot))
