# commands/slash/admin.py
from __future__ import annotations

import json
import logging

import discord
from discord import app_commands
from discord.ext import commands

from core import ui_embeds
from core.pricing import calculate_payment_amount, scope_for_tier
from core.ui import discord_timestamp, safe_defer, safe_ephemeral_send, safe_send_embed
from utils.audit import audit_log
from utils.cardano import CardanoError, get_cardano_client, is_valid_tx_hash
from utils.owner import is_admin

log = logging.getLogger("bot.admin")


def _admin_only():
    async def predicate(interaction: discord.Interaction) -> bool:
        return is_admin(getattr(interaction.user, "id", 0))

    return app_commands.check(predicate)


class SlashAdmin(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    admin = app_commands.Group(name="admin", description="Bot admin tools")

    async def cog_app_command_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError):
        if isinstance(error, app_commands.CheckFailure):
            await safe_ephemeral_send(interaction, "⛔ Admin only.")
            return
        log.exception("Admin command failed", exc_info=error)
        await safe_ephemeral_send(interaction, "⚠️ Something went wrong.")

    @admin.command(name="verify", description="Grant a subscription manually")
    @app_commands.describe(
        subject_id="User ID (Premium) or server ID (Server)",
        tier="Premium or Server",
        months="Months to add",
        note="Reference stored as the transaction id",
    )
    @app_commands.choices(
        tier=[app_commands.Choice(name="Premium", value="Premium"), app_commands.Choice(name="Server", value="Server")]
    )
    @_admin_only()
    async def verify(
        self,
        interaction: discord.Interaction,
        subject_id: str,
        tier: app_commands.Choice[str],
        months: app_commands.Range[int, 1, 12] = 1,
        note: str | None = None,
    ):
        if not subject_id.strip().isdigit():
            await safe_ephemeral_send(interaction, "subject_id must be a numeric Discord ID.")
            return
        sid = int(subject_id.strip())
        scope = scope_for_tier(tier.value)
        store = self.bot.subscriptions  # type: ignore[attr-defined]
        sub = store.grant(
            sid,
            scope,
            tier.value,
            months,
            0.0,
            (note or f"manual:{interaction.user.id}")[:128],
            purchaser_id=interaction.user.id,
        )
        audit_log(
            "ADMIN_GRANT",
            user_id=interaction.user.id,
            command="admin verify",
            result="ok",
            fields={"subject_id": sid, "scope": scope, "tier": tier.value, "months": months},
        )
        await safe_send_embed(
            interaction,
            ui_embeds.success(
                f"{tier.value} ({scope}) for `{sid}` until {discord_timestamp(sub.end_time, 'f')}."
            ),
            ephemeral=True,
        )

    @admin.command(name="reset-usage", description="Clear a user's or server's usage counters")
    @app_commands.describe(user_id="User ID to reset", guild_id="Server ID to reset")
    @_admin_only()
    async def reset_usage(
        self,
        interaction: discord.Interaction,
        user_id: str | None = None,
        guild_id: str | None = None,
    ):
        ids = [v.strip() for v in (user_id, guild_id) if v is not None]
        if not ids or not all(v.isdigit() for v in ids):
            await safe_ephemeral_send(interaction, "Give a numeric user_id and/or guild_id.")
            return
        uid = int(user_id.strip()) if user_id else None
        gid = int(guild_id.strip()) if guild_id else None
        self.bot.admission.reset_usage(user_id=uid, guild_id=gid)  # type: ignore[attr-defined]
        audit_log(
            "ADMIN_RESET_USAGE",
            user_id=interaction.user.id,
            command="admin reset-usage",
            result="ok",
            fields={"target_user_id": uid, "target_guild_id": gid},
        )
        await safe_ephemeral_send(interaction, f"✅ Usage reset (user={uid or '-'}, server={gid or '-'}).")

    @admin.command(name="debug-tx",description="Show what the block explorer returns for a transaction")
    @app_commands.describe(transaction_hash="Transaction hash", tier="Tier to check the amount against")
    @app_commands.choices(
        tier=[app_commands.Choice(name="Premium", value="Premium"), app_commands.Choice(name="Server", value="Server")]
    )
    @_admin_only()
    async def debug_tx(
        self,
        interaction: discord.Interaction,
        transaction_hash: str,
        tier: app_commands.Choice[str] | None = None,
    ):
        h = transaction_hash.strip().lower()
        if not is_valid_tx_hash(h):
            await safe_ephemeral_send(interaction, "Not a valid transaction hash.")
            return
        await safe_defer(interaction, ephemeral=True)

        client = get_cardano_client()
        try:
            tx = await client.fetch_tx_info(h)
            to_wallet = client.amount_to_wallet(tx) if client.wallet_address else None
        except CardanoError as e:
            await safe_send_embed(interaction, ui_embeds.error(str(e)), ephemeral=True)
            return

        lines = [
            f"**Block:** {tx.get('block_height')}",
            f"**Outputs:** {len(tx.get('outputs') or [])}",
            f"**To our wallet:** {to_wallet if to_wallet is not None else 'wallet not configured'} ADA",
        ]
        if tier is not None and to_wallet is not None:
            lines.append(f"**Expected for 1 month {tier.value}:** {calculate_payment_amount(tier.value, 1):g} ADA")
        raw = json.dumps(tx, default=str)[:900]
        embed = ui_embeds.info("\n".join(lines), title=f"🔎 {h[:16]}…")
        embed.add_field(name="Raw (truncated)", value=f"```json\n{raw}\n```", inline=False)
        await safe_send_embed(interaction, embed, ephemeral=True)

    @admin.command(name="balance", description="Payment wallet balance")
    @_admin_only()
    async def balance(self, interaction: discord.Interaction):
        await safe_defer(interaction, ephemeral=True)
        try:
            bal = await get_cardano_client().get_wallet_balance()
        except CardanoError as e:
            await safe_send_embed(interaction, ui_embeds.error(str(e)), ephemeral=True)
            return
        await safe_send_embed(
            interaction,
            ui_embeds.info(f"`{bal.address}`\n**{bal.balance_ada:,.6f} ADA**", title="💰 Wallet"),
            ephemeral=True,
        )

    @admin.command(name="stats", description="Subscription and usage statistics")
    @_admin_only()
    async def stats(self, interaction: discord.Interaction):
        st = self.bot.subscriptions.stats()  # type: ignore[attr-defined]
        users, guilds = self.bot.admission.ledger.size()  # type: ignore[attr-defined]
        tiers = ", ".join(f"{k}: {v}" for k, v in st.tier_counts.items()) or "none"
        desc = (
            f"**Subscriptions:** {st.active} active / {st.total} total\n"
            f"**Active by tier:** {tiers}\n"
            f"**Revenue:** {st.total_revenue_ada:,.2f} ADA\n"
            f"**Usage counters:** {users} users, {guilds} servers\n"
            f"**Servers:** {len(self.bot.guilds)}"
        )
        await safe_send_embed(interaction, ui_embeds.info(desc, title="📈 Stats"), ephemeral=True)


async def setup(bot: commands.Bot):
    await bot.add_cog(SlashAdmin(bot))
