# commands/slash/stickerize.py
"""/stickerize: animate an uploaded image into a Discord sticker or emoji GIF."""
from __future__ import annotations

import io
import logging

import discord
from discord import app_commands
from discord.ext import commands

from core.admission import AdmissionController
from core.sticker_pipeline import make_sticker
from core.ui import safe_defer, safe_send_file
from core.ui_messages import render_admit_footer, render_denial, send_error, send_warning
from utils import prom
from utils.audit import audit_admission
from utils.image_validator import check_attachment_meta, check_image_bytes
from utils.media import MediaError
from utils.replicate_client import InferenceConfigError, InferenceError, get_replicate_client

log = logging.getLogger("bot.stickerize")


class SlashStickerize(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    @property
    def admission(self) -> AdmissionController:
        return self.bot.admission  # type: ignore[attr-defined]

    @app_commands.command(name="stickerize", description="Turn an image into an animated sticker or emoji")
    @app_commands.describe(image="PNG, JPEG, GIF or WebP (max 8MB)", sticker_size="Sticker (512KB) or emoji (256KB)")
    @app_commands.choices(
        sticker_size=[
            app_commands.Choice(name="Sticker (320px)", value="sticker"),
            app_commands.Choice(name="Emoji (200px)", value="emoji"),
        ]
    )
    async def stickerize(
        self,
        interaction: discord.Interaction,
        image: discord.Attachment,
        sticker_size: app_commands.Choice[str] | None = None,
    ):
        size = sticker_size.value if sticker_size else "sticker"
        user_id = interaction.user.id
        guild_id = interaction.guild.id if interaction.guild else None
        channel_id = interaction.channel_id

        meta = check_attachment_meta(size=image.size, content_type=image.content_type)
        if not meta.ok:
            prom.commands_total.labels(command="stickerize", status="invalid").inc()
            await send_error(interaction, meta.error or "Invalid image.")
            return

        verdict = self.admission.admit(user_id, guild_id, channel_id)
        prom.admission_total.labels(tier=verdict.tier, reason=verdict.reason).inc()
        audit_admission(verdict, user_id=user_id, guild_id=guild_id, channel_id=channel_id)
        if not verdict.admitted:
            prom.commands_total.labels(command="stickerize", status="denied").inc()
            await send_warning(interaction, render_denial(verdict))
            return

        await safe_defer(interaction, ephemeral=False)

        try:
            data = await image.read()
            checked = check_image_bytes(data)
            if not checked.ok:
                await send_error(interaction, checked.error or "Invalid image.")
                return

            result = await make_sticker(data, mime=checked.mime, size=size, replicate=get_replicate_client())
        except InferenceConfigError:
            log.error("Animation backend is not configured")
            prom.commands_total.labels(command="stickerize", status="error").inc()
            await send_error(interaction, "Animation is not configured on this bot yet.")
            return
        except InferenceError as e:
            log.warning("Animation failed user=%s: %s", user_id, e)
            prom.commands_total.labels(command="stickerize", status="error").inc()
            await send_error(interaction, f"Animation failed: {e}")
            return
        except MediaError as e:
            log.warning("GIF conversion failed user=%s: %s", user_id, e)
            prom.commands_total.labels(command="stickerize", status="error").inc()
            await send_error(interaction, f"Couldn't convert the animation: {e}")
            return
        except discord.HTTPException:
            log.exception("Attachment download failed user=%s", user_id)
            prom.commands_total.labels(command="stickerize", status="error").inc()
            await send_error(interaction, "Couldn't download your image from Discord. Please try again.")
            return

        sent = await safe_send_file(
            interaction,
            discord.File(io.BytesIO(result.data), filename=result.filename),
            content=f"Here's your animated {result.size}! ({render_admit_footer(verdict)})",
        )
        prom.commands_total.labels(command="stickerize", status="ok" if sent else "send_failed").inc()


async def setup(bot: commands.Bot):
    await bot.add_cog(SlashStickerize(bot))
