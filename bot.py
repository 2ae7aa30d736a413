# bot.py
import os
import logging
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path

print("[boot] bot.py loading…", flush=True)

import discord
from discord.ext import commands
from dotenv import load_dotenv

# Load .env before config reads the environment.
load_dotenv()

import asyncio
import config

print(f"[boot] config OK  env={getattr(config, 'ENVIRONMENT', '?')}", flush=True)
from core.admission import AdmissionController, AdmissionPolicy
from core import ui_embeds
from utils import prom
from utils.audit import audit_log
from utils.db import dispose_engine, init_db
from utils.subscription_db import load_subscriptions, make_store_listener
from utils.subscription_store import Subscription, SubscriptionStore

# ---------------------------------------------------------------------------
# Intents
# ---------------------------------------------------------------------------

intents = discord.Intents.default()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

LOG_DIR = Path(__file__).parent / "logs"
LOG_DIR.mkdir(exist_ok=True)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

root_logger = logging.getLogger()
root_logger.setLevel(logging.INFO)


def _make_json_formatter() -> logging.Formatter:
    """JSON formatter for structured file logs."""
    from pythonjsonlogger.json import JsonFormatter

    return JsonFormatter(
        "{asctime}{levelname}{name}{message}",
        style="{",
        rename_fields={"asctime": "timestamp", "levelname": "level"},
    )


def setup_logging() -> None:
    """Configure logging once (safe for reloads)."""
    for handler in root_logger.handlers:
        if getattr(handler, "_stickerize_handler", False):
            return

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    console._stickerize_handler = True  # type: ignore[attr-defined]
    root_logger.addHandler(console)

    json_fmt = _make_json_formatter()

    file = RotatingFileHandler(
        LOG_DIR / "bot.log",
        maxBytes=5_000_000,
        backupCount=5,
        encoding="utf-8",
    )
    file.setFormatter(json_fmt)
    file._stickerize_handler = True  # type: ignore[attr-defined]
    root_logger.addHandler(file)

    errors = RotatingFileHandler(
        LOG_DIR / "errors.log",
        maxBytes=2_000_000,
        backupCount=3,
        encoding="utf-8",
    )
    errors.setLevel(logging.ERROR)
    errors.setFormatter(json_fmt)
    errors._stickerize_handler = True  # type: ignore[attr-defined]
    root_logger.addHandler(errors)


setup_logging()
logger = logging.getLogger("bot")

# ---------------------------------------------------------------------------
# Bot
# ---------------------------------------------------------------------------


def _on_subscription_change(sub: Subscription) -> None:
    if not sub.active:
        audit_log(
            "SUBSCRIPTION_EXPIRED",
            guild_id=sub.subject_id if sub.scope == "guild" else None,
            user_id=sub.subject_id if sub.scope == "personal" else None,
            fields={"tier": sub.tier, "scope": sub.scope, "end_time": sub.end_time},
        )


class StickerizeBot(commands.AutoShardedBot):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.subscriptions = SubscriptionStore()
        self.admission = AdmissionController(
            policy=AdmissionPolicy.from_config(),
            subscriptions=self.subscriptions,
        )
        self.start_time = time.time()

    async def setup_hook(self) -> None:
        # DB holds subscriptions + redeemed payments.
        await init_db()
        await load_subscriptions(self.subscriptions)
        self.subscriptions.add_listener(make_store_listener())
        self.subscriptions.add_listener(_on_subscription_change)
        self.subscriptions.add_listener(lambda _sub: self.refresh_subscription_gauges())
        self.refresh_subscription_gauges()

        # Health-check server (must succeed so the host sees the container as alive).
        try:
            print("[boot] starting health server…", flush=True)
            from core.health_server import start_health_server
            await start_health_server(self)
            print("[boot] health server UP", flush=True)
        except Exception:
            logger.exception("Failed to start health server")

        await load_extensions()

        # Background: sweep idle usage counters
        try:
            from utils.ledger_prune_loop import start_ledger_prune_loop
            start_ledger_prune_loop(self.admission)
        except Exception:
            logger.exception("Failed to start ledger prune loop")

        try:
            await sync_commands()
        except Exception:
            logger.exception("sync_commands() failed")

    def refresh_subscription_gauges(self) -> None:
        for scope in ("personal", "guild"):
            prom.active_subscriptions.labels(scope=scope).set(len(self.subscriptions.active_subscriptions(scope)))

    async def on_message(self, message: discord.Message):
        return  # slash-only


def _get_env_int(name: str) -> int | None:
    try:
        v = int(str(os.getenv(name, "")).strip())
        return v if v > 0 else None
    except Exception:
        return None


bot = StickerizeBot(
    command_prefix="__NO_PREFIX__",
    intents=intents,
    shard_count=_get_env_int("SHARD_COUNT"),
)

# ---------------------------------------------------------------------------
# Extensions
# ---------------------------------------------------------------------------

EXTENSIONS = [
    "commands.slash.stickerize",
    "commands.slash.limits",
    "commands.slash.subscription",
    "commands.slash.admin",
    "commands.slash.help",
]

logger.info("EXTENSIONS tuple: %r", EXTENSIONS)


async def load_extensions() -> None:
    """Load all extensions. Log failures but keep going so one broken cog
    doesn't take down the health-check server."""
    failed: list[str] = []
    for ext in EXTENSIONS:
        try:
            await bot.load_extension(ext)
            logger.info("Loaded extension: %s", ext)
        except Exception:
            logger.exception("FAILED loading extension: %s", ext)
            failed.append(ext)
    if failed:
        logger.error("Extensions that failed to load: %s", failed)


async def sync_commands() -> None:
    env = str(getattr(config, "ENVIRONMENT", "prod")).lower().strip()

    # One-time maintenance: clear GLOBAL commands (these cause duplicates in the UI)
    if config.CLEAR_GLOBAL_COMMANDS_ONCE:
        logger.info("CLEAR_GLOBAL_COMMANDS_ONCE=True: clearing GLOBAL commands...")
        bot.tree.clear_commands(guild=None)
        await bot.tree.sync()
        logger.info("Cleared GLOBAL commands. Now set CLEAR_GLOBAL_COMMANDS_ONCE=False and restart.")

    if env == "dev":
        guild_ids = list(config.SYNC_GUILD_IDS) or list(config.DEV_GUILD_IDS)
        if not guild_ids:
            logger.warning("No SYNC_GUILD_ID/DEV_GUILD_ID set; skipping dev guild slash-command sync")
            return

        logger.info("SYNC TARGET guild_ids=%s", guild_ids)
        for guild_id in guild_ids:
            guild = discord.Object(id=int(guild_id))
            # In dev, copy globals -> guild so guild sync is instant
            bot.tree.copy_global_to(guild=guild)
            await bot.tree.sync(guild=guild)
            logger.info("✅ Synced slash commands to guild=%s", guild_id)
    else:
        await bot.tree.sync()
        logger.info("✅ Synced slash commands globally (prod)")

# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


def welcome_embed(guild: discord.Guild) -> discord.Embed:
    if bot.subscriptions.has_active_server_subscription(guild.id):
        return ui_embeds.premium(
            "This server has an active **Server** plan: unlimited animations for everyone.\n"
            "Try `/stickerize` with any image.",
            title=f"👋 Thanks for adding {config.BOT_NAME}!",
        )
    return ui_embeds.info(
        f"Use `/stickerize` to turn an image into an animated sticker or emoji.\n"
        f"Free members get {config.STANDARD_HOURLY_LIMIT}/hour each and share "
        f"{config.FREE_GUILD_HOURLY_LIMIT}/hour ({config.FREE_GUILD_DAILY_LIMIT}/day) across this server.\n"
        "Upgrade with `/subscribe`. See `/help` for everything else.",
        title=f"👋 Thanks for adding {config.BOT_NAME}!",
    )


async def _send_welcome(guild: discord.Guild) -> None:
    channel = guild.system_channel
    me = guild.me
    if channel is None or me is None or not channel.permissions_for(me).send_messages:
        channel = next(
            (c for c in guild.text_channels if me is not None and c.permissions_for(me).send_messages),
            None,
        )
    if channel is None:
        return
    try:
        await channel.send(embed=welcome_embed(guild))
    except discord.HTTPException:
        logger.warning("Welcome message failed guild=%s", guild.id)


@bot.event
async def on_ready():
    audit_log(
        "BOT_READY",
        fields={
            "bot_user": str(bot.user),
            "env": config.ENVIRONMENT,
        },
    )
    logger.info("%s is ready. Logged in as %s", config.BOT_NAME, bot.user)
    prom.active_guilds.set(len(bot.guilds))


@bot.event
async def on_guild_join(guild: discord.Guild):
    prom.active_guilds.set(len(bot.guilds))
    audit_log("GUILD_JOIN", guild_id=guild.id, fields={"name": guild.name})
    await _send_welcome(guild)


@bot.event
async def on_guild_remove(guild: discord.Guild):
    prom.active_guilds.set(len(bot.guilds))


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------

async def main():
    try:
        print("[boot] connecting to Discord…", flush=True)
        await bot.start(config.DISCORD_TOKEN)
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Received shutdown signal")
    finally:
        if not bot.is_closed():
            logger.info("Closing bot connection...")
            await bot.close()
        from utils.cardano import aclose_cardano_client
        from utils.replicate_client import aclose_replicate_client

        await aclose_replicate_client()
        await aclose_cardano_client()
        try:
            await dispose_engine()
            logger.info("Database engine disposed")
        except Exception:
            logger.exception("Database engine dispose failed")
        logger.info("Shutdown complete")


if __name__ == "__main__":
    import signal

    def _handle_signal(sig, _frame):
        logger.info("Signal %s received, initiating graceful shutdown...", signal.Signals(sig).name)
        raise KeyboardInterrupt

    signal.signal(signal.SIGINT, _handle_signal)
    try:
        signal.signal(signal.SIGTERM, _handle_signal)
    except (OSError, AttributeError):
        pass  # SIGTERM not available on Windows

    asyncio.run(main())
