import logging
import os
import sys

_config_log = logging.getLogger("config")


def _as_bool(name: str, default: str = "false") -> bool:
    return str(os.getenv(name, default)).strip().lower() in {"1", "true", "yes", "y", "on"}


def _as_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        return int(raw) if raw else int(default)
    except ValueError:
        _config_log.warning("CONFIG WARNING: %s=%r is not an integer; using %s", name, raw, default)
        return int(default)


def _as_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    try:
        return float(raw) if raw else float(default)
    except ValueError:
        _config_log.warning("CONFIG WARNING: %s=%r is not a number; using %s", name, raw, default)
        return float(default)


def _as_id(name: str) -> int | None:
    raw = (os.getenv(name) or "").strip()
    return int(raw) if raw.isdigit() and int(raw) > 0 else None


# ---- Discord ----
DISCORD_TOKEN = os.getenv("DISCORD_TOKEN") or os.getenv("TOKEN")

# ---- Environment ----
ENVIRONMENT = os.getenv("ENVIRONMENT", "prod").strip().lower()
BOT_NAME = os.getenv("BOT_NAME", "Stickerize Bot")


# ---- Guild sync ----
def _parse_id_list(raw: str | None) -> list[int]:
    if not raw:
        return []
    out: list[int] = []
    for part in str(raw).split(","):
        p = part.strip()
        if not p:
            continue
        if p.isdigit():
            out.append(int(p))
    # stable de-dupe
    seen: set[int] = set()
    uniq: list[int] = []
    for x in out:
        if x in seen:
            continue
        seen.add(x)
        uniq.append(x)
    return uniq


DEV_GUILD_IDS = _parse_id_list(os.getenv("DEV_GUILD_ID"))
SYNC_GUILD_IDS = _parse_id_list(os.getenv("SYNC_GUILD_ID"))

# ---- Owners / overrides ----
# ADMIN_USER_ID is unlimited everywhere and may use /admin.
# BOT_OWNER_IDS may use /admin but get no usage override.
ADMIN_USER_ID = _as_id("ADMIN_USER_ID")
VIP_CHANNEL_ID = _as_id("VIP_CHANNEL_ID")

BOT_OWNER_IDS = {
    int(x.strip())
    for x in (os.getenv("BOT_OWNER_IDS") or "").split(",")
    if x.strip().isdigit()
}

# ---- Usage limits ----
# Standard users: personal hourly budget.
# Guilds without a server subscription: one shared pool for all free members.
STANDARD_HOURLY_LIMIT = _as_int("STANDARD_HOURLY_LIMIT", 10)
FREE_GUILD_HOURLY_LIMIT = _as_int("FREE_GUILD_HOURLY_LIMIT", 5)
FREE_GUILD_DAILY_LIMIT = _as_int("FREE_GUILD_DAILY_LIMIT", 25)

# Usage counters live in memory; entries idle this long are swept.
LEDGER_PRUNE_INTERVAL_S = _as_int("LEDGER_PRUNE_INTERVAL_S", 3600)
LEDGER_IDLE_EVICT_S = _as_int("LEDGER_IDLE_EVICT_S", 2 * 86400)

# ---- Animation (Replicate) ----
REPLICATE_API_TOKEN = (os.getenv("REPLICATE_API_TOKEN") or "").strip() or None
REPLICATE_BASE_URL = os.getenv("REPLICATE_BASE_URL", "https://api.replicate.com/v1").strip()
REPLICATE_MODEL_VERSION = os.getenv(
    "REPLICATE_MODEL_VERSION",
    "d68b6e09eedbac7a49e3d8644999d93579c386a083768235cabca88796d70d82",
).strip()
REPLICATE_POLL_INTERVAL_S = _as_float("REPLICATE_POLL_INTERVAL_S", 10.0)
REPLICATE_MAX_POLLS = _as_int("REPLICATE_MAX_POLLS", 30)
REPLICATE_TIMEOUT_S = _as_float("REPLICATE_TIMEOUT_S", 30.0)

FFMPEG_BIN = os.getenv("FFMPEG_BIN", "ffmpeg").strip() or "ffmpeg"
MAX_IMAGE_BYTES = _as_int("MAX_IMAGE_BYTES", 8 * 1024 * 1024)

# ---- ADA payments ----
# Set to "true" to enable /subscribe and /verify-payment.
PAYMENTS_ENABLED = _as_bool("PAYMENTS_ENABLED", "false")
PAYMENT_WALLET_ADDRESS = (os.getenv("PAYMENT_WALLET_ADDRESS") or "").strip() or None
KOIOS_BASE_URL = os.getenv("KOIOS_BASE_URL", "https://api.koios.rest/api/v1").strip()
KOIOS_TIMEOUT_S = _as_float("KOIOS_TIMEOUT_S", 15.0)

# Monthly prices in ADA.
PRICE_PREMIUM_ADA = _as_float("PRICE_PREMIUM_ADA", 15.0)
PRICE_SERVER_ADA = _as_float("PRICE_SERVER_ADA", 100.0)
# Fraction of the expected amount a payment may fall short by (fees, rounding).
PAYMENT_TOLERANCE = _as_float("PAYMENT_TOLERANCE", 0.01)

# ---- One-time maintenance flags ----
CLEAR_GLOBAL_COMMANDS_ONCE = _as_bool("CLEAR_GLOBAL_COMMANDS_ONCE", "false")


# ---------------------------------------------------------------------------
# Startup validation
# ---------------------------------------------------------------------------

def validate_config() -> None:
    """Check for required and recommended environment variables.

    Called at import time. In production, missing critical vars cause a hard
    exit so the problem is obvious (instead of a cryptic error 5 minutes later).
    """
    is_prod = ENVIRONMENT != "dev"
    errors: list[str] = []
    warnings: list[str] = []

    # Required always
    if not DISCORD_TOKEN:
        errors.append("DISCORD_TOKEN (or TOKEN) is not set. The bot cannot start.")

    # Required in production
    if is_prod:
        if not os.getenv("DATABASE_URL"):
            errors.append("DATABASE_URL is not set. Postgres is required in production.")
        if PAYMENTS_ENABLED and not PAYMENT_WALLET_ADDRESS:
            errors.append(
                "PAYMENTS_ENABLED is true but PAYMENT_WALLET_ADDRESS is not set. "
                "Payments cannot be verified without a receiving address."
            )

    if PAYMENT_WALLET_ADDRESS:
        from utils.cardano import is_valid_cardano_address

        if not is_valid_cardano_address(PAYMENT_WALLET_ADDRESS):
            errors.append(
                f"PAYMENT_WALLET_ADDRESS={PAYMENT_WALLET_ADDRESS!r} is not a Cardano address "
                "(expected addr1... or addr_test1...)."
            )

    # Recommended (warn only)
    if not REPLICATE_API_TOKEN:
        warnings.append("REPLICATE_API_TOKEN is not set. /stickerize will not work.")
    if not ADMIN_USER_ID:
        warnings.append("ADMIN_USER_ID is not set. /admin commands are limited to BOT_OWNER_IDS.")
    if min(STANDARD_HOURLY_LIMIT, FREE_GUILD_HOURLY_LIMIT, FREE_GUILD_DAILY_LIMIT) < 0:
        errors.append("Usage limits must not be negative.")
    if FREE_GUILD_DAILY_LIMIT < FREE_GUILD_HOURLY_LIMIT:
        warnings.append(
            "FREE_GUILD_DAILY_LIMIT is lower than FREE_GUILD_HOURLY_LIMIT; "
            "the hourly pool can never be reached."
        )

    for w in warnings:
        _config_log.warning("CONFIG WARNING: %s", w)

    if errors:
        for e in errors:
            _config_log.critical("CONFIG ERROR: %s", e)
        if is_prod:
            sys.exit(1)


validate_config()
