from __future__ import annotations

"""
Async SQLAlchemy engine + session factory.

Postgres (asyncpg) in production; SQLite (aiosqlite) is allowed only with
ENVIRONMENT=dev. The database holds subscriptions and redeemed payments; usage
counters never touch it.
"""

import asyncio
import logging
import os
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

log = logging.getLogger("db")

_engine: Optional[AsyncEngine] = None
_sessionmaker: Optional[async_sessionmaker] = None


def _database_url() -> str:
    url = (os.getenv("DATABASE_URL", "") or "").strip()
    if url:
        # Convert sync postgres URLs to asyncpg URLs if needed
        if url.startswith("postgres://"):
            url = "postgresql+asyncpg://" + url[len("postgres://") :]
        elif url.startswith("postgresql://") and "+asyncpg" not in url:
            url = "postgresql+asyncpg://" + url[len("postgresql://") :]
        return url

    env = (os.getenv("ENVIRONMENT", "prod") or "prod").strip().lower()
    if env != "dev":
        raise RuntimeError(
            "DATABASE_URL is missing. Set DATABASE_URL (Postgres) in your environment. "
            "If you are running locally, set ENVIRONMENT=dev to allow a local SQLite fallback."
        )

    return "sqlite+aiosqlite:///./stickerize.db"


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        url = _database_url()
        pool_kwargs: dict = {}
        if not url.startswith("sqlite"):
            pool_kwargs = {
                "pool_size": 5,
                "max_overflow": 10,
                "pool_timeout": 30,
                "pool_recycle": 1800,
                "pool_pre_ping": True,
            }
        _engine = create_async_engine(url, future=True, echo=False, **pool_kwargs)
    return _engine


def get_sessionmaker() -> async_sessionmaker:
    global _sessionmaker
    if _sessionmaker is None:
        _sessionmaker = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _sessionmaker


async def dispose_engine() -> None:
    global _engine, _sessionmaker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessionmaker = None


_DB_RETRY_ATTEMPTS = 5
_DB_RETRY_BASE_DELAY = 2.0


async def init_db() -> None:
    """Create tables (dev / DB_AUTO_CREATE) or just preflight the connection.

    Retries with exponential backoff for transient connectivity failures
    (the DB often boots after the app on cold starts).
    """
    from utils.models import Base

    engine = get_engine()
    env = (os.getenv("ENVIRONMENT", "prod") or "prod").strip().lower()
    auto_create = str(os.getenv("DB_AUTO_CREATE", "")).strip().lower() in {"1", "true", "yes", "on"}

    for attempt in range(1, _DB_RETRY_ATTEMPTS + 1):
        try:
            async with engine.begin() as conn:
                if env == "dev" or auto_create:
                    await conn.run_sync(Base.metadata.create_all)
                    log.info("DB init OK (tables ensured; env=%s auto_create=%s)", env, auto_create)
                else:
                    await conn.execute(text("SELECT 1"))
                    log.info("DB preflight OK (env=%s). Apply migrations via Alembic.", env)
            return
        except Exception as exc:
            if attempt >= _DB_RETRY_ATTEMPTS:
                log.exception("DB init/preflight failed after %d attempts", _DB_RETRY_ATTEMPTS)
                raise
            delay = _DB_RETRY_BASE_DELAY * (2 ** (attempt - 1))
            log.warning(
                "DB init attempt %d/%d failed (%s); retrying in %.1fs…",
                attempt, _DB_RETRY_ATTEMPTS, exc, delay,
            )
            await asyncio.sleep(delay)
