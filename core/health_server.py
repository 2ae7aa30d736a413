"""Health + metrics HTTP server running inside the bot process.

The host provides a PORT env var; we bind 0.0.0.0:PORT so container health
checks can reach us.
"""
from __future__ import annotations

import logging
import os
import time
from typing import Any, Optional

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

import config

log = logging.getLogger("health_server")

_STARTED_AT = time.time()

APP_BOT_KEY = web.AppKey("bot", Any)


def build_health_payload(bot: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "status": "ok",
        "name": config.BOT_NAME,
        "environment": config.ENVIRONMENT,
        "uptime_s": int(time.time() - _STARTED_AT),
    }
    if bot is None:
        return payload

    try:
        payload["ready"] = bool(bot.is_ready())
        payload["guilds"] = len(getattr(bot, "guilds", []) or [])
    except Exception:
        payload["ready"] = False

    admission = getattr(bot, "admission", None)
    if admission is not None:
        users, guilds = admission.ledger.size()
        payload["usage_counters"] = {"users": users, "guilds": guilds}

    subs = getattr(bot, "subscriptions", None)
    if subs is not None:
        st = subs.stats()
        payload["subscriptions"] = {"total": st.total, "active": st.active}
    return payload


async def _handle_root(request: web.Request) -> web.Response:
    return web.Response(status=200, text=f"{config.BOT_NAME} is running")


async def _handle_health(request: web.Request) -> web.Response:
    return web.json_response(build_health_payload(request.app.get(APP_BOT_KEY)))


async def _handle_metrics(request: web.Request) -> web.Response:
    resp = web.Response(body=generate_latest())
    resp.content_type = CONTENT_TYPE_LATEST.split(";", 1)[0]
    return resp


def build_app(bot: Any = None) -> web.Application:
    app = web.Application()
    app[APP_BOT_KEY] = bot
    app.router.add_get("/", _handle_root)
    app.router.add_get("/health", _handle_health)
    app.router.add_get("/metrics", _handle_metrics)
    return app


async def start_health_server(bot: Any, *, port: Optional[int] = None) -> web.AppRunner:
    """Start the aiohttp server. Called from bot.py setup_hook."""
    app = build_app(bot)
    port = int(port if port is not None else os.getenv("PORT", "8080"))
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "0.0.0.0", port)
    await site.start()
    log.info("Health server listening on 0.0.0.0:%d", port)
    return runner
