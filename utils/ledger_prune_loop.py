# utils/ledger_prune_loop.py
"""Background loop: drop usage counters that have been idle for a long time.

Counters reset lazily, so a user seen once would otherwise stay in memory for
the life of the process.
"""
from __future__ import annotations

import asyncio
import logging

import config
from core.admission import AdmissionController
from utils import prom

logger = logging.getLogger("bot.ledger_prune")


def _tick(controller: AdmissionController, idle_seconds: float) -> int:
    removed = controller.prune(idle_seconds)
    users, guilds = controller.ledger.size()
    prom.ledger_entries.labels(kind="user").set(users)
    prom.ledger_entries.labels(kind="guild").set(guilds)
    if removed:
        logger.info("Pruned %d idle usage counters (users=%d guilds=%d left)", removed, users, guilds)
    return removed


async def _loop(controller: AdmissionController, interval_s: float, idle_seconds: float) -> None:
    logger.info("Ledger prune loop started (interval=%ss idle=%ss)", interval_s, idle_seconds)
    while True:
        try:
            _tick(controller, idle_seconds)
        except asyncio.CancelledError:
            break
        except Exception:
            logger.exception("Ledger prune tick error")
        await asyncio.sleep(interval_s)


def start_ledger_prune_loop(controller: AdmissionController) -> asyncio.Task:
    """Start the background idle-counter sweep."""
    task = asyncio.create_task(
        _loop(controller, float(config.LEDGER_PRUNE_INTERVAL_S), float(config.LEDGER_IDLE_EVICT_S))
    )
    task.add_done_callback(
        lambda t: None if t.cancelled() else logger.warning("Ledger prune loop exited: %s", t.exception())
    )
    return task
