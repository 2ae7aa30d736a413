# utils/subscription_db.py
"""Durable mirror for SubscriptionStore plus the redeemed-payment table.

load_subscriptions() fills the store at startup; make_store_listener() returns
a callback that writes every store change back without blocking the caller.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from utils.db import get_sessionmaker
from utils.models import PaymentRecord, SubscriptionRow
from utils.subscription_store import Subscription, SubscriptionStore

log = logging.getLogger("subscription_db")


def _row_to_sub(row: SubscriptionRow) -> Subscription:
    return Subscription(
        subject_id=int(row.subject_id),
        scope=row.scope,  # type: ignore[arg-type]
        tier=row.tier,  # type: ignore[arg-type]
        start_time=float(row.start_time),
        end_time=float(row.end_time),
        amount_paid=float(row.amount_paid or 0),
        source_tx_id=str(row.source_tx_id or ""),
        active=bool(row.active),
        duration_months=int(row.duration_months or 0),
        purchaser_id=(int(row.purchaser_id) if row.purchaser_id else None),
        created_at=float(row.created_at),
        updated_at=float(row.updated_at),
    )


def _apply(row: SubscriptionRow, sub: Subscription) -> None:
    row.tier = sub.tier
    row.start_time = float(sub.start_time)
    row.end_time = float(sub.end_time)
    row.amount_paid = float(sub.amount_paid)
    row.source_tx_id = str(sub.source_tx_id)
    row.active = bool(sub.active)
    row.duration_months = int(sub.duration_months)
    row.purchaser_id = sub.purchaser_id
    row.created_at = float(sub.created_at)
    row.updated_at = float(sub.updated_at)


# -------------------------
# Subscriptions
# -------------------------

async def load_subscriptions(store: SubscriptionStore, *, sessionmaker: Optional[async_sessionmaker] = None) -> int:
    Session = sessionmaker or get_sessionmaker()
    async with Session() as session:
        res = await session.execute(select(SubscriptionRow))
        subs = [_row_to_sub(r) for r in res.scalars().all()]
    n = store.load(subs)
    log.info("Loaded %d subscriptions from DB", n)
    return n


async def save_subscription(sub: Subscription, *, sessionmaker: Optional[async_sessionmaker] = None) -> None:
    Session = sessionmaker or get_sessionmaker()
    async with Session() as session:
        row = await session.get(SubscriptionRow, (sub.scope, int(sub.subject_id)))
        if row is None:
            row = SubscriptionRow(scope=sub.scope, subject_id=int(sub.subject_id))
            session.add(row)
        _apply(row, sub)
        await session.commit()


def make_store_listener(*, sessionmaker: Optional[async_sessionmaker] = None):
    """Store listener that schedules save_subscription on the running loop.

    Outside a loop (CLI tools, sync tests) the change stays in memory only;
    callers there should await save_subscription themselves.
    """
    pending: set[asyncio.Task] = set()

    async def _save(sub: Subscription) -> None:
        try:
            await save_subscription(sub, sessionmaker=sessionmaker)
        except Exception:
            log.exception("Failed persisting subscription scope=%s subject=%s", sub.scope, sub.subject_id)

    def _listener(sub: Subscription) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.debug("No running loop; subscription scope=%s subject=%s not persisted", sub.scope, sub.subject_id)
            return
        task = loop.create_task(_save(sub))
        pending.add(task)
        task.add_done_callback(pending.discard)

    _listener.pending = pending  # type: ignore[attr-defined]
    return _listener


# -------------------------
# Redeemed payments
# -------------------------

async def is_tx_redeemed(tx_hash: str, *, sessionmaker: Optional[async_sessionmaker] = None) -> bool:
    Session = sessionmaker or get_sessionmaker()
    async with Session() as session:
        row = await session.get(PaymentRecord, str(tx_hash).strip().lower())
        return row is not None


async def record_payment(
    *,
    tx_hash: str,
    user_id: int,
    guild_id: int | None,
    tier: str,
    months: int,
    amount_ada: float,
    block_height: int | None = None,
    sessionmaker: Optional[async_sessionmaker] = None,
) -> bool:
    """Insert the payment row. Returns False if the tx was already redeemed."""
    Session = sessionmaker or get_sessionmaker()
    async with Session() as session:
        session.add(
            PaymentRecord(
                tx_hash=str(tx_hash).strip().lower(),
                user_id=int(user_id),
                guild_id=(int(guild_id) if guild_id else None),
                tier=str(tier),
                months=int(months),
                amount_ada=float(amount_ada),
                block_height=block_height,
            )
        )
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            return False
    return True
