# core/payments.py
"""Turn a verified ADA transaction into a subscription.

The tx hash is claimed in payment_records *before* the store is touched, so
two concurrent /verify-payment calls with the same hash can grant at most once.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from core.pricing import calculate_payment_amount, get_tier_price
from utils import prom
from utils.audit import audit_log
from utils.cardano import CardanoClient, CardanoError, PaymentVerification, is_valid_tx_hash
from utils.subscription_db import is_tx_redeemed, record_payment
from utils.subscription_store import Subscription, SubscriptionStore

log = logging.getLogger("payments")


@dataclass(frozen=True)
class RedeemResult:
    ok: bool
    message: str
    expected_ada: float = 0.0
    subscription: Optional[Subscription] = None
    verification: Optional[PaymentVerification] = None


def _fail(tier: str, message: str, **kw) -> RedeemResult:
    prom.payments_total.labels(tier=str(tier), status="rejected").inc()
    return RedeemResult(ok=False, message=message, **kw)


async def redeem_payment(
    *,
    store: SubscriptionStore,
    cardano: CardanoClient,
    user_id: int,
    guild_id: int | None,
    tier: str,
    months: int,
    tx_hash: str,
    sessionmaker: Optional[async_sessionmaker] = None,
) -> RedeemResult:
    try:
        price = get_tier_price(tier)
        expected = calculate_payment_amount(tier, months)
    except ValueError as e:
        return _fail(tier, str(e))

    if price.scope == "guild" and not guild_id:
        return _fail(tier, "Server subscriptions must be bought from inside the server.", expected_ada=expected)

    h = str(tx_hash or "").strip().lower()
    if not is_valid_tx_hash(h):
        return _fail(tier, "That doesn't look like a transaction hash (64 hex characters).", expected_ada=expected)

    if await is_tx_redeemed(h, sessionmaker=sessionmaker):
        return _fail(tier, "This transaction has already been used.", expected_ada=expected)

    try:
        verification = await cardano.verify_transaction(h, expected)
    except CardanoError as e:
        log.warning("Payment verification error tx=%s: %s", h, e)
        prom.payments_total.labels(tier=tier, status="error").inc()
        return RedeemResult(ok=False, message=f"Could not verify the transaction right now: {e}", expected_ada=expected)

    if not verification.verified:
        return _fail(tier, verification.error or "Payment could not be verified.", expected_ada=expected,
                     verification=verification)

    claimed = await record_payment(
        tx_hash=h,
        user_id=user_id,
        guild_id=guild_id,
        tier=tier,
        months=months,
        amount_ada=verification.amount_ada,
        block_height=verification.block_height,
        sessionmaker=sessionmaker,
    )
    if not claimed:
        return _fail(tier, "This transaction has already been used.", expected_ada=expected,
                     verification=verification)

    subject_id = int(guild_id) if price.scope == "guild" else int(user_id)
    sub = store.grant(
        subject_id,
        price.scope,
        price.tier,
        months,
        verification.amount_ada,
        h,
        purchaser_id=user_id,
    )

    prom.payments_total.labels(tier=tier, status="verified").inc()
    audit_log(
        "PAYMENT_VERIFIED",
        guild_id=guild_id,
        user_id=user_id,
        command="verify-payment",
        result="ok",
        fields={
            "tier": tier,
            "months": int(months),
            "amount_ada": verification.amount_ada,
            "tx_hash": h,
            "scope": price.scope,
            "end_time": sub.end_time,
        },
    )
    log.info("Payment redeemed: tx=%s user=%s scope=%s tier=%s months=%s", h, user_id, price.scope, tier, months)
    return RedeemResult(
        ok=True,
        message=f"{tier} activated for {months} month(s).",
        expected_ada=expected,
        subscription=sub,
        verification=verification,
    )
