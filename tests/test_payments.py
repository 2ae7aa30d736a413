"""Payment redemption (core/payments.py) with a stubbed block explorer."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from core.payments import redeem_payment
from core.pricing import calculate_payment_amount
from utils.cardano import CardanoConnectionError, PaymentVerification
from utils.subscription_store import MONTH_SECONDS

TX = "cd" * 32


def _cardano(*, verified=True, amount=None, error=""):
    fake = MagicMock()

    async def _verify(tx_hash, expected):
        return PaymentVerification(
            verified=verified,
            tx_hash=tx_hash,
            amount_ada=expected if amount is None else amount,
            expected_ada=expected,
            block_height=99,
            error=error,
        )

    fake.verify_transaction = AsyncMock(side_effect=_verify)
    return fake


async def _redeem(store, db, cardano, **kw):
    args = dict(user_id=1, guild_id=None, tier="Premium", months=1, tx_hash=TX)
    args.update(kw)
    return await redeem_payment(store=store, cardano=cardano, sessionmaker=db, **args)


@pytest.mark.asyncio
async def test_premium_payment_grants_personal_subscription(store, db_sessionmaker, clock):
    res = await _redeem(store, db_sessionmaker, _cardano(), months=2)
    assert res.ok
    assert res.expected_ada == calculate_payment_amount("Premium", 2)
    assert store.has_active_subscription(1)
    assert res.subscription.end_time == clock.t + 2 * MONTH_SECONDS
    assert res.subscription.purchaser_id == 1


@pytest.mark.asyncio
async def test_server_payment_grants_guild_subscription(store, db_sessionmaker):
    res = await _redeem(store, db_sessionmaker, _cardano(), tier="Server", guild_id=77)
    assert res.ok
    assert store.has_active_server_subscription(77)
    assert not store.has_active_subscription(1)


@pytest.mark.asyncio
async def test_server_payment_requires_a_guild(store, db_sessionmaker):
    cardano = _cardano()
    res = await _redeem(store, db_sessionmaker, cardano, tier="Server", guild_id=None)
    assert not res.ok
    cardano.verify_transaction.assert_not_awaited()


@pytest.mark.asyncio
async def test_same_transaction_cannot_be_redeemed_twice(store, db_sessionmaker):
    assert (await _redeem(store, db_sessionmaker, _cardano())).ok
    cardano = _cardano()
    res = await _redeem(store, db_sessionmaker, cardano, user_id=2)
    assert not res.ok
    assert "already" in res.message
    cardano.verify_transaction.assert_not_awaited()
    assert not store.has_active_subscription(2)


@pytest.mark.asyncio
async def test_unverified_payment_grants_nothing(store, db_sessionmaker):
    res = await _redeem(store, db_sessionmaker, _cardano(verified=False, amount=1.0, error="Insufficient payment"))
    assert not res.ok
    assert res.message == "Insufficient payment"
    assert not store.has_active_subscription(1)

    # the tx was not burned: a later (corrected) check can still redeem it
    assert (await _redeem(store, db_sessionmaker, _cardano())).ok


@pytest.mark.asyncio
async def test_explorer_errors_are_reported_not_raised(store, db_sessionmaker):
    cardano = MagicMock()
    cardano.verify_transaction = AsyncMock(side_effect=CardanoConnectionError("Failed to reach Koios."))
    res = await _redeem(store, db_sessionmaker, cardano)
    assert not res.ok
    assert "Koios" in res.message


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kw",
    [
        {"tx_hash": "not-a-hash"},
        {"tier": "Ultra"},
        {"months": 0},
        {"months": 13},
    ],
)
async def test_bad_input_rejected_before_lookup(store, db_sessionmaker, kw):
    cardano = _cardano()
    res = await _redeem(store, db_sessionmaker, cardano, **kw)
    assert not res.ok
    cardano.verify_transaction.assert_not_awaited()


@pytest.mark.asyncio
async def test_payment_is_audited(store, db_sessionmaker, tmp_path):
    await _redeem(store, db_sessionmaker, _cardano())
    text = (tmp_path / "logs" / "audit.log").read_text(encoding="utf-8")
    assert "PAYMENT_VERIFIED" in text
    assert TX in text
