"""Koios client (utils/cardano.py) against a mocked transport."""
from __future__ import annotations

import json

import httpx
import pytest

from utils.cardano import (
    CardanoClient,
    CardanoConfigError,
    CardanoNotFoundError,
    CardanoRateLimitError,
    CardanoStatusError,
    is_valid_cardano_address,
    is_valid_tx_hash,
)

WALLET = "addr1" + "q" * 98
OTHER = "addr1" + "z" * 98
TX = "ab" * 32


def _tx(outputs, **extra):
    body = {"tx_hash": TX, "block_height": 1234, "tx_timestamp": 1700000000, "outputs": outputs}
    body.update(extra)
    return [body]


def _out(addr: str, lovelace: int) -> dict:
    return {"payment_addr": {"bech32": addr, "cred": "x"}, "value": str(lovelace)}


def _client(handler, wallet: str | None = WALLET) -> CardanoClient:
    return CardanoClient(
        base_url="https://koios.test/api/v1",
        wallet_address=wallet,
        tolerance=0.01,
        transport=httpx.MockTransport(handler),
    )


def test_tx_hash_validation():
    assert is_valid_tx_hash(TX)
    assert is_valid_tx_hash(TX.upper())
    assert not is_valid_tx_hash(TX[:-1])
    assert not is_valid_tx_hash("zz" * 32)
    assert not is_valid_tx_hash(None)


def test_address_validation():
    assert is_valid_cardano_address(WALLET)
    assert is_valid_cardano_address("addr_test1" + "a" * 60)
    assert not is_valid_cardano_address("stake1" + "a" * 60)
    assert not is_valid_cardano_address("")


@pytest.mark.asyncio
async def test_verified_payment_sums_outputs_to_wallet():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_tx([_out(WALLET, 10_000_000), _out(WALLET, 5_000_000), _out(OTHER, 99_000_000)]))

    client = _client(handler)
    v = await client.verify_transaction(TX, 15.0)
    await client.aclose()

    assert seen["path"].endswith("/tx_info")
    assert seen["body"] == {"_tx_hashes": [TX]}
    assert v.verified
    assert v.amount_ada == 15.0
    assert v.block_height == 1234


@pytest.mark.asyncio
async def test_tolerance_allows_small_shortfall():
    client = _client(lambda r: httpx.Response(200, json=_tx([_out(WALLET, 14_900_000)])))
    v = await client.verify_transaction(TX, 15.0)
    assert v.verified


@pytest.mark.asyncio
async def test_underpayment_is_rejected():
    client = _client(lambda r: httpx.Response(200, json=_tx([_out(WALLET, 10_000_000)])))
    v = await client.verify_transaction(TX, 15.0)
    assert not v.verified
    assert "Insufficient" in v.error
    assert v.amount_ada == 10.0


@pytest.mark.asyncio
async def test_payment_to_someone_else_is_rejected():
    client = _client(lambda r: httpx.Response(200, json=_tx([_out(OTHER, 50_000_000)])))
    v = await client.verify_transaction(TX, 15.0)
    assert not v.verified
    assert v.amount_ada == 0.0


@pytest.mark.asyncio
async def test_legacy_address_field_is_understood():
    client = _client(lambda r: httpx.Response(200, json=_tx([{"address": WALLET, "value": "15000000"}])))
    assert (await client.verify_transaction(TX, 15.0)).verified


@pytest.mark.asyncio
async def test_invalid_hash_short_circuits_without_request():
    calls = []
    client = _client(lambda r: calls.append(r) or httpx.Response(200, json=[]))
    v = await client.verify_transaction("nope", 15.0)
    assert not v.verified
    assert calls == []


@pytest.mark.asyncio
async def test_unknown_tx_raises_not_found():
    client = _client(lambda r: httpx.Response(200, json=[]))
    with pytest.raises(CardanoNotFoundError):
        await client.verify_transaction(TX, 15.0)


@pytest.mark.asyncio
async def test_rate_limit_maps_to_stable_error():
    client = _client(lambda r: httpx.Response(429))
    with pytest.raises(CardanoRateLimitError):
        await client.fetch_tx_info(TX)


@pytest.mark.asyncio
async def test_server_error_retries_then_raises(monkeypatch):
    import utils.cardano as cardano

    monkeypatch.setattr(cardano, "_jitter_sleep", lambda base: 0.0)
    calls = []

    def handler(r):
        calls.append(r)
        return httpx.Response(503)

    client = _client(handler)
    with pytest.raises(CardanoStatusError) as ei:
        await client.fetch_tx_info(TX)
    assert ei.value.status_code == 503
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_missing_wallet_is_a_config_error():
    client = _client(lambda r: httpx.Response(200, json=_tx([_out(WALLET, 1)])), wallet=None)
    with pytest.raises(CardanoConfigError):
        await client.verify_transaction(TX, 15.0)
    with pytest.raises(CardanoConfigError):
        await client.get_wallet_balance()


@pytest.mark.asyncio
async def test_wallet_balance():
    def handler(request):
        assert json.loads(request.content) == {"_addresses": [WALLET]}
        return httpx.Response(200, json=[{"address": WALLET, "balance": "123456789"}])

    bal = await _client(handler).get_wallet_balance()
    assert bal.balance_lovelace == 123456789
    assert bal.balance_ada == pytest.approx(123.456789)
