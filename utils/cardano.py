# utils/cardano.py
"""Koios block-explorer client for ADA payment checks.

We do not validate the chain ourselves: we ask Koios for the transaction and
sum the outputs that land on our wallet address.
"""
from __future__ import annotations

import asyncio
import logging
import random
import re
from dataclasses import dataclass
from typing import Any, Optional

import httpx

log = logging.getLogger("cardano")

LOVELACE_PER_ADA = 1_000_000

_TX_HASH_RE = re.compile(r"^[0-9a-fA-F]{64}$")
_MAINNET_ADDR_RE = re.compile(r"^addr1[a-z0-9]{50,}$")
_TESTNET_ADDR_RE = re.compile(r"^addr_test1[a-z0-9]{50,}$")


# ----------------------------
# Stable exception types
# ----------------------------
class CardanoError(RuntimeError):
    """Base class for block-explorer errors."""


class CardanoConfigError(CardanoError):
    """Missing wallet address or similar."""


class CardanoNotFoundError(CardanoError):
    """Transaction/address not (yet) known to the explorer."""


class CardanoRateLimitError(CardanoError):
    """429 from the explorer."""


class CardanoConnectionError(CardanoError):
    """Network/DNS/TLS/timeout reaching the explorer."""


class CardanoStatusError(CardanoError):
    def __init__(self, status_code: int, message: str = ""):
        super().__init__(message or f"Koios request failed (status {status_code})")
        self.status_code = int(status_code)


@dataclass(frozen=True)
class PaymentVerification:
    verified: bool
    tx_hash: str
    amount_ada: float = 0.0
    expected_ada: float = 0.0
    block_height: Optional[int] = None
    tx_timestamp: Optional[int] = None
    error: str = ""


@dataclass(frozen=True)
class WalletBalance:
    address: str
    balance_lovelace: int

    @property
    def balance_ada(self) -> float:
        return self.balance_lovelace / LOVELACE_PER_ADA


def is_valid_tx_hash(tx_hash: str | None) -> bool:
    return bool(tx_hash) and bool(_TX_HASH_RE.match(str(tx_hash).strip()))


def is_valid_cardano_address(address: str | None) -> bool:
    if not address:
        return False
    a = str(address).strip()
    return bool(_MAINNET_ADDR_RE.match(a) or _TESTNET_ADDR_RE.match(a))


def lovelace_to_ada(value: Any) -> float:
    try:
        return int(str(value).strip()) / LOVELACE_PER_ADA
    except (TypeError, ValueError):
        return 0.0


def _output_address(output: dict[str, Any]) -> str:
    # Koios v1: {"payment_addr": {"bech32": "...", "cred": "..."}}; older: {"address": "..."}
    pa = output.get("payment_addr")
    if isinstance(pa, dict) and pa.get("bech32"):
        return str(pa["bech32"])
    return str(output.get("address") or "")


def _jitter_sleep(base_s: float) -> float:
    j = 0.6 + random.random() * 0.8
    return max(0.05, base_s * j)


class CardanoClient:
    def __init__(
        self,
        *,
        base_url: str,
        wallet_address: str | None,
        tolerance: float = 0.01,
        timeout_s: float = 15.0,
        attempts: int = 2,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.wallet_address = (wallet_address or "").strip() or None
        self.tolerance = max(0.0, float(tolerance))
        self.timeout_s = float(timeout_s)
        self.attempts = max(1, int(attempts))
        self._client = httpx.AsyncClient(
            transport=transport,
            timeout=httpx.Timeout(self.timeout_s),
            headers={"Accept": "application/json", "User-Agent": "stickerize-bot/1.0 (utils/cardano.py)"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # ----------------------------
    # HTTP
    # ----------------------------
    async def _post(self, path: str, payload: dict[str, Any]) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        for attempt in range(1, self.attempts + 1):
            try:
                r = await self._client.post(url, json=payload)
            except httpx.TimeoutException as e:
                if attempt < self.attempts:
                    await asyncio.sleep(_jitter_sleep(0.6))
                    continue
                raise CardanoConnectionError("Koios request timed out.") from e
            except httpx.RequestError as e:
                if attempt < self.attempts:
                    await asyncio.sleep(_jitter_sleep(0.6))
                    continue
                raise CardanoConnectionError("Failed to reach Koios.") from e

            if r.status_code == 404:
                raise CardanoNotFoundError("Not found on the block explorer.")
            if r.status_code == 429:
                raise CardanoRateLimitError("Block explorer is rate-limiting us (429).")
            if r.status_code in (500, 502, 503, 504):
                if attempt < self.attempts:
                    await asyncio.sleep(_jitter_sleep(1.0))
                    continue
                raise CardanoStatusError(r.status_code, f"Koios service error ({r.status_code}).")
            if r.status_code < 200 or r.status_code >= 300:
                raise CardanoStatusError(r.status_code, f"Koios request failed ({r.status_code}): {(r.text or '')[:300]}")
            return r.json()

        raise CardanoError("Koios request failed after retries.")

    # ----------------------------
    # Public API
    # ----------------------------
    async def fetch_tx_info(self, tx_hash: str) -> dict[str, Any]:
        data = await self._post("tx_info", {"_tx_hashes": [tx_hash]})
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise CardanoNotFoundError("Transaction not found on chain yet.")
        return data[0]

    def amount_to_wallet(self, tx: dict[str, Any]) -> float:
        if not self.wallet_address:
            raise CardanoConfigError("PAYMENT_WALLET_ADDRESS is not configured")
        total = 0.0
        for out in tx.get("outputs") or []:
            if not isinstance(out, dict):
                continue
            if _output_address(out) == self.wallet_address:
                total += lovelace_to_ada(out.get("value"))
        return round(total, 6)

    async def verify_transaction(self, tx_hash: str, expected_ada: float) -> PaymentVerification:
        """Check that `tx_hash` paid at least `expected_ada` (minus tolerance) to our wallet.

        Raises CardanoError subclasses for transport problems; a transaction
        that exists but does not pay enough comes back as verified=False.
        """
        h = str(tx_hash or "").strip().lower()
        expected = float(expected_ada)
        if not is_valid_tx_hash(h):
            return PaymentVerification(False, h, expected_ada=expected, error="Invalid transaction hash format.")

        log.info("Verifying tx=%s expected=%.6f ADA", h, expected)
        tx = await self.fetch_tx_info(h)
        amount = self.amount_to_wallet(tx)
        block_height = tx.get("block_height")
        ts = tx.get("tx_timestamp")

        common = dict(
            tx_hash=h,
            amount_ada=amount,
            expected_ada=expected,
            block_height=int(block_height) if block_height is not None else None,
            tx_timestamp=int(ts) if ts is not None else None,
        )

        if amount <= 0:
            return PaymentVerification(False, error="No output of this transaction pays our wallet.", **common)
        if amount < expected * (1.0 - self.tolerance):
            return PaymentVerification(
                False, error=f"Insufficient payment: {amount:g} ADA (expected {expected:g} ADA).", **common
            )
        return PaymentVerification(True, **common)

    async def get_wallet_balance(self) -> WalletBalance:
        if not self.wallet_address:
            raise CardanoConfigError("PAYMENT_WALLET_ADDRESS is not configured")
        data = await self._post("address_info", {"_addresses": [self.wallet_address]})
        if not isinstance(data, list) or not data:
            raise CardanoNotFoundError("Wallet address not found on chain.")
        try:
            lovelace = int(str(data[0].get("balance") or 0))
        except (TypeError, ValueError):
            lovelace = 0
        return WalletBalance(address=self.wallet_address, balance_lovelace=lovelace)


_cardano: Optional[CardanoClient] = None


def get_cardano_client() -> CardanoClient:
    global _cardano
    if _cardano is None:
        import config  # config validates wallet addresses with this module

        _cardano = CardanoClient(
            base_url=config.KOIOS_BASE_URL,
            wallet_address=config.PAYMENT_WALLET_ADDRESS,
            tolerance=config.PAYMENT_TOLERANCE,
            timeout_s=config.KOIOS_TIMEOUT_S,
        )
    return _cardano


async def aclose_cardano_client() -> None:
    global _cardano
    if _cardano is not None:
        try:
            await _cardano.aclose()
        except Exception:
            log.debug("Cardano client close failed", exc_info=True)
        _cardano = None
