# utils/replicate_client.py
"""Replicate predictions API: image in, short animated video out."""
from __future__ import annotations

import asyncio
import base64
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import httpx

import config

log = logging.getLogger("replicate")


# ----------------------------
# Stable exception types
# ----------------------------
class InferenceError(RuntimeError):
    """Base class for animation-backend errors."""


class InferenceConfigError(InferenceError):
    """Missing API token / model version."""


class InferenceTimeoutError(InferenceError):
    """Prediction did not finish within the poll budget, or a request timed out."""


class InferenceConnectionError(InferenceError):
    """Network/DNS/TLS issues reaching Replicate."""


class InferenceFailedError(InferenceError):
    """Replicate reported the prediction as failed or canceled."""


class InferenceStatusError(InferenceError):
    def __init__(self, status_code: int, message: str = ""):
        super().__init__(message or f"Replicate request failed (status {status_code})")
        self.status_code = int(status_code)


@dataclass(frozen=True)
class AnimationParams:
    motion_bucket_id: int = 127
    fps: int = 8
    num_frames: int = 16


def _jitter_sleep(base_s: float) -> float:
    # jitter within +-40%
    j = 0.6 + random.random() * 0.8
    return max(0.05, base_s * j)


def _try_parse_error_message(r: httpx.Response) -> str:
    try:
        data = r.json()
        msg = data.get("detail") or data.get("error")
        if isinstance(msg, str) and msg.strip():
            return msg.strip()[:500]
    except Exception:
        pass
    try:
        return (r.text or "")[:500]
    except Exception:
        return ""


def _output_url(output: Any) -> str | None:
    # Video models return either a URL or a list of URLs (last one is final).
    if isinstance(output, str) and output:
        return output
    if isinstance(output, list):
        for item in reversed(output):
            if isinstance(item, str) and item:
                return item
    return None


def image_data_uri(image: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64," + base64.b64encode(image).decode("ascii")


class ReplicateClient:
    def __init__(
        self,
        *,
        api_token: str | None,
        base_url: str = "https://api.replicate.com/v1",
        model_version: str,
        timeout_s: float = 30.0,
        poll_interval_s: float = 10.0,
        max_polls: int = 30,
        attempts: int = 2,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.api_token = (api_token or "").strip() or None
        self.base_url = base_url.rstrip("/")
        self.model_version = model_version
        self.poll_interval_s = float(poll_interval_s)
        self.max_polls = max(1, int(max_polls))
        self.attempts = max(1, int(attempts))
        self._sleep = sleep
        limits = httpx.Limits(max_connections=20, max_keepalive_connections=10, keepalive_expiry=30.0)
        self._client = httpx.AsyncClient(
            transport=transport,
            limits=limits,
            timeout=httpx.Timeout(float(timeout_s)),
            follow_redirects=True,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        if not self.api_token:
            raise InferenceConfigError("REPLICATE_API_TOKEN is missing")
        return {
            "Authorization": f"Token {self.api_token}",
            "Content-Type": "application/json",
            "User-Agent": "stickerize-bot/1.0 (utils/replicate_client.py)",
        }

    async def _request(self, method: str, url: str, **kw) -> httpx.Response:
        headers = self._headers()
        for attempt in range(1, self.attempts + 1):
            try:
                r = await self._client.request(method, url, headers=headers, **kw)
            except httpx.TimeoutException as e:
                if attempt < self.attempts:
                    await self._sleep(_jitter_sleep(0.6))
                    continue
                raise InferenceTimeoutError("Replicate request timed out.") from e
            except httpx.RequestError as e:
                if attempt < self.attempts:
                    await self._sleep(_jitter_sleep(0.6))
                    continue
                raise InferenceConnectionError("Failed to reach Replicate.") from e

            if r.status_code in (401, 403):
                raise InferenceConfigError("Replicate authentication failed (check REPLICATE_API_TOKEN).")
            if r.status_code in (429, 500, 502, 503, 504):
                if attempt < self.attempts:
                    await self._sleep(_jitter_sleep(1.0))
                    continue
                raise InferenceStatusError(r.status_code, f"Replicate service error ({r.status_code}).")
            if r.status_code < 200 or r.status_code >= 300:
                raise InferenceStatusError(
                    r.status_code, f"Replicate request failed ({r.status_code}): {_try_parse_error_message(r)}"
                )
            return r

        raise InferenceError("Replicate request failed after retries.")

    # ----------------------------
    # Public API
    # ----------------------------
    async def create_prediction(
        self, image: bytes, *, mime: str = "image/png", params: AnimationParams = AnimationParams()
    ) -> dict[str, Any]:
        payload = {
            "version": self.model_version,
            "input": {
                "input_image": image_data_uri(image, mime),
                "motion_bucket_id": params.motion_bucket_id,
                "fps": params.fps,
                "num_frames": params.num_frames,
            },
        }
        r = await self._request("POST", f"{self.base_url}/predictions", json=payload)
        data = r.json()
        if not data.get("id"):
            raise InferenceError("Replicate did not return a prediction id.")
        log.info("Prediction created id=%s", data["id"])
        return data

    async def get_prediction(self, prediction_id: str) -> dict[str, Any]:
        r = await self._request("GET", f"{self.base_url}/predictions/{prediction_id}")
        return r.json()

    async def wait_for_prediction(self, prediction_id: str) -> dict[str, Any]:
        """Poll until succeeded/failed, at most max_polls times."""
        for _ in range(self.max_polls):
            pred = await self.get_prediction(prediction_id)
            status = str(pred.get("status") or "")
            if status == "succeeded":
                return pred
            if status in ("failed", "canceled"):
                raise InferenceFailedError(f"Replicate prediction {status}: {pred.get('error') or 'no details'}")
            await self._sleep(self.poll_interval_s)
        raise InferenceTimeoutError(
            f"Prediction {prediction_id} did not finish after {self.max_polls} polls."
        )

    async def download(self, url: str) -> bytes:
        try:
            r = await self._client.get(url)
        except httpx.RequestError as e:
            raise InferenceConnectionError("Failed to download the generated video.") from e
        if r.status_code < 200 or r.status_code >= 300:
            raise InferenceStatusError(r.status_code, f"Video download failed ({r.status_code}).")
        return r.content

    async def animate(self, image: bytes, *, mime: str = "image/png") -> bytes:
        """Full round trip: create, poll, download. Returns video bytes (mp4)."""
        pred = await self.create_prediction(image, mime=mime)
        done = await self.wait_for_prediction(str(pred["id"]))
        url = _output_url(done.get("output"))
        if not url:
            raise InferenceFailedError("Prediction succeeded but returned no video URL.")
        return await self.download(url)


_replicate: Optional[ReplicateClient] = None


def get_replicate_client() -> ReplicateClient:
    global _replicate
    if _replicate is None:
        _replicate = ReplicateClient(
            api_token=config.REPLICATE_API_TOKEN,
            base_url=config.REPLICATE_BASE_URL,
            model_version=config.REPLICATE_MODEL_VERSION,
            timeout_s=config.REPLICATE_TIMEOUT_S,
            poll_interval_s=config.REPLICATE_POLL_INTERVAL_S,
            max_polls=config.REPLICATE_MAX_POLLS,
        )
    return _replicate


async def aclose_replicate_client() -> None:
    global _replicate
    if _replicate is not None:
        try:
            await _replicate.aclose()
        except Exception:
            log.debug("Replicate client close failed", exc_info=True)
        _replicate = None
