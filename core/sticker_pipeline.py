# core/sticker_pipeline.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from utils import prom
from utils.media import StickerSize, temp_workdir, video_to_gif
from utils.replicate_client import ReplicateClient

log = logging.getLogger("sticker_pipeline")


@dataclass(frozen=True)
class StickerResult:
    data: bytes
    filename: str
    size: StickerSize
    elapsed_s: float


async def make_sticker(
    image: bytes,
    *,
    mime: str,
    size: StickerSize,
    replicate: ReplicateClient,
) -> StickerResult:
    """Image bytes -> animated GIF bytes. Temp files never outlive the call.

    Raises InferenceError / MediaError; the command layer renders those.
    """
    t0 = time.monotonic()
    status = "error"
    try:
        video = await replicate.animate(image, mime=mime)
        with temp_workdir() as d:
            video_path = d / "animation.mp4"
            video_path.write_bytes(video)
            gif_path = await video_to_gif(video_path, d / f"{size}.gif", size=size)
            data = gif_path.read_bytes()
        status = "ok"
    finally:
        prom.stickerize_latency.labels(status=status).observe(time.monotonic() - t0)

    elapsed = time.monotonic() - t0
    log.info("Sticker built size=%s bytes=%d elapsed=%.1fs", size, len(data), elapsed)
    return StickerResult(data=data, filename=f"animated_{size}.gif", size=size, elapsed_s=elapsed)
