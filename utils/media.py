# utils/media.py
"""ffmpeg wrappers: video -> size-capped animated GIF.

Discord caps stickers at 512 KB and emoji at 256 KB, so conversion walks a
list of progressively cheaper passes and keeps the first one that fits.
"""
from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Literal

import config

log = logging.getLogger("media")

StickerSize = Literal["sticker", "emoji"]


class MediaError(RuntimeError):
    """ffmpeg missing, failed, or could not hit the size target."""


@dataclass(frozen=True)
class GifPass:
    width: int
    fps: int


@dataclass(frozen=True)
class GifProfile:
    target_bytes: int
    passes: tuple[GifPass, ...]


PROFILES: dict[str, GifProfile] = {
    "sticker": GifProfile(
        target_bytes=512 * 1024,
        passes=(GifPass(320, 8), GifPass(320, 6), GifPass(240, 5)),
    ),
    "emoji": GifProfile(
        target_bytes=256 * 1024,
        passes=(GifPass(200, 10), GifPass(200, 8), GifPass(160, 5)),
    ),
}


def gif_filter(p: GifPass) -> str:
    # Square crop, scale, then a per-clip palette (much smaller than the default one).
    return (
        f"crop='min(iw,ih)':'min(iw,ih)',fps={p.fps},scale={p.width}:{p.width}:flags=lanczos,"
        "split[a][b];[a]palettegen=max_colors=128[p];[b][p]paletteuse=dither=bayer"
    )


@contextmanager
def temp_workdir(prefix: str = "stickerize-") -> Iterator[Path]:
    d = Path(tempfile.mkdtemp(prefix=prefix))
    try:
        yield d
    finally:
        shutil.rmtree(d, ignore_errors=True)


async def run_ffmpeg(args: list[str], *, timeout_s: float = 120.0) -> None:
    cmd = [config.FFMPEG_BIN, "-hide_banner", "-loglevel", "error", "-y", *args]
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise MediaError(f"ffmpeg not found ({config.FFMPEG_BIN}).") from e

    try:
        _, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_s)
    except asyncio.TimeoutError as e:
        proc.kill()
        await proc.wait()
        raise MediaError("ffmpeg timed out.") from e

    if proc.returncode != 0:
        msg = (stderr or b"").decode("utf-8", errors="ignore").strip()[-500:]
        raise MediaError(f"ffmpeg exited with code {proc.returncode}: {msg}")


async def video_to_gif(video_path: Path, out_path: Path, *, size: StickerSize = "sticker") -> Path:
    profile = PROFILES.get(size)
    if profile is None:
        raise MediaError(f"Unknown sticker size: {size!r}")

    last_size = 0
    for i, p in enumerate(profile.passes, start=1):
        await run_ffmpeg(["-i", str(video_path), "-filter_complex", gif_filter(p), "-loop", "0", str(out_path)])
        last_size = out_path.stat().st_size
        log.debug("GIF pass %d (%dpx %dfps) -> %d bytes", i, p.width, p.fps, last_size)
        if last_size <= profile.target_bytes:
            return out_path

    raise MediaError(
        f"Could not get the {size} under {profile.target_bytes // 1024} KB "
        f"(smallest attempt was {last_size // 1024} KB)."
    )
