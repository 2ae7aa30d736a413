# utils/image_validator.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import config

ALLOWED_MIME = ("image/png", "image/jpeg", "image/gif", "image/webp")


@dataclass(frozen=True)
class ImageCheck:
    ok: bool
    mime: str = ""
    error: Optional[str] = None


def sniff_mime(data: bytes) -> str:
    """Detect the image type from magic bytes; "" if it isn't one we accept."""
    head = bytes(data[:12])
    if head.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if head.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if head[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    return ""


def check_attachment_meta(
    *, size: int, content_type: str | None, max_bytes: int | None = None
) -> ImageCheck:
    """Cheap pre-download check using what Discord tells us about the file."""
    limit = int(max_bytes if max_bytes is not None else config.MAX_IMAGE_BYTES)
    if int(size) > limit:
        return ImageCheck(
            False,
            error=f"File is too large ({size / 1024 / 1024:.2f}MB). Maximum size is {limit / 1024 / 1024:.0f}MB.",
        )
    ct = (content_type or "").split(";", 1)[0].strip().lower()
    if ct and ct not in ALLOWED_MIME:
        return ImageCheck(False, error="Please upload a PNG, JPEG, GIF or WebP image.")
    return ImageCheck(True, mime=ct)


def check_image_bytes(data: bytes, *, max_bytes: int | None = None) -> ImageCheck:
    limit = int(max_bytes if max_bytes is not None else config.MAX_IMAGE_BYTES)
    if not data:
        return ImageCheck(False, error="The attachment is empty.")
    if len(data) > limit:
        return ImageCheck(
            False,
            error=f"File is too large ({len(data) / 1024 / 1024:.2f}MB). Maximum size is {limit / 1024 / 1024:.0f}MB.",
        )
    mime = sniff_mime(data)
    if not mime:
        return ImageCheck(False, error="That file isn't a supported image (PNG, JPEG, GIF or WebP).")
    return ImageCheck(True, mime=mime)
