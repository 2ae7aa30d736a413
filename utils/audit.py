# utils/audit.py
"""Append-only JSONL audit trail (logs/audit.log).

One line per admission decision, payment, admin action and lifecycle event,
so quota disputes can be answered from the file alone.
"""
from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal, Optional, get_args

if TYPE_CHECKING:
    from core.admission import Verdict

logger = logging.getLogger("bot.audit")

_AUDIT_LOCK = threading.Lock()

AuditEvent = Literal[
    "ADMIT",
    "DENY",
    "PAYMENT_VERIFIED",
    "SUBSCRIPTION_EXPIRED",
    "ADMIN_GRANT",
    "ADMIN_RESET_USAGE",
    "BOT_READY",
    "GUILD_JOIN",
]
AUDIT_EVENTS: frozenset[str] = frozenset(get_args(AuditEvent))


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _default_log_dir() -> Path:
    # project_root/logs
    return Path(__file__).resolve().parent.parent / "logs"


def _rotate_if_needed(path: Path, *, max_bytes: int = 2_000_000, backups: int = 5) -> None:
    """Shift audit.log -> audit.log.1 -> ... once it passes max_bytes."""
    try:
        if not path.exists() or path.stat().st_size < max_bytes:
            return

        for i in range(backups, 0, -1):
            src = path.with_suffix(path.suffix + f".{i}")
            dst = path.with_suffix(path.suffix + f".{i+1}")
            if src.exists():
                if i == backups:
                    src.unlink(missing_ok=True)
                else:
                    src.replace(dst)

        path.replace(path.with_suffix(path.suffix + ".1"))
    except Exception:
        logger.exception("Failed rotating audit log")


def audit_log(
    event: AuditEvent,
    *,
    guild_id: Optional[int] = None,
    channel_id: Optional[int] = None,
    user_id: Optional[int] = None,
    command: Optional[str] = None,
    result: Optional[str] = None,
    reason: Optional[str] = None,
    fields: Optional[dict[str, Any]] = None,
    log_dir: Optional[Path] = None,
) -> None:
    """Append one event to audit.log. Never raises."""
    try:
        if event not in AUDIT_EVENTS:
            logger.warning("Unregistered audit event %r", event)

        ids = {"guild_id": guild_id, "channel_id": channel_id, "user_id": user_id}
        tags = {"command": command, "result": result, "reason": reason}
        payload: dict[str, Any] = {"ts": _utc_now_iso(), "event": str(event)}
        payload.update({k: int(v) for k, v in ids.items() if v is not None})
        payload.update({k: str(v) for k, v in tags.items() if v is not None})
        payload.update({str(k): v for k, v in (fields or {}).items()})

        target_dir = log_dir or _default_log_dir()
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / "audit.log"

        with _AUDIT_LOCK:
            _rotate_if_needed(path)
            with path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")

    except Exception:
        logger.exception("Failed to write audit log event=%s", event)


def audit_admission(
    verdict: "Verdict",
    *,
    user_id: int,
    guild_id: Optional[int] = None,
    channel_id: Optional[int] = None,
    command: str = "stickerize",
    log_dir: Optional[Path] = None,
) -> None:
    """ADMIT / DENY line for one admission decision."""
    audit_log(
        "ADMIT" if verdict.admitted else "DENY",
        guild_id=guild_id,
        channel_id=channel_id,
        user_id=user_id,
        command=command,
        result="admitted" if verdict.admitted else "denied",
        reason=None if verdict.admitted else verdict.reason,
        fields={
            "tier": verdict.tier,
            "limit": verdict.limit,
            "reset_at": verdict.reset_at,
            "remaining": verdict.remaining,
            "guild_remaining": verdict.guild_remaining,
        },
        log_dir=log_dir,
    )
