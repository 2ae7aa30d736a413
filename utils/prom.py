"""Prometheus metric definitions.

All metric objects are created at import time so any module can increment them.
The /metrics HTTP endpoint (core/health_server.py) calls
``prometheus_client.generate_latest()`` to render current values.
"""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

commands_total = Counter(
    "bot_commands_total",
    "Total commands processed",
    ["command", "status"],
)

admission_total = Counter(
    "bot_admission_total",
    "Admission decisions for /stickerize",
    ["tier", "reason"],
)

stickerize_latency = Histogram(
    "bot_stickerize_latency_seconds",
    "End-to-end /stickerize pipeline latency in seconds",
    ["status"],
    buckets=[5, 15, 30, 60, 120, 240, 400],
)

payments_total = Counter(
    "bot_payments_total",
    "Payment redemption attempts",
    ["tier", "status"],
)

active_subscriptions = Gauge(
    "bot_active_subscriptions",
    "Active subscriptions by scope",
    ["scope"],
)

ledger_entries = Gauge(
    "bot_usage_ledger_entries",
    "Usage counters held in memory",
    ["kind"],
)

active_guilds = Gauge(
    "bot_active_guilds",
    "Number of guilds the bot is currently in",
)
