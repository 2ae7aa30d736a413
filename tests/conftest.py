"""Pytest configuration and fixtures. Run without Discord, Replicate, Koios or a real DB."""
from __future__ import annotations

import os
import sys

import pytest

# Ensure project root is on path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Avoid loading .env that might point at prod
os.environ.setdefault("ENVIRONMENT", "dev")


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.t = float(start)

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += float(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock):
    from utils.subscription_store import SubscriptionStore

    return SubscriptionStore(clock=clock)


@pytest.fixture
def ledger(clock):
    from utils.usage_ledger import UsageLedger

    return UsageLedger(clock=clock)


@pytest.fixture
def policy():
    from core.admission import AdmissionPolicy

    return AdmissionPolicy(
        admin_user_id=999,
        vip_channel_id=555,
        standard_hourly_limit=10,
        guild_hourly_limit=5,
        guild_daily_limit=25,
    )


@pytest.fixture
def controller(policy, store, ledger):
    from core.admission import AdmissionController

    return AdmissionController(policy=policy, subscriptions=store, ledger=ledger)


@pytest.fixture(autouse=True)
def _audit_to_tmp(monkeypatch, tmp_path):
    """Keep audit.log writes out of the project tree."""
    from utils import audit

    monkeypatch.setattr(audit, "_default_log_dir", lambda: tmp_path / "logs")


@pytest.fixture
async def db_sessionmaker():
    """Yield an async sessionmaker bound to an in-memory SQLite DB with all tables created."""
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
    from sqlalchemy.pool import StaticPool
    from utils.models import Base

    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()
