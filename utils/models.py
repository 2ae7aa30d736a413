from __future__ import annotations

"""SQLAlchemy models for durable data (subscriptions + redeemed payments)."""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, DateTime, Float, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class SubscriptionRow(Base):
    """Mirror of utils.subscription_store.Subscription.

    Times are epoch seconds (floats) so the in-memory store and the table
    compare identically.
    """

    __tablename__ = "subscriptions"

    scope: Mapped[str] = mapped_column(String(16), primary_key=True)  # personal | guild
    subject_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    tier: Mapped[str] = mapped_column(String(16))
    start_time: Mapped[float] = mapped_column(Float)
    end_time: Mapped[float] = mapped_column(Float, index=True)
    amount_paid: Mapped[float] = mapped_column(Float, default=0.0)
    source_tx_id: Mapped[str] = mapped_column(String(128), default="")
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    duration_months: Mapped[int] = mapped_column(Integer, default=0)
    purchaser_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[float] = mapped_column(Float)
    updated_at: Mapped[float] = mapped_column(Float)

    __table_args__ = (Index("ix_subscriptions_active_end", "active", "end_time"),)


class PaymentRecord(Base):
    """One row per redeemed on-chain transaction; the PK blocks reuse."""

    __tablename__ = "payment_records"

    tx_hash: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, index=True)
    guild_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    tier: Mapped[str] = mapped_column(String(16))
    months: Mapped[int] = mapped_column(Integer, default=1)
    amount_ada: Mapped[float] = mapped_column(Float, default=0.0)
    block_height: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now_utc)
