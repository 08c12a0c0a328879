"""Database models for the exchange-rate cache."""
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class ExchangeRateRow(Base):
    """Cached exchange rate, one row per (from, to, date)."""
    __tablename__ = "exchange_rates"
    __table_args__ = (
        UniqueConstraint("from_currency", "to_currency", "rate_date", name="uq_exchange_rate_pair_date"),
        CheckConstraint("rate > 0", name="chk_exchange_rate_positive"),
        CheckConstraint("fetch_error_count >= 0", name="chk_exchange_rate_error_count_nonnegative"),
        Index("idx_exchange_rates_cache_lookup", "from_currency", "to_currency", "expires_at"),
        Index("idx_exchange_rates_stale", "from_currency", "to_currency", "is_stale"),
        Index("idx_exchange_rates_expires_at", "expires_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    from_currency: Mapped[str] = mapped_column(String(3))
    to_currency: Mapped[str] = mapped_column(String(3))
    rate_date: Mapped[date] = mapped_column(Date)
    rate: Mapped[Decimal] = mapped_column(Numeric(24, 12))
    source: Mapped[str] = mapped_column(String(10))  # LIVE_API | MANUAL
    provider_name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    fetched_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    is_stale: Mapped[bool] = mapped_column(Boolean, default=False)
    fetch_error_count: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)
