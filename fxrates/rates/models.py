"""
Data models for exchange rate resolution.

Rate convention throughout this package: ``rate`` for (from, to) means
"1 unit of from_currency = rate units of to_currency".
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Dict, Optional

from fxrates.utils.errors import NotFoundError, ValidationError

# Matches the Numeric(24, 12) rate column
RATE_QUANTUM = Decimal("0.000000000001")


def quantize_rate(rate: Decimal) -> Decimal:
    return rate.quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)


class RateSource(str, Enum):
    """Where a stored rate came from."""
    LIVE_API = "LIVE_API"
    MANUAL = "MANUAL"


class Provenance(str, Enum):
    """How a resolved rate was obtained."""
    FRESH = "fresh"
    STALE = "stale"
    LIVE_FETCH = "live_fetch"
    NOT_FOUND = "not_found"


@dataclass
class RateRecord:
    """A cached rate keyed by (from_currency, to_currency, rate_date)."""

    from_currency: str
    to_currency: str
    rate_date: date
    rate: Decimal
    source: RateSource
    provider_name: Optional[str] = None
    fetched_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_stale: bool = False
    fetch_error_count: int = 0

    def validate(self) -> None:
        if self.rate is None or self.rate <= 0:
            raise ValidationError(f"Invalid rate: {self.rate}")
        if self.from_currency == self.to_currency:
            raise ValidationError("Same-currency pairs are never stored")
        if self.source == RateSource.LIVE_API:
            if not self.provider_name or self.fetched_at is None or self.expires_at is None:
                raise ValidationError(
                    "Live rates require provider_name, fetched_at and expires_at"
                )
        elif self.expires_at is not None or self.is_stale:
            raise ValidationError("Manual rates never expire and are never stale")

    @property
    def natural_key(self) -> tuple:
        return (self.from_currency, self.to_currency, self.rate_date)

    def inverse(self) -> "RateRecord":
        """Same record for the opposite direction, rate = 1 / rate."""
        return RateRecord(
            from_currency=self.to_currency,
            to_currency=self.from_currency,
            rate_date=self.rate_date,
            rate=quantize_rate(Decimal(1) / self.rate),
            source=self.source,
            provider_name=self.provider_name,
            fetched_at=self.fetched_at,
            expires_at=self.expires_at,
            is_stale=self.is_stale,
            fetch_error_count=self.fetch_error_count,
        )

    def __str__(self) -> str:
        return f"{self.from_currency}/{self.to_currency} {self.rate_date}: {self.rate} ({self.source.value})"


@dataclass(frozen=True)
class CurrencyPairRequest:
    """Validated lookup request. Never persisted."""

    from_currency: str
    to_currency: str
    as_of: date

    @property
    def key(self) -> str:
        return f"{self.from_currency}/{self.to_currency}"

    @property
    def is_identity(self) -> bool:
        return self.from_currency == self.to_currency


@dataclass
class ResolvedRate:
    """Result of ``ExchangeRateResolver.resolve``."""

    from_currency: str
    to_currency: str
    rate: Optional[Decimal]
    provenance: Provenance
    source: Optional[RateSource] = None
    fetched_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @property
    def found(self) -> bool:
        return self.provenance != Provenance.NOT_FOUND

    def require(self) -> Decimal:
        """Return the rate or raise NotFoundError."""
        if self.rate is None:
            raise NotFoundError(
                f"Exchange rate not found for {self.from_currency} to {self.to_currency}"
            )
        return self.rate

    @classmethod
    def from_record(cls, record: RateRecord, provenance: Provenance) -> "ResolvedRate":
        return cls(
            from_currency=record.from_currency,
            to_currency=record.to_currency,
            rate=record.rate,
            provenance=provenance,
            source=record.source,
            fetched_at=record.fetched_at,
            expires_at=record.expires_at,
        )

    @classmethod
    def not_found(cls, request: CurrencyPairRequest) -> "ResolvedRate":
        return cls(
            from_currency=request.from_currency,
            to_currency=request.to_currency,
            rate=None,
            provenance=Provenance.NOT_FOUND,
        )


@dataclass
class RateSnapshot:
    """One provider response: every value is "1 anchor = X currency"."""

    anchor: str
    rates: Dict[str, Decimal]
    provider_name: str
    fetched_at: datetime
    published_at: Optional[datetime] = None

    def get(self, currency: str) -> Optional[Decimal]:
        if currency == self.anchor:
            return Decimal(1)
        return self.rates.get(currency)


@dataclass
class RefreshSummary:
    """Outcome of one batch refresh."""

    currencies: list = field(default_factory=list)
    pairs_attempted: int = 0
    pairs_refreshed: int = 0
    failures: list = field(default_factory=list)  # (pair, error message)
    stale_marked: int = 0
    duration_ms: int = 0

    @property
    def pairs_failed(self) -> int:
        return len(self.failures)

    def to_dict(self) -> dict:
        return {
            "currencies": list(self.currencies),
            "pairs_attempted": self.pairs_attempted,
            "pairs_refreshed": self.pairs_refreshed,
            "pairs_failed": self.pairs_failed,
            "failures": [{"pair": pair, "error": error} for pair, error in self.failures],
            "stale_marked": self.stale_marked,
            "duration_ms": self.duration_ms,
        }
