"""Exchange rate cache, provider integration and refresh scheduling."""

from .background import BackgroundRefresher
from .models import (
    CurrencyPairRequest,
    Provenance,
    RateRecord,
    RateSnapshot,
    RateSource,
    RefreshSummary,
    ResolvedRate,
)
from .resolver import ExchangeRateResolver, triangulate
from .scheduler import RefreshScheduler
from .store import RateStore

__all__ = [
    "BackgroundRefresher",
    "CurrencyPairRequest",
    "ExchangeRateResolver",
    "Provenance",
    "RateRecord",
    "RateSnapshot",
    "RateSource",
    "RateStore",
    "RefreshScheduler",
    "RefreshSummary",
    "ResolvedRate",
    "triangulate",
]
