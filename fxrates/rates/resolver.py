"""
Exchange rate resolution with cache-aside lookup and stale fallback.

Lookup flow for ``resolve(from, to, as_of)``:

1. Same currency: rate 1, nothing stored.
2. Fresh cached rate (manual, or live inside its TTL window).
3. Remember the newest stale rate as a fallback candidate.
4. Fetch a provider snapshot, triangulate through the anchor currency and
   store the rate together with its inverse.
5. If the fetch fails, serve the stale candidate and queue a background
   refresh; with no candidate the result is NOT_FOUND.

Provider failures never escape ``resolve``.
"""
from __future__ import annotations

import threading
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, Optional, Union

from fxrates.rates.background import BackgroundRefresher
from fxrates.rates.models import (
    CurrencyPairRequest,
    Provenance,
    RateRecord,
    RateSnapshot,
    RateSource,
    ResolvedRate,
    quantize_rate,
)
from fxrates.rates.providers.base import BaseRateProvider
from fxrates.rates.store import RateStore
from fxrates.utils.errors import ProviderError
from fxrates.utils.logging import get_logger
from fxrates.utils.validation import validate_as_of, validate_currency_code

logger = get_logger(__name__)

DateLike = Union[date, datetime, str, None]


def triangulate(snapshot: RateSnapshot, from_currency: str, to_currency: str) -> Decimal:
    """Derive from->to out of anchor-relative snapshot values.

    Raises ProviderError when either currency is missing from the snapshot.
    """
    anchor = snapshot.anchor
    if from_currency == anchor:
        to_rate = snapshot.get(to_currency)
        if to_rate is None:
            raise ProviderError(f"No rate for {to_currency} in {snapshot.provider_name} snapshot")
        return to_rate

    from_rate = snapshot.get(from_currency)
    if from_rate is None:
        raise ProviderError(f"No rate for {from_currency} in {snapshot.provider_name} snapshot")

    if to_currency == anchor:
        return Decimal(1) / from_rate

    to_rate = snapshot.get(to_currency)
    if to_rate is None:
        raise ProviderError(f"No rate for {to_currency} in {snapshot.provider_name} snapshot")
    return to_rate / from_rate


class ExchangeRateResolver:
    """Resolves pair rates from the cache, the provider, or stale fallbacks."""

    def __init__(
        self,
        store: RateStore,
        provider: BaseRateProvider,
        refresher: BackgroundRefresher,
        cache_ttl_hours: float = 24,
    ):
        self.store = store
        self.provider = provider
        self.refresher = refresher
        self.cache_ttl = timedelta(hours=cache_ttl_hours)
        self._pair_locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def anchor(self) -> str:
        return self.provider.anchor

    def build_request(self, from_currency: str, to_currency: str, as_of: DateLike = None) -> CurrencyPairRequest:
        """Validate raw input; raises ValidationError before any I/O."""
        return CurrencyPairRequest(
            from_currency=validate_currency_code(from_currency),
            to_currency=validate_currency_code(to_currency),
            as_of=validate_as_of(as_of, self.store.clock().date()),
        )

    def resolve(self, from_currency: str, to_currency: str, as_of: DateLike = None) -> ResolvedRate:
        request = self.build_request(from_currency, to_currency, as_of)

        if request.is_identity:
            return ResolvedRate(
                from_currency=request.from_currency,
                to_currency=request.to_currency,
                rate=Decimal(1),
                provenance=Provenance.FRESH,
            )

        fresh = self.store.get_fresh(request.from_currency, request.to_currency, request.as_of)
        if fresh is not None:
            return ResolvedRate.from_record(fresh, Provenance.FRESH)

        fallback = self.store.get_stale(request.from_currency, request.to_currency, request.as_of)

        with self._lock_for(request.key):
            # Another caller may have refreshed the pair while we waited
            fresh = self.store.get_fresh(request.from_currency, request.to_currency, request.as_of)
            if fresh is not None:
                return ResolvedRate.from_record(fresh, Provenance.FRESH)

            try:
                record = self._fetch_and_store(request.from_currency, request.to_currency)
                return ResolvedRate.from_record(record, Provenance.LIVE_FETCH)
            except ProviderError as e:
                logger.warning(
                    f"Live fetch failed for {request.key}: {e}",
                    extra={"pair": request.key, "error": str(e)},
                )

        if fallback is not None:
            self.store.record_fetch_error(request.from_currency, request.to_currency)
            self.schedule_refresh(request.from_currency, request.to_currency)
            logger.warning(
                f"Using stale exchange rate: {request.key} = {fallback.rate}",
                extra={"pair": request.key, "provenance": Provenance.STALE.value},
            )
            return ResolvedRate.from_record(fallback, Provenance.STALE)

        logger.error(f"No exchange rate available for {request.key}")
        return ResolvedRate.not_found(request)

    def refresh_pair(
        self,
        from_currency: str,
        to_currency: str,
        snapshot: Optional[RateSnapshot] = None,
    ) -> RateRecord:
        """Live-fetch path with no fresh-cache short-circuit.

        Uses ``snapshot`` when given, otherwise calls the provider. Raises
        ProviderError on failure.
        """
        request = self.build_request(from_currency, to_currency)
        if request.is_identity:
            raise ProviderError("Same-currency pairs are never refreshed")
        with self._lock_for(request.key):
            return self._fetch_and_store(request.from_currency, request.to_currency, snapshot)

    def schedule_refresh(self, from_currency: str, to_currency: str) -> bool:
        """Queue a detached refresh for the pair; duplicate requests are dropped."""
        key = f"{from_currency}/{to_currency}"
        return self.refresher.submit(key, lambda: self.refresh_pair(from_currency, to_currency))

    def _fetch_and_store(
        self,
        from_currency: str,
        to_currency: str,
        snapshot: Optional[RateSnapshot] = None,
    ) -> RateRecord:
        if snapshot is None:
            snapshot = self.provider.fetch_snapshot()
        rate = quantize_rate(triangulate(snapshot, from_currency, to_currency))

        now = self.store.clock()
        record = RateRecord(
            from_currency=from_currency,
            to_currency=to_currency,
            rate_date=now.date(),
            rate=rate,
            source=RateSource.LIVE_API,
            provider_name=snapshot.provider_name,
            fetched_at=now,
            expires_at=now + self.cache_ttl,
            is_stale=False,
            fetch_error_count=0,
        )
        self.store.upsert_pair(record)
        logger.debug(f"Stored {record} and its inverse")
        return record

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._pair_locks.get(key)
            if lock is None:
                lock = self._pair_locks[key] = threading.Lock()
            return lock
