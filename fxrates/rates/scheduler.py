"""Periodic cache warming for currencies in active use."""
from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta
from itertools import permutations
from typing import Callable, Iterable, List, Optional

from fxrates.config import DEFAULT_CURRENCIES
from fxrates.rates.currencies import CurrencySource, normalize_currencies
from fxrates.rates.models import RefreshSummary, RateSnapshot
from fxrates.rates.resolver import ExchangeRateResolver
from fxrates.rates.store import RateStore, utcnow
from fxrates.utils.decorators import log_execution
from fxrates.utils.errors import FxRatesError, ProviderError
from fxrates.utils.logging import get_logger

logger = get_logger(__name__)


class RefreshScheduler:
    """Refreshes every ordered pair of active currencies, then sweeps expired rates.

    Runs daily at ``hour_utc`` on a daemon thread once ``start()`` is called,
    and on demand through ``refresh_active_pairs()``.
    """

    def __init__(
        self,
        resolver: ExchangeRateResolver,
        store: RateStore,
        currency_source: Optional[CurrencySource] = None,
        default_currencies: Optional[Iterable[str]] = None,
        hour_utc: int = 2,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.resolver = resolver
        self.store = store
        self.currency_source = currency_source
        self.default_currencies = list(default_currencies or DEFAULT_CURRENCIES)
        self.hour_utc = hour_utc
        self.clock = clock
        self._batch_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def currency_set(self, currencies: Optional[Iterable[str]] = None) -> List[str]:
        """Explicit list, else the active-currency source, else defaults; plus the anchor."""
        selected: List[str] = []
        if currencies:
            selected = normalize_currencies(currencies)
        elif self.currency_source is not None:
            try:
                selected = normalize_currencies(self.currency_source.get_active_currencies())
            except Exception as e:
                logger.error(f"Failed to get active currencies, using defaults: {e}")
            if not selected:
                logger.warning("No active currencies reported, using defaults")

        if not selected:
            selected = normalize_currencies(self.default_currencies)

        if self.resolver.anchor not in selected:
            selected.append(self.resolver.anchor)
        return selected

    @log_execution(log_args=False, log_result=False)
    def refresh_active_pairs(self, currencies: Optional[Iterable[str]] = None) -> RefreshSummary:
        with self._batch_lock:
            started = time.monotonic()
            summary = RefreshSummary(currencies=self.currency_set(currencies))
            logger.info(f"Refreshing rates for currencies: {', '.join(summary.currencies)}")

            snapshot: Optional[RateSnapshot] = None
            snapshot_error: Optional[str] = None
            try:
                snapshot = self.resolver.provider.fetch_snapshot()
            except ProviderError as e:
                snapshot_error = str(e)
                logger.error(f"Snapshot fetch failed, no pairs will be refreshed: {e}")

            try:
                for from_currency, to_currency in permutations(summary.currencies, 2):
                    pair = f"{from_currency}/{to_currency}"
                    summary.pairs_attempted += 1
                    if snapshot is None:
                        summary.failures.append((pair, snapshot_error))
                        continue
                    try:
                        self.resolver.refresh_pair(from_currency, to_currency, snapshot=snapshot)
                        summary.pairs_refreshed += 1
                    except FxRatesError as e:
                        logger.error(f"Failed to refresh {pair}: {e}", extra={"pair": pair, "error": str(e)})
                        summary.failures.append((pair, str(e)))
                    except Exception as e:
                        # e.g. a locked SQLite file; recorded like any other pair failure
                        logger.exception(f"Unexpected error refreshing {pair}", extra={"pair": pair, "error": str(e)})
                        summary.failures.append((pair, f"{type(e).__name__}: {e}"))
            finally:
                summary.stale_marked = self.store.sweep_expired()
                summary.duration_ms = int((time.monotonic() - started) * 1000)

        logger.info(
            f"Rate refresh completed: {summary.pairs_refreshed}/{summary.pairs_attempted} pairs "
            f"in {summary.duration_ms}ms, {summary.stale_marked} marked stale"
        )
        return summary

    def next_run_after(self, now: datetime) -> datetime:
        """Next daily slot at ``hour_utc`` strictly after ``now``."""
        candidate = now.replace(hour=self.hour_utc, minute=0, second=0, microsecond=0)
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run_loop, name="fx-refresh-scheduler", daemon=True)
        self._thread.start()
        logger.info(f"Refresh scheduler started, daily at {self.hour_utc:02d}:00 UTC")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Refresh scheduler stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run_loop(self) -> None:
        while True:
            now = self.clock()
            wait_seconds = (self.next_run_after(now) - now).total_seconds()
            if self._stop.wait(timeout=wait_seconds):
                return
            try:
                self.refresh_active_pairs()
            except Exception:
                # Keep the daily job alive; the next slot retries
                logger.exception("Scheduled rate refresh failed")
