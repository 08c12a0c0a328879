"""Tests for the exchange rate resolver."""
import threading
import time
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from conftest import FakeProvider
from fxrates.rates.models import Provenance, RateRecord, RateSnapshot, RateSource
from fxrates.rates.resolver import ExchangeRateResolver, triangulate
from fxrates.utils.errors import NotFoundError, ProviderError, ValidationError


TODAY = date(2025, 12, 19)


def snapshot(rates, anchor="USD"):
    values = {code: Decimal(str(value)) for code, value in rates.items()}
    return RateSnapshot(anchor=anchor, rates=values, provider_name="test", fetched_at=datetime(2025, 12, 19))


class TestTriangulate:
    SNAP = snapshot({"USD": 1, "EUR": 0.85, "UAH": 42.0})

    def test_cross_rate(self):
        rate = triangulate(self.SNAP, "UAH", "EUR")
        assert rate == Decimal("0.85") / Decimal("42.0")
        assert abs(rate - Decimal("0.02024")) < Decimal("0.00001")

    def test_from_anchor(self):
        assert triangulate(self.SNAP, "USD", "EUR") == Decimal("0.85")

    def test_to_anchor(self):
        assert triangulate(self.SNAP, "UAH", "USD") == Decimal(1) / Decimal("42.0")

    def test_anchor_missing_from_map_still_works(self):
        snap = snapshot({"EUR": 0.85})
        assert triangulate(snap, "USD", "EUR") == Decimal("0.85")
        assert triangulate(snap, "EUR", "USD") == Decimal(1) / Decimal("0.85")

    @pytest.mark.parametrize("pair", [("XYZ", "EUR"), ("EUR", "XYZ"), ("USD", "XYZ"), ("XYZ", "USD")])
    def test_missing_currency(self, pair):
        with pytest.raises(ProviderError):
            triangulate(self.SNAP, *pair)


def test_same_currency_returns_one_without_store_access(resolver, store, provider):
    result = resolver.resolve("EUR", "eur")

    assert result.rate == Decimal(1)
    assert result.provenance == Provenance.FRESH
    assert provider.calls == 0
    assert store.count() == 0


def test_invalid_input_raises_before_io(resolver, provider, store):
    with pytest.raises(ValidationError):
        resolver.resolve("EURO", "USD")
    with pytest.raises(ValidationError):
        resolver.resolve("EUR", "USD", "19.12.2025")
    assert provider.calls == 0
    assert store.count() == 0


def test_end_to_end_live_fetch_then_inverse_cache_hit(resolver, provider):
    provider.rates = {"EUR": "0.9"}

    first = resolver.resolve("USD", "EUR")
    assert first.provenance == Provenance.LIVE_FETCH
    assert first.rate == Decimal("0.9")
    assert first.source == RateSource.LIVE_API

    second = resolver.resolve("EUR", "USD")
    assert second.provenance == Provenance.FRESH
    assert abs(second.rate - Decimal("1.1111")) < Decimal("0.0001")
    assert provider.calls == 1


def test_round_trip_hits_cache_after_one_fetch(resolver, provider):
    first = resolver.resolve("UAH", "EUR")
    assert first.provenance == Provenance.LIVE_FETCH
    assert abs(first.rate - Decimal("0.02024")) < Decimal("0.00001")

    again = resolver.resolve("UAH", "EUR")
    back = resolver.resolve("EUR", "UAH")
    assert again.provenance == Provenance.FRESH
    assert back.provenance == Provenance.FRESH
    assert provider.calls == 1
    assert abs(again.rate * back.rate - 1) < Decimal("0.000001")


def test_live_fetch_writes_direct_and_inverse_with_ttl(resolver, store, clock):
    resolver.resolve("USD", "GBP")

    records = {(r.from_currency, r.to_currency): r for r in store.list_records()}
    assert set(records) == {("USD", "GBP"), ("GBP", "USD")}
    for record in records.values():
        assert record.source == RateSource.LIVE_API
        assert record.provider_name == "fake-provider"
        assert record.fetched_at == clock()
        assert record.expires_at == clock() + timedelta(hours=24)
        assert record.rate_date == TODAY


def test_expired_entry_triggers_refetch(resolver, provider, clock):
    resolver.resolve("USD", "EUR")
    clock.advance(hours=25)
    provider.rates = {"EUR": "0.8"}

    result = resolver.resolve("USD", "EUR")
    assert result.provenance == Provenance.LIVE_FETCH
    assert result.rate == Decimal("0.8")
    assert provider.calls == 2


def test_not_found_when_cache_empty_and_provider_down(resolver, provider, store):
    provider.fail = True

    result = resolver.resolve("USD", "EUR")
    assert result.provenance == Provenance.NOT_FOUND
    assert result.rate is None
    assert result.found is False
    assert store.count() == 0
    with pytest.raises(NotFoundError):
        result.require()


def test_currency_missing_from_snapshot_is_not_found(resolver, store):
    result = resolver.resolve("USD", "JPY")
    assert result.provenance == Provenance.NOT_FOUND
    assert store.count() == 0


def expired_live_record(clock, rate="0.88"):
    return RateRecord(
        from_currency="USD",
        to_currency="EUR",
        rate_date=TODAY,
        rate=Decimal(rate),
        source=RateSource.LIVE_API,
        provider_name="fake-provider",
        fetched_at=clock() - timedelta(hours=30),
        expires_at=clock() - timedelta(hours=6),
    )


class TrackedJobs:
    """Wraps refresher.submit so tests can wait on each queued job."""

    def __init__(self, refresher, before_run=None):
        self.keys = []
        self.errors = []
        self.done = threading.Event()
        self._submit = refresher.submit
        self._before_run = before_run
        refresher.submit = self.submit

    def submit(self, key, job):
        self.keys.append(key)

        def tracked():
            try:
                return job()
            except Exception as e:
                self.errors.append(e)
                raise
            finally:
                self.done.set()

        if self._before_run is not None:
            self._before_run()
        return self._submit(key, tracked)


def test_stale_fallback_when_provider_down(resolver, provider, store, clock, refresher):
    store.upsert(expired_live_record(clock))
    provider.fail = True
    jobs = TrackedJobs(refresher)

    result = resolver.resolve("USD", "EUR")

    assert result.provenance == Provenance.STALE
    assert result.rate == Decimal("0.88")
    assert jobs.keys == ["USD/EUR"]

    # The queued refresh also fails inside the pool and is only logged
    assert jobs.done.wait(timeout=5)
    assert len(jobs.errors) == 1
    assert isinstance(jobs.errors[0], ProviderError)
    refresher.shutdown(wait=True)
    assert not refresher.is_in_flight("USD/EUR")
    assert store.list_records("USD", "EUR")[0].fetch_error_count == 1


def test_background_refresh_updates_store(resolver, provider, store, clock, refresher):
    store.upsert(expired_live_record(clock))
    provider.fail = True

    def recover():
        provider.fail = False

    jobs = TrackedJobs(refresher, before_run=recover)

    assert resolver.resolve("USD", "EUR").provenance == Provenance.STALE
    assert jobs.keys == ["USD/EUR"]
    assert jobs.done.wait(timeout=5)
    assert jobs.errors == []

    refreshed = resolver.resolve("USD", "EUR")
    assert refreshed.provenance == Provenance.FRESH
    assert refreshed.rate == Decimal("0.85")
    assert store.list_records("USD", "EUR")[0].fetch_error_count == 0


class SlowProvider(FakeProvider):
    def __init__(self, delay=0.3):
        super().__init__()
        self.delay = delay

    def fetch_snapshot(self):
        time.sleep(self.delay)
        return super().fetch_snapshot()


def test_concurrent_resolves_fetch_once(store, refresher):
    slow = SlowProvider()
    resolver = ExchangeRateResolver(store=store, provider=slow, refresher=refresher, cache_ttl_hours=24)
    start = threading.Barrier(2)
    results = []

    def worker():
        start.wait(timeout=5)
        results.append(resolver.resolve("USD", "EUR"))

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert slow.calls == 1
    assert sorted(r.provenance.value for r in results) == ["fresh", "live_fetch"]
    assert results[0].rate == results[1].rate == Decimal("0.85")


def test_live_fetch_returns_rate_as_stored(resolver, store):
    live = resolver.resolve("UAH", "EUR")
    cached = resolver.resolve("UAH", "EUR")

    assert live.provenance == Provenance.LIVE_FETCH
    assert cached.provenance == Provenance.FRESH
    assert live.rate == cached.rate == Decimal("0.020238095238")
    inverse = store.list_records("EUR", "UAH")[0].rate
    assert inverse == resolver.resolve("EUR", "UAH").rate
    assert abs(inverse * live.rate - 1) < Decimal("0.000000001")


def test_manual_override_wins(resolver, store, provider):
    store.set_manual("USD", "UAH", "40.0")

    result = resolver.resolve("USD", "UAH")
    assert result.rate == Decimal("40.0")
    assert result.provenance == Provenance.FRESH
    assert result.source == RateSource.MANUAL
    assert provider.calls == 0
    assert store.sweep_expired() == 0


def test_refresh_pair_bypasses_fresh_cache(resolver, provider):
    resolver.resolve("USD", "EUR")
    provider.rates = {"EUR": "0.95"}

    record = resolver.refresh_pair("USD", "EUR")
    assert record.rate == Decimal("0.95")
    assert provider.calls == 2
    assert resolver.resolve("USD", "EUR").rate == Decimal("0.95")


def test_refresh_pair_uses_given_snapshot(resolver, provider):
    record = resolver.refresh_pair("EUR", "UAH", snapshot=snapshot({"EUR": 0.5, "UAH": 40}))
    assert record.rate == Decimal(80)
    assert provider.calls == 0


def test_refresh_pair_rejects_identity(resolver):
    with pytest.raises(ProviderError):
        resolver.refresh_pair("USD", "USD")


def test_historical_as_of_uses_rate_valid_on_that_date(resolver, store, provider):
    store.set_manual("USD", "EUR", "0.7", on=date(2025, 1, 1))

    result = resolver.resolve("USD", "EUR", "2025-06-30")
    assert result.rate == Decimal("0.7")
    assert provider.calls == 0
