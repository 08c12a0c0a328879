"""Tests for the SQLAlchemy rate store."""
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from fxrates.rates.models import RateRecord, RateSource
from fxrates.utils.errors import ValidationError


TODAY = date(2025, 12, 19)


def live_record(clock, from_currency="USD", to_currency="EUR", rate="0.9", rate_date=TODAY, ttl_hours=24):
    return RateRecord(
        from_currency=from_currency,
        to_currency=to_currency,
        rate_date=rate_date,
        rate=Decimal(rate),
        source=RateSource.LIVE_API,
        provider_name="fake-provider",
        fetched_at=clock(),
        expires_at=clock() + timedelta(hours=ttl_hours),
    )


def test_upsert_then_get_fresh(store, clock):
    store.upsert(live_record(clock))

    record = store.get_fresh("USD", "EUR", TODAY)
    assert record is not None
    assert record.rate == Decimal("0.9")
    assert record.source == RateSource.LIVE_API
    assert record.provider_name == "fake-provider"
    assert record.is_stale is False


def test_get_fresh_ignores_future_dates(store, clock):
    store.upsert(live_record(clock))
    assert store.get_fresh("USD", "EUR", TODAY - timedelta(days=1)) is None


def test_get_fresh_prefers_most_recent_date(store, clock):
    store.upsert(live_record(clock, rate="0.8", rate_date=TODAY - timedelta(days=2)))
    store.upsert(live_record(clock, rate="0.9", rate_date=TODAY))

    assert store.get_fresh("USD", "EUR", TODAY).rate == Decimal("0.9")
    assert store.get_fresh("USD", "EUR", TODAY - timedelta(days=1)).rate == Decimal("0.8")


def test_expired_record_is_not_fresh(store, clock):
    store.upsert(live_record(clock))
    clock.advance(hours=25)

    assert store.get_fresh("USD", "EUR", TODAY) is None
    assert store.is_cache_valid("USD", "EUR", TODAY) is False


def test_expired_record_is_stale_before_and_after_sweep(store, clock):
    store.upsert(live_record(clock))
    assert store.get_stale("USD", "EUR", TODAY) is None

    clock.advance(hours=25)
    assert store.get_stale("USD", "EUR", TODAY).rate == Decimal("0.9")

    assert store.sweep_expired() == 1
    stale = store.get_stale("USD", "EUR", TODAY)
    assert stale.is_stale is True
    assert store.sweep_expired() == 0


def test_upsert_is_idempotent_on_natural_key(store, clock):
    store.upsert(live_record(clock, rate="0.9"))
    store.upsert(live_record(clock, rate="0.9"))
    store.upsert(live_record(clock, rate="0.91"))

    records = store.list_records("USD", "EUR")
    assert len(records) == 1
    assert records[0].rate == Decimal("0.91")


def test_upsert_clears_stale_flag(store, clock):
    store.upsert(live_record(clock))
    clock.advance(hours=25)
    store.sweep_expired()

    store.upsert(live_record(clock, rate="0.92"))
    record = store.get_fresh("USD", "EUR", TODAY)
    assert record.rate == Decimal("0.92")
    assert record.is_stale is False
    assert store.get_stale("USD", "EUR", TODAY) is None


def test_upsert_pair_writes_inverse(store, clock):
    store.upsert_pair(live_record(clock, from_currency="USD", to_currency="EUR", rate="0.8"))

    inverse = store.get_fresh("EUR", "USD", TODAY)
    assert inverse is not None
    assert inverse.rate == Decimal("1.25")
    assert inverse.expires_at == clock() + timedelta(hours=24)
    assert store.count() == 2


def test_upsert_rejects_invalid_records(store, clock):
    with pytest.raises(ValidationError):
        store.upsert(live_record(clock, rate="0"))
    bad = live_record(clock)
    bad.provider_name = None
    with pytest.raises(ValidationError):
        store.upsert(bad)
    with pytest.raises(ValidationError):
        store.upsert(live_record(clock, to_currency="USD"))
    assert store.count() == 0


def test_invalid_inverse_batch_writes_nothing(store, clock):
    good = live_record(clock)
    bad = live_record(clock, from_currency="EUR", to_currency="GBP", rate="-1")
    with pytest.raises(ValidationError):
        store.upsert_many([good, bad])
    assert store.count() == 0


def test_set_manual_is_permanent(store, clock):
    store.set_manual("usd", "uah", "41.25")
    clock.advance(days=30)

    record = store.get_fresh("USD", "UAH", clock().date())
    assert record.rate == Decimal("41.25")
    assert record.source == RateSource.MANUAL
    assert record.expires_at is None
    assert store.sweep_expired() == 0
    assert store.get_stale("USD", "UAH", clock().date()) is None


def test_set_manual_overwrites_live_record(store, clock):
    store.upsert(live_record(clock, rate="0.9"))
    store.set_manual("USD", "EUR", "0.95")

    records = store.list_records("USD", "EUR")
    assert len(records) == 1
    assert records[0].source == RateSource.MANUAL
    assert records[0].rate == Decimal("0.95")


def test_live_upsert_does_not_replace_manual(store, clock):
    store.set_manual("USD", "EUR", "0.95")
    store.upsert(live_record(clock, rate="0.9"))

    assert store.get_fresh("USD", "EUR", TODAY).rate == Decimal("0.95")


def test_manual_takes_precedence_over_newer_live(store, clock):
    store.set_manual("USD", "EUR", "0.95", on=TODAY - timedelta(days=3))
    store.upsert(live_record(clock, rate="0.9"))

    record = store.get_fresh("USD", "EUR", TODAY)
    assert record.source == RateSource.MANUAL
    assert record.rate == Decimal("0.95")


def test_set_manual_validation(store):
    with pytest.raises(ValidationError):
        store.set_manual("USD", "USD", "1")
    with pytest.raises(ValidationError):
        store.set_manual("USD", "EUR", "-0.5")
    with pytest.raises(ValidationError):
        store.set_manual("US", "EUR", "0.5")


def test_record_fetch_error_increments_live_rows(store, clock):
    store.upsert(live_record(clock))
    assert store.record_fetch_error("USD", "EUR") == 1
    store.record_fetch_error("USD", "EUR")

    assert store.list_records("USD", "EUR")[0].fetch_error_count == 2


def test_get_all_rates(store, clock):
    store.upsert_pair(live_record(clock, to_currency="EUR", rate="0.9"))
    store.upsert_pair(live_record(clock, to_currency="UAH", rate="42"))
    store.set_manual("USD", "GBP", "0.8")

    assert store.get_all_rates("USD", TODAY) == {
        "EUR": Decimal("0.9"),
        "UAH": Decimal("42"),
        "GBP": Decimal("0.8"),
    }

    clock.advance(hours=25)
    assert store.get_all_rates("USD", TODAY) == {"GBP": Decimal("0.8")}


def test_clear_live_rates_keeps_manual(store, clock):
    store.upsert_pair(live_record(clock))
    store.set_manual("USD", "UAH", "41")

    assert store.clear_live_rates() == 2
    assert [r.source for r in store.list_records()] == [RateSource.MANUAL]
