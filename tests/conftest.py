"""Pytest configuration and fixtures."""
import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path
import tempfile
import yaml

from fxrates.database.connection import Database
from fxrates.rates.background import BackgroundRefresher
from fxrates.rates.models import RateSnapshot
from fxrates.rates.providers.base import BaseRateProvider
from fxrates.rates.resolver import ExchangeRateResolver
from fxrates.rates.store import RateStore
from fxrates.utils.errors import ProviderError


class FrozenClock:
    """Controllable naive-UTC clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeProvider(BaseRateProvider):
    """Provider whose snapshot and failure mode tests control."""

    NAME = "fake-provider"

    def __init__(self, rates=None, anchor: str = "USD"):
        super().__init__(anchor)
        self.rates = rates if rates is not None else {"EUR": "0.85", "UAH": "42.0", "GBP": "0.79"}
        self.fail = False
        self.calls = 0

    def fetch_snapshot(self) -> RateSnapshot:
        self.calls += 1
        if self.fail:
            raise ProviderError("simulated provider outage")
        rates = {code: Decimal(str(value)) for code, value in self.rates.items()}
        rates[self.anchor] = Decimal(1)
        return RateSnapshot(
            anchor=self.anchor,
            rates=rates,
            provider_name=self.NAME,
            fetched_at=datetime(2025, 12, 19, 10, 0),
        )


@pytest.fixture
def temp_config_file(tmp_path):
    """Create a temporary config file for testing."""
    config_data = {
        'app': {
            'name': 'Test App',
            'version': '0.1.0',
            'debug': True
        },
        'database': {
            'url': f"sqlite:///{tmp_path / 'config-test.db'}"
        },
        'rates': {
            'anchor_currency': 'USD',
            'cache_ttl_hours': 24,
            'default_currencies': ['USD', 'EUR', 'GBP', 'UAH'],
            'background_workers': 1
        },
        'provider': {
            'name': 'static',
            'url': 'https://example.test/v6/latest/USD',
            'timeout': 2,
            'rates': {'EUR': 0.9, 'UAH': 41.5}
        },
        'refresh': {
            'enabled': False,
            'schedule_hour_utc': 2,
            'secret': 'test-secret'
        },
        'logging': {
            'level': 'DEBUG',
            'format': 'text'
        }
    }

    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
        yaml.dump(config_data, f)
        config_path = f.name

    yield config_path

    Path(config_path).unlink()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host environment overrides out of tests."""
    for key in (
        "EXCHANGE_RATE_API_URL",
        "EXCHANGE_RATE_CACHE_TTL_HOURS",
        "EXCHANGE_RATE_CRON_SECRET",
        "EXCHANGE_RATE_ANCHOR_CURRENCY",
        "DATABASE_URL",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2025, 12, 19, 10, 0))


@pytest.fixture
def database(tmp_path):
    """File-backed SQLite so worker threads share the data."""
    db = Database(f"sqlite:///{tmp_path / 'rates.db'}")
    db.create_tables()
    yield db
    db.dispose()


@pytest.fixture
def store(database, clock):
    return RateStore(database, clock=clock)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def refresher():
    pool = BackgroundRefresher(max_workers=1)
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def resolver(store, provider, refresher):
    return ExchangeRateResolver(store=store, provider=provider, refresher=refresher, cache_ttl_hours=24)
