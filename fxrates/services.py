"""Explicit wiring of the rate services for a host application."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fxrates.config import Config
from fxrates.conversion import CurrencyConverter
from fxrates.database.connection import Database
from fxrates.rates.background import BackgroundRefresher
from fxrates.rates.currencies import CurrencySource, SqlCurrencySource
from fxrates.rates.providers import BaseRateProvider, get_provider
from fxrates.rates.resolver import ExchangeRateResolver
from fxrates.rates.scheduler import RefreshScheduler
from fxrates.rates.store import RateStore
from fxrates.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RateServices:
    config: Config
    database: Database
    provider: BaseRateProvider
    store: RateStore
    refresher: BackgroundRefresher
    resolver: ExchangeRateResolver
    converter: CurrencyConverter
    scheduler: RefreshScheduler

    def start(self) -> None:
        self.database.create_tables()
        if self.config.refresh_schedule_enabled:
            self.scheduler.start()

    def close(self) -> None:
        """Stop background work and release connections, in dependency order."""
        self.scheduler.stop()
        self.refresher.shutdown(wait=True)
        self.provider.close()
        self.database.dispose()
        logger.info("Rate services shut down")


def build_services(
    config: Config,
    provider: Optional[BaseRateProvider] = None,
    database: Optional[Database] = None,
    currency_source: Optional[CurrencySource] = None,
    store: Optional[RateStore] = None,
) -> RateServices:
    """Construct every component from ``config``; arguments override pieces for tests."""
    database = database or Database(config.database_url, echo=config.get('database.echo', False))
    provider = provider or get_provider(config)
    store = store or RateStore(database)
    refresher = BackgroundRefresher(max_workers=config.background_workers)
    resolver = ExchangeRateResolver(
        store=store,
        provider=provider,
        refresher=refresher,
        cache_ttl_hours=config.cache_ttl_hours,
    )

    if currency_source is None and config.active_currencies_query:
        currency_source = SqlCurrencySource(database, config.active_currencies_query)

    scheduler = RefreshScheduler(
        resolver=resolver,
        store=store,
        currency_source=currency_source,
        default_currencies=config.default_currencies,
        hour_utc=config.refresh_hour_utc,
        clock=store.clock,
    )
    return RateServices(
        config=config,
        database=database,
        provider=provider,
        store=store,
        refresher=refresher,
        resolver=resolver,
        converter=CurrencyConverter(resolver),
        scheduler=scheduler,
    )
