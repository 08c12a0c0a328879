"""Fixed snapshot provider for offline use and tests."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Mapping, Union
from decimal import Decimal

from fxrates.rates.models import RateSnapshot
from fxrates.rates.providers.base import BaseRateProvider
from fxrates.utils.errors import ProviderError


class StaticRateProvider(BaseRateProvider):
    """Serves the same configured rate map on every call."""

    NAME = "static"

    def __init__(self, anchor: str, rates: Mapping[str, Union[Decimal, float, str]]) -> None:
        super().__init__(anchor)
        self.rates = self.normalize_rates(rates)
        self.calls = 0

    def fetch_snapshot(self) -> RateSnapshot:
        self.calls += 1
        if not self.rates:
            raise ProviderError("Static provider has no rates configured")
        rates = dict(self.rates)
        rates[self.anchor] = Decimal(1)
        return RateSnapshot(
            anchor=self.anchor,
            rates=rates,
            provider_name=self.NAME,
            fetched_at=datetime.now(timezone.utc).replace(tzinfo=None),
        )
