"""Provider factory and exports."""

from fxrates.config import Config
from fxrates.utils.errors import ConfigurationError

from .base import BaseRateProvider
from .exchangerate_api import ExchangeRateApiClient
from .static import StaticRateProvider


def get_provider(config: Config) -> BaseRateProvider:
    """Build the provider named by ``provider.name``.

    Canonical names:
    - "exchangerate_api"
    - "static" (rates from ``provider.rates``)
    """
    provider_name = config.provider_name
    if provider_name == "exchangerate_api":
        return ExchangeRateApiClient(
            url=config.provider_url,
            anchor=config.anchor_currency,
            timeout=config.provider_timeout,
        )
    if provider_name == "static":
        return StaticRateProvider(config.anchor_currency, config.get("provider.rates", {}))
    raise ConfigurationError(f"Unknown provider: {provider_name}")


__all__ = [
    "BaseRateProvider",
    "ExchangeRateApiClient",
    "StaticRateProvider",
    "get_provider",
]
