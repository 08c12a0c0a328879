from __future__ import annotations

import hmac
from typing import Optional

from fastapi import Header, Request

from fxrates.conversion import CurrencyConverter
from fxrates.rates.resolver import ExchangeRateResolver
from fxrates.rates.scheduler import RefreshScheduler
from fxrates.rates.store import RateStore
from fxrates.services import RateServices
from fxrates.utils.errors import AuthorizationError, ConfigurationError


def get_services(request: Request) -> RateServices:
    return request.app.state.services


def get_resolver(request: Request) -> ExchangeRateResolver:
    return get_services(request).resolver


def get_store(request: Request) -> RateStore:
    return get_services(request).store


def get_converter(request: Request) -> CurrencyConverter:
    return get_services(request).converter


def get_scheduler(request: Request) -> RefreshScheduler:
    return get_services(request).scheduler


def require_refresh_secret(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> None:
    """Check ``Authorization: Bearer <secret>`` against the configured secret."""
    secret = get_services(request).config.refresh_secret
    if not secret:
        raise ConfigurationError("Cron secret not configured")

    expected = f"Bearer {secret}"
    if authorization is None or not hmac.compare_digest(authorization.encode(), expected.encode()):
        raise AuthorizationError(
            "missing authorization header" if authorization is None else "invalid token"
        )
