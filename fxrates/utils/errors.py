"""Custom exception classes for the exchange-rate service."""


class FxRatesError(Exception):
    """Base exception for all fxrates errors."""
    pass


class ConfigurationError(FxRatesError):
    """Raised when there's a configuration error."""
    pass


class ValidationError(FxRatesError):
    """Raised when a currency code, date or rate is malformed."""
    pass


class ProviderError(FxRatesError):
    """Raised when the upstream rate provider fails or returns bad data."""
    pass


class NotFoundError(FxRatesError):
    """Raised when no cached or live rate is available for a pair."""
    pass


class AuthorizationError(FxRatesError):
    """Raised when the refresh trigger credential is missing or wrong."""
    pass
