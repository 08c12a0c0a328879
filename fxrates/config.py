"""Configuration management for the exchange-rate service."""
import os
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse
import yaml
from dotenv import load_dotenv
from fxrates.utils.errors import ConfigurationError, ValidationError
from fxrates.utils.logging import DEFAULT_QUIET_LOGGERS, setup_logging
from fxrates.utils.validation import validate_currency_code
import logging

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_URL = "https://open.er-api.com/v6/latest/USD"
DEFAULT_CURRENCIES = ["USD", "EUR", "GBP", "UAH"]


class Config:
    """Application configuration."""

    def __init__(self, config_path: str = "config.yaml", configure_logging: bool = True):
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML configuration file
            configure_logging: Apply the ``logging`` section on load
        """
        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load(configure_logging)

    def _load(self, configure_logging: bool) -> None:
        """Load configuration from YAML and environment."""
        load_dotenv()

        if not self.config_path.exists():
            raise ConfigurationError(f"Config file not found: {self.config_path}")

        with open(self.config_path, 'r') as f:
            self._config = yaml.safe_load(f)

        if not self._config:
            raise ConfigurationError(f"Empty configuration file: {self.config_path}")

        self._validate()

        if configure_logging:
            log_config = self._config.get('logging', {})
            setup_logging(
                level=os.getenv('LOG_LEVEL', log_config.get('level', 'INFO')),
                log_file=log_config.get('file'),
                format_type=log_config.get('format', 'json'),
                enabled=log_config.get('enabled', True),
                quiet_loggers=log_config.get('quiet_loggers', DEFAULT_QUIET_LOGGERS),
            )

        logger.info("Configuration loaded successfully")

    def _validate(self) -> None:
        """Validate required configuration sections."""
        required_sections = ['app', 'rates']

        for section in required_sections:
            if section not in self._config:
                raise ConfigurationError(f"Missing required config section: {section}")

        try:
            validate_currency_code(self.anchor_currency)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid rates.anchor_currency: {e}")

        ttl = self.cache_ttl_hours
        if ttl <= 0:
            raise ConfigurationError(f"rates.cache_ttl_hours must be positive, got {ttl}")

        if not self.provider_url:
            raise ConfigurationError("Missing provider.url in config")

        # open.er-api.com style URLs end in the base currency
        url_base = urlparse(self.provider_url).path.rstrip("/").rsplit("/", 1)[-1].upper()
        if (
            self.provider_name == "exchangerate_api"
            and len(url_base) == 3
            and url_base.isalpha()
            and url_base != self.anchor_currency
        ):
            raise ConfigurationError(
                f"provider.url base {url_base} does not match rates.anchor_currency {self.anchor_currency}"
            )

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-separated key.

        Args:
            key: Dot-separated key (e.g., "rates.anchor_currency")
            default: Default value if key not found

        Returns:
            Configuration value
        """
        keys = key.split('.')
        value = self._config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        return value

    def get_env(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get environment variable."""
        return os.getenv(key, default)

    def require_env(self, key: str) -> str:
        """Get required environment variable or raise error."""
        value = os.getenv(key)
        if value is None:
            raise ConfigurationError(f"Required environment variable not set: {key}")
        return value

    @property
    def app_name(self) -> str:
        return self.get('app.name', 'fxrates')

    @property
    def app_version(self) -> str:
        return self.get('app.version', '0.1.0')

    @property
    def debug(self) -> bool:
        return self.get('app.debug', False)

    @property
    def database_url(self) -> str:
        """SQLAlchemy URL; ``DATABASE_URL`` wins over ``database.url``."""
        url = os.getenv('DATABASE_URL') or self.get('database.url')
        if url:
            return url
        return f"sqlite:///{self.get('database.path', 'data/fxrates.db')}"

    @property
    def anchor_currency(self) -> str:
        """Currency every provider snapshot is expressed against."""
        value = os.getenv('EXCHANGE_RATE_ANCHOR_CURRENCY') or self.get('rates.anchor_currency', 'USD')
        return str(value).strip().upper()

    @property
    def cache_ttl_hours(self) -> float:
        raw = os.getenv('EXCHANGE_RATE_CACHE_TTL_HOURS') or self.get('rates.cache_ttl_hours', 24)
        try:
            return float(raw)
        except (TypeError, ValueError):
            raise ConfigurationError(f"Invalid cache TTL: {raw!r}")

    @property
    def default_currencies(self) -> List[str]:
        return list(self.get('rates.default_currencies', DEFAULT_CURRENCIES))

    @property
    def background_workers(self) -> int:
        return int(self.get('rates.background_workers', 2))

    @property
    def provider_name(self) -> str:
        return self.get('provider.name', 'exchangerate_api')

    @property
    def provider_url(self) -> str:
        return os.getenv('EXCHANGE_RATE_API_URL') or self.get('provider.url', DEFAULT_PROVIDER_URL)

    @property
    def provider_timeout(self) -> float:
        return float(self.get('provider.timeout', 5))

    @property
    def refresh_secret(self) -> Optional[str]:
        """Shared secret for the refresh trigger; never stored in YAML in production."""
        return os.getenv('EXCHANGE_RATE_CRON_SECRET') or self.get('refresh.secret')

    @property
    def refresh_hour_utc(self) -> int:
        return int(self.get('refresh.schedule_hour_utc', 2))

    @property
    def refresh_schedule_enabled(self) -> bool:
        return bool(self.get('refresh.enabled', False))

    @property
    def active_currencies_query(self) -> Optional[str]:
        return self.get('refresh.active_currencies_query')


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from ``config_path`` or ``FXRATES_CONFIG``."""
    path = config_path or os.getenv('FXRATES_CONFIG', 'config.yaml')
    return Config(path)
