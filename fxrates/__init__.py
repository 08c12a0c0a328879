"""Exchange-rate resolution and caching for multi-currency amount conversion."""

__version__ = "0.1.0"
