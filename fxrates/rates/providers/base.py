"""Provider base class for anchor-relative rate snapshots."""
from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping

from fxrates.rates.models import RateSnapshot
from fxrates.utils.logging import get_logger


logger = get_logger(__name__)


class BaseRateProvider(ABC):
    """Abstract base class for rate providers.

    One call returns rates for every currency the upstream knows, all
    expressed as "1 anchor = X currency".
    """

    NAME: str = "base"

    def __init__(self, anchor: str) -> None:
        self.anchor = anchor

    @abstractmethod
    def fetch_snapshot(self) -> RateSnapshot:
        """Fetch the full rate map. Raises ProviderError on any failure."""

    def health_check(self) -> bool:
        """Return True when the upstream service looks reachable/healthy."""
        try:
            self.fetch_snapshot()
            return True
        except Exception as e:
            logger.warning(f"{self.NAME} health check failed: {e}")
            return False

    def close(self) -> None:
        """Release network resources."""

    @staticmethod
    def normalize_rates(raw: Mapping[str, Any]) -> Dict[str, Decimal]:
        """Convert a code -> number mapping to Decimals, dropping unusable entries."""
        rates: Dict[str, Decimal] = {}
        for code, value in raw.items():
            if not isinstance(code, str) or isinstance(value, bool):
                continue
            try:
                rate = Decimal(str(value))
            except (InvalidOperation, ValueError):
                logger.warning(f"Dropping non-numeric rate for {code}: {value!r}")
                continue
            if not rate.is_finite() or rate <= 0:
                logger.warning(f"Dropping non-positive rate for {code}: {value!r}")
                continue
            rates[code.strip().upper()] = rate
        return rates
