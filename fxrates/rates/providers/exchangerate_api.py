"""exchangerate-api.com (open.er-api.com) snapshot provider."""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

from fxrates.rates.models import RateSnapshot
from fxrates.rates.providers.base import BaseRateProvider
from fxrates.utils.decorators import retry, log_execution
from fxrates.utils.errors import ProviderError
from fxrates.utils.logging import get_logger


logger = get_logger(__name__)


class ExchangeRateApiClient(BaseRateProvider):
    """Fetches ``GET {url}`` and reads ``{"result": "success", "rates": {...}}``.

    The free endpoint needs no API key and returns every currency against
    the base in the URL, so the configured anchor must match it.
    """

    NAME = "exchangerate-api.com"

    def __init__(
        self,
        url: str,
        anchor: str = "USD",
        timeout: float = 5.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        super().__init__(anchor)
        self.url = url
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=timeout, headers={"Accept": "application/json"}
        )

    @log_execution(log_args=False, log_result=False)
    def fetch_snapshot(self) -> RateSnapshot:
        try:
            resp = self._get()
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException as e:
            logger.error(f"{self.NAME} request timed out after {self.timeout}s: {e}")
            raise ProviderError(f"Timeout contacting {self.NAME}")
        except httpx.HTTPStatusError as e:
            logger.error(f"{self.NAME} returned HTTP {e.response.status_code}")
            raise ProviderError(f"{self.NAME} returned HTTP {e.response.status_code}")
        except httpx.HTTPError as e:
            logger.error(f"{self.NAME} request failed: {e}")
            raise ProviderError(str(e))
        except ValueError as e:
            logger.error(f"{self.NAME} returned a non-JSON body: {e}")
            raise ProviderError(f"Invalid response from {self.NAME}")

        return self._parse(data)

    @retry(max_attempts=2, delay=0.5, exceptions=(httpx.TransportError,))
    def _get(self) -> httpx.Response:
        return self._client.get(self.url)

    def _parse(self, data: Any) -> RateSnapshot:
        if not isinstance(data, dict):
            raise ProviderError(f"Invalid response from {self.NAME}: expected a JSON object")

        if not _is_success(data):
            error_info = data.get("error-type") or data.get("error") or "unknown"
            logger.error(f"{self.NAME} API error: {error_info}")
            raise ProviderError(f"API error: {error_info}")

        raw_rates = data.get("rates")
        if not isinstance(raw_rates, dict) or not raw_rates:
            raise ProviderError(f"{self.NAME} response is missing the rate map")

        base = str(data.get("base_code") or data.get("base") or self.anchor).upper()
        if base != self.anchor:
            raise ProviderError(
                f"{self.NAME} returned rates against {base}, expected {self.anchor}"
            )

        rates = self.normalize_rates(raw_rates)
        rates[self.anchor] = Decimal(1)
        published = data.get("time_last_update_unix") or data.get("timestamp")

        snapshot = RateSnapshot(
            anchor=self.anchor,
            rates=rates,
            provider_name=self.NAME,
            fetched_at=datetime.now(timezone.utc).replace(tzinfo=None),
            published_at=_from_unix(published),
        )
        logger.info(f"Fetched {len(rates)} rates from {self.NAME}")
        return snapshot

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


def _is_success(data: Dict[str, Any]) -> bool:
    if "result" in data:
        return data["result"] == "success"
    return data.get("success") is True


def _from_unix(value: Any) -> Optional[datetime]:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return None
    return datetime.fromtimestamp(value, timezone.utc).replace(tzinfo=None)
