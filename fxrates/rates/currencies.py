"""Sources for the set of currencies the refresh job keeps warm."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, List

from sqlalchemy import text

from fxrates.database.connection import Database
from fxrates.utils.errors import ValidationError
from fxrates.utils.logging import get_logger
from fxrates.utils.validation import validate_currency_code

logger = get_logger(__name__)


class CurrencySource(ABC):
    """Reports which currencies are in active use by the host application."""

    @abstractmethod
    def get_active_currencies(self) -> List[str]:
        """Return currency codes; may raise on infrastructure errors."""


class StaticCurrencySource(CurrencySource):
    def __init__(self, currencies: Iterable[str]):
        self.currencies = list(currencies)

    def get_active_currencies(self) -> List[str]:
        return list(self.currencies)


class SqlCurrencySource(CurrencySource):
    """Runs a configured query whose first column holds currency codes.

    Typical query against the host schema:
        SELECT DISTINCT currency FROM payment_methods WHERE is_active
    """

    def __init__(self, database: Database, query: str):
        self.database = database
        self.query = query

    def get_active_currencies(self) -> List[str]:
        with self.database.session() as session:
            rows = session.execute(text(self.query)).all()
        return [row[0] for row in rows if row[0]]


def normalize_currencies(codes: Iterable[str]) -> List[str]:
    """Upper-case, de-duplicate and drop malformed codes, keeping order."""
    seen: List[str] = []
    for code in codes:
        try:
            normalized = validate_currency_code(code)
        except ValidationError:
            logger.warning(f"Ignoring malformed currency code from source: {code!r}")
            continue
        if normalized not in seen:
            seen.append(normalized)
    return seen
