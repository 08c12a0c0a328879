"""
Amount conversion on top of the rate resolver.

Callers that persist converted amounts should store ``ConversionResult.rate``
next to them so the conversion stays reproducible after the cache changes.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from fxrates.rates.models import Provenance
from fxrates.rates.resolver import DateLike, ExchangeRateResolver
from fxrates.utils.errors import NotFoundError, ValidationError
from fxrates.utils.logging import get_logger
from fxrates.utils.validation import validate_amount, validate_rate

logger = get_logger(__name__)

CENT = Decimal("0.01")
Number = Union[Decimal, float, int, str]


@dataclass
class ConversionResult:
    amount: Decimal
    converted_amount: Decimal
    rate: Decimal
    provenance: Provenance
    from_currency: str
    to_currency: str
    as_of: date


class CurrencyConverter:
    """Converts amounts between currencies using resolved rates."""

    def __init__(self, resolver: ExchangeRateResolver):
        self.resolver = resolver

    def get_rate(self, from_currency: str, to_currency: str, as_of: DateLike = None) -> Optional[Decimal]:
        """Rate or None when nothing resolves."""
        return self.resolver.resolve(from_currency, to_currency, as_of).rate

    def convert(
        self,
        amount: Number,
        from_currency: str,
        to_currency: str,
        as_of: DateLike = None,
    ) -> ConversionResult:
        """Convert ``amount``; raises NotFoundError when no rate is available."""
        value = validate_amount(amount)
        request = self.resolver.build_request(from_currency, to_currency, as_of)
        resolved = self.resolver.resolve(request.from_currency, request.to_currency, request.as_of)

        if resolved.rate is None:
            raise NotFoundError(
                f"Exchange rate not found for {request.from_currency} to {request.to_currency}"
            )
        if resolved.provenance == Provenance.STALE:
            logger.warning(
                f"Converting with stale rate {request.key} = {resolved.rate}",
                extra={"pair": request.key, "provenance": resolved.provenance.value},
            )

        return ConversionResult(
            amount=value,
            converted_amount=calculate_base_amount(value, resolved.rate),
            rate=resolved.rate,
            provenance=resolved.provenance,
            from_currency=request.from_currency,
            to_currency=request.to_currency,
            as_of=request.as_of,
        )


def calculate_base_amount(native_amount: Number, exchange_rate: Number) -> Decimal:
    """native_amount * exchange_rate rounded half-up to 2 decimals."""
    product = Decimal(str(native_amount)) * validate_rate(exchange_rate)
    return product.quantize(CENT, rounding=ROUND_HALF_UP)


def validate_amount_calculation(
    native_amount: Number,
    exchange_rate: Number,
    base_amount: Number,
    tolerance: Decimal = CENT,
) -> bool:
    """True when ``base_amount`` matches native * rate within ``tolerance``."""
    expected = calculate_base_amount(native_amount, exchange_rate)
    return abs(expected - Decimal(str(base_amount))) <= tolerance


# Budgets belong to exactly one category or one tag.

@dataclass(frozen=True)
class CategoryOwner:
    category_id: str


@dataclass(frozen=True)
class TagOwner:
    tag_id: str


BudgetOwner = Union[CategoryOwner, TagOwner]


def budget_owner_from_columns(category_id: Optional[str], tag_id: Optional[str]) -> BudgetOwner:
    """Map the exclusive category/tag columns of a budget row to its owner."""
    if category_id and tag_id:
        raise ValidationError("A budget cannot belong to both a category and a tag")
    if category_id:
        return CategoryOwner(category_id)
    if tag_id:
        return TagOwner(tag_id)
    raise ValidationError("A budget must belong to a category or a tag")
