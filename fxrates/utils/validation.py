"""Input validation utilities."""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from fxrates.utils.errors import ValidationError


def validate_currency_code(code: str) -> str:
    """
    Normalize and validate a 3-letter ISO 4217 currency code.

    Args:
        code: Currency code, any case, surrounding whitespace allowed

    Returns:
        Upper-cased code

    Raises:
        ValidationError: If the code is not three letters
    """
    if not isinstance(code, str):
        raise ValidationError(f"Invalid currency code: {code!r}")
    normalized = code.strip().upper()
    if len(normalized) != 3 or not normalized.isascii() or not normalized.isalpha():
        raise ValidationError(
            f"Invalid currency code: {code!r}. Expect 3-letter ISO code."
        )
    return normalized


def validate_currency_pair(pair: str) -> tuple[str, str]:
    """
    Validate and parse currency pair.

    Args:
        pair: Currency pair string (e.g., "USD/EUR", "USD-EUR", "USDEUR")

    Returns:
        Tuple of (from_currency, to_currency)

    Raises:
        ValidationError: If pair format is invalid
    """
    pair = pair.strip().upper()

    for sep in ['/', '-', '_']:
        if sep in pair:
            parts = pair.split(sep)
            if len(parts) == 2:
                base, quote = parts
                if len(base) == 3 and len(quote) == 3 and base.isalpha() and quote.isalpha():
                    return base, quote

    if len(pair) == 6 and pair.isalpha():
        return pair[:3], pair[3:]

    raise ValidationError(f"Invalid currency pair format: {pair}")


def validate_as_of(value: Optional[Union[date, datetime, str]], today: date) -> date:
    """
    Coerce an "as of" argument into a calendar date.

    ``None`` means today; datetimes are truncated to their date and strings
    must be ISO formatted (``2025-12-19`` or a full ISO timestamp).
    """
    if value is None:
        return today
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) == 10:
                return date.fromisoformat(text)
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            raise ValidationError(f"Invalid date: {value!r}. Expect ISO format YYYY-MM-DD.")
    raise ValidationError(f"Invalid date: {value!r}")


def validate_rate(rate: Union[Decimal, float, int, str]) -> Decimal:
    """
    Validate an exchange rate value.

    Returns:
        The rate as a Decimal

    Raises:
        ValidationError: If the rate is not a finite positive number
    """
    if isinstance(rate, bool):
        raise ValidationError(f"Invalid rate: {rate!r}")
    try:
        value = Decimal(str(rate))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid rate: {rate!r}")
    if not value.is_finite() or value <= 0:
        raise ValidationError(f"Rate must be a positive number, got: {rate}")
    return value


def validate_amount(amount: Union[Decimal, float, int, str]) -> Decimal:
    """Validate a conversion amount. Sign and zero are left to the caller."""
    if isinstance(amount, bool):
        raise ValidationError(f"Invalid amount: {amount!r}")
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {amount!r}")
    if not value.is_finite():
        raise ValidationError(f"Amount must be finite, got: {amount}")

    if abs(value) > Decimal("1e12"):
        raise ValidationError(f"Amount too large: {amount}")

    return value
