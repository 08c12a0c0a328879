"""Rate lookup, conversion and manual override endpoints."""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query

from backend.dependencies import get_converter, get_resolver, get_store, require_refresh_secret
from backend.models.requests import ManualRateRequest
from backend.models.responses import (
    ConversionResponse,
    ManualRateResponse,
    RateResponse,
    RatesForBaseResponse,
)
from fxrates.conversion import CurrencyConverter
from fxrates.rates.resolver import ExchangeRateResolver
from fxrates.rates.store import RateStore
from fxrates.utils.validation import validate_as_of, validate_currency_code


router = APIRouter()


@router.get("/rates/{from_currency}/{to_currency}", response_model=RateResponse)
def get_rate(
    from_currency: str,
    to_currency: str,
    date: Optional[str] = Query(None, description="As-of date (YYYY-MM-DD)"),
    resolver: ExchangeRateResolver = Depends(get_resolver),
):
    """Resolve one pair; 404 when neither cache nor provider has a rate."""
    result = resolver.resolve(from_currency, to_currency, date)
    result.require()
    return RateResponse(
        from_currency=result.from_currency,
        to_currency=result.to_currency,
        rate=result.rate,
        provenance=result.provenance.value,
        source=result.source.value if result.source else None,
        fetched_at=result.fetched_at,
        expires_at=result.expires_at,
    )


@router.get("/rates/{base_currency}", response_model=RatesForBaseResponse)
def get_all_rates(
    base_currency: str,
    date: Optional[str] = Query(None, description="As-of date (YYYY-MM-DD)"),
    store: RateStore = Depends(get_store),
):
    """Every fresh cached rate for one base currency."""
    base = validate_currency_code(base_currency)
    as_of = validate_as_of(date, store.clock().date())
    return RatesForBaseResponse(base_currency=base, as_of=as_of, rates=store.get_all_rates(base, as_of))


@router.get("/convert", response_model=ConversionResponse)
def convert(
    amount: str = Query(..., description="Amount in the source currency"),
    from_currency: str = Query(..., alias="from"),
    to_currency: str = Query(..., alias="to"),
    date: Optional[str] = Query(None, description="As-of date (YYYY-MM-DD)"),
    converter: CurrencyConverter = Depends(get_converter),
):
    result = converter.convert(amount, from_currency, to_currency, date)
    return ConversionResponse(
        amount=result.amount,
        converted_amount=result.converted_amount,
        rate=result.rate,
        provenance=result.provenance.value,
        from_currency=result.from_currency,
        to_currency=result.to_currency,
        as_of=result.as_of,
    )


@router.post(
    "/rates/manual",
    response_model=ManualRateResponse,
    dependencies=[Depends(require_refresh_secret)],
)
def set_manual_rate(request: ManualRateRequest, store: RateStore = Depends(get_store)):
    """Admin override; manual rates never expire."""
    record = store.set_manual(request.from_currency, request.to_currency, request.rate, on=request.rate_date)
    return ManualRateResponse(
        from_currency=record.from_currency,
        to_currency=record.to_currency,
        rate=record.rate,
        rate_date=record.rate_date,
        source=record.source.value,
    )
