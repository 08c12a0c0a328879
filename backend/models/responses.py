from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel


class RateResponse(BaseModel):
    from_currency: str
    to_currency: str
    rate: Decimal
    provenance: str
    source: Optional[str] = None
    fetched_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class RatesForBaseResponse(BaseModel):
    base_currency: str
    as_of: date
    rates: Dict[str, Decimal]


class ConversionResponse(BaseModel):
    amount: Decimal
    converted_amount: Decimal
    rate: Decimal
    provenance: str
    from_currency: str
    to_currency: str
    as_of: date


class ManualRateResponse(BaseModel):
    from_currency: str
    to_currency: str
    rate: Decimal
    rate_date: date
    source: str


class RefreshFailure(BaseModel):
    pair: str
    error: Optional[str] = None


class RefreshResponse(BaseModel):
    success: bool
    message: str
    timestamp: datetime
    duration_ms: int
    currencies: List[str]
    pairs_attempted: int
    pairs_refreshed: int
    pairs_failed: int
    failures: List[RefreshFailure]
    stale_marked: int
