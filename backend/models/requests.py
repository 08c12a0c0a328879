from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class ManualRateRequest(BaseModel):
    from_currency: str = Field(..., description="ISO 4217 code, e.g. USD")
    to_currency: str = Field(..., description="ISO 4217 code, e.g. UAH")
    rate: Decimal = Field(..., gt=0, description="1 from_currency = rate to_currency")
    rate_date: Optional[date] = Field(default=None, description="Rate date (defaults to today UTC)")
