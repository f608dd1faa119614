from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class CurrencyCreate(BaseModel):
    code: str
    name: str
    symbol: str
    rate_to_usd: Decimal
    is_active: bool | None = None


class CurrencyUpdate(BaseModel):
    name: str | None = None
    symbol: str | None = None
    rate_to_usd: Decimal | None = None
    is_active: bool | None = None


class CurrencyOut(BaseModel):
    id: uuid.UUID
    code: str
    name: str
    symbol: str
    rate_to_usd: Decimal
    is_active: bool
    created_at: datetime
    updated_at: datetime


class RateHistoryOut(BaseModel):
    id: uuid.UUID
    currency_code: str
    previous_rate: Decimal | None
    new_rate: Decimal
    changed_by: uuid.UUID
    changed_at: datetime


class ConversionOut(BaseModel):
    amount: Decimal
    from_currency: str
    to_currency: str
    result: Decimal
    rate: Decimal
