from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status

from currency_exchange.api.deps import Actor, get_current_actor, get_exchange_engine
from currency_exchange.modules.exchange.engine import ExchangeRateEngine
from currency_exchange.modules.exchange.schemas import (
    ConversionOut,
    CurrencyCreate,
    CurrencyOut,
    CurrencyUpdate,
    RateHistoryOut,
)

router = APIRouter(tags=["exchange"])


@router.get("/currencies", response_model=list[CurrencyOut])
def list_currencies_endpoint(
    include_inactive: bool = False,
    engine: ExchangeRateEngine = Depends(get_exchange_engine),
) -> list[CurrencyOut]:
    currencies = engine.list_currencies(include_inactive=include_inactive)
    return [CurrencyOut.model_validate(c, from_attributes=True) for c in currencies]


@router.post("/currencies", response_model=CurrencyOut, status_code=status.HTTP_201_CREATED)
def create_currency_endpoint(
    payload: CurrencyCreate,
    engine: ExchangeRateEngine = Depends(get_exchange_engine),
    actor: Actor = Depends(get_current_actor),
) -> CurrencyOut:
    currency = engine.create_currency(payload, actor_id=actor.id, actor_role=actor.role)
    return CurrencyOut.model_validate(currency, from_attributes=True)


@router.get("/currencies/{code}", response_model=CurrencyOut)
def get_currency_endpoint(
    code: str,
    engine: ExchangeRateEngine = Depends(get_exchange_engine),
) -> CurrencyOut:
    return CurrencyOut.model_validate(engine.get_currency(code), from_attributes=True)


@router.patch("/currencies/{code}", response_model=CurrencyOut)
def update_currency_endpoint(
    code: str,
    payload: CurrencyUpdate,
    engine: ExchangeRateEngine = Depends(get_exchange_engine),
    actor: Actor = Depends(get_current_actor),
) -> CurrencyOut:
    currency = engine.update_currency(code, payload, actor_id=actor.id, actor_role=actor.role)
    return CurrencyOut.model_validate(currency, from_attributes=True)


@router.get("/currencies/{code}/history", response_model=list[RateHistoryOut])
def list_rate_history_endpoint(
    code: str,
    engine: ExchangeRateEngine = Depends(get_exchange_engine),
    _: Actor = Depends(get_current_actor),
) -> list[RateHistoryOut]:
    entries = engine.list_rate_history(code)
    return [RateHistoryOut.model_validate(e, from_attributes=True) for e in entries]


@router.get("/convert", response_model=ConversionOut)
def convert_endpoint(
    amount: Decimal = Query(...),
    from_currency: str = Query(..., min_length=1),
    to_currency: str = Query(..., min_length=1),
    engine: ExchangeRateEngine = Depends(get_exchange_engine),
) -> ConversionOut:
    conversion = engine.convert(amount, from_currency, to_currency)
    return ConversionOut.model_validate(conversion, from_attributes=True)
