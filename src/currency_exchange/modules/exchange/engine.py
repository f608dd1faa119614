from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation, localcontext
from typing import Any

from sqlalchemy.orm import Session

from currency_exchange.core.config import settings
from currency_exchange.core.logging import get_logger, log_event
from currency_exchange.core.models import utcnow
from currency_exchange.modules.exchange.errors import (
    ConcurrentModification,
    CurrencyNotFound,
    DuplicateCode,
    DuplicateCurrency,
    Forbidden,
    InactiveCurrency,
    InvalidAmount,
    InvalidInput,
    Unavailable,
)
from currency_exchange.modules.exchange.models import (
    CODE_MAX_LENGTH,
    NAME_MAX_LENGTH,
    RATE_PRECISION,
    RATE_SCALE,
    SYMBOL_MAX_LENGTH,
    Currency,
    RateHistoryEntry,
)
from currency_exchange.modules.exchange.schemas import CurrencyCreate, CurrencyUpdate
from currency_exchange.modules.exchange.store import (
    CurrencyStore,
    RateHistoryLog,
    SqlCurrencyStore,
    SqlRateHistoryLog,
    normalize_code,
)
from currency_exchange.modules.identity.models import UserRole

logger = get_logger(__name__)

_RATE_QUANTUM = Decimal(1).scaleb(-RATE_SCALE)
_RATE_LIMIT = Decimal(10) ** (RATE_PRECISION - RATE_SCALE)
_TEXT_LIMITS = {"name": NAME_MAX_LENGTH, "symbol": SYMBOL_MAX_LENGTH}


@dataclass(frozen=True)
class ConversionResult:
    amount: Decimal
    from_currency: str
    to_currency: str
    result: Decimal
    rate: Decimal


def _to_decimal(value: Any, *, field: str, error: type[InvalidInput]) -> Decimal:
    if isinstance(value, bool):
        raise error(f"{field} must be a number")
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise error(f"{field} must be a number") from e
    if not number.is_finite():
        raise error(f"{field} must be a finite number")
    if number < 0:
        raise error(f"{field} must be greater than or equal to 0")
    return number


def _to_rate(value: Any, *, field: str) -> Decimal:
    rate = _to_decimal(value, field=field, error=InvalidInput)
    if rate >= _RATE_LIMIT:
        raise InvalidInput(f"{field} must be less than {_RATE_LIMIT}")
    with localcontext() as ctx:
        ctx.prec = 50
        if rate.quantize(_RATE_QUANTUM) != rate:
            raise InvalidInput(f"{field} supports at most {RATE_SCALE} decimal places")
    return rate


def _require_text(value: str | None, *, field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise InvalidInput(f"{field} must not be empty")
    limit = _TEXT_LIMITS[field]
    if len(text) > limit:
        raise InvalidInput(f"{field} must be at most {limit} characters")
    return text


def _require_code(value: str | None) -> str:
    code = normalize_code(value)
    if not code:
        raise InvalidInput("code must not be empty")
    if len(code) > CODE_MAX_LENGTH:
        raise InvalidInput(f"code must be at most {CODE_MAX_LENGTH} characters")
    return code


def _require_admin(actor_role: UserRole | str, action: str) -> None:
    try:
        role = UserRole(actor_role)
    except ValueError:
        role = None
    if role != UserRole.ADMIN:
        raise Forbidden(f"Only admins can {action}")


@contextmanager
def _observe_storage(operation: str, code: str) -> Iterator[None]:
    try:
        yield
    except Unavailable:
        log_event(
            logger,
            "exchange.storage.unavailable",
            level=logging.WARNING,
            operation=operation,
            currency_code=code,
        )
        raise


class ExchangeRateEngine:
    """Currency catalog mutations with rate auditing, plus conversions.

    Every mutation of ``rate_to_usd`` is paired with exactly one
    ``RateHistoryEntry``. When the history log shares the store's transaction
    both are committed together; otherwise the entry is appended after the
    store commit and a failed append is reported as a warning event.
    """

    def __init__(
        self,
        *,
        store: CurrencyStore,
        history: RateHistoryLog,
        scale: int = 6,
        max_update_attempts: int = 3,
    ) -> None:
        self._store = store
        self._history = history
        self._quantum = Decimal(1).scaleb(-scale)
        self._max_update_attempts = max(1, max_update_attempts)

    # Mutations

    def create_currency(
        self, payload: CurrencyCreate, *, actor_id: uuid.UUID, actor_role: UserRole | str
    ) -> Currency:
        _require_admin(actor_role, "create currencies")
        code = _require_code(payload.code)
        rate = _to_rate(payload.rate_to_usd, field="rate_to_usd")
        currency = Currency(
            code=code,
            name=_require_text(payload.name, field="name"),
            symbol=_require_text(payload.symbol, field="symbol"),
            rate_to_usd=rate,
            is_active=True if payload.is_active is None else payload.is_active,
        )

        atomic = self._history.shares_transaction_with(self._store)
        try:
            with _observe_storage("create_currency", code), self._store.transaction():
                created = self._store.insert(currency)
                entry = self._history_entry(created, previous_rate=None, actor_id=actor_id)
                if atomic:
                    self._history.append(entry)
        except DuplicateCode as e:
            raise DuplicateCurrency(code) from e
        if not atomic:
            self._append_detached(entry)

        log_event(
            logger,
            "exchange.currency.created",
            currency_code=code,
            rate_to_usd=str(rate),
            actor_id=str(actor_id),
        )
        return created

    def update_currency(
        self,
        code: str,
        patch: CurrencyUpdate | Mapping[str, Any],
        *,
        actor_id: uuid.UUID,
        actor_role: UserRole | str,
    ) -> Currency:
        _require_admin(actor_role, "update currencies")
        norm = normalize_code(code)
        if not norm:
            raise CurrencyNotFound(code)
        changes = self._validate_patch(patch)

        for attempt in range(1, self._max_update_attempts + 1):
            try:
                return self._apply_update(norm, changes, actor_id=actor_id)
            except ConcurrentModification:
                log_event(
                    logger,
                    "exchange.currency.update_conflict",
                    level=logging.WARNING,
                    currency_code=norm,
                    attempt=attempt,
                )
        raise Unavailable(f"Currency {norm} is being updated concurrently, try again later")

    def _apply_update(
        self, code: str, changes: dict[str, Any], *, actor_id: uuid.UUID
    ) -> Currency:
        atomic = self._history.shares_transaction_with(self._store)
        entry: RateHistoryEntry | None = None
        with _observe_storage("update_currency", code), self._store.transaction():
            current = self._store.find_by_code(code, for_update=True)
            if current is None:
                raise CurrencyNotFound(code)
            previous_rate = current.rate_to_usd
            updated = self._store.update(code, changes)
            new_rate = changes.get("rate_to_usd")
            if new_rate is not None and new_rate != previous_rate:
                entry = self._history_entry(
                    updated, previous_rate=previous_rate, actor_id=actor_id
                )
                if atomic:
                    self._history.append(entry)
        if entry is not None and not atomic:
            self._append_detached(entry)

        log_event(
            logger,
            "exchange.currency.updated",
            currency_code=code,
            changed_fields=sorted(changes),
            rate_changed=entry is not None,
            actor_id=str(actor_id),
        )
        return updated

    def _validate_patch(self, patch: CurrencyUpdate | Mapping[str, Any]) -> dict[str, Any]:
        if isinstance(patch, CurrencyUpdate):
            raw = patch.model_dump(exclude_unset=True)
        else:
            raw = dict(patch)
        changes: dict[str, Any] = {}
        for field, value in raw.items():
            if value is None:
                continue
            if field in {"name", "symbol"}:
                value = _require_text(value, field=field)
            elif field == "rate_to_usd":
                value = _to_rate(value, field=field)
            elif field == "is_active":
                if not isinstance(value, bool):
                    raise InvalidInput("is_active must be a boolean")
            else:
                raise InvalidInput(f"{field} cannot be updated")
            changes[field] = value
        return changes

    def _history_entry(
        self, currency: Currency, *, previous_rate: Decimal | None, actor_id: uuid.UUID
    ) -> RateHistoryEntry:
        return RateHistoryEntry(
            currency_id=currency.id,
            currency_code=currency.code,
            previous_rate=previous_rate,
            new_rate=currency.rate_to_usd,
            changed_by=actor_id,
            changed_at=utcnow(),
        )

    def _append_detached(self, entry: RateHistoryEntry) -> None:
        try:
            with self._history.transaction():
                self._history.append(entry)
        except Exception as e:  # noqa: BLE001
            log_event(
                logger,
                "exchange.rate_history.append_failed",
                level=logging.WARNING,
                currency_code=entry.currency_code,
                previous_rate=None if entry.previous_rate is None else str(entry.previous_rate),
                new_rate=str(entry.new_rate),
                changed_by=str(entry.changed_by),
                error=repr(e),
            )

    # Reads

    def get_currency(self, code: str) -> Currency:
        norm = normalize_code(code)
        currency = self._store.find_by_code(norm) if norm else None
        if currency is None:
            raise CurrencyNotFound(norm or code)
        return currency

    def list_currencies(self, *, include_inactive: bool = False) -> Iterable[Currency]:
        if include_inactive:
            return self._store.list_all()
        return self._store.list_active()

    def list_rate_history(self, code: str) -> Iterable[RateHistoryEntry]:
        currency = self.get_currency(code)
        return self._history.list_for_currency(currency.code)

    def convert(self, amount: Any, from_code: str, to_code: str) -> ConversionResult:
        value = _to_decimal(amount, field="amount", error=InvalidAmount)
        src = normalize_code(from_code)
        dst = normalize_code(to_code)
        if not src:
            raise CurrencyNotFound(from_code)
        if not dst:
            raise CurrencyNotFound(to_code)
        if src == dst:
            return ConversionResult(
                amount=value, from_currency=src, to_currency=dst, result=value, rate=Decimal(1)
            )

        source = self._active_currency(src)
        target = self._active_currency(dst)
        if target.rate_to_usd == 0:
            raise InvalidAmount(f"Currency {dst} has a zero rate and cannot be converted into")

        with localcontext() as ctx:
            ctx.prec = 50
            amount_in_base = value * source.rate_to_usd
            result = (amount_in_base / target.rate_to_usd).quantize(
                self._quantum, rounding=ROUND_HALF_EVEN
            )
            rate = (source.rate_to_usd / target.rate_to_usd).quantize(
                self._quantum, rounding=ROUND_HALF_EVEN
            )
        return ConversionResult(
            amount=value, from_currency=src, to_currency=dst, result=result, rate=rate
        )

    def _active_currency(self, code: str) -> Currency:
        currency = self._store.find_by_code(code)
        if currency is None:
            raise CurrencyNotFound(code)
        if not currency.is_active:
            raise InactiveCurrency(code)
        return currency


def exchange_engine_for(session: Session) -> ExchangeRateEngine:
    """Engine over the SQL store and history log, sharing ``session``'s transaction."""
    return ExchangeRateEngine(
        store=SqlCurrencyStore(session),
        history=SqlRateHistoryLog(session),
        scale=settings.conversion_scale,
        max_update_attempts=settings.exchange_update_max_attempts,
    )
