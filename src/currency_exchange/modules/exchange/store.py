"""
Storage adapters for the currency catalog and its rate history.

The engine only talks to the ``CurrencyStore`` / ``RateHistoryLog`` protocols.
``SqlCurrencyStore`` and ``SqlRateHistoryLog`` built on the same ``Session``
share one transaction, so a rate update and its history entry commit or roll
back together.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from contextlib import AbstractContextManager, contextmanager
from typing import Any, Generic, Protocol, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.exc import DataError, IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from currency_exchange.modules.exchange.errors import (
    ConcurrentModification,
    DuplicateCode,
    InvalidInput,
    NotFound,
    Unavailable,
)
from currency_exchange.modules.exchange.models import Currency, RateHistoryEntry

MUTABLE_FIELDS = frozenset({"name", "symbol", "rate_to_usd", "is_active"})

T = TypeVar("T")


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


class CurrencyStore(Protocol):
    def transaction(self) -> AbstractContextManager[None]: ...

    def find_by_code(self, code: str, *, for_update: bool = False) -> Currency | None: ...

    def insert(self, currency: Currency) -> Currency: ...

    def update(self, code: str, patch: Mapping[str, Any]) -> Currency: ...

    def list_active(self) -> Iterable[Currency]: ...

    def list_all(self) -> Iterable[Currency]: ...


class RateHistoryLog(Protocol):
    def transaction(self) -> AbstractContextManager[None]: ...

    def shares_transaction_with(self, store: CurrencyStore) -> bool: ...

    def append(self, entry: RateHistoryEntry) -> None: ...

    def list_for_currency(self, code: str) -> Iterable[RateHistoryEntry]: ...


def check_patch_fields(patch: Mapping[str, Any]) -> None:
    unknown = set(patch) - MUTABLE_FIELDS
    if unknown:
        raise InvalidInput(f"Fields cannot be updated: {', '.join(sorted(unknown))}")


@contextmanager
def _storage_errors() -> Iterator[None]:
    try:
        yield
    except OperationalError as e:
        raise Unavailable("Currency storage is unavailable") from e
    except StaleDataError as e:
        raise ConcurrentModification("Currency was modified concurrently") from e
    except DataError as e:
        raise InvalidInput("Value does not fit the currency storage") from e


class QueryResult(Generic[T]):
    """Lazy result: the query runs on each iteration, so it can be re-iterated."""

    def __init__(self, session: Session, stmt: Select) -> None:
        self._session = session
        self._stmt = stmt

    def __iter__(self) -> Iterator[T]:
        with _storage_errors():
            rows = list(self._session.scalars(self._stmt))
        return iter(rows)


class _SqlRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    @contextmanager
    def transaction(self) -> Iterator[None]:
        try:
            with _storage_errors():
                yield
                self.session.commit()
        except BaseException:
            self.session.rollback()
            raise


class SqlCurrencyStore(_SqlRepository):
    def _select(self, code: str) -> Select:
        return select(Currency).where(Currency.code == normalize_code(code))

    def find_by_code(self, code: str, *, for_update: bool = False) -> Currency | None:
        stmt = self._select(code)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        with _storage_errors():
            return self.session.scalar(stmt)

    def insert(self, currency: Currency) -> Currency:
        currency.code = normalize_code(currency.code)
        if self.find_by_code(currency.code) is not None:
            raise DuplicateCode(f"Currency {currency.code} already exists")
        self.session.add(currency)
        try:
            with _storage_errors():
                self.session.flush()
        except IntegrityError as e:
            raise DuplicateCode(f"Currency {currency.code} already exists") from e
        return currency

    def update(self, code: str, patch: Mapping[str, Any]) -> Currency:
        check_patch_fields(patch)
        # Reuse the instance already loaded in this session so its version is checked on flush.
        with _storage_errors():
            currency = self.session.scalar(self._select(code).with_for_update())
        if currency is None:
            raise NotFound(f"Currency {normalize_code(code)} not found")
        for field, value in patch.items():
            setattr(currency, field, value)
        self.session.add(currency)
        with _storage_errors():
            self.session.flush()
        return currency

    def list_active(self) -> QueryResult[Currency]:
        stmt = select(Currency).where(Currency.is_active.is_(True)).order_by(Currency.code)
        return QueryResult(self.session, stmt)

    def list_all(self) -> QueryResult[Currency]:
        return QueryResult(self.session, select(Currency).order_by(Currency.code))


class SqlRateHistoryLog(_SqlRepository):
    def shares_transaction_with(self, store: CurrencyStore) -> bool:
        return getattr(store, "session", None) is self.session

    def append(self, entry: RateHistoryEntry) -> None:
        with _storage_errors():
            last = self.session.scalar(
                select(func.coalesce(func.max(RateHistoryEntry.sequence), 0)).where(
                    RateHistoryEntry.currency_id == entry.currency_id
                )
            )
        entry.sequence = int(last or 0) + 1
        self.session.add(entry)
        try:
            with _storage_errors():
                self.session.flush()
        except IntegrityError as e:
            raise ConcurrentModification(
                f"Rate history for {entry.currency_code} was appended concurrently"
            ) from e

    def list_for_currency(self, code: str) -> QueryResult[RateHistoryEntry]:
        stmt = (
            select(RateHistoryEntry)
            .where(RateHistoryEntry.currency_code == normalize_code(code))
            .order_by(RateHistoryEntry.sequence)
        )
        return QueryResult(self.session, stmt)
