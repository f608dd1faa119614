"""In-process storage adapters, mainly for tests and local tooling."""

from __future__ import annotations

import copy
import threading
import uuid
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from currency_exchange.core.models import utcnow
from currency_exchange.modules.exchange.errors import DuplicateCode, NotFound
from currency_exchange.modules.exchange.models import Currency, RateHistoryEntry
from currency_exchange.modules.exchange.store import (
    CurrencyStore,
    check_patch_fields,
    normalize_code,
)


class InMemoryStorage:
    def __init__(self) -> None:
        self.currencies: dict[str, dict[str, Any]] = {}
        self.history: list[dict[str, Any]] = []
        self.lock = threading.RLock()


_ENTRY_FIELDS = (
    "id",
    "currency_id",
    "currency_code",
    "sequence",
    "previous_rate",
    "new_rate",
    "changed_by",
    "changed_at",
)


class _InMemoryRepository:
    def __init__(self, storage: InMemoryStorage) -> None:
        self.storage = storage

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self.storage.lock:
            currencies = copy.deepcopy(self.storage.currencies)
            history_len = len(self.storage.history)
            try:
                yield
            except BaseException:
                self.storage.currencies = currencies
                del self.storage.history[history_len:]
                raise


class InMemoryCurrencyStore(_InMemoryRepository):
    def find_by_code(self, code: str, *, for_update: bool = False) -> Currency | None:
        with self.storage.lock:
            row = self.storage.currencies.get(normalize_code(code))
            return Currency(**row) if row else None

    def insert(self, currency: Currency) -> Currency:
        code = normalize_code(currency.code)
        now = utcnow()
        row = {
            "id": currency.id or uuid.uuid4(),
            "code": code,
            "name": currency.name,
            "symbol": currency.symbol,
            "rate_to_usd": currency.rate_to_usd,
            "is_active": True if currency.is_active is None else currency.is_active,
            "version": 1,
            "created_at": now,
            "updated_at": now,
        }
        with self.storage.lock:
            if code in self.storage.currencies:
                raise DuplicateCode(f"Currency {code} already exists")
            self.storage.currencies[code] = row
        return Currency(**row)

    def update(self, code: str, patch: Mapping[str, Any]) -> Currency:
        check_patch_fields(patch)
        code = normalize_code(code)
        with self.storage.lock:
            row = self.storage.currencies.get(code)
            if row is None:
                raise NotFound(f"Currency {code} not found")
            if patch:
                row.update(patch)
                row["version"] += 1
                row["updated_at"] = utcnow()
            return Currency(**row)

    def _rows(self, *, active_only: bool) -> Iterator[Currency]:
        with self.storage.lock:
            rows = [dict(r) for _, r in sorted(self.storage.currencies.items())]
        for row in rows:
            if active_only and not row["is_active"]:
                continue
            yield Currency(**row)

    def list_active(self) -> _Listing:
        return _Listing(self, active_only=True)

    def list_all(self) -> _Listing:
        return _Listing(self, active_only=False)


class _Listing:
    def __init__(self, store: InMemoryCurrencyStore, *, active_only: bool) -> None:
        self._store = store
        self._active_only = active_only

    def __iter__(self) -> Iterator[Currency]:
        return self._store._rows(active_only=self._active_only)


class InMemoryRateHistoryLog(_InMemoryRepository):
    def shares_transaction_with(self, store: CurrencyStore) -> bool:
        return getattr(store, "storage", None) is self.storage

    def append(self, entry: RateHistoryEntry) -> None:
        with self.storage.lock:
            sequence = 1 + sum(
                1 for e in self.storage.history if e["currency_id"] == entry.currency_id
            )
            entry.id = entry.id or uuid.uuid4()
            entry.sequence = sequence
            entry.changed_at = entry.changed_at or utcnow()
            self.storage.history.append({f: getattr(entry, f) for f in _ENTRY_FIELDS})

    def list_for_currency(self, code: str) -> list[RateHistoryEntry]:
        code = normalize_code(code)
        with self.storage.lock:
            rows = [dict(e) for e in self.storage.history if e["currency_code"] == code]
        return [RateHistoryEntry(**row) for row in rows]
