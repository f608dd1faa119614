from __future__ import annotations

import threading
import uuid
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from currency_exchange.core.db import SessionLocal
from currency_exchange.modules.exchange import engine as engine_mod
from currency_exchange.modules.exchange.engine import ExchangeRateEngine, exchange_engine_for
from currency_exchange.modules.exchange.errors import DuplicateCurrency, Unavailable
from currency_exchange.modules.exchange.memory import (
    InMemoryCurrencyStore,
    InMemoryRateHistoryLog,
    InMemoryStorage,
)
from currency_exchange.modules.exchange.schemas import CurrencyCreate, CurrencyUpdate
from currency_exchange.modules.exchange.store import SqlCurrencyStore, SqlRateHistoryLog
from currency_exchange.modules.identity.models import UserRole

ADMIN = uuid.uuid4()


def _memory_engine(storage: InMemoryStorage | None = None) -> ExchangeRateEngine:
    storage = storage or InMemoryStorage()
    return ExchangeRateEngine(
        store=InMemoryCurrencyStore(storage), history=InMemoryRateHistoryLog(storage)
    )


def _create_eur(exchange: ExchangeRateEngine) -> None:
    exchange.create_currency(
        CurrencyCreate(code="EUR", name="Euro", symbol="€", rate_to_usd=Decimal("0.92")),
        actor_id=ADMIN,
        actor_role=UserRole.ADMIN,
    )


def _assert_chained(history) -> None:
    entries = list(history)
    assert entries[0].previous_rate is None
    for before, after in zip(entries, entries[1:]):
        assert after.previous_rate == before.new_rate


def test_concurrent_updates_keep_history_chained():
    exchange = _memory_engine()
    _create_eur(exchange)
    rates = [Decimal("0.90") + Decimal(i) / 100 for i in range(20)]
    barrier = threading.Barrier(len(rates))

    def _worker(rate: Decimal) -> None:
        barrier.wait()
        exchange.update_currency(
            "EUR",
            CurrencyUpdate(rate_to_usd=rate),
            actor_id=uuid.uuid4(),
            actor_role=UserRole.ADMIN,
        )

    threads = [threading.Thread(target=_worker, args=(r,)) for r in rates]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    history = list(exchange.list_rate_history("EUR"))
    # 0.92 appears among the new rates, so one update may be a no-op.
    assert len(history) in {len(rates), len(rates) + 1}
    _assert_chained(history)
    assert history[-1].new_rate == exchange.get_currency("EUR").rate_to_usd


def test_concurrent_creates_resolve_to_single_winner():
    exchange = _memory_engine()
    outcomes: list[str] = []
    barrier = threading.Barrier(8)

    def _worker() -> None:
        barrier.wait()
        try:
            _create_eur(exchange)
            outcomes.append("created")
        except DuplicateCurrency:
            outcomes.append("duplicate")

    threads = [threading.Thread(target=_worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["created"] + ["duplicate"] * 7
    assert len(list(exchange.list_rate_history("EUR"))) == 1


def test_lost_race_is_retried_with_fresh_previous_rate(monkeypatch):
    with SessionLocal() as session:
        _create_eur(exchange_engine_for(session))

    with SessionLocal() as session_a, SessionLocal() as session_b:
        engine_a = exchange_engine_for(session_a)
        engine_b = exchange_engine_for(session_b)
        original_update = SqlCurrencyStore.update
        raced: list[str] = []

        def _racing_update(self, code, patch):
            if self.session is session_a and not raced:
                raced.append(code)
                engine_b.update_currency(
                    "EUR",
                    CurrencyUpdate(rate_to_usd=Decimal("0.95")),
                    actor_id=ADMIN,
                    actor_role=UserRole.ADMIN,
                )
            return original_update(self, code, patch)

        monkeypatch.setattr(SqlCurrencyStore, "update", _racing_update)
        events: list[str] = []
        original_log_event = engine_mod.log_event
        monkeypatch.setattr(
            engine_mod,
            "log_event",
            lambda logger, event, **fields: (
                events.append(event),
                original_log_event(logger, event, **fields),
            ),
        )

        engine_a.update_currency(
            "EUR",
            CurrencyUpdate(rate_to_usd=Decimal("0.90")),
            actor_id=ADMIN,
            actor_role=UserRole.ADMIN,
        )

        history = list(engine_a.list_rate_history("EUR"))
        assert [(h.previous_rate, h.new_rate) for h in history] == [
            (None, Decimal("0.92")),
            (Decimal("0.92"), Decimal("0.95")),
            (Decimal("0.95"), Decimal("0.90")),
        ]
        assert "exchange.currency.update_conflict" in events


def test_threaded_sql_updates_keep_history_chained():
    with SessionLocal() as session:
        _create_eur(exchange_engine_for(session))

    rates = [Decimal("1.01") + Decimal(i) / 100 for i in range(6)]
    barrier = threading.Barrier(len(rates))
    errors: list[BaseException] = []

    def _worker(rate: Decimal) -> None:
        with SessionLocal() as session:
            # Each writer can lose at most one race to every other writer.
            exchange = ExchangeRateEngine(
                store=SqlCurrencyStore(session),
                history=SqlRateHistoryLog(session),
                max_update_attempts=len(rates),
            )
            barrier.wait()
            try:
                exchange.update_currency(
                    "EUR",
                    CurrencyUpdate(rate_to_usd=rate),
                    actor_id=uuid.uuid4(),
                    actor_role=UserRole.ADMIN,
                )
            except Exception as e:  # noqa: BLE001
                errors.append(e)

    threads = [threading.Thread(target=_worker, args=(r,)) for r in rates]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    with SessionLocal() as session:
        exchange = exchange_engine_for(session)
        history = list(exchange.list_rate_history("EUR"))
        assert len(history) == len(rates) + 1
        _assert_chained(history)
        assert [h.sequence for h in history] == list(range(1, len(rates) + 2))
        assert sorted(h.new_rate for h in history[1:]) == rates
        assert history[-1].new_rate == exchange.get_currency("EUR").rate_to_usd
        assert exchange.get_currency("EUR").version == len(rates) + 1


def test_history_append_failure_rolls_back_shared_transaction(monkeypatch):
    storage = InMemoryStorage()
    exchange = _memory_engine(storage)
    _create_eur(exchange)

    def _broken_append(self, entry):
        raise Unavailable("history storage is unavailable")

    monkeypatch.setattr(InMemoryRateHistoryLog, "append", _broken_append)

    with pytest.raises(Unavailable):
        exchange.update_currency(
            "EUR",
            CurrencyUpdate(rate_to_usd=Decimal("1.10")),
            actor_id=ADMIN,
            actor_role=UserRole.ADMIN,
        )
    assert exchange.get_currency("EUR").rate_to_usd == Decimal("0.92")


def test_detached_history_failure_is_reported_not_raised(monkeypatch):
    store = InMemoryCurrencyStore(InMemoryStorage())
    history = InMemoryRateHistoryLog(InMemoryStorage())
    exchange = ExchangeRateEngine(store=store, history=history)
    _create_eur(exchange)

    events: list[tuple[str, dict]] = []
    monkeypatch.setattr(
        engine_mod,
        "log_event",
        lambda logger, event, **fields: events.append((event, fields)),
    )

    def _broken_append(self, entry):
        raise Unavailable("history storage is unavailable")

    monkeypatch.setattr(InMemoryRateHistoryLog, "append", _broken_append)

    updated = exchange.update_currency(
        "EUR",
        CurrencyUpdate(rate_to_usd=Decimal("1.10")),
        actor_id=ADMIN,
        actor_role=UserRole.ADMIN,
    )
    assert updated.rate_to_usd == Decimal("1.10")
    assert exchange.get_currency("EUR").rate_to_usd == Decimal("1.10")

    failures = [f for e, f in events if e == "exchange.rate_history.append_failed"]
    assert len(failures) == 1
    assert failures[0]["previous_rate"] == "0.92"
    assert failures[0]["new_rate"] == "1.10"


def test_storage_outage_surfaces_as_unavailable(monkeypatch):
    with SessionLocal() as session:
        exchange = exchange_engine_for(session)

        def _down(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        monkeypatch.setattr(session, "scalar", _down)
        monkeypatch.setattr(session, "scalars", _down)

        with pytest.raises(Unavailable):
            exchange.get_currency("EUR")
        with pytest.raises(Unavailable):
            list(exchange.list_currencies())
        with pytest.raises(Unavailable):
            _create_eur(exchange)
