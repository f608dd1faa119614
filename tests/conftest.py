from __future__ import annotations

import os
import uuid

import pytest

# Set env before any currency_exchange imports (settings/engine are created at import time).
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///./.currency_exchange_test.db")
os.environ.setdefault("SEED_DEFAULT_CURRENCIES", "false")


@pytest.fixture(autouse=True)
def _reset_db() -> None:
    import currency_exchange.models  # noqa: F401
    from currency_exchange.core.db import engine
    from currency_exchange.core.models import Base

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)

    yield


@pytest.fixture
def admin_id() -> uuid.UUID:
    return uuid.uuid4()
