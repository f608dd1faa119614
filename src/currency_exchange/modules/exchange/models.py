from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from currency_exchange.core.models import Base, Timestamped, UUIDPrimaryKey, utcnow

RATE_PRECISION = 24
RATE_SCALE = 12
CODE_MAX_LENGTH = 10
NAME_MAX_LENGTH = 100
SYMBOL_MAX_LENGTH = 10


class Currency(UUIDPrimaryKey, Timestamped, Base):
    __tablename__ = "exchange_currency"

    code: Mapped[str] = mapped_column(String(CODE_MAX_LENGTH), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(NAME_MAX_LENGTH))
    symbol: Mapped[str] = mapped_column(String(SYMBOL_MAX_LENGTH))
    rate_to_usd: Mapped[Decimal] = mapped_column(Numeric(RATE_PRECISION, RATE_SCALE))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class RateHistoryEntry(UUIDPrimaryKey, Base):
    """One recorded rate change. Rows are only ever inserted."""

    __tablename__ = "exchange_rate_history"
    __table_args__ = (
        UniqueConstraint("currency_id", "sequence", name="uq_rate_history_currency_sequence"),
    )

    currency_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("exchange_currency.id"), index=True
    )
    currency_code: Mapped[str] = mapped_column(String(CODE_MAX_LENGTH), index=True)
    sequence: Mapped[int] = mapped_column(Integer)
    previous_rate: Mapped[Decimal | None] = mapped_column(
        Numeric(RATE_PRECISION, RATE_SCALE), nullable=True
    )
    new_rate: Mapped[Decimal] = mapped_column(Numeric(RATE_PRECISION, RATE_SCALE))
    changed_by: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), index=True)
    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
