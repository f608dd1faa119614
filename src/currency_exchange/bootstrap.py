from __future__ import annotations

import secrets
import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

import currency_exchange.models  # noqa: F401
from currency_exchange.core.config import settings
from currency_exchange.core.db import SessionLocal, engine
from currency_exchange.core.logging import get_logger, log_event
from currency_exchange.core.models import Base
from currency_exchange.core.security import hash_password
from currency_exchange.modules.exchange.engine import exchange_engine_for
from currency_exchange.modules.exchange.errors import DuplicateCurrency
from currency_exchange.modules.exchange.schemas import CurrencyCreate
from currency_exchange.modules.identity.models import User, UserRole

logger = get_logger(__name__)

# Acts for seeded rates when no admin account is configured.
SYSTEM_ACTOR_ID = uuid.UUID(int=0)

# rate_to_usd: 1 unit of the currency = rate_to_usd USD
DEFAULT_CURRENCIES: tuple[CurrencyCreate, ...] = (
    CurrencyCreate(code="USD", name="US Dollar", symbol="$", rate_to_usd=Decimal("1.0")),
    CurrencyCreate(code="SYP", name="Syrian Pound", symbol="£", rate_to_usd=Decimal("0.000077")),
    CurrencyCreate(code="EUR", name="Euro", symbol="€", rate_to_usd=Decimal("0.92")),
    CurrencyCreate(code="TRY", name="Turkish Lira", symbol="₺", rate_to_usd=Decimal("0.031")),
)


def bootstrap() -> None:
    if settings.environment == "dev" and str(settings.database_url).startswith("sqlite"):
        Base.metadata.create_all(engine)

    with SessionLocal() as session:
        admin_id = seed_admins(session)
        if settings.seed_default_currencies:
            seed_currencies(session, actor_id=admin_id or SYSTEM_ACTOR_ID)


def seed_admins(session: Session) -> uuid.UUID | None:
    """Ensure the configured admin accounts exist; return the first admin's id."""
    if not settings.init_admin_email:
        return None

    # Support comma-separated list of admin emails
    admin_emails = [e.strip().lower() for e in settings.init_admin_email.split(",") if e.strip()]
    if not admin_emails:
        return None

    password = settings.init_admin_password or secrets.token_urlsafe(32)
    admins: list[User] = []
    for email in admin_emails:
        existing = session.scalar(select(User).where(User.email == email))
        if existing:
            if existing.role != UserRole.ADMIN:
                existing.role = UserRole.ADMIN
                session.add(existing)
            admins.append(existing)
            continue
        admin = User(
            email=email,
            full_name="Admin",
            password_hash=hash_password(password),
            role=UserRole.ADMIN,
            is_active=True,
        )
        session.add(admin)
        admins.append(admin)
        log_event(logger, "bootstrap.admin.seeded", email=email)
    session.commit()
    return admins[0].id


def seed_currencies(session: Session, *, actor_id: uuid.UUID) -> list[str]:
    """Create the default catalog, skipping codes that already exist."""
    exchange = exchange_engine_for(session)
    created: list[str] = []
    for payload in DEFAULT_CURRENCIES:
        try:
            currency = exchange.create_currency(
                payload, actor_id=actor_id, actor_role=UserRole.ADMIN
            )
        except DuplicateCurrency:
            continue
        created.append(currency.code)
        log_event(
            logger,
            "bootstrap.currency.seeded",
            currency_code=currency.code,
            rate_to_usd=str(currency.rate_to_usd),
        )
    return created
