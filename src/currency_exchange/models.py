"""
Alembic model import hook.

Importing this module ensures all SQLAlchemy models are registered on Base.metadata.
"""

from __future__ import annotations

from currency_exchange.modules.contact.models import ContactMessage  # noqa: F401
from currency_exchange.modules.exchange.models import Currency, RateHistoryEntry  # noqa: F401
from currency_exchange.modules.identity.models import User  # noqa: F401
