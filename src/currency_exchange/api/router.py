from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter

from currency_exchange.modules.contact.api import router as contact_router
from currency_exchange.modules.exchange.api import router as exchange_router
from currency_exchange.modules.identity.api import router as identity_router

router = APIRouter()

router.include_router(identity_router, prefix="/api")
router.include_router(exchange_router, prefix="/api")
router.include_router(contact_router, prefix="/api")


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/api/public/ping", tags=["public"])
def public_ping() -> dict[str, str]:
    return {
        "message": "This is a public endpoint - no authentication required!",
        "timestamp": datetime.now(UTC).isoformat(),
    }
