from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from currency_exchange.api.router import router as api_router
from currency_exchange.bootstrap import bootstrap
from currency_exchange.core.logging import RequestContextMiddleware
from currency_exchange.modules.exchange.errors import ExchangeError


def exchange_error_handler(_: Request, exc: ExchangeError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(_: FastAPI):
        bootstrap()
        yield

    app = FastAPI(title="Currency Exchange API", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)
    app.add_exception_handler(ExchangeError, exchange_error_handler)
    app.include_router(api_router)
    return app


app = create_app()
