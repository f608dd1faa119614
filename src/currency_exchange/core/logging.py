from __future__ import annotations

import contextvars
import json
import logging
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from currency_exchange.core.config import settings

ROOT_LOGGER = "currency_exchange"
REQUEST_ID_HEADER = "x-request-id"

_request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)
_user_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "user_id", default=None
)

_configured = False


class JsonFormatter(logging.Formatter):
    """One JSON object per line: ts, level, logger, event and the event's fields."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "ts": ts.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "event": getattr(record, "event", None) or record.getMessage(),
        }
        fields = getattr(record, "fields", None)
        if isinstance(fields, dict):
            payload.update(fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        # Decimal rates and UUID actors are rendered as strings.
        return json.dumps(payload, default=str, ensure_ascii=True)


def configure_logging() -> None:
    global _configured  # noqa: PLW0603
    if _configured:
        return
    level = logging.getLevelNamesMapping().get(settings.log_level.upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    logger.handlers = [handler]
    logger.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)


@contextmanager
def request_context(request_id: str) -> Iterator[None]:
    """Bind a request id (and a fresh, empty user id) for the duration of a request."""
    request_token = _request_id_var.set(request_id)
    user_token = _user_id_var.set(None)
    try:
        yield
    finally:
        _user_id_var.reset(user_token)
        _request_id_var.reset(request_token)


def set_user_context(user_id: str | None) -> None:
    _user_id_var.set(user_id)


def _context_fields(fields: dict[str, Any]) -> dict[str, Any]:
    payload = {"request_id": _request_id_var.get(), "user_id": _user_id_var.get(), **fields}
    return {key: value for key, value in payload.items() if value is not None}


def log_event(
    logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any
) -> None:
    logger.log(level, event, extra={"event": event, "fields": _context_fields(fields)})


def log_exception(logger: logging.Logger, event: str, **fields: Any) -> None:
    logger.exception(event, extra={"event": event, "fields": _context_fields(fields)})


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags every log line of a request with its id and logs one line per request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        logger = get_logger(__name__)
        start = time.monotonic()
        with request_context(request_id):
            try:
                response = await call_next(request)
            except Exception:
                log_exception(
                    logger,
                    "http.request.error",
                    method=request.method,
                    path=request.url.path,
                    duration_ms=_elapsed_ms(start),
                )
                raise
            response.headers[REQUEST_ID_HEADER] = request_id
            log_event(
                logger,
                "http.request.finish",
                level=logging.WARNING if response.status_code >= 500 else logging.INFO,
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=_elapsed_ms(start),
            )
            return response


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
