from __future__ import annotations

import contextvars
import json
import logging
import os
import time
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

ROOT_LOGGER = "expense_scanner"

# Fields merged into every event logged while they are bound (request_id, user_id, scan_id).
_log_context: contextvars.ContextVar[Mapping[str, Any]] = contextvars.ContextVar(
    "log_context", default={}
)

_configured = False


def _utc_timestamp(created: float) -> str:
    ts = datetime.fromtimestamp(created, tz=timezone.utc).isoformat(timespec="milliseconds")
    return ts.replace("+00:00", "Z")


class JsonFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, event and bound fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": _utc_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        event = getattr(record, "event", None)
        if event:
            payload["event"] = event
        fields = getattr(record, "fields", None)
        if isinstance(fields, Mapping):
            payload.update((k, v) for k, v in fields.items() if v is not None)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=True)


def configure_logging() -> None:
    global _configured  # noqa: PLW0603
    if _configured:
        return
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    root.handlers = [handler]
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)


def bind_log_context(**fields: Any) -> contextvars.Token:
    return _log_context.set({**_log_context.get(), **fields})


def reset_log_context(token: contextvars.Token) -> None:
    _log_context.reset(token)


def set_user_context(user_id: str | None) -> None:
    bind_log_context(user_id=user_id)


def set_scan_context(scan_id: str) -> contextvars.Token:
    return bind_log_context(scan_id=scan_id)


def reset_scan_context(token: contextvars.Token) -> None:
    reset_log_context(token)


def _event_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    merged = {**_log_context.get(), **fields}
    return {k: v for k, v in merged.items() if v is not None}


def log_event(
    logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any
) -> None:
    logger.log(level, event, extra={"event": event, "fields": _event_fields(fields)})


def log_exception(logger: logging.Logger, event: str, **fields: Any) -> None:
    logger.exception(event, extra={"event": event, "fields": _event_fields(fields)})


def monotonic_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds a request id (honouring ``x-request-id``) and logs each request's outcome."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        token = bind_log_context(request_id=request_id, user_id=None, scan_id=None)
        logger = get_logger(__name__)
        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            log_exception(
                logger,
                "http.request.error",
                method=request.method,
                path=request.url.path,
                query=request.url.query or None,
                duration_ms=monotonic_ms(start),
            )
            raise
        finally:
            reset_log_context(token)
        response.headers["x-request-id"] = request_id
        log_event(
            logger,
            "http.request.finish",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=monotonic_ms(start),
            request_id=request_id,
        )
        return response
