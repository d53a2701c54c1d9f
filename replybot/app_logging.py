"""Application and access logging setup.

This module centralizes logging configuration for the webhook service. It
provides:

- A JSON formatter (opt-in via LOG_JSON) or a human-readable formatter. Both
  render the severity, the component scope (``WEBHOOK``, ``RESPOND`` ...) and
  any key-value context attached to the record.
- ``get_logger`` which returns a :class:`StructuredLogger`; callers pass context
  as keyword arguments instead of formatting it into the message.
- Timed rotation of log files for both application logs (app.log) and access
  logs (access.log), honoring retention and timezone options.
- An HTTP middleware that records structured access logs (method, path,
  status, latency, client IP, headers, optional body) with basic scrubbing of
  credentials and webhook signatures.

Environment variables: LOG_DIR, LOG_LEVEL, LOG_JSON, LOG_REQUEST_BODIES,
LOG_RETENTION_DAYS, LOG_ROTATE_UTC.
"""

from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import MutableMapping
from logging.handlers import TimedRotatingFileHandler
from typing import Any, cast
from uuid import uuid4

from fastapi import FastAPI, Request

ROOT_LOGGER = "replybot"

# Keyword arguments understood by ``logging.Logger._log`` itself.
_LOGGING_KWARGS = {"exc_info", "stack_info", "stacklevel", "extra"}


class StructuredLogger(logging.LoggerAdapter):
    """Logger adapter that turns keyword arguments into record context.

    ``log.info("Message stored", conversation_id=cid)`` produces a record whose
    ``context`` attribute is ``{"conversation_id": cid}`` and whose ``scope``
    attribute is the adapter's scope.
    """

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        context = {
            key: kwargs.pop(key) for key in list(kwargs) if key not in _LOGGING_KWARGS
        }
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        merged = dict(extra.get("context") or {})
        merged.update(context)
        extra["context"] = merged
        kwargs["extra"] = extra
        return msg, kwargs

    def bind(self, **context: Any) -> "StructuredLogger":
        """Return a logger that always includes ``context``."""

        extra = dict(self.extra or {})
        merged = dict(extra.get("context") or {})
        merged.update(context)
        extra["context"] = merged
        return StructuredLogger(self.logger, extra)


def get_logger(scope: str) -> StructuredLogger:
    """Return the structured logger for a component ``scope``."""

    logger = logging.getLogger(f"{ROOT_LOGGER}.{scope.lower()}")
    return StructuredLogger(logger, {"scope": scope.upper(), "context": {}})


def _render_context(context: dict[str, Any] | None) -> str:
    if not context:
        return ""
    return " " + " ".join(f"{key}={value}" for key, value in context.items())


class ContextFormatter(logging.Formatter):
    """Human-readable formatter: ``[time] LEVEL [SCOPE] in name: msg k=v``."""

    def __init__(self) -> None:
        super().__init__("[%(asctime)s] %(levelname)s [%(scope)s] in %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "scope"):
            record.scope = "-"
        line = super().format(record)
        context = getattr(record, "context", None)
        if not context:
            return line
        head, sep, tail = line.partition("\n")
        return f"{head}{_render_context(context)}{sep}{tail}"


class JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter used when LOG_JSON=true."""

    def format(self, record: logging.LogRecord) -> str:
        log_record: dict[str, Any] = {
            "level": record.levelname,
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "scope": getattr(record, "scope", None),
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            log_record["context"] = context
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_record, default=str)


def _get_formatter(log_json: bool) -> logging.Formatter:
    if log_json:
        return JsonFormatter()
    return ContextFormatter()


SENSITIVE_FIELDS = {
    "authorization",
    "cookie",
    "set-cookie",
    "password",
    "token",
    "access_token",
    "x-hub-signature-256",
    "hub.verify_token",
}


def _scrub(data: object) -> object:
    """Recursively scrub sensitive fields from dictionaries and lists."""

    if isinstance(data, dict):
        return {
            k: ("***" if k.lower() in SENSITIVE_FIELDS else _scrub(v))
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [_scrub(v) for v in data]
    return data


def _install_access_logging(app: FastAPI) -> None:
    """Install request/response access logging middleware.

    The middleware logs one JSON line per request (excluding health/metrics),
    including a generated X-Request-Id that is also echoed back in the
    response headers for easy correlation.
    """

    log_request_bodies = os.getenv("LOG_REQUEST_BODIES", "false").lower() == "true"
    skip_paths = {"/api/health", "/api/metrics"}
    access_logger = logging.getLogger("uvicorn.access")

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        if request.url.path in skip_paths:
            return await call_next(request)

        request_id = request.headers.get("X-Request-Id") or uuid4().hex
        request.state.request_id = request_id

        start = time.time()

        body_content = None
        if log_request_bodies:
            body_bytes = await request.body()

            async def receive() -> dict:  # pragma: no cover - internal
                return {"type": "http.request", "body": body_bytes, "more_body": False}

            request._receive = receive  # type: ignore[attr-defined]

            if body_bytes:
                try:
                    body_json = json.loads(body_bytes)
                    body_content = _scrub(body_json)
                except ValueError:
                    body_content = body_bytes.decode("utf-8", errors="replace")

        response = await call_next(request)

        process_time_ms = (time.time() - start) * 1000
        client = request.client
        client_ip = request.headers.get("X-Forwarded-For")
        if not client_ip and client is not None:
            client_ip = client.host

        log_data = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "query": _scrub(dict(request.query_params)),
            "status": response.status_code,
            "latency_ms": round(process_time_ms, 2),
            "client_ip": client_ip,
            "headers": _scrub(dict(request.headers)),
        }

        if body_content is not None:
            log_data["body"] = body_content

        response.headers["X-Request-Id"] = request_id

        access_logger.info(json.dumps(log_data, default=str))
        return response


def init_logging(app: FastAPI | None = None) -> None:
    """Initialise application and access loggers."""

    log_dir = os.getenv("LOG_DIR", "logs")
    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_json = os.getenv("LOG_JSON", "false").lower() == "true"
    retention_days = int(os.getenv("LOG_RETENTION_DAYS", "7"))
    rotate_utc = os.getenv("LOG_ROTATE_UTC", "false").lower() == "true"

    os.makedirs(log_dir, exist_ok=True)

    formatter = _get_formatter(log_json)
    log_level = getattr(logging, log_level_str, logging.INFO)

    app_logger = logging.getLogger(ROOT_LOGGER)
    if not app_logger.handlers:
        handler = TimedRotatingFileHandler(
            os.path.join(log_dir, "app.log"),
            when="midnight",
            backupCount=retention_days,
            utc=rotate_utc,
        )
        handler.setFormatter(formatter)
        app_logger.addHandler(handler)
    app_logger.setLevel(log_level)

    access_logger = logging.getLogger("uvicorn.access")
    access_logger.handlers.clear()
    handler = TimedRotatingFileHandler(
        os.path.join(log_dir, "access.log"),
        when="midnight",
        backupCount=retention_days,
        utc=rotate_utc,
    )
    handler.setFormatter(formatter)
    access_logger.addHandler(handler)
    access_logger.setLevel(log_level)

    if app is not None:
        cast(Any, app).logger = app_logger
        _install_access_logging(app)
