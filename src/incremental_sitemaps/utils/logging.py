"""Logging setup with structured output and request middleware."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from time import perf_counter
from typing import Any, Awaitable, Callable

from fastapi import FastAPI, Request
from starlette.responses import Response

from incremental_sitemaps.config import Settings

MAX_LOGGED_STRING_LENGTH = 512
MAX_LOGGED_SEQUENCE_ITEMS = 20

# Libraries that log every statement or job lookup at INFO.
QUIET_LOGGERS = ("apscheduler", "sqlalchemy.engine", "aiosqlite")

_RESERVED_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}


def structured_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Return the attributes a caller attached through ``extra``."""

    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RESERVED_RECORD_ATTRIBUTES and not key.startswith("_")
    }


class OversizedValueFilter(logging.Filter):
    """Shorten XML bodies and long key lists before they reach a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in structured_fields(record).items():
            setattr(record, key, _shorten(value))
        return True


def _shorten(value: Any) -> Any:
    if isinstance(value, str) and len(value) > MAX_LOGGED_STRING_LENGTH:
        hidden = len(value) - MAX_LOGGED_STRING_LENGTH
        return f"{value[:MAX_LOGGED_STRING_LENGTH]}... [{hidden} more chars]"

    if isinstance(value, (list, tuple)) and len(value) > MAX_LOGGED_SEQUENCE_ITEMS:
        hidden = len(value) - MAX_LOGGED_SEQUENCE_ITEMS
        return [*value[:MAX_LOGGED_SEQUENCE_ITEMS], f"... [{hidden} more]"]

    if isinstance(value, dict):
        return {key: _shorten(item) for key, item in value.items()}

    return value


class JsonLogFormatter(logging.Formatter):
    """Format logs as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": _format_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(structured_fields(record))

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


class KeyValueFormatter(logging.Formatter):
    """Plain text lines with ``extra`` fields appended as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = structured_fields(record)
        if not fields:
            return line

        pairs = " ".join(f"{key}={_text_value(value)}" for key, value in fields.items())
        head, newline, traceback = line.partition("\n")
        return f"{head} | {pairs}{newline}{traceback}"


def _text_value(value: Any) -> str:
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, default=str)
    return str(value)


def _format_timestamp(created: float) -> str:
    return datetime.fromtimestamp(created, tz=UTC).isoformat()


def setup_logging(settings: Settings) -> None:
    """Configure application logging from runtime settings."""

    handler = _build_handler(settings)
    handler.setFormatter(_build_formatter(settings))
    handler.addFilter(OversizedValueFilter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL, logging.INFO))
    root_logger.addHandler(handler)

    if settings.LOG_LEVEL != "DEBUG":
        for logger_name in QUIET_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.captureWarnings(True)


def _build_handler(settings: Settings) -> logging.Handler:
    if settings.LOG_FILE is None:
        return logging.StreamHandler()

    settings.LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        filename=settings.LOG_FILE,
        maxBytes=settings.LOG_FILE_MAX_BYTES,
        backupCount=settings.LOG_FILE_BACKUP_COUNT,
        encoding="utf-8",
    )


def _build_formatter(settings: Settings) -> logging.Formatter:
    if settings.LOG_FORMAT == "json":
        return JsonLogFormatter()

    return KeyValueFormatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )


def add_request_logging_middleware(app: FastAPI) -> None:
    """Log each control-API request with its timing; health probes go to DEBUG."""

    logger = logging.getLogger("incremental_sitemaps.request")

    @app.middleware("http")
    async def log_requests(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        started_at = perf_counter()
        request_fields = {
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else "unknown",
        }

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request_failed",
                extra={
                    **request_fields,
                    "status_code": 500,
                    "duration_ms": round((perf_counter() - started_at) * 1000, 2),
                },
            )
            raise

        level = logging.DEBUG if request.url.path == "/health" else logging.INFO
        logger.log(
            level,
            "request_completed",
            extra={
                **request_fields,
                "status_code": response.status_code,
                "duration_ms": round((perf_counter() - started_at) * 1000, 2),
            },
        )
        return response


__all__ = [
    "JsonLogFormatter",
    "KeyValueFormatter",
    "OversizedValueFilter",
    "add_request_logging_middleware",
    "setup_logging",
    "structured_fields",
]
