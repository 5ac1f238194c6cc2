from __future__ import annotations

import json
import logging
import logging.config
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any

from app.core.config import settings

_STANDARD_ATTRS = set(logging.makeLogRecord({}).__dict__.keys())

# id de la request en curso; lo fija ObservabilityMiddleware
_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def bind_request_id(request_id: str) -> Token:
    return _request_id.set(request_id)


def reset_request_id(token: Token) -> None:
    _request_id.reset(token)


def current_request_id() -> str | None:
    return _request_id.get()


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Values passed through ``extra=`` (product_id, variant_id, entity...) are
    grouped under ``extra``; the active request id, if any, is top-level so
    every line of one request can be correlated.
    """

    def __init__(self, service: str | None = None) -> None:
        super().__init__()
        self.service = service or settings.PROJECT_NAME

    def format(self, record: logging.LogRecord) -> str:
        message: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = current_request_id()
        if request_id:
            message["request_id"] = request_id
        if record.exc_info:
            message["exc_info"] = self.formatException(record.exc_info)

        extra = {key: value for key, value in record.__dict__.items() if key not in _STANDARD_ATTRS}
        if extra:
            message["extra"] = extra

        return json.dumps(message, default=str)


def setup_logging() -> None:
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": JsonFormatter}},
            "handlers": {"default": {"class": "logging.StreamHandler", "formatter": "json"}},
            "root": {"handlers": ["default"], "level": level},
            "loggers": {
                "app": {"level": level},
                "uvicorn.error": {"level": level},
                "uvicorn.access": {"handlers": ["default"], "level": level, "propagate": False},
                # SQL echo solo si DB_ECHO
                "sqlalchemy.engine": {"level": logging.INFO if settings.DB_ECHO else logging.WARNING},
                "aiosqlite": {"level": logging.WARNING},
            },
        }
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
