"""Structured logging for restcache.

Provides:
- JSON-formatted logs for log aggregation systems (ELK, Loki, etc.)
- A console formatter for local development
- Cache key propagation: records emitted while a request is inside the
  gateway carry the request's cache key

Usage:
    from restcache.observability.logging import configure_logging

    configure_logging(json_format=True, level="INFO")
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

# Cache key of the request currently handled by the gateway
cache_key_var: contextvars.ContextVar[str] = contextvars.ContextVar("cache_key", default="")

_STANDARD_ATTRS = {
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "exc_info",
    "exc_text",
    "thread",
    "threadName",
    "taskName",
    "message",
}


class JsonFormatter(logging.Formatter):
    """JSON log formatter with cache key context.

    Output format:
    {
        "timestamp": "2026-10-19T12:34:56.789Z",
        "level": "DEBUG",
        "logger": "restcache.gateway",
        "message": "[RECV] GET /articles?& HIT",
        "module": "gateway",
        "function": "process",
        "line": 42,
        "cache_key": "/articles?&"
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        cache_key = cache_key_var.get()
        if cache_key:
            log_data["cache_key"] = cache_key

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                try:
                    json.dumps(value)
                    log_data[key] = value
                except (TypeError, ValueError):
                    log_data[key] = str(value)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for development.

    Output format:
    2026-10-19 12:34:56 | DEBUG | restcache.gateway | [RECV] GET /a?& MISS | key=/a?&
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname

        if self.use_colors:
            color = self.COLORS.get(level, "")
            level = f"{color}{level}{self.RESET}"

        message = record.getMessage()
        cache_key = cache_key_var.get()
        context = f" | key={cache_key}" if cache_key else ""

        result = f"{timestamp} | {level:8} | {record.name} | {message}{context}"

        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)

        return result


def configure_logging(
    json_format: bool = True,
    level: str = "INFO",
    use_colors: bool = True,
) -> None:
    """Configure application-wide logging.

    Args:
        json_format: Use JSON format (recommended for production)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_colors: Use ANSI colors in console format
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)

    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(ConsoleFormatter(use_colors=use_colors))

    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


class CacheKeyContext:
    """Context manager binding a cache key to log records.

    Usage:
        with CacheKeyContext("/articles?&"):
            logger.debug("lookup")  # Includes cache_key
    """

    def __init__(self, cache_key: str) -> None:
        self.cache_key = cache_key
        self._token: contextvars.Token[str] | None = None

    def __enter__(self) -> "CacheKeyContext":
        self._token = cache_key_var.set(self.cache_key)
        return self

    def __exit__(self, *args: Any) -> None:
        if self._token is not None:
            cache_key_var.reset(self._token)
            self._token = None
