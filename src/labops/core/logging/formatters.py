# src/labops/core/logging/formatters.py

"""
Custom logging formatters.

  - JsonFormatter: one JSON object per line for log collectors. Carries the
    observability fields (service, env, version, request_id) and every
    `extra={...}` key passed at the call site, so structured events such as

        logger.warning("validation.failed", extra={"target": "body", "errors": [...]})

    can be queried by field instead of grepped by text.

  - ColorFormatter: compact ANSI-colored lines for a developer terminal.

builder.py picks one of them per handler from settings.LOG_FORMAT.

Formatters print whatever reaches them; credentials are scrubbed earlier by
RedactFilter (filters.py).
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any
from logging import LogRecord
from labops.utils.logging import get_project_version

PROJECT_VERSION = get_project_version()

# Attributes every LogRecord has; anything else on record.__dict__ came from `extra`.
_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename", "module",
    "exc_info", "exc_text", "stack_info", "lineno", "funcName", "created", "msecs",
    "relativeCreated", "thread", "threadName", "processName", "process", "taskName",
    "message", "asctime", "request_id",
})


def _json_safe(value: Any) -> Any:
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return str(value)


class JsonFormatter(logging.Formatter):
    """
    Structured JSON formatter.

    Construction (usually from dictConfig):
      - env: environment name ("development" | "production" ...)
      - service: logical service name (defaults to "labops-api")
      - datefmt: when given, timestamps follow it; otherwise ISO-8601 UTC with "Z"

    Never raises on odd extras: values that cannot be serialized are stringified.
    """

    def __init__(self, *, env: str | None = None, service: str = "labops-api", datefmt: str | None = None):
        super().__init__(datefmt=datefmt)
        self.env = env
        self.service = service

    def formatTime(self, record: LogRecord, datefmt: str | None = None) -> str:
        if datefmt:
            return super().formatTime(record, datefmt)
        moment = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def format(self, record: LogRecord) -> str:
        log_record: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "pathname": record.pathname,
            "lineno": record.lineno,
            "request_id": getattr(record, "request_id", "-"),
            "service": self.service,
            "env": self.env,
            "version": PROJECT_VERSION,
        }

        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            log_record["stack_info"] = self.formatStack(record.stack_info)

        # extras never overwrite the canonical fields
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in log_record or key.startswith("_"):
                continue
            log_record[key] = _json_safe(value)

        return json.dumps(log_record, ensure_ascii=False, default=str)


class ColorFormatter(logging.Formatter):
    """
    Development formatter: TIMESTAMP | LEVEL | LOGGER | REQUEST_ID | MESSAGE,
    with the level colorized and the traceback appended when present.
    """

    COLOR_CODES = {
        "DEBUG": "\033[1;36;47m",   # bold cyan on white
        "INFO": "\033[32m",         # green
        "WARNING": "\033[33m",      # yellow
        "ERROR": "\033[31m",        # red
        "CRITICAL": "\033[1;41m",   # bold on red background
        "RESET": "\033[0m",
    }

    def __init__(self, fmt: str | None = None, datefmt: str | None = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)

    def format(self, record: LogRecord) -> str:
        color = self.COLOR_CODES.get(record.levelname, "")
        # Only the level name is colored; reset before the rest of the line.
        reset = self.COLOR_CODES["RESET"]
        timestamp = self.formatTime(record, self.datefmt)

        base = (
            f"{timestamp} | {color}{record.levelname:<10}{reset} | "
            f"{record.name:<30} | "
            f"{getattr(record, 'request_id', '-'):<10} | "
            f"{record.getMessage()}"
        )

        if record.exc_info:
            base = base + "\n" + self.formatException(record.exc_info)

        return base


r"""
-------------------------------------------------
What a JSON line looks like
-------------------------------------------------
    logger.error("api.error", extra={"error": {"code": "INTERNAL_ERROR", "http_status": 500}})

    {"timestamp": "2026-03-02T10:15:01.123Z", "level": "ERROR", "logger": "labops.api.v1.error_handlers",
     "message": "api.error", "pathname": ".../error_handlers.py", "lineno": 97,
     "request_id": "6f1c...", "service": "labops-api", "env": "production", "version": "0.1.0",
     "error": {"code": "INTERNAL_ERROR", "http_status": 500}}

Standard LogRecord attributes (thread, process, msecs, ...) are not repeated as
extras; only what the call site passed through `extra` is added.
"""
