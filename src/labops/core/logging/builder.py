# src/labops/core/logging/builder.py
"""
Logging builder: create and apply a dictConfig logging configuration and optionally
wire a background QueueListener to decouple log IO from the event loop.

This module:
 - builds a dictConfig-compatible mapping from Settings
 - allows a queue-backed logging mode (LOG_USE_QUEUE) that moves the actual writes
   to a background thread (QueueListener) while request handlers only enqueue records
 - provides NonBlockingQueueHandler so a bounded queue never blocks producers
   (drop policy + counter)
 - stamps producer-side filters (RequestIdFilter, RedactFilter) on the QueueHandler
   so the contextvar lookup and redaction run in the request's own context
 - exposes stop_queue_logging() to flush & stop the listener at shutdown (the app
   lifespan calls it).

Configuration knobs (Settings):
 - LOG_USE_QUEUE: enable queue-backed logging
 - LOG_QUEUE_MAX_SIZE: > 0 for a bounded queue, 0 for unbounded
 - LOG_QUEUE_BLOCKING: with a bounded queue, block (True) or drop (False) when full
 - LOG_TO_STDOUT, LOG_DIR, LOG_FORMAT, LOG_LEVEL, ENABLE_SQL_LOGGING, ENV
"""

from __future__ import annotations

from pathlib import Path
import logging
import logging.config
import queue as _queue
import threading
from typing import Optional
from logging.handlers import QueueHandler, QueueListener

from labops.config.settings import Settings
from labops.utils.logging import DISTRIBUTION_NAME, get_project_name

from .formatters import JsonFormatter, ColorFormatter
from .filters import RequestIdFilter, RedactFilter
from .handlers import (
    get_console_handler,
    get_file_handler,
    get_error_file_handler,
    get_error_console_handler,
)

_QUEUE_LISTENER: Optional[QueueListener] = None
_QUEUE: Optional[_queue.Queue] = None

_DROPPED_LOGS_COUNT = 0
_DROPPED_LOGS_LOCK = threading.Lock()


class NonBlockingQueueHandler(QueueHandler):
    """
    QueueHandler variant that never blocks the producer on a full bounded queue.

    On `queue.Full` the record is dropped and the module-level drop counter
    (see get_queue_stats) is incremented.
    """

    def emit(self, record: logging.LogRecord) -> None:
        global _DROPPED_LOGS_COUNT
        try:
            self.queue.put_nowait(self.prepare(record))
        except _queue.Full:
            with _DROPPED_LOGS_LOCK:
                _DROPPED_LOGS_COUNT += 1


def get_queue_stats() -> dict:
    """Small diagnostics about queue usage."""
    with _DROPPED_LOGS_LOCK:
        return {"dropped_logs": _DROPPED_LOGS_COUNT, "queue_present": _QUEUE is not None}


def make_dict_config(settings: Settings) -> dict:
    """
    Build the dictConfig mapping using the provided settings.

    The returned mapping includes:
      - formatters: "standard" (color when LOG_FORMAT=text) and "json"
      - filters: "request_id", "redact"
      - handlers: console + (file, error_file) when writing to LOG_DIR, else error_console
      - loggers: root, labops, uvicorn.error, uvicorn.access, sqlalchemy.engine
    """
    formatters = {
        "standard": {
            "()": ColorFormatter if settings.LOG_FORMAT == "text" else logging.Formatter,
            "format": "%(asctime)s | %(levelname)s | %(name)s | %(request_id)s | %(message)s",
        },
        "json": {
            "()": JsonFormatter,
            "env": settings.ENV,
            "service": get_project_name() or DISTRIBUTION_NAME,
        },
    }

    filters = {
        "request_id": {"()": RequestIdFilter},
        "redact": {"()": RedactFilter},
    }

    handlers: dict[str, dict] = {"console": get_console_handler(settings)}

    if (not settings.LOG_TO_STDOUT) and settings.LOG_DIR:
        handlers["file"] = get_file_handler(settings)
        handlers["error_file"] = get_error_file_handler(settings)
    else:
        handlers["error_console"] = get_error_console_handler(settings)

    # Records reach the error_console handler as well as console when both match;
    # that duplication at ERROR is accepted for stdout deployments.
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "filters": filters,
        "handlers": handlers,
        "loggers": {
            "": {
                "handlers": list(handlers.keys()),
                "level": settings.LOG_LEVEL,
                "propagate": True,
            },
            "labops": {
                "level": settings.LOG_LEVEL,
                "propagate": True,
            },
            "uvicorn.error": {
                "level": settings.LOG_LEVEL,
                "handlers": list(handlers.keys()),
                "propagate": False,
            },
            "uvicorn.access": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False,
            },
            "sqlalchemy.engine": {
                "level": "DEBUG" if settings.ENABLE_SQL_LOGGING else "WARNING",
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }


def setup_logging(settings: Settings) -> None:
    """
    Initialize logging from settings and optionally switch to queue-backed logging.

    Steps:
      1. Ensure LOG_DIR exists when writing files.
      2. Apply dictConfig(make_dict_config(settings)).
      3. Register a RequestIdFilter on the root logger as a safety net.
      4. If settings.LOG_USE_QUEUE:
            - create a (bounded or unbounded) queue
            - detach the real handlers from every logger
            - run them behind a QueueListener thread
            - attach a QueueHandler (or NonBlockingQueueHandler) to the root logger,
              with RequestIdFilter and RedactFilter so both run in the producer context
    """
    global _QUEUE_LISTENER, _QUEUE

    # Re-configuring while a listener runs would leave it writing to closed handlers.
    stop_queue_logging()

    if (not settings.LOG_TO_STDOUT) and settings.LOG_DIR:
        Path(settings.LOG_DIR).mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(make_dict_config(settings))

    logging.getLogger().addFilter(RequestIdFilter())

    if not settings.LOG_USE_QUEUE:
        return

    root_logger = logging.getLogger()
    current_handlers = list(root_logger.handlers)
    if not current_handlers:
        return

    handlers_to_move = set(current_handlers)
    for logger_obj in list(logging.Logger.manager.loggerDict.values()):
        if isinstance(logger_obj, logging.Logger):
            for h in list(logger_obj.handlers):
                if h in handlers_to_move:
                    logger_obj.removeHandler(h)
    for h in current_handlers:
        root_logger.removeHandler(h)

    max_size = settings.LOG_QUEUE_MAX_SIZE or 0
    log_queue: _queue.Queue = _queue.Queue(max_size) if max_size > 0 else _queue.Queue()

    if max_size > 0 and not settings.LOG_QUEUE_BLOCKING:
        qh: QueueHandler = NonBlockingQueueHandler(log_queue)
    else:
        qh = QueueHandler(log_queue)

    listener = QueueListener(log_queue, *current_handlers, respect_handler_level=True)
    listener.start()

    qh.addFilter(RequestIdFilter())
    qh.addFilter(RedactFilter())
    root_logger.addHandler(qh)

    _QUEUE_LISTENER = listener
    _QUEUE = log_queue


def stop_queue_logging() -> None:
    """
    Stop the QueueListener (flushing what is queued) and clear module refs.
    No-op when queue logging is not active.
    """
    global _QUEUE_LISTENER, _QUEUE
    listener = _QUEUE_LISTENER
    if listener is None:
        return

    try:
        listener.stop()
    finally:
        _QUEUE_LISTENER = None
        _QUEUE = None


r"""
-------------------------------------------------
Why a queue at all?
-------------------------------------------------
Handlers do blocking IO (file writes, stream flushes). Under the event loop every
`logger.warning("api.error", ...)` would block the loop for the duration of that IO.
With LOG_USE_QUEUE the loop only does a `put_nowait`; the QueueListener thread does
the writes.

| Mode                                  | Producer cost         | On full queue       |
| ------------------------------------- | --------------------- | ------------------- |
| LOG_USE_QUEUE=False                   | full handler IO       | n/a                 |
| queue, LOG_QUEUE_MAX_SIZE=0           | enqueue               | never full          |
| queue, bounded, LOG_QUEUE_BLOCKING    | enqueue, may block    | producer waits      |
| queue, bounded, non-blocking          | enqueue               | record dropped      |

-------------------------------------------------
Why filters on the QueueHandler?
-------------------------------------------------
The listener thread does not share the request's contextvars, so by the time a
record is handled there, get_request_id() returns None. Running RequestIdFilter
on the QueueHandler stamps `record.request_id` while still inside the request.
RedactFilter runs there too so unredacted payloads never sit in the queue.
"""
