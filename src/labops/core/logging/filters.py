# src/labops/core/logging/filters.py
"""
Logging filters

Request ID filter, redaction filter and the helpers behind them.

This module attaches a per-request correlation id (request_id) to Python
`logging.LogRecord`s in an async-friendly way, and scrubs credentials out of
records before they reach any handler.

How it is intended to be used
------------------------------
1. Install the filters into the logging configuration (dictConfig, see builder.py):

     "filters": {
         "request_id": {"()": RequestIdFilter},
         "redact": {"()": RedactFilter},
     },
     "handlers": {
         "console": {"class": "logging.StreamHandler", "filters": ["request_id", "redact"], ...}
     }

2. Set the request id at the start of each HTTP request (RequestIDMiddleware does it):
   `token = set_request_id(rid)` ... `reset_request_id(token)`.

3. Any logging in the same context then carries `record.request_id`.

Important design notes
----------------------
- `contextvars.ContextVar` keeps the id isolated per request across awaits.
- `request_id` defaults to "-" when nothing is set, so "%(request_id)s" never KeyErrors.
- Both filters return True: they annotate or scrub, they never drop records.

Redaction
---------
`redact(value)` masks the values of sensitive keys (passwords, tokens, cookies,
authorization headers...) inside arbitrarily nested dicts/lists. It is used by
RedactFilter for `extra={...}` payloads and directly by the global error handler
before request headers and bodies are logged.
"""

import logging
from collections.abc import Mapping
from logging import LogRecord
import contextvars
from typing import Any

# contextvar for request id (used by RequestIdFilter and the HTTP middleware).
# Default is None to indicate "no request id set".
_request_id_ctx: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)


def set_request_id(request_id: str | None):
    """
    Set the request id in the current context and return the token to allow reset.

    Returns:
        token: contextvar.Token which can be passed to reset_request_id(token)
    """
    return _request_id_ctx.set(request_id)


def reset_request_id(token):
    """
    Reset the contextvar to the previously saved token returned by set_request_id().
    """
    _request_id_ctx.reset(token)


def get_request_id() -> str | None:
    """
    Retrieve the current context's request id (None outside a request).
    """
    return _request_id_ctx.get()


class RequestIdFilter(logging.Filter):
    """
    Logging filter that guarantees every LogRecord has a `request_id` attribute.

    Precedence:
      1. record.request_id passed explicitly via `extra`
      2. the contextvar value set by RequestIDMiddleware
      3. the sentinel "-"
    """

    def filter(self, record: LogRecord) -> bool:
        record.request_id = (
            getattr(record, "request_id", None) or get_request_id() or "-"
        )
        return True


# -----------------------
# Redaction
# -----------------------

REDACTED = "***REDACTED***"

SENSITIVE_KEYS = frozenset({
    "password",
    "old_password",
    "new_password",
    "confirm_password",
    "oldpassword",
    "newpassword",
    "confirmpassword",
    "secret",
    "token",
    "access_token",
    "refresh_token",
    "api_key",
    "x-api-key",
    "ssn",
    "authorization",
    "cookie",
    "set-cookie",
})


def is_sensitive_key(key: object) -> bool:
    return isinstance(key, str) and key.lower() in SENSITIVE_KEYS


def redact(value: Any, _depth: int = 0) -> Any:
    """
    Return a copy of `value` with the values of sensitive keys masked.

    Walks nested mappings and lists/tuples; other values are returned unchanged.
    Depth is bounded so self-referencing structures cannot recurse forever.
    """
    if _depth > 10:
        return value
    if isinstance(value, Mapping):
        return {
            k: (REDACTED if is_sensitive_key(k) else redact(v, _depth + 1))
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(redact(v, _depth + 1) for v in value)
    return value


class RedactFilter(logging.Filter):
    """
    Mask sensitive attributes on the record, including values nested inside
    dict/list extras (e.g. extra={"request": {"headers": {"authorization": ...}}}).
    """

    def filter(self, record: LogRecord) -> bool:
        for key, value in list(record.__dict__.items()):
            if is_sensitive_key(key):
                record.__dict__[key] = REDACTED
            elif isinstance(value, (Mapping, list, tuple)) and key not in ("args", "exc_info"):
                record.__dict__[key] = redact(value)
        return True


__all__ = [
    "set_request_id",
    "reset_request_id",
    "get_request_id",
    "RequestIdFilter",
    "REDACTED",
    "SENSITIVE_KEYS",
    "is_sensitive_key",
    "redact",
    "RedactFilter",
]


r"""
-------------------------------------------------
Where do the filters run?
-------------------------------------------------
Filters attached to a handler run for every record that handler emits, no matter
which module logged it:

| Where you're logging                      | request_id? | Why?                                                        |
| ----------------------------------------- | ----------- | ----------------------------------------------------------- |
| Route handler / validation dependency     | Yes         | RequestIDMiddleware has set the contextvar                  |
| Exception handlers (api.error records)    | Yes         | Still inside the middleware's context                       |
| Startup / lifespan code                   | No ("-")    | No request context exists                                   |

-------------------------------------------------
Why redact nested extras?
-------------------------------------------------
The error handler logs the request that failed:

    logger.warning("api.error", extra={"request": {"headers": {...}, "body": {...}}})

A login request body contains `password`; headers contain `authorization`.
Masking only top-level record attributes would miss both, so RedactFilter walks
dict/list extras with `redact()`. `record.args` is left alone: it feeds
%-formatting of the message and must keep its shape.
"""
