"""
Handler factories for logging.dictConfig.

Each function returns a handler configuration dict; builder.py registers them
under stable names ("console", "file", "error_file", "error_console"). Keeping
them as pure functions of Settings makes them trivial to assert on in tests.

Every handler carries the "request_id" and "redact" filters, so whatever the
destination, records are correlated and scrubbed.
"""

from labops.config.settings import Settings
from pathlib import Path

_FILTERS = ["request_id", "redact"]


def _formatter_name(settings: Settings) -> str:
    return "json" if settings.LOG_FORMAT == "json" else "standard"


def get_console_handler(settings: Settings) -> dict:
    """
    Console/stream handler at settings.LOG_LEVEL.

    StreamHandler writes to stderr unless a "stream" key is added
    (e.g. "ext://sys.stdout").
    """
    return {
        "class": "logging.StreamHandler",
        "formatter": _formatter_name(settings),
        "level": settings.LOG_LEVEL,
        "filters": list(_FILTERS),
    }


def get_file_handler(settings: Settings) -> dict:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": _formatter_name(settings),
        "level": settings.LOG_LEVEL,
        "filename": str(Path(settings.LOG_DIR) / "labops.log"),
        "maxBytes": settings.LOG_MAX_BYTES,
        "backupCount": settings.LOG_BACKUP_COUNT,
        "encoding": "utf-8",
        "filters": list(_FILTERS),
    }


def get_error_file_handler(settings: Settings) -> dict:
    # error files stay structured regardless of LOG_FORMAT
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": "json",
        "level": "ERROR",
        "filename": str(Path(settings.LOG_DIR) / "errors.log"),
        "maxBytes": settings.LOG_MAX_BYTES,
        "backupCount": settings.LOG_BACKUP_COUNT,
        "encoding": "utf-8",
        "filters": list(_FILTERS),
    }


def get_error_console_handler(settings: Settings) -> dict:
    return {
        "class": "logging.StreamHandler",
        "formatter": "json",
        "level": "ERROR",
        "filters": list(_FILTERS),
    }


r"""
-------------------------------------------------
Which handlers end up installed?
-------------------------------------------------
| Name            | Destination          | Levels   | Installed when                       |
| --------------- | -------------------- | -------- | ------------------------------------ |
| `console`       | stderr               | LOG_LEVEL| always                               |
| `file`          | LOG_DIR/labops.log   | LOG_LEVEL| LOG_TO_STDOUT=False and LOG_DIR set  |
| `error_file`    | LOG_DIR/errors.log   | ERROR+   | LOG_TO_STDOUT=False and LOG_DIR set  |
| `error_console` | stderr (JSON)        | ERROR+   | LOG_TO_STDOUT=True                   |

The api.error records emitted for 5xx responses therefore always land in a
structured ERROR-only sink, whichever mode the service runs in.
"""
