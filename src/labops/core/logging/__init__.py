# src/labops/core/logging/
# ├─ __init__.py            # public API: setup_logging, request-id helpers, RequestIDMiddleware
# ├─ builder.py             # make_dict_config(settings) + setup_logging(settings) + queue mode
# ├─ formatters.py          # JsonFormatter, ColorFormatter
# ├─ filters.py             # RequestIdFilter, RedactFilter, redact() (+ contextvar helpers)
# ├─ handlers.py            # handler config factories (console/file/error)
# └─ middleware.py          # Starlette middleware assigning the correlation id


from .builder import setup_logging, make_dict_config, stop_queue_logging
from .filters import set_request_id, get_request_id, reset_request_id, redact, RequestIdFilter, RedactFilter
from .middleware import RequestIDMiddleware

__all__ = [
    "setup_logging",
    "make_dict_config",
    "stop_queue_logging",
    "set_request_id",
    "get_request_id",
    "reset_request_id",
    "redact",
    "RequestIdFilter",
    "RedactFilter",
    "RequestIDMiddleware",
]
