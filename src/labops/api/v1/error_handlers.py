# src/labops/api/v1/error_handlers.py
"""
Terminal error handling: the only place an error is serialized to the wire.

Every failure, whether raised on purpose (`raise NotFoundError(...)`), produced by a
validation dependency, raised by the framework (unknown route, bad request body)
or leaked by a collaborator (driver error, HTTP client timeout), ends up in
`global_error_handler`, which:

  1. normalizes it to a TaxonomyError (framework HTTPExceptions by status,
     everything else through the classifier),
  2. logs one structured `api.error` record, at ERROR for >= 500, else WARNING,
  3. answers with the error envelope.

It never raises: if anything in 1-3 fails, a hand-built generic 500 envelope is sent.

How to use:
    app = FastAPI()
    register_exception_handlers(app)
"""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from labops.core.logging.filters import redact
from labops.core.logging.middleware import DEFAULT_REQUEST_ID_HEADER
from labops.core.responses import ResponseFormatter, request_id_from
from labops.exceptions.base import (
    ErrorKind,
    ErrorVariant,
    NotFoundError,
    ResponseCode,
    TaxonomyError,
    error_for_status,
    variant_for_status,
)
from labops.exceptions.classifier import ErrorClassifier, get_default_classifier
from labops.schemas.envelope import utc_timestamp

logger = logging.getLogger(__name__)


# -----------------------
# Normalization
# -----------------------

def _classifier_for(request: Request) -> ErrorClassifier:
    return getattr(request.app.state, "classifier", None) or get_default_classifier()


def from_http_exception(request: Request, exc: StarletteHTTPException) -> TaxonomyError:
    """
    Map a framework HTTPException onto the taxonomy by status code.

    The router's own 404 (no matching route) gets a message naming the route.
    """
    variant = variant_for_status(exc.status_code)
    if variant is ErrorVariant.NOT_FOUND and exc.detail == "Not Found":
        return NotFoundError(f"Route {request.method} {request.url.path} not found")

    message = exc.detail if isinstance(exc.detail, str) and exc.detail else None
    details = exc.detail if isinstance(exc.detail, (dict, list)) else None
    error = error_for_status(exc.status_code, message, details)
    error.__cause__ = exc
    return error


def to_taxonomy(request: Request, exc: BaseException) -> TaxonomyError:
    if isinstance(exc, TaxonomyError):
        return exc
    if isinstance(exc, StarletteHTTPException):
        return from_http_exception(request, exc)
    return _classifier_for(request).classify(exc)


# -----------------------
# Logging
# -----------------------

def _stack(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


def request_context(request: Request) -> dict:
    """Request fields logged with every api.error record (sensitive values masked)."""
    return {
        "method": request.method,
        "path": request.url.path,
        "headers": redact(dict(request.headers)),
        # parsed JSON captured by the body validation dependency, if it ran
        "body": redact(getattr(request.state, "raw_body", None)),
        "params": dict(request.path_params),
        "query": redact(dict(request.query_params)),
        "client": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


def log_error(request: Request, error: TaxonomyError, original: BaseException) -> None:
    level = logging.ERROR if error.http_status >= 500 else logging.WARNING
    source = error.__cause__ if error.__cause__ is not None else original
    logger.log(
        level,
        "api.error",
        extra={
            "error": {
                "name": type(error).__name__,
                "message": error.message,
                "code": error.code.value,
                "http_status": error.http_status,
                "kind": error.kind.value,
                "is_operational": error.is_operational,
                "source": type(source).__name__,
                "stack": _stack(source),
                "details": error.details,
            },
            "request": request_context(request),
            # the contextvar is already reset on the server-error path
            "request_id": request_id_from(request),
            "timestamp": utc_timestamp(),
        },
    )


# -----------------------
# Handlers
# -----------------------

def _fallback_response(request: Request) -> JSONResponse:
    rid = getattr(request.state, "request_id", None)
    variant = ErrorVariant.INTERNAL
    body = {
        "success": False,
        "code": ResponseCode.INTERNAL_ERROR.value,
        "message": variant.default_message,
        "error": {"kind": ErrorKind.SYSTEM.value, "details": None},
        "timestamp": utc_timestamp(),
        "requestId": rid,
    }
    header_name = getattr(request.app.state, "request_id_header", DEFAULT_REQUEST_ID_HEADER)
    headers = {header_name: rid} if rid else None
    return JSONResponse(status_code=variant.http_status, content=body, headers=headers)


async def global_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Normalize, log and format any exception. Registered for every exception type.
    """
    try:
        error = to_taxonomy(request, exc)
        log_error(request, error, exc)
        header_name = getattr(request.app.state, "request_id_header", DEFAULT_REQUEST_ID_HEADER)
        formatter = ResponseFormatter(request_id_from(request), header_name=header_name)
        return formatter.from_error(error)
    except Exception:
        # Last resort: the handler itself failed (e.g. unserializable details).
        logger.exception(
            "api.error_handler_failed",
            extra={"source": type(exc).__name__, "request_id": getattr(request.state, "request_id", None)},
        )
        return _fallback_response(request)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Route every error channel of the app to global_error_handler.

    - TaxonomyError: raised by handlers, dependencies and the async boundary
    - RequestValidationError: FastAPI's own parameter/body validation
    - StarletteHTTPException: unknown routes, wrong methods, explicit HTTPException
    - Exception: anything else (served from the server-error middleware)
    """
    app.add_exception_handler(TaxonomyError, global_error_handler)
    app.add_exception_handler(RequestValidationError, global_error_handler)
    app.add_exception_handler(StarletteHTTPException, global_error_handler)
    app.add_exception_handler(Exception, global_error_handler)


__all__ = [
    "from_http_exception",
    "to_taxonomy",
    "request_context",
    "log_error",
    "global_error_handler",
    "register_exception_handlers",
]


"""
---------------------------------------------------------
What the client gets
---------------------------------------------------------
A handler raises:
```
raise ConflictError("Sample barcode already registered", details={"fields": ["barcode"]})
```

Response (409):
```
{
  "success": false,
  "code": "CONFLICT",
  "message": "Sample barcode already registered",
  "error": {"kind": "BUSINESS", "details": {"fields": ["barcode"]}},
  "timestamp": "2026-03-02T10:15:01.123Z",
  "requestId": "6f1c0c1e-..."
}
```

An unmatched route (404):
```
{"success": false, "code": "NOT_FOUND", "message": "Route GET /api/v1/nope not found", ...}
```

---------------------------------------------------------
Why is Exception registered too?
---------------------------------------------------------
Starlette serves handlers for `Exception` from its outermost server-error
middleware, outside RequestIDMiddleware. The envelope is still correct there
(request.state keeps the correlation id), but Starlette re-raises the exception
afterwards so the server logs it. Route code wrapped with `async_handler` or
served by `ErrorBoundaryRoute` (see boundary.py) never takes that path.
"""
