# src/labops/core/logging/middleware.py
"""
Request ID middleware for FastAPI / Starlette.

Every request gets exactly one correlation id, assigned on entry:

1. The configured header (default `X-Request-ID`) is reused when it looks like an
   opaque id: 1-128 characters from [A-Za-z0-9._:-]. Anything else (newlines,
   oversized values, empty strings) is discarded so it cannot inject into logs.
2. Otherwise a fresh UUID4 is generated.
3. The id is stored in the logging contextvar (RequestIdFilter reads it) and on
   `request.state.request_id` (ResponseFormatter and the error handlers read it).
4. The id is echoed on the response header.
5. The contextvar is reset when the request finishes, success or failure.

Register it after the exception handlers are installed so it wraps every route:

    app.add_middleware(RequestIDMiddleware, header_name=settings.REQUEST_ID_HEADER)
"""

import re
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.types import ASGIApp
from .filters import set_request_id, reset_request_id

DEFAULT_REQUEST_ID_HEADER = "X-Request-ID"
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def is_valid_request_id(value: str | None) -> bool:
    return bool(value) and _REQUEST_ID_RE.fullmatch(value) is not None


def new_request_id() -> str:
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Starlette / FastAPI middleware that sets a request id for each incoming request.
    """

    def __init__(self, app: ASGIApp, header_name: str = DEFAULT_REQUEST_ID_HEADER) -> None:
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next):
        incoming = request.headers.get(self.header_name)
        rid = incoming if is_valid_request_id(incoming) else new_request_id()

        request.state.request_id = rid
        token = set_request_id(rid)
        try:
            # Exceptions are not caught here: they belong to the registered handlers.
            response = await call_next(request)
            response.headers[self.header_name] = rid
            return response
        finally:
            reset_request_id(token)
