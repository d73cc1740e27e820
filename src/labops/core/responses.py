# src/labops/core/responses.py
"""
Response formatter: builds every envelope the API sends.

A formatter is bound to ONE request's correlation id and created per request, so
concurrent requests can never see each other's id:

    @router.get("/samples/{id}")
    async def get_sample(id: str, formatter: ResponseFormatter = Depends(get_formatter)):
        return formatter.success({"id": id})

Each operation returns a `JSONResponse` carrying the envelope body, the HTTP status,
and (when the id is known) the correlation header.
"""

from typing import Any, Sequence

from fastapi import Request
from fastapi.responses import JSONResponse

from labops.core.logging.filters import get_request_id
from labops.core.logging.middleware import DEFAULT_REQUEST_ID_HEADER
from labops.exceptions.base import ErrorKind, ResponseCode, TaxonomyError
from labops.schemas.envelope import (
    ErrorBody,
    ErrorEnvelope,
    PaginatedEnvelope,
    PaginationMeta,
    SuccessEnvelope,
)


def request_id_from(request: Request | None) -> str | None:
    """
    Correlation id of `request`.

    request.state survives after the middleware has reset the logging contextvar
    (e.g. in the server-error fallback), so it is read first.
    """
    if request is not None:
        rid = getattr(request.state, "request_id", None)
        if rid:
            return rid
    return get_request_id()


class ResponseFormatter:
    """Per-request envelope builder."""

    def __init__(self, request_id: str | None = None, header_name: str = DEFAULT_REQUEST_ID_HEADER):
        self.request_id = request_id
        self.header_name = header_name

    @classmethod
    def for_request(cls, request: Request, header_name: str = DEFAULT_REQUEST_ID_HEADER) -> "ResponseFormatter":
        return cls(request_id_from(request), header_name=header_name)

    def _respond(self, body: dict, status_code: int) -> JSONResponse:
        headers = {self.header_name: self.request_id} if self.request_id else None
        return JSONResponse(content=body, status_code=status_code, headers=headers)

    # -----------------------
    # success shapes
    # -----------------------

    def success(
        self,
        data: Any = None,
        message: str = "Operation succeeded",
        status_code: int = 200,
        code: ResponseCode | str = ResponseCode.OK,
    ) -> JSONResponse:
        envelope = SuccessEnvelope(
            code=ResponseCode(code).value,
            message=message,
            data=data,
            request_id=self.request_id,
        )
        return self._respond(envelope.to_wire(), status_code)

    def created(self, data: Any = None, message: str = "Resource created") -> JSONResponse:
        return self.success(data, message, status_code=201, code=ResponseCode.CREATED)

    def paginated(
        self,
        data: Sequence[Any],
        pagination: PaginationMeta,
        message: str = "Query succeeded",
    ) -> JSONResponse:
        envelope = PaginatedEnvelope(
            code=ResponseCode.OK.value,
            message=message,
            data=list(data),
            pagination=pagination,
            request_id=self.request_id,
        )
        return self._respond(envelope.to_wire(), 200)

    # -----------------------
    # error shapes
    # -----------------------

    def error(
        self,
        message: str,
        status_code: int = 500,
        code: ResponseCode | str = ResponseCode.INTERNAL_ERROR,
        kind: ErrorKind | str = ErrorKind.SYSTEM,
        details: Any = None,
    ) -> JSONResponse:
        envelope = ErrorEnvelope(
            code=ResponseCode(code).value,
            message=message,
            error=ErrorBody(kind=ErrorKind(kind).value, details=details),
            request_id=self.request_id,
        )
        return self._respond(envelope.to_wire(), status_code)

    def from_error(self, error: TaxonomyError) -> JSONResponse:
        """Envelope for a taxonomy error: its status, code, kind, message and details."""
        return self.error(
            error.message,
            status_code=error.http_status,
            code=error.code,
            kind=error.kind,
            details=error.details,
        )


def get_formatter(request: Request) -> ResponseFormatter:
    """FastAPI dependency: a formatter bound to the current request."""
    header_name = getattr(request.app.state, "request_id_header", DEFAULT_REQUEST_ID_HEADER)
    return ResponseFormatter.for_request(request, header_name=header_name)


__all__ = [
    "request_id_from",
    "ResponseFormatter",
    "get_formatter",
]
