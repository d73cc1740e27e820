"""
Canonical error taxonomy exposed by the API.

Every failure that reaches a caller is one of the variants defined here. A variant
fixes the wire `code`, the HTTP status, the error `kind` and whether the failure is
operational (expected) or a programmer/unknown fault. Instances only vary by
`message` and `details`.

    | Class                    | status | kind           | code                |
    | ------------------------ | ------ | -------------- | ------------------- |
    | ValidationError          | 400    | VALIDATION     | VALIDATION_ERROR    |
    | AuthenticationError      | 401    | AUTHENTICATION | UNAUTHORIZED        |
    | AuthorizationError       | 403    | AUTHORIZATION  | FORBIDDEN           |
    | NotFoundError            | 404    | BUSINESS       | NOT_FOUND           |
    | ConflictError            | 409    | BUSINESS       | CONFLICT            |
    | DatabaseError            | 500    | DATABASE       | DATABASE_ERROR      |
    | ServiceUnavailableError  | 503    | SYSTEM         | SERVICE_UNAVAILABLE |
    | InternalServerError      | 500    | SYSTEM         | INTERNAL_ERROR      |
"""

from enum import Enum
from typing import Any, ClassVar


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION"
    AUTHENTICATION = "AUTHENTICATION"
    AUTHORIZATION = "AUTHORIZATION"
    BUSINESS = "BUSINESS"
    DATABASE = "DATABASE"
    SYSTEM = "SYSTEM"


class ResponseCode(str, Enum):
    # success
    OK = "OK"
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"

    # client errors
    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # server errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    DATABASE_ERROR = "DATABASE_ERROR"


class ErrorVariant(Enum):
    """
    Tag of a taxonomy member and the values it fixes.

    Value tuple: (code, http_status, kind, is_operational, default_message)
    """

    VALIDATION = (ResponseCode.VALIDATION_ERROR, 400, ErrorKind.VALIDATION, True, "Request validation failed")
    AUTHENTICATION = (ResponseCode.UNAUTHORIZED, 401, ErrorKind.AUTHENTICATION, True, "Authentication failed")
    AUTHORIZATION = (ResponseCode.FORBIDDEN, 403, ErrorKind.AUTHORIZATION, True, "Insufficient permissions")
    NOT_FOUND = (ResponseCode.NOT_FOUND, 404, ErrorKind.BUSINESS, True, "Resource not found")
    CONFLICT = (ResponseCode.CONFLICT, 409, ErrorKind.BUSINESS, True, "Resource conflict")
    DATABASE = (ResponseCode.DATABASE_ERROR, 500, ErrorKind.DATABASE, True, "Database operation failed")
    SERVICE_UNAVAILABLE = (ResponseCode.SERVICE_UNAVAILABLE, 503, ErrorKind.SYSTEM, True, "Service temporarily unavailable")
    INTERNAL = (ResponseCode.INTERNAL_ERROR, 500, ErrorKind.SYSTEM, False, "Internal server error")

    def __init__(self, code: ResponseCode, http_status: int, kind: ErrorKind,
                 is_operational: bool, default_message: str):
        self.code = code
        self.http_status = http_status
        self.kind = kind
        self.is_operational = is_operational
        self.default_message = default_message


# canonical application-level exception

class TaxonomyError(Exception):
    """
    Abstract base of every error this API exposes.

    - message: human-friendly message (safe to show to clients)
    - details: optional structured payload echoed verbatim to callers; never put
      internal-only data (raw DB text, stack traces, secrets) in here
    - code / http_status / kind / is_operational: fixed by the subclass `variant`

    Raise one of the concrete subclasses, never TaxonomyError itself.
    """

    variant: ClassVar[ErrorVariant]

    def __init__(self, message: str | None = None, details: Any = None):
        if type(self) is TaxonomyError:
            raise TypeError("TaxonomyError is abstract; raise one of its variants")
        self.message = message or self.variant.default_message
        self.details = details
        super().__init__(self.message)

    @property
    def code(self) -> ResponseCode:
        return self.variant.code

    @property
    def http_status(self) -> int:
        return self.variant.http_status

    @property
    def kind(self) -> ErrorKind:
        return self.variant.kind

    @property
    def is_operational(self) -> bool:
        return self.variant.is_operational

    def __str__(self) -> str:
        return f"{self.message} (code: {self.code.value}; status: {self.http_status})"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, details={self.details!r})"

    def to_payload(self) -> dict:
        """
        Return the JSON-serializable `error` block of the wire envelope.

        Standard shape:
            {"kind": "VALIDATION", "details": [...]}
        """
        return {"kind": self.kind.value, "details": self.details}


class ValidationError(TaxonomyError):
    """Malformed or missing input; the caller can fix the request."""
    variant = ErrorVariant.VALIDATION


class AuthenticationError(TaxonomyError):
    """Missing or invalid credential; the caller should re-authenticate."""
    variant = ErrorVariant.AUTHENTICATION


class AuthorizationError(TaxonomyError):
    """Authenticated, but not allowed to perform the action."""
    variant = ErrorVariant.AUTHORIZATION


class NotFoundError(TaxonomyError):
    variant = ErrorVariant.NOT_FOUND


class ConflictError(TaxonomyError):
    variant = ErrorVariant.CONFLICT


class DatabaseError(TaxonomyError):
    """Storage-layer failure (may be transient)."""
    variant = ErrorVariant.DATABASE


class ServiceUnavailableError(TaxonomyError):
    """A downstream dependency could not be reached."""
    variant = ErrorVariant.SERVICE_UNAVAILABLE


class InternalServerError(TaxonomyError):
    """Unclassified fault. Not operational: should trigger alerting, not retries."""
    variant = ErrorVariant.INTERNAL


VARIANT_CLASSES: dict[ErrorVariant, type[TaxonomyError]] = {
    cls.variant: cls
    for cls in (
        ValidationError,
        AuthenticationError,
        AuthorizationError,
        NotFoundError,
        ConflictError,
        DatabaseError,
        ServiceUnavailableError,
        InternalServerError,
    )
}

_STATUS_TO_VARIANT = {
    400: ErrorVariant.VALIDATION,
    401: ErrorVariant.AUTHENTICATION,
    403: ErrorVariant.AUTHORIZATION,
    404: ErrorVariant.NOT_FOUND,
    409: ErrorVariant.CONFLICT,
    503: ErrorVariant.SERVICE_UNAVAILABLE,
}


def variant_for_status(status_code: int) -> ErrorVariant:
    """
    Map an arbitrary HTTP status (e.g. from a framework HTTPException) onto a variant.

    Statuses without an exact variant fall back by class: other 4xx are treated as
    validation problems, anything else as an internal error.
    """
    if status_code in _STATUS_TO_VARIANT:
        return _STATUS_TO_VARIANT[status_code]
    if 400 <= status_code < 500:
        return ErrorVariant.VALIDATION
    return ErrorVariant.INTERNAL


def error_for_status(status_code: int, message: str | None = None, details: Any = None) -> TaxonomyError:
    """Build the taxonomy error matching `status_code`."""
    return VARIANT_CLASSES[variant_for_status(status_code)](message, details)


__all__ = [
    "ErrorKind",
    "ResponseCode",
    "ErrorVariant",
    "TaxonomyError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "DatabaseError",
    "ServiceUnavailableError",
    "InternalServerError",
    "VARIANT_CLASSES",
    "variant_for_status",
    "error_for_status",
]
