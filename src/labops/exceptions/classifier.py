# src/labops/exceptions/classifier.py
"""
Error classifier: turn any exception into a member of the error taxonomy.

Rules are tried in a fixed order and the first match wins:

    | # | rule        | recognizes                                              | becomes                   |
    | - | ----------- | ------------------------------------------------------- | ------------------------- |
    | 1 | taxonomy    | TaxonomyError                                           | itself (idempotent)       |
    | 2 | token       | PyJWT expired / not-yet-valid / malformed tokens        | AuthenticationError       |
    | 3 | relational  | a constraint code known to the DB diagnostics backend   | Conflict/Validation/DB    |
    | 4 | schema      | pydantic ValidationError, FastAPI RequestValidationError| ValidationError           |
    | 5 | network     | refused / timed out / unknown host, anywhere in causes  | ServiceUnavailableError   |
    | 6 | fallback    | anything else                                           | InternalServerError       |

The order is part of the contract: an error that carries a relational code AND
looks like a network failure (e.g. a driver error wrapping a socket timeout) is a
database problem, never a 503.

Classified errors keep the original exception as `__cause__`. Raw exception text
only reaches `message` in two places: unrecognized relational codes (as the
database reported them) and the fallback when `expose_internal` is on.
"""

import contextvars
import errno
import logging
import socket
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Iterator

import httpx
import jwt
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError

from labops.config.settings import get_settings
from labops.validators.engine import issues_from_errors

from .base import (
    AuthenticationError,
    ConflictError,
    DatabaseError,
    InternalServerError,
    ServiceUnavailableError,
    TaxonomyError,
    ValidationError,
)
from .integrity_classifier import ConstraintViolation, Diagnostic, DiagnosticsBackend, get_backend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassificationRule:
    """
    One step of the classification table.

    `match` returns evidence (anything not None) when the rule applies; `build`
    receives the exception together with that evidence.
    """

    name: str
    match: Callable[[BaseException], Any]
    build: Callable[[BaseException, Any], TaxonomyError]


# -----------------------
# Helpers
# -----------------------

def iter_causes(exc: BaseException, max_depth: int = 8) -> Iterator[BaseException]:
    """Yield `exc` and its explicit causes (`raise ... from ...`), nearest first, without looping."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and len(seen) < max_depth and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__


# Node-style codes some client libraries attach as a string `code` attribute
NETWORK_CODES = {
    "ECONNREFUSED": "connection_refused",
    "ETIMEDOUT": "timeout",
    "ENOTFOUND": "host_not_found",
    "EAI_AGAIN": "host_not_found",
}

NETWORK_MESSAGES = {
    "connection_refused": "Downstream service refused the connection",
    "timeout": "Downstream service timed out",
    "host_not_found": "Downstream service host could not be resolved",
}


def network_reason(exc: BaseException) -> str | None:
    """
    Return "connection_refused" | "timeout" | "host_not_found" when `exc` (or one of
    its causes) is a known network failure, else None.
    """
    for err in iter_causes(exc):
        if isinstance(err, socket.gaierror):
            return "host_not_found"
        if isinstance(err, ConnectionRefusedError):
            return "connection_refused"
        if isinstance(err, (TimeoutError, httpx.TimeoutException)):
            return "timeout"
        if isinstance(err, OSError) and err.errno == errno.ECONNREFUSED:
            return "connection_refused"
        if isinstance(err, OSError) and err.errno == errno.ETIMEDOUT:
            return "timeout"

        code = getattr(err, "code", None)
        if isinstance(code, str) and code in NETWORK_CODES:
            return NETWORK_CODES[code]

    # httpx wraps the socket error; without a recognizable cause a ConnectError is a refusal
    if any(isinstance(err, httpx.ConnectError) for err in iter_causes(exc)):
        return "connection_refused"
    return None


TOKEN_CASES: tuple[tuple[type[Exception], str, str], ...] = (
    # subclasses before InvalidTokenError, which is their common base
    (jwt.ExpiredSignatureError, "expired", "Token has expired"),
    (jwt.ImmatureSignatureError, "not_yet_valid", "Token is not yet valid"),
    (jwt.InvalidTokenError, "malformed", "Token is invalid or malformed"),
)


def _token_case(exc: BaseException) -> tuple[str, str] | None:
    for exc_type, reason, message in TOKEN_CASES:
        if isinstance(exc, exc_type):
            return reason, message
    return None


# =================================================================================================================
# Classifier
# =================================================================================================================

def _taxonomy_match(exc: BaseException) -> TaxonomyError | None:
    return exc if isinstance(exc, TaxonomyError) else None


def _schema_match(exc: BaseException) -> list | None:
    if isinstance(exc, RequestValidationError):
        return issues_from_errors(exc.errors(), request_locations=True)
    if isinstance(exc, PydanticValidationError):
        return issues_from_errors(exc.errors())
    return None


class ErrorClassifier:
    """
    Ordered rule table mapping exceptions onto the taxonomy.

    Args:
        backend: relational diagnostics backend (see integrity_classifier); None disables rule 3
        expose_internal: let the fallback carry the original exception message
    """

    def __init__(self, backend: DiagnosticsBackend | None = None, *, expose_internal: bool = False):
        self.backend = backend
        self.expose_internal = expose_internal
        self.rules: tuple[ClassificationRule, ...] = (
            ClassificationRule("taxonomy", _taxonomy_match, lambda exc, same: same),
            ClassificationRule("token", _token_case, self._from_token),
            ClassificationRule("relational", self._diagnose, self._from_relational),
            ClassificationRule("schema", _schema_match, self._from_schema),
            ClassificationRule("network", network_reason, self._from_network),
        )

    def classify(self, exc: BaseException) -> TaxonomyError:
        for rule in self.rules:
            evidence = rule.match(exc)
            if evidence is None:
                continue
            classified = rule.build(exc, evidence)
            if classified is not exc:
                classified.__cause__ = exc
                logger.debug(
                    "classifier.matched",
                    extra={"rule": rule.name, "source": type(exc).__name__, "code": classified.code.value},
                )
            return classified
        return self._fallback(exc)

    __call__ = classify

    # -----------------------
    # rule builders
    # -----------------------

    def _from_token(self, exc: BaseException, case: tuple[str, str]) -> TaxonomyError:
        reason, message = case
        return AuthenticationError(message, details={"reason": reason})

    def _diagnose(self, exc: BaseException) -> Diagnostic | None:
        if self.backend is None:
            return None
        return self.backend.diagnose(exc)

    def _from_relational(self, exc: BaseException, diag: Diagnostic) -> TaxonomyError:
        fields = list(diag.columns) if diag.columns else None
        violation = diag.violation

        if violation is ConstraintViolation.UNIQUE:
            # Expected client-level scenario (409); INFO with minimal context.
            logger.info("classifier.duplicate_detected", extra={"constraint": diag.constraint, "fields": fields})
            if fields:
                message = f"Resource already exists for field(s): {', '.join(fields)}"
            else:
                message = "Resource already exists"
            return ConflictError(message, details={"constraint": diag.constraint, "detail": diag.detail, "fields": fields})

        if violation is ConstraintViolation.FOREIGN_KEY:
            logger.info("classifier.foreign_key_violation", extra={"constraint": diag.constraint, "fields": fields})
            return ValidationError(
                "Referenced resource does not exist",
                details={"constraint": diag.constraint, "detail": diag.detail, "fields": fields},
            )

        if violation is ConstraintViolation.NOT_NULL:
            column = diag.column or (fields[0] if fields else None)
            logger.info("classifier.not_null_violation", extra={"column": column})
            message = f"Missing required field: {column}" if column else "Missing required field"
            return ValidationError(message, details={"column": column, "detail": diag.detail})

        if violation is ConstraintViolation.CHECK:
            # raw DB text stays at DEBUG
            logger.debug("classifier.check_violation_raw", extra={"constraint": diag.constraint, "raw": diag.message})
            return ValidationError("Business rule violated", details={"constraint": diag.constraint})

        if violation in (ConstraintViolation.UNDEFINED_TABLE, ConstraintViolation.UNDEFINED_COLUMN):
            logger.error("classifier.schema_mismatch", extra={"sqlstate": diag.code, "violation": violation.value})
            return DatabaseError("Database schema error")

        return DatabaseError(diag.message or None)

    def _from_schema(self, exc: BaseException, issues: list) -> TaxonomyError:
        return ValidationError(details=[issue.to_dict() for issue in issues])

    def _from_network(self, exc: BaseException, reason: str) -> TaxonomyError:
        logger.warning("classifier.downstream_unavailable", extra={"reason": reason, "source": type(exc).__name__})
        return ServiceUnavailableError(NETWORK_MESSAGES[reason], details={"reason": reason})

    def _fallback(self, exc: BaseException) -> TaxonomyError:
        message = str(exc) if self.expose_internal and str(exc) else None
        classified = InternalServerError(message)
        classified.__cause__ = exc
        return classified


# -----------------------
# Module-level helpers
# -----------------------

# Classifier of the app serving the current request (see bind_classifier).
_bound_classifier: contextvars.ContextVar[ErrorClassifier | None] = contextvars.ContextVar(
    "bound_classifier", default=None
)


@lru_cache()
def get_default_classifier() -> ErrorClassifier:
    """Classifier configured from settings (DB_BACKEND, EXPOSE_INTERNAL_ERRORS); tests call cache_clear()."""
    settings = get_settings()
    return ErrorClassifier(get_backend(settings.DB_BACKEND), expose_internal=settings.EXPOSE_INTERNAL_ERRORS)


def bind_classifier(classifier: ErrorClassifier | None):
    """
    Make `classifier` the one `classify()` uses in the current context.

    Returns:
        token: contextvar.Token which can be passed to reset_classifier(token)
    """
    return _bound_classifier.set(classifier)


def reset_classifier(token) -> None:
    _bound_classifier.reset(token)


def current_classifier() -> ErrorClassifier:
    """The bound classifier if any, else the settings-based default."""
    return _bound_classifier.get() or get_default_classifier()


def classify(exc: BaseException) -> TaxonomyError:
    return current_classifier().classify(exc)


__all__ = [
    "ClassificationRule",
    "ErrorClassifier",
    "iter_causes",
    "network_reason",
    "get_default_classifier",
    "bind_classifier",
    "reset_classifier",
    "current_classifier",
    "classify",
]
