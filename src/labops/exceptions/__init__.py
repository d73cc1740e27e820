# labops/
# │
# ├── exceptions/
# │   ├── __init__.py
# │   ├── base.py                    # Error taxonomy (ValidationError, ConflictError, ...)
# │   ├── integrity_classifier.py    # DB-specific constraint diagnostics (Postgres, SQLite)
# │   └── classifier.py              # Map any exception onto the taxonomy

from .base import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DatabaseError,
    ErrorKind,
    ErrorVariant,
    InternalServerError,
    NotFoundError,
    ResponseCode,
    ServiceUnavailableError,
    TaxonomyError,
    ValidationError,
    error_for_status,
    variant_for_status,
)
from .classifier import ErrorClassifier, classify, get_default_classifier

__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "DatabaseError",
    "ErrorKind",
    "ErrorVariant",
    "InternalServerError",
    "NotFoundError",
    "ResponseCode",
    "ServiceUnavailableError",
    "TaxonomyError",
    "ValidationError",
    "error_for_status",
    "variant_for_status",
    "ErrorClassifier",
    "classify",
    "get_default_classifier",
]
