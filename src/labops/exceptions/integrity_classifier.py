"""
Relational diagnostics: read constraint-violation codes off database driver errors.

The taxonomy is backend-agnostic, but the codes that tell "duplicate key" apart from
"missing table" are not. Each storage backend gets a small diagnostics object that
turns a raised exception into a `Diagnostic` (or None when the error carries no
relational code). The error classifier only ever talks to this interface, so adding a
backend means registering one more object, not touching classification order.

Where the codes live:
  - SQLAlchemy wraps driver errors in `DBAPIError`; the driver error sits on `.orig`.
  - psycopg 3 / asyncpg expose `sqlstate`; psycopg2 exposes `pgcode`; node-style
    collaborators put it on `code`.
  - sqlite3 (Python 3.11+) exposes `sqlite_errorname`.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Protocol

from sqlalchemy.exc import DBAPIError

logger = logging.getLogger(__name__)


class ConstraintViolation(str, Enum):
    UNIQUE = "unique"
    FOREIGN_KEY = "foreign_key"
    NOT_NULL = "not_null"
    CHECK = "check"
    UNDEFINED_TABLE = "undefined_table"
    UNDEFINED_COLUMN = "undefined_column"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Diagnostic:
    """What the database said went wrong, normalized across drivers."""

    violation: ConstraintViolation
    code: str
    message: str
    constraint: str | None = None
    column: str | None = None
    detail: str | None = None
    columns: tuple[str, ...] | None = None


class DiagnosticsBackend(Protocol):
    name: str

    def diagnose(self, exc: BaseException) -> Diagnostic | None:
        ...


# -----------------------
# Helpers
# -----------------------

def _candidates(exc: BaseException, max_depth: int = 4) -> Iterator[BaseException]:
    """
    Yield `exc`, the driver error wrapped by SQLAlchemy (if any) and the explicit
    causes, nearest first. Bounded so cyclic cause chains cannot loop.
    """
    seen: set[int] = set()
    current: BaseException | None = exc
    depth = 0
    while current is not None and depth < max_depth and id(current) not in seen:
        seen.add(id(current))
        yield current
        orig = current.orig if isinstance(current, DBAPIError) else None
        if isinstance(orig, BaseException) and id(orig) not in seen:
            yield orig
            seen.add(id(orig))
            current = orig.__cause__ or current.__cause__
        else:
            current = current.__cause__
        depth += 1


def _first_attr(obj: object, *names: str) -> str | None:
    for name in names:
        value = getattr(obj, name, None)
        if isinstance(value, str) and value:
            return value
    return None


def _extract_columns_postgres(msg: str) -> tuple[str, ...] | None:
    """
    Try to extract involved column names from common Postgres messages:
      - 'null value in column "username" violates not-null constraint'
      - 'DETAIL:  Key (email, username)=(a@b.com, u) already exists.'
    """
    if not msg:
        return None

    m = re.search(r'null value in column "(?P<col>[^"]+)"', msg, flags=re.IGNORECASE)
    if m:
        return (m.group("col"),)

    m = re.search(r'key \((?P<cols>[^)]+)\)=', msg, flags=re.IGNORECASE)
    if m:
        return tuple(c.strip().strip('"') for c in m.group("cols").split(","))

    return None


def _extract_columns_sqlite(msg: str) -> tuple[str, ...] | None:
    # SQLite: 'UNIQUE constraint failed: samples.barcode, samples.batch_id'
    m = re.search(r'(?:UNIQUE|NOT NULL) constraint failed: (?P<cols>.+)$', msg or "", flags=re.IGNORECASE)
    if m:
        return tuple(c.split(".")[-1].strip() for c in re.split(r",\s*", m.group("cols")))
    return None


# =================================================================================================================
# PostgreSQL
# =================================================================================================================

# https://www.postgresql.org/docs/current/errcodes-appendix.html
class PostgresErrorCodes(str, Enum):
    UNIQUE_VIOLATION = "23505"
    NOT_NULL_VIOLATION = "23502"
    FOREIGN_KEY_VIOLATION = "23503"
    CHECK_VIOLATION = "23514"
    UNDEFINED_TABLE = "42P01"
    UNDEFINED_COLUMN = "42703"


PGCODE_VIOLATION_MAP = {
    PostgresErrorCodes.UNIQUE_VIOLATION.value: ConstraintViolation.UNIQUE,
    PostgresErrorCodes.NOT_NULL_VIOLATION.value: ConstraintViolation.NOT_NULL,
    PostgresErrorCodes.FOREIGN_KEY_VIOLATION.value: ConstraintViolation.FOREIGN_KEY,
    PostgresErrorCodes.CHECK_VIOLATION.value: ConstraintViolation.CHECK,
    PostgresErrorCodes.UNDEFINED_TABLE.value: ConstraintViolation.UNDEFINED_TABLE,
    PostgresErrorCodes.UNDEFINED_COLUMN.value: ConstraintViolation.UNDEFINED_COLUMN,
}

# SQLSTATE is always five characters from [0-9A-Z]
_SQLSTATE_RE = re.compile(r"^[0-9A-Z]{5}$")


class PostgresDiagnostics:
    """Classify by SQLSTATE; constraint/column come from psycopg `diag` or asyncpg attributes."""

    name = "postgresql"

    def __init__(self, code_map: dict[str, ConstraintViolation] | None = None):
        self.code_map = dict(code_map or PGCODE_VIOLATION_MAP)

    def _sqlstate(self, err: BaseException) -> str | None:
        code = _first_attr(err, "sqlstate", "pgcode", "code")
        if code and _SQLSTATE_RE.match(code):
            return code
        return None

    def diagnose(self, exc: BaseException) -> Diagnostic | None:
        for err in _candidates(exc):
            code = self._sqlstate(err)
            if code is None:
                continue

            diag = getattr(err, "diag", None)
            constraint = _first_attr(diag, "constraint_name") or _first_attr(err, "constraint_name", "constraint")
            column = _first_attr(diag, "column_name") or _first_attr(err, "column_name", "column")
            detail = _first_attr(diag, "message_detail") or _first_attr(err, "detail")
            message = _first_attr(diag, "message_primary") or str(err)

            violation = self.code_map.get(code, ConstraintViolation.UNKNOWN)
            if violation is ConstraintViolation.UNKNOWN:
                # Unknown code: noticeable, but keep the raw text at DEBUG only.
                logger.warning("integrity.unknown_sqlstate", extra={"sqlstate": code, "constraint_name": constraint})
                logger.debug("integrity.unknown_sqlstate_raw", extra={"raw": str(err)})

            columns = _extract_columns_postgres(f"{message}\n{detail or ''}")
            if columns is None and column:
                columns = (column,)

            return Diagnostic(
                violation=violation,
                code=code,
                message=message,
                constraint=constraint,
                column=column,
                detail=detail,
                columns=columns,
            )
        return None


# =================================================================================================================
# SQLite
# =================================================================================================================

SQLITE_VIOLATION_MAP = {
    "SQLITE_CONSTRAINT_UNIQUE": ConstraintViolation.UNIQUE,
    "SQLITE_CONSTRAINT_PRIMARYKEY": ConstraintViolation.UNIQUE,
    "SQLITE_CONSTRAINT_FOREIGNKEY": ConstraintViolation.FOREIGN_KEY,
    "SQLITE_CONSTRAINT_NOTNULL": ConstraintViolation.NOT_NULL,
    "SQLITE_CONSTRAINT_CHECK": ConstraintViolation.CHECK,
}


class SQLiteDiagnostics:
    """Classify by `sqlite_errorname`; missing tables/columns only show up in the message."""

    name = "sqlite"

    def diagnose(self, exc: BaseException) -> Diagnostic | None:
        for err in _candidates(exc):
            errorname = _first_attr(err, "sqlite_errorname")
            if errorname is None:
                continue

            message = str(err)
            lowered = message.lower()
            if errorname in SQLITE_VIOLATION_MAP:
                violation = SQLITE_VIOLATION_MAP[errorname]
            elif lowered.startswith("no such table"):
                violation = ConstraintViolation.UNDEFINED_TABLE
            elif lowered.startswith("no such column"):
                violation = ConstraintViolation.UNDEFINED_COLUMN
            else:
                violation = ConstraintViolation.UNKNOWN

            columns = _extract_columns_sqlite(message)
            return Diagnostic(
                violation=violation,
                code=errorname,
                message=message,
                column=columns[0] if columns else None,
                columns=columns,
            )
        return None


# -----------------------
# Registry
# -----------------------

_BACKENDS: dict[str, DiagnosticsBackend] = {
    PostgresDiagnostics.name: PostgresDiagnostics(),
    SQLiteDiagnostics.name: SQLiteDiagnostics(),
}


def register_backend(name: str, backend: DiagnosticsBackend) -> None:
    """Make a diagnostics backend available under `name` (e.g. settings.DB_BACKEND)."""
    _BACKENDS[name] = backend


def get_backend(name: str) -> DiagnosticsBackend:
    try:
        return _BACKENDS[name]
    except KeyError:
        raise LookupError(f"No relational diagnostics registered for backend {name!r}") from None


__all__ = [
    "ConstraintViolation",
    "Diagnostic",
    "DiagnosticsBackend",
    "PostgresErrorCodes",
    "PostgresDiagnostics",
    "SQLiteDiagnostics",
    "register_backend",
    "get_backend",
]
