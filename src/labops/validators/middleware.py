# src/labops/validators/middleware.py
"""
Validation dependencies: run the validation engine before a route handler.

`create_middleware(schema, target)` returns a FastAPI dependency. It reads one
request section, validates it, and either

  - raises `ValidationError(details=[issue, ...])`, which the registered exception
    handlers turn into a 400 envelope (the handler body never runs), or
  - stores the sanitized data on `request.state.validated[target]` and returns it,
    so the handler only ever sees coerced, stripped data:

        @router.post("/users", dependencies=[Depends(validate_user_register)])
        async def register(request: Request):
            payload = get_validated(request, ValidationTarget.BODY)

        @router.get("/samples")
        async def list_samples(page: dict = Depends(validate_pagination)):
            ...

Targets map onto Starlette's request like this:

    | target  | source                                   |
    | ------- | ---------------------------------------- |
    | body    | JSON body (empty body = absent)          |
    | query   | query string (repeated keys -> list)     |
    | params  | path parameters                          |
    | headers | request headers (lower-case names)       |
"""

import json
import logging
from typing import Any, Mapping

from fastapi import Request
from pydantic import BaseModel

from labops.core.logging.filters import redact
from labops.exceptions.base import ValidationError

from .engine import (
    ValidationIssue,
    ValidationOptions,
    ValidationTarget,
    validate,
    with_location,
)
from .schemas import ChangePassword, PaginationQuery, SearchQuery, UserLogin, UserRegister, UuidParam

logger = logging.getLogger(__name__)

VALIDATION_FAILED_MESSAGE = "Request validation failed"


# -----------------------
# Reading request sections
# -----------------------

async def _load_body(request: Request) -> tuple[Any, list[ValidationIssue]]:
    state = request.state
    if hasattr(state, "raw_body"):
        return state.raw_body, []

    raw = await request.body()
    if not raw.strip():
        return None, []
    try:
        data = json.loads(raw)
    except ValueError:
        issue = ValidationIssue(field="", message="Malformed JSON body", value=None, rule="json")
        return None, [issue]

    # kept for the error handler's request log
    state.raw_body = data
    return data, []


def _query_dict(request: Request) -> dict:
    data: dict[str, Any] = {}
    for key, value in request.query_params.multi_items():
        if key in data:
            existing = data[key]
            data[key] = existing + [value] if isinstance(existing, list) else [existing, value]
        else:
            data[key] = value
    return data


async def read_target(request: Request, target: ValidationTarget | str) -> tuple[Any, list[ValidationIssue]]:
    """
    Return `(data, issues)` for one request section.

    `issues` is only non-empty when the section cannot be read at all
    (malformed JSON body); `data` is None for an absent section.
    """
    target = ValidationTarget(target)
    if target is ValidationTarget.BODY:
        return await _load_body(request)
    if target is ValidationTarget.QUERY:
        return _query_dict(request), []
    if target is ValidationTarget.PARAMS:
        return dict(request.path_params), []
    return dict(request.headers), []


def _store(request: Request, target: ValidationTarget, data: dict) -> None:
    validated = getattr(request.state, "validated", None)
    if validated is None:
        validated = {}
        request.state.validated = validated
    validated[target.value] = data


def get_validated(request: Request, target: ValidationTarget | str = ValidationTarget.BODY) -> dict | None:
    """Sanitized data a validation dependency stored for `target` (None if not validated)."""
    validated = getattr(request.state, "validated", None) or {}
    return validated.get(ValidationTarget(target).value)


def _reject(request: Request, issues: list[ValidationIssue], **log_fields: Any) -> ValidationError:
    details = [issue.to_dict() for issue in issues]
    logger.warning(
        "validation.failed",
        extra={
            **log_fields,
            "errors": details,
            "method": request.method,
            "path": request.url.path,
        },
    )
    return ValidationError(VALIDATION_FAILED_MESSAGE, details=details)


# -----------------------
# Dependency factories
# -----------------------

def create_middleware(
    schema: type[BaseModel],
    target: ValidationTarget | str = ValidationTarget.BODY,
    options: ValidationOptions | None = None,
):
    """
    Build a dependency validating `target` against `schema`.

    On success the dependency returns the sanitized dict (also stored on
    request.state.validated). On failure it raises ValidationError.
    """
    target = ValidationTarget(target)

    async def dependency(request: Request) -> dict:
        data, issues = await read_target(request, target)
        if not issues:
            result = validate(schema, data, options)
            if result.is_valid:
                _store(request, target, result.data)
                return result.data
            issues = list(result.errors)

        raise _reject(request, issues, target=target.value, data=redact(data))

    dependency.__name__ = f"validate_{target.value}_{schema.__name__}"
    dependency.__qualname__ = dependency.__name__
    return dependency


def create_multi_target_middleware(
    schemas: Mapping[ValidationTarget | str, type[BaseModel]],
    options: ValidationOptions | None = None,
):
    """
    Build a dependency validating several targets in one pass.

    Every target is validated independently; all issues (each tagged with its
    `location`) are aggregated into a single ValidationError. Targets that pass are
    stored even when another target fails. An empty mapping yields a no-op.
    """
    plan = [(ValidationTarget(target), schema) for target, schema in schemas.items() if schema is not None]

    async def dependency(request: Request) -> dict:
        validated: dict[str, dict] = {}
        issues: list[ValidationIssue] = []
        for target, schema in plan:
            data, read_issues = await read_target(request, target)
            if read_issues:
                issues.extend(with_location(read_issues, target.value))
                continue
            result = validate(schema, data, options)
            if result.is_valid:
                _store(request, target, result.data)
                validated[target.value] = result.data
            else:
                issues.extend(with_location(result.errors, target.value))

        if issues:
            raise _reject(request, issues, targets=[target.value for target, _ in plan])
        return validated

    dependency.__name__ = "validate_" + "_".join(target.value for target, _ in plan) if plan else "validate_nothing"
    dependency.__qualname__ = dependency.__name__
    return dependency


# -----------------------
# Shortcuts
# -----------------------

def validate_body(schema: type[BaseModel], options: ValidationOptions | None = None):
    return create_middleware(schema, ValidationTarget.BODY, options)


def validate_query(schema: type[BaseModel], options: ValidationOptions | None = None):
    return create_middleware(schema, ValidationTarget.QUERY, options)


def validate_params(schema: type[BaseModel], options: ValidationOptions | None = None):
    return create_middleware(schema, ValidationTarget.PARAMS, options)


def validate_headers(schema: type[BaseModel], options: ValidationOptions | None = None):
    return create_middleware(schema, ValidationTarget.HEADERS, options)


validate_pagination = validate_query(PaginationQuery)
validate_uuid_param = validate_params(UuidParam)
validate_user_register = validate_body(UserRegister)
validate_user_login = validate_body(UserLogin)
validate_change_password = validate_body(ChangePassword)
validate_search = validate_query(SearchQuery)


__all__ = [
    "read_target",
    "get_validated",
    "create_middleware",
    "create_multi_target_middleware",
    "validate_body",
    "validate_query",
    "validate_params",
    "validate_headers",
    "validate_pagination",
    "validate_uuid_param",
    "validate_user_register",
    "validate_user_login",
    "validate_change_password",
    "validate_search",
]
