# src/labops/validators/engine.py
"""
Validation engine.

`validate(schema, data, options)` checks one request section against a pydantic model
and returns a `ValidationResult`. It never raises for invalid input: violations are
reported as an ordered tuple of `ValidationIssue`s, each carrying a stable rule tag
so callers can branch on rule identity instead of message text.

Options mirror the declarative-validator conventions the API has always used:

    | option        | default | meaning                                                  |
    | ------------- | ------- | -------------------------------------------------------- |
    | allow_unknown | False   | keep (True) or reject (False) keys the schema lacks      |
    | strip_unknown | True    | drop unknown keys from the output, without an error      |
    | abort_early   | False   | report only the first violation                          |
    | convert       | True    | coerce compatible types ("5" -> 5); False = strict mode  |

`strip_unknown` wins over `allow_unknown`: with the defaults unknown keys are silently
removed, so downstream code never sees fields it did not declare.
"""

from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import to_json

from labops.core.logging.filters import REDACTED, is_sensitive_key


class ValidationTarget(str, Enum):
    BODY = "body"
    QUERY = "query"
    PARAMS = "params"
    HEADERS = "headers"


@dataclass(frozen=True)
class ValidationOptions:
    allow_unknown: bool = False
    strip_unknown: bool = True
    abort_early: bool = False
    convert: bool = True


DEFAULT_OPTIONS = ValidationOptions()


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    message: str
    value: Any
    rule: str
    location: str | None = None

    def to_dict(self) -> dict:
        payload = asdict(self)
        if self.location is None:
            payload.pop("location")
        return payload


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    data: dict | None = None
    errors: tuple[ValidationIssue, ...] | None = None


# pydantic error type -> rule tag exposed to clients.
# Types raised through PydanticCustomError (see predicates.py) are already tags and pass through.
RULE_TAGS: dict[str, str] = {
    "missing": "required",
    "string_too_short": "min-length",
    "string_too_long": "max-length",
    "too_short": "min-items",
    "too_long": "max-items",
    "greater_than_equal": "min",
    "greater_than": "greater",
    "less_than_equal": "max",
    "less_than": "less",
    "multiple_of": "multiple",
    "string_pattern_mismatch": "pattern",
    "extra_forbidden": "unknown",
    "literal_error": "one-of",
    "enum": "one-of",
    "string_type": "string",
    "int_type": "integer",
    "int_parsing": "integer",
    "int_from_float": "integer",
    "float_type": "number",
    "float_parsing": "number",
    "decimal_parsing": "number",
    "bool_type": "boolean",
    "bool_parsing": "boolean",
    "uuid_type": "uuid",
    "uuid_parsing": "uuid",
    "uuid_version": "uuid",
    "date_type": "date",
    "date_parsing": "date",
    "date_from_datetime_parsing": "date",
    "datetime_type": "date",
    "datetime_parsing": "date",
    "datetime_from_date_parsing": "date",
    "url_type": "url",
    "url_parsing": "url",
    "url_scheme": "url",
    "url_syntax_violation": "url",
    "url_too_long": "url",
    "ip_any_address": "ip",
    "list_type": "array",
    "dict_type": "object",
    "model_type": "object",
    "model_attributes_type": "object",
    "json_invalid": "json",
    "value_error": "invalid",
    "assertion_error": "invalid",
}


def rule_tag(error_type: str) -> str:
    return RULE_TAGS.get(error_type, error_type)


# FastAPI prefixes request-validation locations with where the value came from.
_REQUEST_LOCATIONS = {
    "body": ValidationTarget.BODY.value,
    "query": ValidationTarget.QUERY.value,
    "path": ValidationTarget.PARAMS.value,
    "header": ValidationTarget.HEADERS.value,
}


def issues_from_errors(
    errors: Iterable[Mapping[str, Any]],
    location: str | None = None,
    *,
    request_locations: bool = False,
) -> list[ValidationIssue]:
    """
    Convert pydantic error dicts (`exc.errors()`) into ValidationIssues.

    Used by the engine and by the error classifier for pydantic failures raised
    directly by collaborators, so both paths report fields the same way.

    With `request_locations=True` (FastAPI `RequestValidationError`), the leading
    "body"/"query"/"path"/"header" element of `loc` becomes the issue location.
    """
    issues: list[ValidationIssue] = []
    for err in errors:
        ctx = err.get("ctx") or {}
        loc = list(err.get("loc", ()))
        where = location
        if request_locations and loc and loc[0] in _REQUEST_LOCATIONS:
            where = _REQUEST_LOCATIONS[loc.pop(0)]

        # Composed (model-level) predicates name the dependent field through ctx.
        field = str(ctx.get("field") or ".".join(str(part) for part in loc))
        error_type = str(err.get("type", "value_error"))
        if error_type == "missing":
            value = None
        elif "value" in ctx:
            value = ctx["value"]
        else:
            value = err.get("input")
        if value is not None and is_sensitive_key(field.rsplit(".", 1)[-1]):
            value = REDACTED
        issues.append(
            ValidationIssue(
                field=field,
                message=str(err.get("msg", "Invalid value")),
                value=value,
                rule=rule_tag(error_type),
                location=where,
            )
        )
    return issues


def known_keys(schema: type[BaseModel]) -> set[str]:
    """Every key a schema accepts: field names plus their aliases."""
    keys: set[str] = set()
    for name, info in schema.model_fields.items():
        keys.add(name)
        if info.alias:
            keys.add(info.alias)
        alias = info.validation_alias
        if isinstance(alias, str):
            keys.add(alias)
        elif isinstance(alias, AliasChoices):
            keys.update(choice for choice in alias.choices if isinstance(choice, str))
    return keys


def validate(schema: type[BaseModel], data: Any, options: ValidationOptions | None = None) -> ValidationResult:
    """
    Validate `data` against `schema` and return a fresh ValidationResult.

    `data=None` (an absent request section) is validated as an empty mapping so that
    required-field violations surface instead of validation being skipped.
    """
    options = options or DEFAULT_OPTIONS
    if data is None:
        data = {}

    unknown: list[str] = []
    if isinstance(data, Mapping):
        accepted = known_keys(schema)
        unknown = [key for key in data if key not in accepted]

    issues: list[ValidationIssue] = []
    instance: BaseModel | None = None
    try:
        if options.convert:
            instance = schema.model_validate(data)
        else:
            # Strict JSON mode: no "5" -> 5 coercion, but JSON-native forms (ISO dates,
            # UUID strings) are still accepted as they would arrive on the wire.
            instance = schema.model_validate_json(to_json(data), strict=True)
    except PydanticValidationError as exc:
        issues.extend(issues_from_errors(exc.errors()))

    if unknown and not options.allow_unknown and not options.strip_unknown:
        issues.extend(
            ValidationIssue(field=key, message=f'"{key}" is not allowed', value=data[key], rule="unknown")
            for key in unknown
            if not any(issue.field == key and issue.rule == "unknown" for issue in issues)
        )

    if issues:
        if options.abort_early:
            issues = issues[:1]
        return ValidationResult(is_valid=False, errors=tuple(issues))

    sanitized = instance.model_dump()
    if options.strip_unknown:
        sanitized = {key: value for key, value in sanitized.items() if key in schema.model_fields}
    elif options.allow_unknown:
        for key in unknown:
            sanitized.setdefault(key, data[key])
    return ValidationResult(is_valid=True, data=sanitized)


def with_location(issues: Iterable[ValidationIssue], location: str) -> list[ValidationIssue]:
    return [replace(issue, location=location) for issue in issues]


__all__ = [
    "ValidationTarget",
    "ValidationOptions",
    "ValidationIssue",
    "ValidationResult",
    "DEFAULT_OPTIONS",
    "RULE_TAGS",
    "rule_tag",
    "issues_from_errors",
    "known_keys",
    "validate",
    "with_location",
]
