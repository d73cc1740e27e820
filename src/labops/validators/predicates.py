# src/labops/validators/predicates.py
"""
Reusable field checks for request schemas.

Each predicate is a pydantic `Annotated` type (or a factory returning one) whose
validator raises `PydanticCustomError(<rule tag>, <message>)`. The error type IS the
rule tag, so it reaches `ValidationIssue.rule` untouched and clients can branch on it:

    | Predicate                         | rule tag           |
    | --------------------------------- | ------------------ |
    | Phone                             | phone              |
    | IdNumber                          | id-number          |
    | StrongPassword / MediumPassword   | password-strength  |
    | UUID4Str                          | uuid               |
    | Username                          | username           |
    | IpAddress                         | ip                 |
    | Longitude / Latitude              | longitude/latitude |
    | ChineseText / EnglishText         | chinese-text, ...  |
    | Url (pydantic HttpUrl)            | url                |
    | file_size(max_bytes)              | file-size          |
    | file_type(allowed)                | file-type          |
    | array_length(min, max)            | array-length       |
    | ensure_date_range(...)            | date.range         |
    | ensure_fields_match(...)          | fields.match       |

The last two are composed predicates: they look at the whole (already field-validated)
model from a `model_validator(mode="after")` and report on the dependent field:

    class SampleWindow(RequestSchema):
        collected_from: datetime | None = None
        collected_to: datetime | None = None

        @model_validator(mode="after")
        def _window(self):
            return ensure_date_range(self, "collected_from", "collected_to")
"""

import ipaddress
import re
import uuid
from typing import Annotated, Any, Iterable, TypeVar

from pydantic import AfterValidator, HttpUrl, PlainSerializer
from pydantic_core import PydanticCustomError

T = TypeVar("T")

PHONE_RE = re.compile(r"^1[3-9]\d{9}$")
# 6-digit region, birth date (18xx/19xx/20xx), 3-digit sequence, checksum digit or X
ID_NUMBER_RE = re.compile(
    r"^[1-9]\d{5}(18|19|20)\d{2}((0[1-9])|(1[0-2]))(([0-2][1-9])|10|20|30|31)\d{3}[0-9Xx]$"
)
STRONG_PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]+$")
MEDIUM_PASSWORD_RE = re.compile(r"^(?=.*[A-Za-z])(?=.*\d)[A-Za-z\d@$!%*?&]+$")
USERNAME_RE = re.compile(r"^[A-Za-z0-9]{3,20}$")
CHINESE_TEXT_RE = re.compile(r"^[\u4e00-\u9fa5]+$")
ENGLISH_TEXT_RE = re.compile(r"^[A-Za-z]+$")


def _fail(tag: str, message: str, **ctx: Any) -> PydanticCustomError:
    return PydanticCustomError(tag, message, ctx or None)


def _public_name(obj: Any, field: str) -> str:
    """Name the client used for `field` (its alias when the model declares one)."""
    info = getattr(type(obj), "model_fields", {}).get(field)
    return (info.alias if info is not None and info.alias else field)


# -----------------------
# Field predicates
# -----------------------

def check_phone(value: str) -> str:
    if not PHONE_RE.match(value):
        raise _fail("phone", "Must be a valid mobile phone number")
    return value


def check_id_number(value: str) -> str:
    if not ID_NUMBER_RE.match(value):
        raise _fail("id-number", "Must be a valid resident identity number")
    return value.upper()


def check_strong_password(value: str) -> str:
    if len(value) < 8 or not STRONG_PASSWORD_RE.match(value):
        raise _fail(
            "password-strength",
            "Password must be at least 8 characters and contain upper and lower case letters, "
            "a digit and a special character (@$!%*?&)",
        )
    return value


def check_medium_password(value: str) -> str:
    if len(value) < 6 or not MEDIUM_PASSWORD_RE.match(value):
        raise _fail("password-strength", "Password must be at least 6 characters and contain letters and digits")
    return value


def check_uuid4(value: str) -> str:
    try:
        parsed = uuid.UUID(value)
    except (ValueError, AttributeError, TypeError):
        raise _fail("uuid", "Must be a valid UUID") from None
    if parsed.version != 4:
        raise _fail("uuid", "Must be a version 4 UUID")
    return str(parsed)


def check_username(value: str) -> str:
    if not USERNAME_RE.match(value):
        raise _fail("username", "Username must be 3-20 letters or digits")
    return value


def check_chinese_text(value: str) -> str:
    if not CHINESE_TEXT_RE.match(value):
        raise _fail("chinese-text", "Only Chinese characters are allowed")
    return value


def check_english_text(value: str) -> str:
    if not ENGLISH_TEXT_RE.match(value):
        raise _fail("english-text", "Only English letters are allowed")
    return value


def check_ip(value: str) -> str:
    try:
        return str(ipaddress.ip_address(value))
    except ValueError:
        raise _fail("ip", "Must be a valid IPv4 or IPv6 address") from None


def check_longitude(value: float) -> float:
    if not -180 <= value <= 180:
        raise _fail("longitude", "Longitude must be between -180 and 180")
    return value


def check_latitude(value: float) -> float:
    if not -90 <= value <= 90:
        raise _fail("latitude", "Latitude must be between -90 and 90")
    return value


Phone = Annotated[str, AfterValidator(check_phone)]
IdNumber = Annotated[str, AfterValidator(check_id_number)]
StrongPassword = Annotated[str, AfterValidator(check_strong_password)]
MediumPassword = Annotated[str, AfterValidator(check_medium_password)]
UUID4Str = Annotated[str, AfterValidator(check_uuid4)]
Username = Annotated[str, AfterValidator(check_username)]
IpAddress = Annotated[str, AfterValidator(check_ip)]
Longitude = Annotated[float, AfterValidator(check_longitude)]
Latitude = Annotated[float, AfterValidator(check_latitude)]
ChineseText = Annotated[str, AfterValidator(check_chinese_text)]
EnglishText = Annotated[str, AfterValidator(check_english_text)]
# http(s) URL, dumped back as a plain string
Url = Annotated[HttpUrl, PlainSerializer(str, return_type=str)]


# -----------------------
# Parameterized predicates
# -----------------------

def file_size(max_bytes: int):
    """Integer byte count no larger than `max_bytes`."""
    if max_bytes < 0:
        raise ValueError("max_bytes must be >= 0")
    limit_mb = round(max_bytes / 1024 / 1024)

    def check(value: int) -> int:
        if value < 0 or value > max_bytes:
            raise _fail("file-size", f"File size must not exceed {limit_mb}MB", max_bytes=max_bytes)
        return value

    return Annotated[int, AfterValidator(check)]


def file_type(allowed: Iterable[str]):
    """String (MIME type) that is one of `allowed`."""
    allowed_types = tuple(allowed)
    if not allowed_types:
        raise ValueError("file_type needs at least one allowed type")

    def check(value: str) -> str:
        if value not in allowed_types:
            raise _fail("file-type", f"File type must be one of: {', '.join(allowed_types)}")
        return value

    return Annotated[str, AfterValidator(check)]


def array_length(min_items: int, max_items: int, item: type[T] = Any):
    """List whose length lies in [min_items, max_items]."""
    if min_items > max_items:
        raise ValueError("min_items must be <= max_items")

    def check(value: list) -> list:
        if not min_items <= len(value) <= max_items:
            raise _fail(
                "array-length",
                f"Array length must be between {min_items}-{max_items}",
                min_items=min_items,
                max_items=max_items,
            )
        return value

    return Annotated[list[item], AfterValidator(check)]


# -----------------------
# Composed predicates
# -----------------------

def ensure_date_range(obj: T, start_field: str, end_field: str) -> T:
    """
    Require `end_field` to be strictly later than `start_field`.

    Skipped when either value is missing. The issue is reported on `end_field`.
    """
    start = getattr(obj, start_field, None)
    end = getattr(obj, end_field, None)
    if start is None or end is None:
        return obj
    try:
        ordered = start < end
    except TypeError:
        # e.g. naive vs timezone-aware datetimes
        ordered = False
    if not ordered:
        raise _fail(
            "date.range",
            f"{_public_name(obj, end_field)} must be later than {_public_name(obj, start_field)}",
            field=_public_name(obj, end_field),
            start_field=start_field,
            end_field=end_field,
            value=end.isoformat() if hasattr(end, "isoformat") else end,
        )
    return obj


def ensure_fields_match(obj: T, field: str, other: str) -> T:
    """
    Require `field` to equal `other` (password confirmation).

    Skipped when either value is missing. The value is never echoed back.
    """
    value = getattr(obj, field, None)
    reference = getattr(obj, other, None)
    if value is None or reference is None:
        return obj
    if value != reference:
        raise _fail(
            "fields.match",
            f"{_public_name(obj, field)} must match {_public_name(obj, other)}",
            field=_public_name(obj, field),
            value=None,
        )
    return obj


__all__ = [
    "Phone",
    "IdNumber",
    "StrongPassword",
    "MediumPassword",
    "UUID4Str",
    "Username",
    "IpAddress",
    "Longitude",
    "Latitude",
    "ChineseText",
    "EnglishText",
    "Url",
    "check_phone",
    "check_id_number",
    "check_strong_password",
    "check_medium_password",
    "check_uuid4",
    "check_username",
    "check_ip",
    "check_longitude",
    "check_latitude",
    "check_chinese_text",
    "check_english_text",
    "file_size",
    "file_type",
    "array_length",
    "ensure_date_range",
    "ensure_fields_match",
]
