# src/labops/validators/config_validators.py
"""Normalizers shared by Settings field validators (env values arrive as raw strings)."""

import re

# RFC 9110 token characters
_HEADER_NAME_RE = re.compile(r"^[!#$%&'*+.^_`|~0-9A-Za-z-]+$")


def to_uppercase(value: str | None) -> str | None:
    """
    Strip and upper-case a string; None and non-strings pass through.
    """
    if not isinstance(value, str):
        return value
    return value.strip().upper()


def to_lowercase(value: str | None) -> str | None:
    """
    Strip and lower-case a string; None and non-strings pass through.
    """
    if not isinstance(value, str):
        return value
    return value.strip().lower()


def to_header_name(value: str | None) -> str | None:
    """
    Validate an HTTP header name (e.g. REQUEST_ID_HEADER), keeping its spelling.

    Raises ValueError for empty names or names with characters a header cannot carry.
    """
    if value is None:
        return None
    name = value.strip()
    if not _HEADER_NAME_RE.match(name):
        raise ValueError(f"invalid HTTP header name: {value!r}")
    return name
