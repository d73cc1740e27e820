# src/labops/tests/test_validators/test_predicates.py
from datetime import datetime

import pytest
from pydantic import BaseModel, TypeAdapter, model_validator
from pydantic import ValidationError as PydanticValidationError

from labops.validators.engine import validate
from labops.validators.predicates import (
    ChineseText,
    EnglishText,
    IdNumber,
    IpAddress,
    Latitude,
    Longitude,
    MediumPassword,
    Phone,
    StrongPassword,
    UUID4Str,
    Url,
    Username,
    array_length,
    ensure_date_range,
    ensure_fields_match,
    file_size,
    file_type,
)


def error_type(annotation, value) -> str | None:
    """Rule tag raised for `value`, or None when it passes."""
    try:
        TypeAdapter(annotation).validate_python(value)
    except PydanticValidationError as exc:
        return exc.errors()[0]["type"]
    return None


class TestFieldPredicates:

    @pytest.mark.parametrize(
        "annotation, good, bad, tag",
        [
            (Phone, "13812345678", "12812345678", "phone"),
            (IdNumber, "11010519491231002X", "110105194912310", "id-number"),
            (StrongPassword, "Lab0ps!Secure", "labopssecure", "password-strength"),
            (MediumPassword, "abc123", "abcdef", "password-strength"),
            (UUID4Str, "9f1c6b52-3a4e-4c1a-8d3e-2b7f0a6c5d41", "not-a-uuid", "uuid"),
            (Username, "alice01", "al", "username"),
            (IpAddress, "10.0.0.7", "10.0.0.300", "ip"),
            (Longitude, 121.47, 181, "longitude"),
            (Latitude, -33.9, 90.5, "latitude"),
            (ChineseText, "样本", "sample", "chinese-text"),
            (EnglishText, "Serum", "Serum A", "english-text"),
        ],
    )
    def test_predicate_accepts_and_rejects(self, annotation, good, bad, tag):
        assert error_type(annotation, good) is None
        assert error_type(annotation, bad) == tag

    def test_uuid_must_be_version_4(self):
        # version 1 UUID: well-formed, wrong version
        assert error_type(UUID4Str, "6fa459ea-ee8a-11ca-a0e4-0800200c9a66") == "uuid"

    def test_uuid_is_canonicalized(self):
        raw = "9F1C6B52-3A4E-4C1A-8D3E-2B7F0A6C5D41"
        assert TypeAdapter(UUID4Str).validate_python(raw) == raw.lower()

    def test_ipv6_is_accepted(self):
        assert TypeAdapter(IpAddress).validate_python("::1") == "::1"

    def test_strong_password_needs_length(self):
        assert error_type(StrongPassword, "Ab1!") == "password-strength"

    def test_url_is_dumped_as_string(self):
        adapter = TypeAdapter(Url)
        url = adapter.validate_python("https://lims.example.org/samples")
        assert adapter.dump_python(url) == "https://lims.example.org/samples"

    def test_url_rejects_other_schemes(self):
        class Link(BaseModel):
            href: Url

        result = validate(Link, {"href": "ftp://files.example.org/raw"})

        assert result.is_valid is False
        assert [(e.field, e.rule) for e in result.errors] == [("href", "url")]


class TestParameterizedPredicates:

    def test_file_size(self):
        limit = file_size(1024)
        assert error_type(limit, 1024) is None
        assert error_type(limit, 1025) == "file-size"

    def test_file_type(self):
        allowed = file_type(["image/png", "application/pdf"])
        assert error_type(allowed, "application/pdf") is None
        assert error_type(allowed, "text/html") == "file-type"

    def test_array_length(self):
        bounded = array_length(1, 3, int)
        assert error_type(bounded, [1, 2]) is None
        assert error_type(bounded, []) == "array-length"
        assert error_type(bounded, [1, 2, 3, 4]) == "array-length"

    def test_invalid_factory_arguments(self):
        with pytest.raises(ValueError):
            array_length(3, 1)
        with pytest.raises(ValueError):
            file_type([])


class Window(BaseModel):
    collected_from: datetime | None = None
    collected_to: datetime | None = None

    @model_validator(mode="after")
    def _window(self):
        return ensure_date_range(self, "collected_from", "collected_to")


class Confirm(BaseModel):
    password: str
    confirm_password: str | None = None

    @model_validator(mode="after")
    def _match(self):
        return ensure_fields_match(self, "confirm_password", "password")


class TestComposedPredicates:

    def test_date_range_reports_on_end_field(self):
        """
        Behavior:
            - End date before start date.
            - Expect a single `date.range` error whose context names the END field.

        Importance:
            - Composed predicates see the whole object but must report the dependent
              field so clients can highlight the right input.
        """
        with pytest.raises(PydanticValidationError) as exc_info:
            Window(collected_from="2024-05-02T00:00:00", collected_to="2024-05-01T00:00:00")

        [error] = exc_info.value.errors()
        assert error["type"] == "date.range"
        assert error["ctx"]["field"] == "collected_to"
        assert error["ctx"]["value"] == "2024-05-01T00:00:00"

    def test_equal_dates_are_rejected(self):
        with pytest.raises(PydanticValidationError):
            Window(collected_from="2024-05-01T00:00:00", collected_to="2024-05-01T00:00:00")

    def test_date_range_skipped_when_one_side_missing(self):
        assert Window(collected_to="2024-05-01T00:00:00").collected_from is None

    def test_fields_match(self):
        assert Confirm(password="x1", confirm_password="x1").password == "x1"
        with pytest.raises(PydanticValidationError) as exc_info:
            Confirm(password="x1", confirm_password="x2")

        [error] = exc_info.value.errors()
        assert error["type"] == "fields.match"
        assert error["ctx"]["field"] == "confirm_password"
        assert error["ctx"]["value"] is None
