# src/labops/validators/schemas.py
"""
Request schemas shared by many endpoints.

All of them derive from RequestSchema: clients send camelCase keys (`pageSize`,
`confirmPassword`), handlers read snake_case attributes, and either spelling is
accepted on input.
"""

from datetime import datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, model_validator
from pydantic.alias_generators import to_camel

from .predicates import (
    Phone,
    StrongPassword,
    UUID4Str,
    Username,
    ensure_date_range,
    ensure_fields_match,
    file_size,
    file_type,
)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
UPLOAD_MIME_TYPES = ("image/jpeg", "image/png", "image/gif", "application/pdf")


class RequestSchema(BaseModel):
    # Unknown keys are decided by ValidationOptions, not by the model.
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )


class PaginationQuery(RequestSchema):
    page: int = Field(default=1, ge=1)
    page_size: int = Field(
        default=10,
        ge=1,
        le=100,
        validation_alias=AliasChoices("pageSize", "page_size", "limit"),
    )
    sort_by: str | None = None
    sort_order: Literal["asc", "desc"] = "desc"


class UuidParam(RequestSchema):
    id: UUID4Str


class UserRegister(RequestSchema):
    username: Username
    email: EmailStr
    password: StrongPassword
    confirm_password: str
    phone: Phone | None = None
    real_name: str | None = Field(default=None, min_length=2, max_length=50)

    @model_validator(mode="after")
    def _passwords_match(self):
        return ensure_fields_match(self, "confirm_password", "password")


class UserLogin(RequestSchema):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    remember_me: bool = False


class ChangePassword(RequestSchema):
    old_password: str = Field(min_length=1)
    new_password: StrongPassword
    confirm_password: str

    @model_validator(mode="after")
    def _passwords_match(self):
        return ensure_fields_match(self, "confirm_password", "new_password")


class FileUpload(RequestSchema):
    filename: str = Field(min_length=1)
    mimetype: file_type(UPLOAD_MIME_TYPES)
    size: file_size(MAX_UPLOAD_BYTES)


class SearchQuery(RequestSchema):
    keyword: str = Field(min_length=1, max_length=100)
    category: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None

    @model_validator(mode="after")
    def _date_window(self):
        return ensure_date_range(self, "start_date", "end_date")


__all__ = [
    "RequestSchema",
    "PaginationQuery",
    "UuidParam",
    "UserRegister",
    "UserLogin",
    "ChangePassword",
    "FileUpload",
    "SearchQuery",
    "MAX_UPLOAD_BYTES",
    "UPLOAD_MIME_TYPES",
]
