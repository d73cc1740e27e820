"""Response envelope schemas: the single wire shape of every success and failure."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_timestamp() -> str:
    """Current time as ISO-8601 UTC with a trailing "Z" (millisecond precision)."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class EnvelopeModel(BaseModel):
    """Serialized with camelCase keys (`requestId`, `pageSize`, ...)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class PaginationMeta(EnvelopeModel):
    """Paging block of a paginated envelope."""

    page: int
    page_size: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, page_size: int, total: int) -> PaginationMeta:
        """Compute total_pages = ceil(total / page_size) and the neighbour flags."""
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        if page < 1:
            raise ValueError("page must be >= 1")
        if total < 0:
            raise ValueError("total must be >= 0")
        total_pages = math.ceil(total / page_size)
        return cls(
            page=page,
            page_size=page_size,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class SuccessEnvelope(EnvelopeModel):
    success: Literal[True] = True
    code: str
    message: str
    data: Any = None
    timestamp: str = Field(default_factory=utc_timestamp)
    request_id: str | None = None


class PaginatedEnvelope(SuccessEnvelope):
    data: list[Any]
    pagination: PaginationMeta


class ErrorBody(EnvelopeModel):
    """Canonical `error` block: taxonomy kind plus opaque details."""

    kind: str
    details: Any = None


class ErrorEnvelope(EnvelopeModel):
    success: Literal[False] = False
    code: str
    message: str
    error: ErrorBody
    timestamp: str = Field(default_factory=utc_timestamp)
    request_id: str | None = None


__all__ = [
    "utc_timestamp",
    "EnvelopeModel",
    "PaginationMeta",
    "SuccessEnvelope",
    "PaginatedEnvelope",
    "ErrorBody",
    "ErrorEnvelope",
]
