# src/labops/tests/test_api/test_responses.py
import json
import re

import pytest

from labops.core.logging.filters import reset_request_id, set_request_id
from labops.core.responses import ResponseFormatter
from labops.exceptions.base import ConflictError, ErrorKind, ResponseCode
from labops.schemas.envelope import PaginationMeta

ISO_Z = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")


def payload(response) -> dict:
    return json.loads(response.body)


class TestSuccessShapes:

    def test_success_defaults(self):
        resp = ResponseFormatter("req-1").success({"id": 7})
        body = payload(resp)

        assert resp.status_code == 200
        assert resp.headers["X-Request-ID"] == "req-1"
        assert body["success"] is True
        assert body["code"] == "OK"
        assert body["message"] == "Operation succeeded"
        assert body["data"] == {"id": 7}
        assert body["requestId"] == "req-1"
        assert ISO_Z.match(body["timestamp"])

    def test_success_without_data(self):
        body = payload(ResponseFormatter().success())

        assert body["data"] is None
        assert body["requestId"] is None

    def test_no_header_without_request_id(self):
        assert "X-Request-ID" not in ResponseFormatter().success().headers

    def test_custom_header_name(self):
        resp = ResponseFormatter("abc", header_name="X-Correlation-ID").success()
        assert resp.headers["X-Correlation-ID"] == "abc"

    def test_created(self):
        resp = ResponseFormatter("r").created({"id": 1})

        assert resp.status_code == 201
        assert payload(resp)["code"] == "CREATED"
        assert payload(resp)["message"] == "Resource created"

    def test_paginated(self):
        """
        Behavior:
            - 95 records, 10 per page, page 1.
            - Expect totalPages = ceil(95 / 10) = 10.
        """
        resp = ResponseFormatter("r").paginated([1, 2, 3], PaginationMeta.build(page=1, page_size=10, total=95))
        body = payload(resp)

        assert body["message"] == "Query succeeded"
        assert body["data"] == [1, 2, 3]
        assert body["pagination"] == {
            "page": 1,
            "pageSize": 10,
            "total": 95,
            "totalPages": 10,
            "hasNext": True,
            "hasPrev": False,
        }


class TestPaginationMeta:

    @pytest.mark.parametrize("total, expected_pages", [(0, 0), (1, 1), (10, 1), (11, 2), (95, 10)])
    def test_total_pages(self, total, expected_pages):
        assert PaginationMeta.build(1, 10, total).total_pages == expected_pages

    def test_last_page_has_no_next(self):
        meta = PaginationMeta.build(page=10, page_size=10, total=95)
        assert meta.has_next is False
        assert meta.has_prev is True

    @pytest.mark.parametrize("page, page_size, total", [(1, 0, 10), (0, 10, 10), (1, 10, -1)])
    def test_invalid_arguments(self, page, page_size, total):
        with pytest.raises(ValueError):
            PaginationMeta.build(page, page_size, total)


class TestErrorShapes:

    def test_error_defaults(self):
        resp = ResponseFormatter("r").error("Something broke")
        body = payload(resp)

        assert resp.status_code == 500
        assert body["success"] is False
        assert body["code"] == "INTERNAL_ERROR"
        assert body["error"] == {"kind": "SYSTEM", "details": None}

    def test_error_with_explicit_fields(self):
        resp = ResponseFormatter("r").error(
            "Sample locked",
            status_code=409,
            code=ResponseCode.CONFLICT,
            kind=ErrorKind.BUSINESS,
            details={"sampleId": "s-1"},
        )
        body = payload(resp)

        assert resp.status_code == 409
        assert body["code"] == "CONFLICT"
        assert body["error"] == {"kind": "BUSINESS", "details": {"sampleId": "s-1"}}

    def test_from_error(self):
        err = ConflictError("Barcode already registered", details={"fields": ["barcode"]})
        resp = ResponseFormatter("r").from_error(err)
        body = payload(resp)

        assert resp.status_code == 409
        assert body["message"] == "Barcode already registered"
        assert body["error"]["details"] == {"fields": ["barcode"]}


class TestPerRequestIsolation:

    def test_formatters_never_share_request_ids(self):
        first, second = ResponseFormatter("req-a"), ResponseFormatter("req-b")

        assert payload(first.success())["requestId"] == "req-a"
        assert payload(second.success())["requestId"] == "req-b"
        assert payload(first.success())["requestId"] == "req-a"

    def test_for_request_falls_back_to_contextvar(self):
        token = set_request_id("ctx-id")
        try:
            assert ResponseFormatter.for_request(None).request_id == "ctx-id"
        finally:
            reset_request_id(token)
