# src/labops/tests/test_validators/test_validation_middleware.py
import logging

import pytest
import json

from fastapi import Depends, Request
from pydantic import BaseModel, Field

from labops.core.responses import ResponseFormatter, get_formatter
from labops.exceptions.base import ValidationError
from labops.schemas.envelope import PaginationMeta
from labops.validators.engine import ValidationOptions, ValidationTarget
from labops.validators.middleware import (
    create_middleware,
    create_multi_target_middleware,
    get_validated,
    validate_body,
    validate_headers,
    validate_pagination,
    validate_uuid_param,
)
from labops.validators.schemas import UuidParam

SAMPLE_ID = "9f1c6b52-3a4e-4c1a-8d3e-2b7f0a6c5d41"


class SampleIntake(BaseModel):
    name: str = Field(min_length=3)
    volume_ml: int = Field(ge=1, le=500)


class TenantHeaders(BaseModel):
    x_tenant: str = Field(alias="x-tenant", min_length=2)


def make_request(method: str, path: str, path_params: dict, body: dict) -> Request:
    """A bare Starlette request carrying a JSON body, for calling dependencies directly."""
    payload = json.dumps(body).encode()

    async def receive():
        return {"type": "http.request", "body": payload, "more_body": False}

    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "path_params": path_params,
        "query_string": b"",
        "headers": [(b"content-type", b"application/json")],
    }
    return Request(scope, receive)


@pytest.fixture()
def handler_calls() -> list:
    return []


@pytest.fixture()
def routed_client(app, client, handler_calls):
    """The shared client, with a few sample routes guarded by validation dependencies."""

    @app.post("/samples", dependencies=[Depends(validate_body(SampleIntake))])
    async def create_sample(request: Request, formatter: ResponseFormatter = Depends(get_formatter)):
        handler_calls.append("create_sample")
        return formatter.created(get_validated(request, ValidationTarget.BODY))

    @app.get("/samples")
    async def list_samples(page: dict = Depends(validate_pagination), formatter: ResponseFormatter = Depends(get_formatter)):
        meta = PaginationMeta.build(page["page"], page["page_size"], total=95)
        return formatter.paginated([{"n": i} for i in range(page["page_size"])], meta)

    @app.get("/samples/{id}", dependencies=[Depends(validate_uuid_param)])
    async def get_sample(request: Request, formatter: ResponseFormatter = Depends(get_formatter)):
        return formatter.success(get_validated(request, "params"))

    @app.put("/samples/{id}")
    async def update_sample(
        validated: dict = Depends(create_multi_target_middleware({"params": UuidParam, "body": SampleIntake})),
        formatter: ResponseFormatter = Depends(get_formatter),
    ):
        handler_calls.append("update_sample")
        return formatter.success(validated)

    @app.post("/strict", dependencies=[Depends(create_middleware(SampleIntake, "body", ValidationOptions(convert=False)))])
    async def strict(request: Request, formatter: ResponseFormatter = Depends(get_formatter)):
        return formatter.success(get_validated(request))

    @app.get("/tenant")
    async def tenant(headers: dict = Depends(validate_headers(TenantHeaders)), formatter: ResponseFormatter = Depends(get_formatter)):
        return formatter.success({"tenant": headers["x_tenant"]})

    @app.get("/noop")
    async def noop(validated: dict = Depends(create_multi_target_middleware({})), formatter: ResponseFormatter = Depends(get_formatter)):
        return formatter.success(validated)

    return client


class TestBodyValidation:

    def test_valid_body_reaches_handler_sanitized(self, routed_client, handler_calls):
        resp = routed_client.post("/samples", json={"name": "Serum A", "volume_ml": "5", "debug": True})

        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["code"] == "CREATED"
        # coerced and stripped of unknown keys
        assert body["data"] == {"name": "Serum A", "volume_ml": 5}
        assert handler_calls == ["create_sample"]

    def test_invalid_body_never_reaches_handler(self, routed_client, handler_calls, caplog):
        """
        Behavior:
            - POST a body whose `name` is too short.
            - Expect a 400 VALIDATION_ERROR envelope with exactly one issue.
            - The handler body must not run, and a validation.failed warning is logged.

        Importance:
            - Validation dependencies complete before the handler; a failed validation
              is terminal for the request.
        """
        caplog.set_level(logging.WARNING, logger="labops")

        resp = routed_client.post("/samples", json={"name": "ab", "volume_ml": 10})

        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["code"] == "VALIDATION_ERROR"
        assert body["message"] == "Request validation failed"
        assert body["error"]["kind"] == "VALIDATION"
        assert body["error"]["details"] == [
            {"field": "name", "message": body["error"]["details"][0]["message"], "value": "ab", "rule": "min-length"}
        ]
        assert handler_calls == []
        assert any(r.getMessage() == "validation.failed" for r in caplog.records)

    def test_missing_body_reports_required_fields(self, routed_client):
        resp = routed_client.post("/samples")

        assert resp.status_code == 400
        rules = {(d["field"], d["rule"]) for d in resp.json()["error"]["details"]}
        assert rules == {("name", "required"), ("volume_ml", "required")}

    def test_malformed_json(self, routed_client):
        resp = routed_client.post("/samples", content=b"{not json", headers={"Content-Type": "application/json"})

        assert resp.status_code == 400
        [issue] = resp.json()["error"]["details"]
        assert issue["rule"] == "json"

    def test_strict_body(self, routed_client):
        resp = routed_client.post("/strict", json={"name": "Serum A", "volume_ml": "5"})

        assert resp.status_code == 400
        assert resp.json()["error"]["details"][0]["rule"] == "integer"


class TestQueryParamsHeaders:

    def test_pagination_defaults(self, routed_client):
        resp = routed_client.get("/samples")

        assert resp.status_code == 200
        pagination = resp.json()["pagination"]
        assert pagination["page"] == 1
        assert pagination["pageSize"] == 10

    def test_pagination_total_pages(self, routed_client):
        resp = routed_client.get("/samples", params={"page": "2", "limit": "10"})

        body = resp.json()
        assert body["pagination"] == {
            "page": 2,
            "pageSize": 10,
            "total": 95,
            "totalPages": 10,
            "hasNext": True,
            "hasPrev": True,
        }
        assert len(body["data"]) == 10

    def test_pagination_rejects_out_of_range(self, routed_client):
        resp = routed_client.get("/samples", params={"pageSize": "500"})

        assert resp.status_code == 400
        assert resp.json()["error"]["details"][0]["rule"] == "max"

    def test_uuid_param(self, routed_client):
        ok = routed_client.get(f"/samples/{SAMPLE_ID.upper()}")
        bad = routed_client.get("/samples/42")

        assert ok.status_code == 200
        assert ok.json()["data"] == {"id": SAMPLE_ID}
        assert bad.status_code == 400
        assert bad.json()["error"]["details"][0]["rule"] == "uuid"

    def test_headers(self, routed_client):
        assert routed_client.get("/tenant", headers={"X-Tenant": "lab-7"}).json()["data"] == {"tenant": "lab-7"}
        assert routed_client.get("/tenant").status_code == 400


class TestMultiTarget:

    def test_issues_from_every_target_are_aggregated(self, routed_client, handler_calls):
        """
        Behavior:
            - Both the path parameter and the body are invalid.
            - Expect ONE 400 response listing issues from both, each tagged with its location.

        Importance:
            - Clients fix everything in one round-trip instead of discovering errors one
              target at a time.
        """
        resp = routed_client.put("/samples/not-a-uuid", json={"name": "ab", "volume_ml": 0})

        assert resp.status_code == 400
        details = resp.json()["error"]["details"]
        locations = [d["location"] for d in details]
        assert locations.count("params") == 1
        assert locations.count("body") == 2
        assert handler_calls == []

    def test_all_targets_valid(self, routed_client, handler_calls):
        resp = routed_client.put(f"/samples/{SAMPLE_ID}", json={"name": "Serum A", "volume_ml": 3})

        assert resp.status_code == 200
        assert resp.json()["data"] == {
            "params": {"id": SAMPLE_ID},
            "body": {"name": "Serum A", "volume_ml": 3},
        }
        assert handler_calls == ["update_sample"]

    def test_empty_map_is_a_noop(self, routed_client):
        resp = routed_client.get("/noop")

        assert resp.status_code == 200
        assert resp.json()["data"] == {}

    async def test_passing_target_is_kept_when_another_fails(self):
        """
        Behavior:
            - The path parameter is a valid UUID, the body is not valid.
            - Expect the request to be rejected with a single ValidationError listing
              only body issues.
            - The sanitized params stay on request.state; the body is never stored.

        Importance:
            - Targets are validated independently; a failing body must not erase (or
              fake) what was established about the other targets.
        """
        dependency = create_multi_target_middleware({"params": UuidParam, "body": SampleIntake})
        request = make_request("PUT", f"/samples/{SAMPLE_ID}", {"id": SAMPLE_ID.upper()}, {"name": "ab", "volume_ml": 3})

        with pytest.raises(ValidationError) as exc_info:
            await dependency(request)

        assert exc_info.value.http_status == 400
        assert {issue["location"] for issue in exc_info.value.details} == {"body"}
        assert get_validated(request, "params") == {"id": SAMPLE_ID}
        assert get_validated(request, "body") is None

    def test_mixed_targets_over_http(self, routed_client, handler_calls):
        resp = routed_client.put(f"/samples/{SAMPLE_ID}", json={"name": "Serum A", "volume_ml": 0})

        assert resp.status_code == 400
        assert [d["location"] for d in resp.json()["error"]["details"]] == ["body"]
        assert handler_calls == []
