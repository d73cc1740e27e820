# src/labops/tests/test_api/test_system.py
import uuid

import labops.main
from labops.config.settings import Settings
from labops.core.logging.middleware import is_valid_request_id
from labops.exceptions.classifier import ErrorClassifier
from labops.main import create_app


class TestSystemRoutes:

    def test_health(self, client):
        resp = client.get("/health")
        body = resp.json()

        assert resp.status_code == 200
        assert body["success"] is True
        assert body["data"] == {"status": "ok"}
        assert body["requestId"] == resp.headers["X-Request-ID"]

    def test_system_info(self, client, settings):
        body = client.get("/api/v1/system/info").json()

        assert body["data"]["service"] == "labops-api"
        assert body["data"]["env"] == "testing"
        assert body["data"]["api_version"] == settings.API_VERSION
        assert body["data"]["version"]


class TestRequestId:

    def test_generated_when_absent(self, client):
        rid = client.get("/health").headers["X-Request-ID"]
        assert uuid.UUID(rid).version == 4

    def test_valid_incoming_id_is_reused(self, client):
        resp = client.get("/health", headers={"X-Request-ID": "lims-batch.42:7"})

        assert resp.headers["X-Request-ID"] == "lims-batch.42:7"
        assert resp.json()["requestId"] == "lims-batch.42:7"

    def test_invalid_incoming_id_is_replaced(self, client):
        resp = client.get("/health", headers={"X-Request-ID": "x" * 200})
        rid = resp.headers["X-Request-ID"]

        assert rid != "x" * 200
        assert uuid.UUID(rid).version == 4

    def test_each_request_gets_its_own_id(self, client):
        first = client.get("/health").json()["requestId"]
        second = client.get("/health").json()["requestId"]
        assert first != second

    def test_request_id_validation(self):
        assert is_valid_request_id("abc-123_x.y:z") is True
        assert is_valid_request_id("abc 123") is False
        assert is_valid_request_id("abc\n123") is False
        assert is_valid_request_id("x" * 129) is False
        assert is_valid_request_id("") is False
        assert is_valid_request_id(None) is False


class TestAppFactory:

    def test_state_is_wired_from_settings(self, monkeypatch, settings):
        monkeypatch.setenv("REQUEST_ID_HEADER", "X-Correlation-ID")
        monkeypatch.setenv("DB_BACKEND", "SQLite")

        app = create_app(Settings())

        assert app.state.request_id_header == "X-Correlation-ID"
        assert isinstance(app.state.classifier, ErrorClassifier)
        assert app.state.classifier.backend.name == "sqlite"
        assert app.state.classifier.expose_internal is True

    def test_importing_main_builds_no_app(self):
        # served with `uvicorn labops.main:create_app --factory`
        assert not hasattr(labops.main, "app")
