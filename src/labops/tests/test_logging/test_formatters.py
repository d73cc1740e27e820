# src/labops/tests/test_logging/test_formatters.py
import json
import logging
import re

from labops.core.logging.formatters import ColorFormatter, JsonFormatter


def make_record():
    # create a LogRecord that simulates formatting with args
    return logging.LogRecord("labops", logging.INFO, __file__, 10, "hello %s", ("tester",), None)


def test_json_formatter_basic_fields():
    rec = make_record()
    # attach an extra (simulate extra param)
    rec.custom = "value"
    # attach request_id
    rec.request_id = "req-1"
    fmt = JsonFormatter(env="testing", service="svc")
    out = fmt.format(rec)
    data = json.loads(out)
    # core assertions
    assert data["message"] == "hello tester"
    assert data["level"] == "INFO"
    assert data["service"] == "svc"
    assert data["env"] == "testing"
    assert re.match(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$", data["timestamp"])
    assert data["request_id"] == "req-1"
    assert data["custom"] == "value"
    assert "version" in data  # PROJECT_VERSION is present


def test_json_formatter_keeps_structured_extras():
    rec = make_record()
    rec.error = {"code": "CONFLICT", "http_status": 409}
    data = json.loads(JsonFormatter(env="testing").format(rec))

    assert data["error"] == {"code": "CONFLICT", "http_status": 409}
    assert data["service"] == "labops-api"


def test_extras_cannot_overwrite_canonical_fields():
    rec = make_record()
    rec.service = "spoofed"
    data = json.loads(JsonFormatter(env="testing", service="svc").format(rec))
    assert data["service"] == "svc"


def test_json_formatter_non_serializable_extra():
    rec = make_record()

    class X:
        def __repr__(self):
            return "<X>"

    rec.obj = X()
    fmt = JsonFormatter(env="dev", service="svc")
    out = fmt.format(rec)
    data = json.loads(out)
    # non-serializable obj should be stringified
    assert isinstance(data["obj"], str)


def test_color_formatter_line_layout():
    rec = make_record()
    rec.request_id = "req-9"
    line = ColorFormatter().format(rec)

    assert "INFO" in line
    assert "req-9" in line
    assert line.endswith("hello tester")
