"""Request timing headers and log formatting."""

import json
import logging

import pytest

from wfconfig.middleware.logging_config import ENGINE_LOGGER, JSONFormatter, ReadableFormatter, configure_logging


def _record(msg="Loaded 3 records", **extra):
    record = logging.LogRecord("wfconfig.engine.session", logging.INFO, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestRequestTiming:
    """X-Request-Duration-Ms / X-Request-ID on every response."""

    def test_duration_header_present(self, client):
        res = client.get("/api/v1/health/ready")
        assert "X-Request-Duration-Ms" in res.headers

    def test_request_id_header(self, client):
        res = client.get("/api/v1/health/ready")
        assert len(res.headers["X-Request-ID"]) > 0

    def test_custom_request_id_passthrough(self, client):
        res = client.get("/api/v1/health/ready", headers={"X-Request-ID": "test-123"})
        assert res.headers["X-Request-ID"] == "test-123"


@pytest.mark.unit
class TestFormatters:
    def test_json_groups_scope_fields(self):
        line = JSONFormatter().format(_record(app_id=1, instance_id="CFG-001", load_generation=4))
        entry = json.loads(line)

        assert entry["message"] == "Loaded 3 records"
        assert entry["scope"] == {"app_id": 1, "instance_id": "CFG-001", "load_generation": 4}
        assert "method" not in entry

    def test_json_without_scope(self):
        entry = json.loads(JSONFormatter().format(_record(method="GET", status=200)))
        assert "scope" not in entry
        assert (entry["method"], entry["status"]) == ("GET", 200)

    def test_readable_appends_scope_tag(self):
        line = ReadableFormatter().format(_record(app_id=1, instance_id="CFG-001"))
        assert line.endswith("[app=1 instance=CFG-001]")

    def test_readable_appends_duration(self):
        line = ReadableFormatter().format(_record(duration_ms=12.4))
        assert line.endswith("(12ms)")


def test_engine_log_level_override(app):
    app.config["ENGINE_LOG_LEVEL"] = "WARNING"
    try:
        configure_logging(app)
        assert logging.getLogger(ENGINE_LOGGER).level == logging.WARNING
    finally:
        app.config["ENGINE_LOG_LEVEL"] = None
        configure_logging(app)
