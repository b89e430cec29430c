"""Unit tests for wfconfig.integrations.config_api_gateway.

Test strategy
-------------
A MagicMock stands in for the requests.Session passed to ConfigApiGateway,
and `sleep` is replaced by a recorder so retries run instantly. No network.

Coverage
--------
    1. GET retried on 503, succeeds on the second attempt with 1 s backoff
    2. Saves (POST / PUT) are never retried
    3. Timeouts exhaust the retry budget and come back as ok=False
    4. 404 on the setup resource reads as an empty configuration
    5. {"items": [...]} envelopes and bare lists are both unwrapped
    6. update=True → PUT, update=False → POST
    7. raise_for_error → BackendError carrying the HTTP status
    8. Bearer token header and from_app_config
    9. ConfigSession save over the gateway
"""

from unittest.mock import MagicMock

import pytest
import requests

from wfconfig.core.exceptions import BackendError
from wfconfig.engine.session import ConfigSession
from wfconfig.integrations.config_api_gateway import ConfigApiGateway, GatewayResult

BASE_URL = "https://wfconfig.test/api/v1/workflow-config"

pytestmark = pytest.mark.unit


# ── Helpers ──────────────────────────────────────────────────────────────────


def _response(status=200, body=None):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    resp.content = b"{}" if body is not None else b""
    resp.json.return_value = body
    resp.text = ""
    return resp


def _gateway(*responses, **kw):
    session = MagicMock()
    session.request.side_effect = list(responses)
    sleeps = []
    gw = ConfigApiGateway(BASE_URL, session=session, sleep=sleeps.append, **kw)
    return gw, session, sleeps


# ═════════════════════════════════════════════════════════════════════════════
# 1. RETRY POLICY
# ═════════════════════════════════════════════════════════════════════════════


def test_get_retried_on_503():
    gw, session, sleeps = _gateway(_response(503, {"error": "busy"}), _response(200, {"stages": []}))

    result = gw.request("GET", "applications/1/metadata")

    assert result.ok is True
    assert result.attempts == 2
    assert sleeps == [1]
    assert session.request.call_args[0] == ("GET", f"{BASE_URL}/applications/1/metadata")


def test_post_not_retried():
    gw, session, sleeps = _gateway(_response(503, {"error": "busy"}))

    result = gw.request("POST", "instances/CFG-001/applications/1/setup", json_body=[])

    assert result.ok is False
    assert result.attempts == 1
    assert session.request.call_count == 1
    assert sleeps == []


def test_timeouts_exhaust_retries():
    gw, session, sleeps = _gateway(requests.Timeout(), requests.Timeout(), requests.Timeout(), timeout=5)

    result = gw.request("GET", "applications/1/metadata")

    assert result.ok is False
    assert result.status_code is None
    assert result.attempts == 3
    assert sleeps == [1, 4]
    assert "timed out after 5s" in result.error


def test_client_error_not_retried():
    gw, session, _ = _gateway(_response(400, {"error": "bad body"}))

    result = gw.request("GET", "applications/1/metadata")

    assert result.attempts == 1
    assert result.error == "HTTP 400: bad body"


# ═════════════════════════════════════════════════════════════════════════════
# 2. BACKEND OPERATIONS
# ═════════════════════════════════════════════════════════════════════════════


class TestOperations:
    def test_missing_config_reads_empty(self):
        gw, _, _ = _gateway(_response(404, {"error": "not found"}))
        assert gw.get_instance_config("CFG-001", 1) == []

    def test_items_envelope_unwrapped(self):
        gw, _, _ = _gateway(_response(200, {"items": [{"substage_seq": 1}], "total": 1}))
        assert gw.get_instance_config("CFG-001", 1) == [{"substage_seq": 1}]

    def test_bare_list_accepted(self):
        gw, _, _ = _gateway(_response(200, [{"substage_seq": 1}]))
        assert gw.get_instance_config("CFG-001", 1) == [{"substage_seq": 1}]

    @pytest.mark.parametrize("update,method", [(True, "PUT"), (False, "POST")])
    def test_save_method(self, update, method):
        gw, session, _ = _gateway(_response(200, {"items": []}))

        gw.save_or_update_config("CFG-001", 1, [{"substage_seq": 1}], update=update)

        args, kwargs = session.request.call_args
        assert args == (method, f"{BASE_URL}/instances/CFG-001/applications/1/setup")
        assert kwargs["json"] == [{"substage_seq": 1}]

    def test_metadata_failure_raises(self):
        gw, _, _ = _gateway(_response(500, {"error": "boom"}))

        with pytest.raises(BackendError) as exc_info:
            gw.get_metadata(1)
        assert exc_info.value.status_code == 500

    def test_raise_for_error_noop_when_ok(self):
        GatewayResult(ok=True, status_code=200, data=None, error=None, duration_ms=1).raise_for_error()


# ═════════════════════════════════════════════════════════════════════════════
# 3. CONFIGURATION
# ═════════════════════════════════════════════════════════════════════════════


def test_bearer_token_header():
    gw, session, _ = _gateway(_response(200, {}), token="s3cret")

    gw.get_metadata(1)

    headers = session.request.call_args[1]["headers"]
    assert headers["Authorization"] == "Bearer s3cret"


def test_no_auth_header_without_token():
    gw, session, _ = _gateway(_response(200, {}))
    gw.get_metadata(1)
    assert "Authorization" not in session.request.call_args[1]["headers"]


def test_from_app_config():
    gw = ConfigApiGateway.from_app_config({
        "WORKFLOW_CONFIG_API_URL": BASE_URL + "/",
        "WORKFLOW_CONFIG_API_TIMEOUT": "12",
        "WORKFLOW_CONFIG_API_TOKEN": "abc",
    })

    assert gw.base_url == BASE_URL
    assert gw.timeout == 12
    assert gw.token == "abc"


# ═════════════════════════════════════════════════════════════════════════════
# 4. SESSION OVER HTTP
# ═════════════════════════════════════════════════════════════════════════════


def test_session_save_over_gateway(metadata):
    saved_row = {
        "workflow_app_config_id": 41,
        "substage_seq": 1,
        "workflow_stage": {"stage_id": 10, "name": "Pre-Close"},
        "workflow_substage": {"substage_id": 100, "name": "Load Feeds"},
        "workflow_app_config_deps": [],
    }
    gw, session, _ = _gateway(
        _response(200, metadata),
        _response(404, {"error": "not found"}),
        _response(201, {"items": [saved_row], "total": 1}),
    )
    cs = ConfigSession(gw)
    cs.select_application(1)
    cs.load_instance("CFG-001")
    cs.add_substage(10, 100)

    ok, message = cs.save()

    assert ok, message
    assert session.request.call_args_list[2][0][0] == "POST"
    assert cs.store.records[0].record_id == 41
