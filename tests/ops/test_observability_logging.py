import json
import logging
from types import SimpleNamespace

from starlette.requests import Request
from starlette.responses import Response

from app.inventsight.middleware.observability import build_request_log_payload
from tests.transfer_helpers import GM, auth_headers


def test_build_request_log_payload():
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/transfer-requests/t-1/send",
        "headers": [],
        "route": SimpleNamespace(path="/transfer-requests/{transfer_id}/send"),
    }
    request = Request(scope)
    request.state.trace_id = "trace-1"
    request.state.user_id = "user-1"
    request.state.error_code = "PERMISSION_DENIED"
    response = Response(status_code=403)

    payload = build_request_log_payload(
        request=request,
        response=response,
        latency_ms=12.3456,
        db_time_ms=4.5678,
    )

    assert payload["trace_id"] == "trace-1"
    assert payload["user_id"] == "user-1"
    assert payload["route"] == "/transfer-requests/{transfer_id}/send"
    assert payload["method"] == "POST"
    assert payload["status_code"] == 403
    assert payload["error_code"] == "PERMISSION_DENIED"
    assert payload["latency_ms"] == 12.35
    assert payload["db_time_ms"] == 4.57


def test_request_log_line_is_json(client, caplog):
    with caplog.at_level(logging.INFO, logger="inventsight.request"):
        response = client.get("/transfer-requests/missing", headers=auth_headers(GM))

    assert response.status_code == 404
    lines = [json.loads(record.getMessage()) for record in caplog.records if record.name == "inventsight.request"]
    assert lines[-1]["event"] == "http_request"
    assert lines[-1]["status_code"] == 404
    assert lines[-1]["error_code"] == "NOT_FOUND"
    assert lines[-1]["user_id"] == GM.id
