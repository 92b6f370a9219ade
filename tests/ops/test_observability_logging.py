import json
import logging
from types import SimpleNamespace

from starlette.requests import Request
from starlette.responses import Response

from app.tillpoint.core.db_timing import add_db_time, db_timer, get_db_time_ms
from app.tillpoint.core.logging import log_json
from app.tillpoint.middleware.observability import build_request_log_payload


def test_build_request_log_payload_includes_terminal():
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/tillpoint/tills/abc/close",
        "headers": [],
        "route": SimpleNamespace(path="/tillpoint/tills/{till_id}/close"),
    }
    request = Request(scope)
    request.state.trace_id = "trace-1"
    request.state.tenant_id = "tenant-1"
    request.state.user_id = "user-1"
    request.state.terminal_id = "terminal-1"
    request.state.error_code = "TILL_NOT_OPEN"
    response = Response(status_code=409)

    payload = build_request_log_payload(
        request=request,
        response=response,
        latency_ms=12.3456,
        db_time_ms=4.5678,
    )

    assert payload["route"] == "/tillpoint/tills/{till_id}/close"
    assert payload["terminal_id"] == "terminal-1"
    assert payload["status_code"] == 409
    assert payload["error_code"] == "TILL_NOT_OPEN"
    assert payload["latency_ms"] == 12.35
    assert payload["db_time_ms"] == 4.57


def test_db_timer_accumulates_only_inside_block():
    add_db_time(5.0)
    assert get_db_time_ms() is None
    with db_timer():
        add_db_time(1.5)
        add_db_time(2.0)
        assert get_db_time_ms() == 3.5
    assert get_db_time_ms() is None


def test_log_json_emits_sorted_json(caplog):
    logger = logging.getLogger("tillpoint.test")
    with caplog.at_level(logging.INFO, logger="tillpoint.test"):
        log_json(logger, {"b": 1, "a": "x"})
    record = caplog.records[-1]
    assert json.loads(record.getMessage()) == {"a": "x", "b": 1}
    assert record.getMessage().startswith('{"a"')
