from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from app.tillpoint.core.errors import setup_exception_handlers
from app.tillpoint.core.metrics import metrics


def test_locked_database_maps_to_lock_timeout():
    metrics.reset()
    app = FastAPI()
    setup_exception_handlers(app)

    @app.post("/close")
    def close():
        raise OperationalError("UPDATE till_sessions", {}, Exception("database is locked"))

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.post("/close")

    assert response.status_code == 409
    assert response.json()["code"] == "LOCK_TIMEOUT"

    content = metrics.render().content.decode("utf-8")
    if metrics.enabled:
        assert "lock_wait_timeout_total" in content
    else:
        assert "metrics_disabled" in content


def test_unexpected_error_maps_to_internal_error():
    app = FastAPI()
    setup_exception_handlers(app)

    @app.get("/boom")
    def boom():
        raise RuntimeError("boom")

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/boom")

    assert response.status_code == 500
    payload = response.json()
    assert payload["code"] == "INTERNAL_ERROR"
    assert payload["details"] == {"type": "RuntimeError"}
