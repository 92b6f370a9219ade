import uuid

from app.tillpoint.core.error_catalog import ErrorCatalog
from tests.till_helpers import (
    auth_headers,
    create_tenant_user,
    create_terminal,
    login,
    open_till,
    seed_defaults,
)


def _setup(client, db_session, suffix: str):
    seed_defaults(db_session)
    tenant, store, _other_store, user = create_tenant_user(db_session, suffix=suffix)
    terminal = create_terminal(db_session, tenant=tenant, store=store)
    token = login(client, user.username)
    return user, terminal, token


def test_open_till_creates_open_session(client, db_session):
    user, terminal, token = _setup(client, db_session, "open-ok")

    payload = open_till(client, token, terminal.id, opening_float="100.00", notes="Morning shift")

    assert payload["status"] == "OPEN"
    assert payload["terminal_id"] == str(terminal.id)
    assert payload["opened_by_user_id"] == str(user.id)
    assert payload["opening_float"] == "100.00"
    assert payload["notes"] == "Morning shift"
    assert payload["closed_at"] is None
    assert payload["expected_cash"] is None
    assert payload["over_short"] is None


def test_second_open_on_same_terminal_conflicts(client, db_session):
    _user, terminal, token = _setup(client, db_session, "open-twice")
    first = open_till(client, token, terminal.id)

    response = client.post(
        "/tillpoint/tills/open",
        headers=auth_headers(token),
        json={"terminal_id": str(terminal.id), "opening_float": "50.00"},
    )

    assert response.status_code == 409
    assert response.json()["code"] == ErrorCatalog.TILL_ALREADY_OPEN.code

    active = client.get(
        "/tillpoint/tills/active",
        headers=auth_headers(token),
        params={"terminal_id": str(terminal.id)},
    )
    assert active.json()["session"]["id"] == first["id"]


def test_active_till_is_null_for_terminal_without_history(client, db_session):
    _user, terminal, token = _setup(client, db_session, "open-none")

    response = client.get(
        "/tillpoint/tills/active",
        headers=auth_headers(token),
        params={"terminal_id": str(terminal.id)},
    )

    assert response.status_code == 200
    assert response.json() == {"session": None}


def test_terminal_can_reopen_after_close(client, db_session):
    _user, terminal, token = _setup(client, db_session, "open-reopen")
    first = open_till(client, token, terminal.id)
    closed = client.post(
        f"/tillpoint/tills/{first['id']}/close",
        headers=auth_headers(token),
        json={"closing_cash_actual": "100.00"},
    )
    assert closed.status_code == 200

    second = open_till(client, token, terminal.id, opening_float="0.00")
    assert second["id"] != first["id"]
    assert second["opening_float"] == "0.00"

    history = client.get(f"/tillpoint/terminals/{terminal.id}/tills", headers=auth_headers(token))
    assert history.status_code == 200
    statuses = sorted(row["status"] for row in history.json()["rows"])
    assert statuses == ["CLOSED", "OPEN"]


def test_open_rejects_negative_or_over_precise_float(client, db_session):
    _user, terminal, token = _setup(client, db_session, "open-invalid")

    for opening_float in ("-0.01", "10.005"):
        response = client.post(
            "/tillpoint/tills/open",
            headers=auth_headers(token),
            json={"terminal_id": str(terminal.id), "opening_float": opening_float},
        )
        assert response.status_code == 422
        assert response.json()["code"] == ErrorCatalog.VALIDATION_ERROR.code

    active = client.get(
        "/tillpoint/tills/active",
        headers=auth_headers(token),
        params={"terminal_id": str(terminal.id)},
    )
    assert active.json()["session"] is None


def test_open_on_unknown_terminal_is_not_found(client, db_session):
    _user, _terminal, token = _setup(client, db_session, "open-missing")

    response = client.post(
        "/tillpoint/tills/open",
        headers=auth_headers(token),
        json={"terminal_id": str(uuid.uuid4()), "opening_float": "10.00"},
    )

    assert response.status_code == 404
    assert response.json()["code"] == ErrorCatalog.TERMINAL_NOT_FOUND.code


def test_open_with_malformed_terminal_id_is_validation_error(client, db_session):
    _user, _terminal, token = _setup(client, db_session, "open-malformed")

    response = client.post(
        "/tillpoint/tills/open",
        headers=auth_headers(token),
        json={"terminal_id": "not-a-uuid", "opening_float": "10.00"},
    )

    assert response.status_code == 422
    assert response.json()["details"]["field"] == "terminal_id"


def test_open_on_inactive_terminal_is_rejected(client, db_session):
    seed_defaults(db_session)
    tenant, store, _other_store, user = create_tenant_user(db_session, suffix="open-inactive")
    terminal = create_terminal(db_session, tenant=tenant, store=store, code="TERMINAL_OFF", is_active=False)
    token = login(client, user.username)

    response = client.post(
        "/tillpoint/tills/open",
        headers=auth_headers(token),
        json={"terminal_id": str(terminal.id), "opening_float": "10.00"},
    )

    assert response.status_code == 409
    assert response.json()["code"] == ErrorCatalog.TERMINAL_INACTIVE.code


def test_open_on_behalf_of_user_outside_tenant_is_rejected(client, db_session):
    _user, terminal, token = _setup(client, db_session, "open-foreign-opener")
    _tenant_b, _store_b, _other_b, outsider = create_tenant_user(db_session, suffix="open-foreign-b")

    response = client.post(
        "/tillpoint/tills/open",
        headers=auth_headers(token),
        json={
            "terminal_id": str(terminal.id),
            "opening_float": "10.00",
            "opened_by_user_id": str(outsider.id),
        },
    )

    assert response.status_code == 422
    assert response.json()["details"]["field"] == "opened_by_user_id"
