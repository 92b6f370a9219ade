from app.tillpoint.core.error_catalog import ErrorCatalog
from tests.till_helpers import (
    auth_headers,
    create_tenant_user,
    create_terminal,
    create_user,
    login,
    open_till,
    record,
    seed_defaults,
)


def test_requests_without_token_are_rejected(client, db_session):
    seed_defaults(db_session)

    response = client.get("/tillpoint/tills/active", params={"terminal_id": "x"})

    assert response.status_code == 401
    assert response.json()["code"] == ErrorCatalog.INVALID_TOKEN.code


def test_cross_tenant_till_access_is_denied(client, db_session):
    seed_defaults(db_session)
    tenant_a, store_a, _other_a, user_a = create_tenant_user(db_session, suffix="sec-tenant-a")
    _tenant_b, _store_b, _other_b, user_b = create_tenant_user(db_session, suffix="sec-tenant-b")
    terminal_a = create_terminal(db_session, tenant=tenant_a, store=store_a)
    token_a = login(client, user_a.username)
    token_b = login(client, user_b.username)
    till = open_till(client, token_a, terminal_a.id)

    summary = client.get(f"/tillpoint/tills/{till['id']}/summary", headers=auth_headers(token_b))
    sale = record(client, token_b, till["id"], "record-sale", "10.00")
    close = client.post(
        f"/tillpoint/tills/{till['id']}/close",
        headers=auth_headers(token_b),
        json={"closing_cash_actual": "0.00"},
    )
    open_foreign = client.post(
        "/tillpoint/tills/open",
        headers=auth_headers(token_b),
        json={"terminal_id": str(terminal_a.id), "opening_float": "1.00"},
    )

    for response in (summary, sale, close, open_foreign):
        assert response.status_code == 403
        assert response.json()["code"] == ErrorCatalog.CROSS_TENANT_ACCESS_DENIED.code

    own_view = client.get(f"/tillpoint/tills/{till['id']}/summary", headers=auth_headers(token_a)).json()
    assert own_view["status"] == "OPEN"
    assert own_view["movement_count"] == 0


def test_store_bound_cashier_cannot_reach_other_store_terminal(client, db_session):
    seed_defaults(db_session)
    tenant, store, other_store, _manager = create_tenant_user(db_session, suffix="sec-store")
    cashier = create_user(db_session, tenant=tenant, store=store, suffix="sec-store-cashier", role="CASHIER")
    other_terminal = create_terminal(db_session, tenant=tenant, store=other_store, code="TERMINAL_B")
    token = login(client, cashier.username)

    response = client.post(
        "/tillpoint/tills/open",
        headers=auth_headers(token),
        json={"terminal_id": str(other_terminal.id), "opening_float": "10.00"},
    )

    assert response.status_code == 403
    assert response.json()["code"] == ErrorCatalog.STORE_SCOPE_MISMATCH.code


def test_tenant_wide_admin_reaches_any_store_terminal(client, db_session):
    seed_defaults(db_session)
    tenant, store, other_store, _manager = create_tenant_user(db_session, suffix="sec-admin")
    admin = create_user(db_session, tenant=tenant, store=store, suffix="sec-admin-user", role="ADMIN")
    other_terminal = create_terminal(db_session, tenant=tenant, store=other_store, code="TERMINAL_B")
    token = login(client, admin.username)

    till = open_till(client, token, other_terminal.id)

    assert till["store_id"] == str(other_store.id)


def test_terminal_header_must_match_till_terminal(client, db_session):
    seed_defaults(db_session)
    tenant, store, _other_store, user = create_tenant_user(db_session, suffix="sec-terminal")
    terminal_a = create_terminal(db_session, tenant=tenant, store=store, code="TERMINAL_A")
    terminal_b = create_terminal(db_session, tenant=tenant, store=store, code="TERMINAL_B")
    token = login(client, user.username)
    till = open_till(client, token, terminal_a.id)

    mismatched = client.post(
        f"/tillpoint/tills/{till['id']}/record-sale",
        headers=auth_headers(token, terminal_id=terminal_b.id),
        json={"amount": "5.00"},
    )
    assert mismatched.status_code == 403
    assert mismatched.json()["code"] == ErrorCatalog.TERMINAL_SCOPE_MISMATCH.code

    matched = client.post(
        f"/tillpoint/tills/{till['id']}/record-sale",
        headers=auth_headers(token, terminal_id=terminal_a.id),
        json={"amount": "5.00"},
    )
    assert matched.status_code == 200

    wrong_open = client.post(
        "/tillpoint/tills/open",
        headers=auth_headers(token, terminal_id=terminal_a.id),
        json={"terminal_id": str(terminal_b.id), "opening_float": "1.00"},
    )
    assert wrong_open.status_code == 403
    assert wrong_open.json()["code"] == ErrorCatalog.TERMINAL_SCOPE_MISMATCH.code


def test_malformed_terminal_header_is_validation_error(client, db_session):
    seed_defaults(db_session)
    tenant, store, _other_store, user = create_tenant_user(db_session, suffix="sec-bad-header")
    terminal = create_terminal(db_session, tenant=tenant, store=store)
    token = login(client, user.username)

    response = client.get(
        "/tillpoint/tills/active",
        headers=auth_headers(token, terminal_id="register-7"),
        params={"terminal_id": str(terminal.id)},
    )

    assert response.status_code == 422
    assert response.json()["details"]["field"] == "terminal_id"


def test_view_only_role_cannot_open_or_close(client, db_session):
    seed_defaults(db_session)
    tenant, store, _other_store, manager = create_tenant_user(db_session, suffix="sec-rbac")
    viewer = create_user(db_session, tenant=tenant, store=store, suffix="sec-rbac-viewer", role="USER")
    terminal = create_terminal(db_session, tenant=tenant, store=store)
    manager_token = login(client, manager.username)
    viewer_token = login(client, viewer.username)

    denied_open = client.post(
        "/tillpoint/tills/open",
        headers=auth_headers(viewer_token),
        json={"terminal_id": str(terminal.id), "opening_float": "1.00"},
    )
    assert denied_open.status_code == 403
    assert denied_open.json()["code"] == ErrorCatalog.PERMISSION_DENIED.code

    till = open_till(client, manager_token, terminal.id)
    denied_close = client.post(
        f"/tillpoint/tills/{till['id']}/close",
        headers=auth_headers(viewer_token),
        json={"closing_cash_actual": "100.00"},
    )
    assert denied_close.status_code == 403

    summary = client.get(f"/tillpoint/tills/{till['id']}/summary", headers=auth_headers(viewer_token))
    assert summary.status_code == 200
