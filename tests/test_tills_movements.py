import uuid
from decimal import Decimal

import pytest

from app.tillpoint.core.error_catalog import ErrorCatalog
from app.tillpoint.db.models import AppendOnlyViolation, TillMovement
from tests.till_helpers import (
    auth_headers,
    create_tenant_user,
    create_terminal,
    login,
    open_till,
    record,
    seed_defaults,
)


def _open(client, db_session, suffix: str, opening_float: str = "100.00"):
    seed_defaults(db_session)
    tenant, store, _other_store, user = create_tenant_user(db_session, suffix=suffix)
    terminal = create_terminal(db_session, tenant=tenant, store=store)
    token = login(client, user.username)
    till = open_till(client, token, terminal.id, opening_float=opening_float)
    return token, till


def test_movements_update_expected_cash_per_kind(client, db_session):
    token, till = _open(client, db_session, "mov-kinds")

    assert record(client, token, till["id"], "record-sale", "50.00").status_code == 200
    assert record(client, token, till["id"], "refund", "10.00").status_code == 200
    assert record(client, token, till["id"], "cash-in", "5.00").status_code == 200
    assert record(client, token, till["id"], "cash-out", "20.00").status_code == 200
    response = record(client, token, till["id"], "payout", "7.50", reference="Courier")

    assert response.status_code == 200
    summary = response.json()
    assert summary["till_id"] == till["id"]
    assert summary["status"] == "OPEN"
    assert summary["sales"] == "50.00"
    assert summary["refunds"] == "10.00"
    assert summary["cash_in"] == "5.00"
    assert summary["cash_out"] == "20.00"
    assert summary["payouts"] == "7.50"
    assert summary["movement_count"] == 5
    assert summary["expected_cash"] == "117.50"
    assert summary["closing_cash_actual"] is None
    assert summary["over_short_type"] is None


def test_generic_movement_endpoint_takes_kind_in_body(client, db_session):
    token, till = _open(client, db_session, "mov-generic")

    response = client.post(
        f"/tillpoint/tills/{till['id']}/movements",
        headers=auth_headers(token),
        json={"kind": "CASH_IN", "amount": "12.34", "notes": "Change top-up"},
    )
    assert response.status_code == 200
    assert response.json()["expected_cash"] == "112.34"

    bad_kind = client.post(
        f"/tillpoint/tills/{till['id']}/movements",
        headers=auth_headers(token),
        json={"kind": "TIP", "amount": "1.00"},
    )
    assert bad_kind.status_code == 422


@pytest.mark.parametrize("amount", ["0", "0.00", "-5.00", "1.001"])
def test_movement_amount_must_be_positive_with_two_places(client, db_session, amount):
    token, till = _open(client, db_session, f"mov-amount-{amount}")

    response = record(client, token, till["id"], "record-sale", amount)

    assert response.status_code == 422
    assert response.json()["code"] == ErrorCatalog.VALIDATION_ERROR.code
    summary = client.get(f"/tillpoint/tills/{till['id']}/summary", headers=auth_headers(token)).json()
    assert summary["movement_count"] == 0


def test_summary_reads_are_idempotent(client, db_session):
    token, till = _open(client, db_session, "mov-reads")
    record(client, token, till["id"], "record-sale", "19.99")
    record(client, token, till["id"], "refund", "4.99")

    first = client.get(f"/tillpoint/tills/{till['id']}/summary", headers=auth_headers(token))
    second = client.get(f"/tillpoint/tills/{till['id']}/summary", headers=auth_headers(token))

    assert first.status_code == 200
    assert first.json() == second.json()
    assert first.json()["expected_cash"] == "115.00"
    assert first.json()["movement_count"] == 2


def test_list_movements_in_insertion_order_with_kind_filter(client, db_session):
    token, till = _open(client, db_session, "mov-list")
    record(client, token, till["id"], "record-sale", "1.00", reference="R-1")
    record(client, token, till["id"], "cash-out", "2.00")
    record(client, token, till["id"], "record-sale", "3.00", reference="R-2")

    response = client.get(f"/tillpoint/tills/{till['id']}/movements", headers=auth_headers(token))
    assert response.status_code == 200
    payload = response.json()
    assert payload["total"] == 3
    assert [row["amount"] for row in payload["rows"]] == ["1.00", "2.00", "3.00"]
    assert [row["kind"] for row in payload["rows"]] == ["SALE", "CASH_OUT", "SALE"]
    assert payload["rows"][0]["reference"] == "R-1"
    assert payload["rows"][0]["trace_id"]

    sales = client.get(
        f"/tillpoint/tills/{till['id']}/movements",
        headers=auth_headers(token),
        params={"kind": "SALE", "limit": 1, "offset": 1},
    )
    assert sales.json()["total"] == 2
    assert [row["reference"] for row in sales.json()["rows"]] == ["R-2"]


def test_movement_on_unknown_till_is_not_found(client, db_session):
    token, _till = _open(client, db_session, "mov-missing")

    response = record(client, token, str(uuid.uuid4()), "record-sale", "1.00")

    assert response.status_code == 404
    assert response.json()["code"] == ErrorCatalog.TILL_NOT_FOUND.code


def test_ledger_rows_reject_update_and_delete(client, db_session):
    token, till = _open(client, db_session, "mov-append-only")
    record(client, token, till["id"], "record-sale", "5.00")

    movement = db_session.query(TillMovement).filter(TillMovement.till_session_id == uuid.UUID(till["id"])).one()
    movement.amount = Decimal("500.00")
    with pytest.raises(AppendOnlyViolation):
        db_session.flush()
    db_session.rollback()

    movement = db_session.query(TillMovement).filter(TillMovement.till_session_id == uuid.UUID(till["id"])).one()
    db_session.delete(movement)
    with pytest.raises(AppendOnlyViolation):
        db_session.flush()
    db_session.rollback()

    summary = client.get(f"/tillpoint/tills/{till['id']}/summary", headers=auth_headers(token)).json()
    assert summary["sales"] == "5.00"
