from decimal import Decimal

import pytest

from app.tillpoint.core.context import build_request_context
from app.tillpoint.core.metrics import metrics
from app.tillpoint.core.error_catalog import (
    ErrorCatalog,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from app.tillpoint.repos.till_sessions import TillSessionRepository
from app.tillpoint.services.till_directory import SessionDirectory
from app.tillpoint.services.tills import TillService
from tests.till_helpers import create_tenant_user, create_terminal, scope_for


def _setup(db_session, suffix: str):
    tenant, store, _other_store, user = create_tenant_user(db_session, suffix=suffix)
    terminal = create_terminal(db_session, tenant=tenant, store=store)
    return user, terminal, scope_for(user)


def test_thousand_cent_sales_reconcile_exactly(db_session):
    _user, terminal, scope = _setup(db_session, "svc-cents")
    service = TillService(db_session)
    session = service.open_till(scope, terminal_id=terminal.id, opening_float=Decimal("0.00"))

    for _ in range(1000):
        service.record_movement(scope, session.id, kind="SALE", amount=Decimal("0.01"))

    summary = service.get_till_summary(scope, session.id)
    assert summary.totals.movement_count == 1000
    assert summary.totals.sales == Decimal("10.00")
    assert summary.totals.expected_cash == Decimal("10.00")

    closed = service.close_till(scope, session.id, closing_cash_actual=Decimal("10.00"))
    assert closed.expected_cash == Decimal("10.00")
    assert closed.over_short == Decimal("0.00")


def test_float_inputs_are_accepted_only_when_exact_to_the_cent(db_session):
    _user, terminal, scope = _setup(db_session, "svc-floats")
    service = TillService(db_session)

    with pytest.raises(ValidationError):
        service.open_till(scope, terminal_id=terminal.id, opening_float="12.345")

    session = service.open_till(scope, terminal_id=terminal.id, opening_float="12.30")
    assert session.opening_float == Decimal("12.30")


def test_missing_tenant_scope_is_rejected(db_session):
    user, terminal, _scope = _setup(db_session, "svc-scope")
    scope = build_request_context(
        user_id=str(user.id),
        tenant_id=None,
        store_id=None,
        role="MANAGER",
        trace_id="",
    )

    with pytest.raises(ValidationError) as exc_info:
        TillService(db_session).open_till(scope, terminal_id=terminal.id, opening_float=Decimal("1.00"))

    assert exc_info.value.error == ErrorCatalog.SCOPE_REQUIRED
    assert exc_info.value.details == {"missing": ["tenant_id"]}
    assert str(exc_info.value) == "User and tenant scope are required"
    assert SessionDirectory(db_session).has_active(terminal.id) is False


def test_directory_tracks_open_and_close(db_session):
    _user, terminal, scope = _setup(db_session, "svc-directory")
    service = TillService(db_session)
    directory = SessionDirectory(db_session)
    assert service.get_active_till(scope, terminal.id) is None

    session = service.open_till(scope, terminal_id=terminal.id, opening_float=Decimal("5.00"))
    assert directory.get_active(terminal.id).id == session.id

    service.close_till(scope, session.id, closing_cash_actual=Decimal("5.00"))
    assert directory.get_active(terminal.id) is None
    assert [row.id for row in directory.history(terminal.id)] == [session.id]


def test_movement_losing_race_with_close_is_rolled_back(db_session, monkeypatch):
    _user, terminal, scope = _setup(db_session, "svc-race-move")
    service = TillService(db_session)
    session = service.open_till(scope, terminal_id=terminal.id, opening_float=Decimal("1.00"))
    session_id = session.id

    monkeypatch.setattr(TillSessionRepository, "current_status", lambda self, till_id: "CLOSED")
    with pytest.raises(InvalidStateError):
        service.record_movement(scope, session_id, kind="SALE", amount=Decimal("3.00"))
    monkeypatch.undo()

    rows, total = service.list_movements(scope, session_id)
    assert rows == []
    assert total == 0


def test_close_that_loses_the_claim_stamps_nothing(db_session, monkeypatch):
    _user, terminal, scope = _setup(db_session, "svc-race-close")
    service = TillService(db_session)
    session = service.open_till(scope, terminal_id=terminal.id, opening_float=Decimal("1.00"))
    session_id = session.id

    monkeypatch.setattr(TillSessionRepository, "claim_close", lambda self, till_id, **kwargs: False)
    with pytest.raises(InvalidStateError):
        service.close_till(scope, session_id, closing_cash_actual=Decimal("1.00"))
    monkeypatch.undo()

    current = service.get_till(scope, session_id)
    assert current.status == "OPEN"
    assert current.expected_cash is None


def test_unknown_till_and_kind_are_rejected(db_session):
    _user, terminal, scope = _setup(db_session, "svc-unknown")
    service = TillService(db_session)
    session = service.open_till(scope, terminal_id=terminal.id, opening_float=Decimal("1.00"))

    with pytest.raises(NotFoundError):
        service.get_till_summary(scope, "00000000-0000-0000-0000-000000000000")
    with pytest.raises(ValidationError):
        service.record_movement(scope, session.id, kind="TIP", amount=Decimal("1.00"))


def test_movements_are_counted_apart_from_transitions(db_session):
    if not metrics.enabled:
        pytest.skip("metrics disabled")
    metrics.reset()
    _user, terminal, scope = _setup(db_session, "svc-metrics")
    service = TillService(db_session)
    session = service.open_till(scope, terminal_id=terminal.id, opening_float=Decimal("1.00"))
    service.record_movement(scope, session.id, kind="SALE", amount=Decimal("2.00"))
    service.record_movement(scope, session.id, kind="PAYOUT", amount=Decimal("0.50"))
    service.close_till(scope, session.id, closing_cash_actual=Decimal("2.50"))

    content = metrics.render().content.decode("utf-8")

    assert 'till_movements_total{kind="SALE"} 1.0' in content
    assert 'till_movements_total{kind="PAYOUT"} 1.0' in content
    assert 'till_transitions_total{transition="open"} 1.0' in content
    assert 'till_transitions_total{transition="close"} 1.0' in content
    assert 'transition="sale"' not in content
