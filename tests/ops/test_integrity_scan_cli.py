import json
from decimal import Decimal

from sqlalchemy import update

from app.ops.integrity_scan import main, run_scan
from app.tillpoint.db.models import TillSession
from app.tillpoint.services.tills import TillService
from tests.till_helpers import create_tenant_user, create_terminal, scope_for


def _closed_till(db_session, suffix: str):
    tenant, store, _other, user = create_tenant_user(db_session, suffix=suffix)
    terminal = create_terminal(db_session, tenant=tenant, store=store)
    scope = scope_for(user)
    service = TillService(db_session)
    session = service.open_till(scope, terminal_id=terminal.id, opening_float=Decimal("10.00"))
    service.close_till(scope, session.id, closing_cash_actual=Decimal("10.00"))
    return tenant, session


def test_integrity_scan_no_findings(db_session, capsys):
    tenant, _session = _closed_till(db_session, "scan-ok")

    database_url = db_session.get_bind().url.render_as_string(hide_password=False)
    exit_code = run_scan(str(tenant.id), "json", True, database_url=database_url)
    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert payload["summary"] == {"total": 0, "critical": 0, "warn": 0}


def test_integrity_scan_critical_exit(db_session, capsys):
    tenant, session = _closed_till(db_session, "scan-bad")
    db_session.execute(update(TillSession).where(TillSession.id == session.id).values(over_short=Decimal("3.00")))
    db_session.commit()

    database_url = db_session.get_bind().url.render_as_string(hide_password=False)
    exit_code = main(["--tenant", "all", "--format", "text", "--fail-on-critical", "--database-url", database_url])
    output = capsys.readouterr().out
    assert exit_code == 1
    assert "closed_till_reconciliation" in output
    assert "CRITICAL: 1" in output
