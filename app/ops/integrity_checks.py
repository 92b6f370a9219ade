from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select

from app.tillpoint.core.metrics import metrics
from app.tillpoint.db.models import Tenant, TillMovement, TillSession
from app.tillpoint.repos.till_movements import TillMovementRepository
from app.tillpoint.services.reconciliation import replay


SEVERITY_CRITICAL = "CRITICAL"
SEVERITY_WARN = "WARN"


@dataclass(frozen=True)
class IntegrityFinding:
    check_id: str
    severity: str
    tenant_id: str
    message: str
    entity: str
    entity_id: str | None
    details: dict


def _format_datetime(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def _format_money(value) -> str | None:
    if value is None:
        return None
    return format(value, "f")


def resolve_tenants(db, tenant: str) -> list[str]:
    if tenant.lower() != "all":
        return [tenant]
    return [str(row.id) for row in db.execute(select(Tenant.id)).all()]


def check_multiple_open_sessions(db, tenant_id: str) -> list[IntegrityFinding]:
    rows = db.execute(
        select(TillSession.terminal_id, func.count(TillSession.id).label("open_count"))
        .where(TillSession.tenant_id == tenant_id, TillSession.status == "OPEN")
        .group_by(TillSession.terminal_id)
        .having(func.count(TillSession.id) > 1)
    ).all()
    findings = [
        IntegrityFinding(
            check_id="multiple_open_till_sessions",
            severity=SEVERITY_CRITICAL,
            tenant_id=tenant_id,
            message="Multiple OPEN till sessions for one terminal.",
            entity="till_sessions",
            entity_id=None,
            details={"terminal_id": str(row.terminal_id), "open_count": int(row.open_count)},
        )
        for row in rows
    ]
    if findings:
        metrics.increment_invariant_violation("multiple_open_till_sessions", len(findings))
    return findings


def check_session_fsm(db, tenant_id: str) -> list[IntegrityFinding]:
    rows = db.execute(
        select(
            TillSession.id,
            TillSession.status,
            TillSession.closed_at,
            TillSession.closing_cash_actual,
            TillSession.expected_cash,
            TillSession.over_short,
        ).where(TillSession.tenant_id == tenant_id)
    ).all()
    findings = []
    for row in rows:
        close_fields = (row.closed_at, row.closing_cash_actual, row.expected_cash, row.over_short)
        if row.status == "OPEN":
            invalid = any(value is not None for value in close_fields)
        elif row.status == "CLOSED":
            invalid = any(value is None for value in close_fields)
        else:
            invalid = True
        if invalid:
            findings.append(
                IntegrityFinding(
                    check_id="till_session_fsm",
                    severity=SEVERITY_CRITICAL,
                    tenant_id=tenant_id,
                    message="Till session status and close fields inconsistent.",
                    entity="till_sessions",
                    entity_id=str(row.id),
                    details={
                        "status": row.status,
                        "closed_at": _format_datetime(row.closed_at),
                        "closing_cash_actual": _format_money(row.closing_cash_actual),
                        "expected_cash": _format_money(row.expected_cash),
                        "over_short": _format_money(row.over_short),
                    },
                )
            )
    if findings:
        metrics.increment_invariant_violation("till_session_fsm", len(findings))
    return findings


def check_closed_reconciliation(db, tenant_id: str) -> list[IntegrityFinding]:
    sessions = db.execute(
        select(TillSession).where(
            TillSession.tenant_id == tenant_id,
            TillSession.status == "CLOSED",
            TillSession.expected_cash.is_not(None),
        )
    ).scalars().all()
    movements = TillMovementRepository(db)
    findings = []
    for session in sessions:
        check = replay(
            session.opening_float,
            movements.ledger_entries(session.id),
            closing_cash_actual=session.closing_cash_actual,
            stored_expected_cash=session.expected_cash,
            stored_over_short=session.over_short,
        )
        if check.consistent:
            continue
        findings.append(
            IntegrityFinding(
                check_id="closed_till_reconciliation",
                severity=SEVERITY_CRITICAL,
                tenant_id=tenant_id,
                message="Stored close figures disagree with ledger replay.",
                entity="till_sessions",
                entity_id=str(session.id),
                details={
                    "stored_expected_cash": _format_money(check.stored_expected_cash),
                    "recomputed_expected_cash": _format_money(check.totals.expected_cash),
                    "stored_over_short": _format_money(check.stored_over_short),
                    "recomputed_over_short": _format_money(check.recomputed_over_short),
                },
            )
        )
    if findings:
        metrics.increment_invariant_violation("closed_till_reconciliation", len(findings))
    return findings


def check_movements_after_close(db, tenant_id: str) -> list[IntegrityFinding]:
    rows = db.execute(
        select(TillMovement.id, TillMovement.till_session_id, TillMovement.recorded_at, TillSession.closed_at)
        .join(TillSession, TillMovement.till_session_id == TillSession.id)
        .where(TillMovement.tenant_id == tenant_id)
        .where(TillSession.status == "CLOSED")
        .where(TillSession.closed_at.is_not(None))
        .where(TillMovement.recorded_at > TillSession.closed_at)
    ).all()
    findings = [
        IntegrityFinding(
            check_id="movement_after_close",
            severity=SEVERITY_CRITICAL,
            tenant_id=tenant_id,
            message="Movement recorded after its till session closed.",
            entity="till_movements",
            entity_id=str(row.id),
            details={
                "till_session_id": str(row.till_session_id),
                "recorded_at": _format_datetime(row.recorded_at),
                "closed_at": _format_datetime(row.closed_at),
            },
        )
        for row in rows
    ]
    if findings:
        metrics.increment_invariant_violation("movement_after_close", len(findings))
    return findings


def run_integrity_checks(db, tenant_id: str) -> list[IntegrityFinding]:
    findings: list[IntegrityFinding] = []
    findings.extend(check_multiple_open_sessions(db, tenant_id))
    findings.extend(check_session_fsm(db, tenant_id))
    findings.extend(check_closed_reconciliation(db, tenant_id))
    findings.extend(check_movements_after_close(db, tenant_id))
    return findings
