from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from app.tillpoint.core.context import RequestContext
from app.tillpoint.core.error_catalog import (
    AppError,
    ConflictError,
    ErrorCatalog,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from app.tillpoint.core.metrics import metrics
from app.tillpoint.core.scope import (
    enforce_store_scope,
    enforce_tenant_scope,
    enforce_terminal_scope,
    normalize_identifier,
    require_scope,
)
from app.tillpoint.db.models import Terminal, TillMovement, TillSession
from app.tillpoint.repos.terminals import TerminalRepository
from app.tillpoint.repos.till_movements import TillMovementRepository
from app.tillpoint.repos.till_sessions import TillSessionRepository
from app.tillpoint.repos.users import UserRepository
from app.tillpoint.services.reconciliation import (
    MOVEMENT_KINDS,
    InvalidAmount,
    LedgerTotals,
    ReconciliationCheck,
    compute_over_short,
    replay,
    summarize_ledger,
    to_money,
)
from app.tillpoint.services.till_directory import SessionDirectory


@dataclass(frozen=True)
class TillSummary:
    session: TillSession
    totals: LedgerTotals

    @property
    def closing_cash_actual(self) -> Decimal | None:
        return self.session.closing_cash_actual

    @property
    def over_short(self) -> Decimal | None:
        return self.session.over_short


def _money(value, field: str, *, allow_zero: bool) -> Decimal:
    try:
        amount = to_money(value)
    except InvalidAmount as exc:
        raise ValidationError(details={"message": str(exc), "field": field}) from exc
    if amount < 0 or (amount == 0 and not allow_zero):
        bound = "greater than or equal to 0" if allow_zero else "greater than 0"
        raise ValidationError(details={"message": f"{field} must be {bound}", "field": field})
    return amount


def _not_open(session: TillSession) -> InvalidStateError:
    return InvalidStateError(
        ErrorCatalog.TILL_NOT_OPEN,
        details={"till_id": str(session.id), "status": session.status},
    )


class TillService:
    """Till session state machine: OPEN on creation, CLOSED exactly once, never reopened.

    Every public method takes the caller's scoping context explicitly and runs as a
    single transaction; a rejected operation rolls back and leaves nothing behind.
    """

    def __init__(self, db):
        self.db = db
        self.sessions = TillSessionRepository(db)
        self.movements = TillMovementRepository(db)
        self.terminals = TerminalRepository(db)
        self.directory = SessionDirectory(db)

    @contextmanager
    def _unit_of_work(self) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except AppError as exc:
            self.db.rollback()
            metrics.increment_till_rejection(exc.error.code)
            raise
        except Exception:
            self.db.rollback()
            raise

    def _load_terminal(self, scope: RequestContext, terminal_id) -> Terminal:
        terminal = self.terminals.get_by_id(normalize_identifier(terminal_id, "terminal_id"))
        if terminal is None:
            raise NotFoundError(ErrorCatalog.TERMINAL_NOT_FOUND, details={"terminal_id": str(terminal_id)})
        enforce_terminal_scope(scope, terminal)
        return terminal

    def _load_till(self, scope: RequestContext, till_id, *, lock=None) -> TillSession:
        session = self.sessions.get_by_id(normalize_identifier(till_id, "till_id"), lock=lock)
        if session is None:
            raise NotFoundError(ErrorCatalog.TILL_NOT_FOUND, details={"till_id": str(till_id)})
        enforce_tenant_scope(scope, session.tenant_id)
        enforce_store_scope(scope, session.store_id)
        if scope.terminal_id and normalize_identifier(scope.terminal_id, "terminal_id") != str(session.terminal_id):
            raise AppError(
                ErrorCatalog.TERMINAL_SCOPE_MISMATCH,
                details={"terminal_id": str(session.terminal_id), "bound_terminal_id": scope.terminal_id},
            )
        return session

    def open_till(
        self,
        scope: RequestContext,
        *,
        terminal_id,
        opening_float,
        opened_by_user_id=None,
        notes: str | None = None,
    ) -> TillSession:
        require_scope(scope)
        amount = _money(opening_float, "opening_float", allow_zero=True)
        with self._unit_of_work():
            terminal = self._load_terminal(scope, terminal_id)
            if not terminal.is_active:
                raise InvalidStateError(ErrorCatalog.TERMINAL_INACTIVE, details={"terminal_id": str(terminal.id)})
            opener_id = self._resolve_opener(scope, opened_by_user_id)
            active = self.directory.get_active(terminal.id)
            if active is not None:
                raise ConflictError(details={"terminal_id": str(terminal.id), "till_id": str(active.id)})
            session = TillSession(
                tenant_id=terminal.tenant_id,
                store_id=terminal.store_id,
                terminal_id=terminal.id,
                status="OPEN",
                opened_by_user_id=opener_id,
                opened_at=datetime.utcnow(),
                opening_float=amount,
                notes=notes,
            )
            conflict_details = {"terminal_id": str(terminal.id)}
            try:
                self.sessions.insert_open(session)
            except IntegrityError as exc:
                # Lost the race to a concurrent open on the same terminal; the failed
                # flush leaves the session unusable until rolled back.
                self.db.rollback()
                raise ConflictError(details=conflict_details) from exc
        metrics.increment_till_transition("open")
        return session

    def _resolve_opener(self, scope: RequestContext, opened_by_user_id) -> str:
        if opened_by_user_id is None:
            return normalize_identifier(scope.user_id, "user_id")
        opener_id = normalize_identifier(opened_by_user_id, "opened_by_user_id")
        if UserRepository(self.db).get_by_id_in_tenant(opener_id, scope.tenant_id) is None:
            raise ValidationError(
                details={"message": "opened_by_user_id is not a user of this tenant", "field": "opened_by_user_id"}
            )
        return opener_id

    def get_active_till(self, scope: RequestContext, terminal_id) -> TillSession | None:
        require_scope(scope)
        terminal = self._load_terminal(scope, terminal_id)
        return self.directory.get_active(terminal.id)

    def terminal_history(self, scope: RequestContext, terminal_id, *, limit: int = 20) -> list[TillSession]:
        require_scope(scope)
        terminal = self._load_terminal(scope, terminal_id)
        return self.directory.history(terminal.id, limit=limit)

    def get_till(self, scope: RequestContext, till_id) -> TillSession:
        require_scope(scope)
        return self._load_till(scope, till_id)

    def record_movement(
        self,
        scope: RequestContext,
        till_id,
        *,
        kind: str,
        amount,
        reference: str | None = None,
        notes: str | None = None,
    ) -> TillSummary:
        require_scope(scope)
        if kind not in MOVEMENT_KINDS:
            raise ValidationError(details={"message": f"unsupported movement kind {kind!r}", "field": "kind"})
        value = _money(amount, "amount", allow_zero=False)
        with self._unit_of_work():
            session = self._load_till(scope, till_id, lock="share")
            if session.status != "OPEN":
                raise _not_open(session)
            self.movements.append(
                TillMovement(
                    tenant_id=session.tenant_id,
                    till_session_id=session.id,
                    terminal_id=session.terminal_id,
                    kind=kind,
                    amount=value,
                    reference=reference,
                    notes=notes,
                    recorded_by_user_id=normalize_identifier(scope.user_id, "user_id"),
                    trace_id=scope.trace_id or None,
                    recorded_at=datetime.utcnow(),
                )
            )
            # Re-read under the write lock the insert now holds: a close that won
            # the race must reject this movement rather than miss it.
            status = self.sessions.current_status(session.id)
            if status != "OPEN":
                raise InvalidStateError(
                    ErrorCatalog.TILL_NOT_OPEN,
                    details={"till_id": str(session.id), "status": status},
                )
        metrics.increment_till_movement(kind)
        return self._summarize(session)

    def get_till_summary(self, scope: RequestContext, till_id) -> TillSummary:
        require_scope(scope)
        return self._summarize(self._load_till(scope, till_id))

    def _summarize(self, session: TillSession) -> TillSummary:
        totals = summarize_ledger(session.opening_float, self.movements.ledger_entries(session.id))
        return TillSummary(session=session, totals=totals)

    def list_movements(
        self,
        scope: RequestContext,
        till_id,
        *,
        kind: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[TillMovement], int]:
        require_scope(scope)
        if kind is not None and kind not in MOVEMENT_KINDS:
            raise ValidationError(details={"message": f"unsupported movement kind {kind!r}", "field": "kind"})
        session = self._load_till(scope, till_id)
        return self.movements.list_for_session(session.id, kind=kind, limit=limit, offset=offset)

    def close_till(
        self,
        scope: RequestContext,
        till_id,
        *,
        closing_cash_actual,
        notes: str | None = None,
    ) -> TillSession:
        require_scope(scope)
        counted = _money(closing_cash_actual, "closing_cash_actual", allow_zero=True)
        with self._unit_of_work():
            session = self._load_till(scope, till_id, lock="update")
            if session.status != "OPEN":
                raise _not_open(session)
            claimed = self.sessions.claim_close(
                session.id,
                closed_at=datetime.utcnow(),
                closed_by_user_id=normalize_identifier(scope.user_id, "user_id"),
            )
            if not claimed:
                raise InvalidStateError(ErrorCatalog.TILL_NOT_OPEN, details={"till_id": str(session.id)})
            totals = summarize_ledger(session.opening_float, self.movements.ledger_entries(session.id))
            self.sessions.stamp_close_figures(
                session.id,
                closing_cash_actual=counted,
                expected_cash=totals.expected_cash,
                over_short=compute_over_short(counted, totals.expected_cash),
                closing_notes=notes,
            )
        metrics.increment_till_transition("close")
        self.db.refresh(session)
        return session

    def replay_reconciliation(self, scope: RequestContext, till_id) -> tuple[TillSession, ReconciliationCheck]:
        require_scope(scope)
        session = self._load_till(scope, till_id)
        check = replay(
            session.opening_float,
            self.movements.ledger_entries(session.id),
            closing_cash_actual=session.closing_cash_actual,
            stored_expected_cash=session.expected_cash,
            stored_over_short=session.over_short,
        )
        return session, check
