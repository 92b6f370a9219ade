from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from app.tillpoint.core.config import settings
from app.tillpoint.core.context import RequestContext
from app.tillpoint.core.deps import require_active_user, require_permission, require_request_context
from app.tillpoint.core.scope import require_scope
from app.tillpoint.db.models import TillMovement, TillSession
from app.tillpoint.db.session import get_db
from app.tillpoint.schemas.errors import ApiErrorResponse, ApiValidationErrorResponse
from app.tillpoint.schemas.tills import (
    MovementKindField,
    TillActiveResponse,
    TillAmountRequest,
    TillCloseRequest,
    TillHistoryResponse,
    TillMovementListResponse,
    TillMovementRequest,
    TillMovementResponse,
    TillOpenRequest,
    TillReconciliationResponse,
    TillSessionResponse,
    TillSummaryResponse,
)
from app.tillpoint.services.audit import AuditEventPayload, AuditService
from app.tillpoint.services.idempotency import begin_idempotent_request, finish_idempotent_request
from app.tillpoint.services.reconciliation import classify_over_short
from app.tillpoint.services.tills import TillService, TillSummary


router = APIRouter()

_ERROR_RESPONSES = {
    403: {"model": ApiErrorResponse},
    404: {"model": ApiErrorResponse},
    409: {"model": ApiErrorResponse},
    422: {"model": ApiValidationErrorResponse},
}


def _str_or_none(value) -> str | None:
    return str(value) if value is not None else None


def _session_response(session: TillSession) -> TillSessionResponse:
    return TillSessionResponse(
        id=str(session.id),
        tenant_id=str(session.tenant_id),
        store_id=str(session.store_id),
        terminal_id=str(session.terminal_id),
        status=session.status,
        opened_by_user_id=str(session.opened_by_user_id),
        opened_at=session.opened_at,
        opening_float=session.opening_float,
        notes=session.notes,
        closed_by_user_id=_str_or_none(session.closed_by_user_id),
        closed_at=session.closed_at,
        closing_cash_actual=session.closing_cash_actual,
        expected_cash=session.expected_cash,
        over_short=session.over_short,
        closing_notes=session.closing_notes,
    )


def _summary_response(summary: TillSummary) -> TillSummaryResponse:
    session = summary.session
    totals = summary.totals
    return TillSummaryResponse(
        till_id=str(session.id),
        terminal_id=str(session.terminal_id),
        status=session.status,
        opening_float=totals.opening_float,
        sales=totals.sales,
        refunds=totals.refunds,
        cash_in=totals.cash_in,
        cash_out=totals.cash_out,
        payouts=totals.payouts,
        expected_cash=totals.expected_cash,
        movement_count=totals.movement_count,
        closing_cash_actual=summary.closing_cash_actual,
        over_short=summary.over_short,
        over_short_type=classify_over_short(summary.over_short),
    )


def _movement_response(movement: TillMovement) -> TillMovementResponse:
    return TillMovementResponse(
        id=str(movement.id),
        till_session_id=str(movement.till_session_id),
        terminal_id=str(movement.terminal_id),
        kind=movement.kind,
        amount=movement.amount,
        reference=movement.reference,
        notes=movement.notes,
        recorded_by_user_id=str(movement.recorded_by_user_id),
        trace_id=movement.trace_id,
        recorded_at=movement.recorded_at,
    )


def _audit(
    db,
    context: RequestContext,
    current_user,
    *,
    action: str,
    session: TillSession,
    after: dict | None,
    metadata: dict | None = None,
) -> None:
    AuditService(db).record_event(
        AuditEventPayload(
            tenant_id=str(session.tenant_id),
            user_id=context.user_id,
            store_id=str(session.store_id),
            trace_id=context.trace_id or None,
            actor=current_user.username,
            actor_role=context.role,
            terminal_id=str(session.terminal_id),
            action=action,
            entity_type="till_session",
            entity_id=str(session.id),
            before=None,
            after=after,
            metadata=metadata,
            result="success",
        )
    )


@router.post("/tillpoint/tills/open", response_model=TillSessionResponse, status_code=201, responses=_ERROR_RESPONSES)
def open_till(
    request: Request,
    payload: TillOpenRequest,
    context: RequestContext = Depends(require_request_context),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("CASH_TILL_OPEN")),
    db=Depends(get_db),
):
    require_scope(context)
    replay = begin_idempotent_request(request, db, tenant_id=context.tenant_id, payload=payload.model_dump(mode="json"))
    if replay:
        return replay.as_response()

    session = TillService(db).open_till(
        context,
        terminal_id=payload.terminal_id,
        opening_float=payload.opening_float,
        opened_by_user_id=payload.opened_by_user_id,
        notes=payload.notes,
    )
    response = _session_response(session)
    finish_idempotent_request(request, status_code=201, response_body=response.model_dump(mode="json"))
    _audit(
        db,
        context,
        current_user,
        action="till_session.open",
        session=session,
        after={"status": "OPEN", "opening_float": format(session.opening_float, "f")},
    )
    return response


@router.get("/tillpoint/tills/active", response_model=TillActiveResponse)
def get_active_till(
    terminal_id: str,
    context: RequestContext = Depends(require_request_context),
    _user=Depends(require_active_user),
    _permission=Depends(require_permission("CASH_TILL_VIEW")),
    db=Depends(get_db),
):
    session = TillService(db).get_active_till(context, terminal_id)
    return TillActiveResponse(session=_session_response(session) if session else None)


@router.get("/tillpoint/terminals/{terminal_id}/tills", response_model=TillHistoryResponse)
def list_terminal_tills(
    terminal_id: UUID,
    limit: int = Query(20, ge=1, le=200),
    context: RequestContext = Depends(require_request_context),
    _user=Depends(require_active_user),
    _permission=Depends(require_permission("CASH_TILL_VIEW")),
    db=Depends(get_db),
):
    sessions = TillService(db).terminal_history(context, terminal_id, limit=limit)
    return TillHistoryResponse(rows=[_session_response(session) for session in sessions])


@router.get("/tillpoint/tills/{till_id}", response_model=TillSessionResponse)
def get_till(
    till_id: UUID,
    context: RequestContext = Depends(require_request_context),
    _user=Depends(require_active_user),
    _permission=Depends(require_permission("CASH_TILL_VIEW")),
    db=Depends(get_db),
):
    return _session_response(TillService(db).get_till(context, till_id))


def _record_movement(
    request: Request,
    db,
    context: RequestContext,
    current_user,
    *,
    till_id: UUID,
    kind: str,
    payload: TillAmountRequest,
):
    require_scope(context)
    body = payload.model_dump(mode="json")
    body["kind"] = kind
    replay = begin_idempotent_request(request, db, tenant_id=context.tenant_id, payload=body)
    if replay:
        return replay.as_response()

    summary = TillService(db).record_movement(
        context,
        till_id,
        kind=kind,
        amount=payload.amount,
        reference=payload.reference,
        notes=payload.notes,
    )
    response = _summary_response(summary)
    finish_idempotent_request(request, status_code=200, response_body=response.model_dump(mode="json"))
    _audit(
        db,
        context,
        current_user,
        action=f"till_session.{kind.lower()}",
        session=summary.session,
        after={"expected_cash": format(summary.totals.expected_cash, "f")},
        metadata={"kind": kind, "amount": format(payload.amount, "f"), "reference": payload.reference},
    )
    return response


@router.post("/tillpoint/tills/{till_id}/movements", response_model=TillSummaryResponse, responses=_ERROR_RESPONSES)
def record_movement(
    request: Request,
    till_id: UUID,
    payload: TillMovementRequest,
    context: RequestContext = Depends(require_request_context),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("CASH_TILL_MOVEMENT")),
    db=Depends(get_db),
):
    return _record_movement(request, db, context, current_user, till_id=till_id, kind=payload.kind, payload=payload)


@router.post("/tillpoint/tills/{till_id}/record-sale", response_model=TillSummaryResponse, responses=_ERROR_RESPONSES)
def record_sale(
    request: Request,
    till_id: UUID,
    payload: TillAmountRequest,
    context: RequestContext = Depends(require_request_context),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("CASH_TILL_MOVEMENT")),
    db=Depends(get_db),
):
    return _record_movement(request, db, context, current_user, till_id=till_id, kind="SALE", payload=payload)


@router.post("/tillpoint/tills/{till_id}/refund", response_model=TillSummaryResponse, responses=_ERROR_RESPONSES)
def record_refund(
    request: Request,
    till_id: UUID,
    payload: TillAmountRequest,
    context: RequestContext = Depends(require_request_context),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("CASH_TILL_MOVEMENT")),
    db=Depends(get_db),
):
    return _record_movement(request, db, context, current_user, till_id=till_id, kind="REFUND", payload=payload)


@router.post("/tillpoint/tills/{till_id}/cash-in", response_model=TillSummaryResponse, responses=_ERROR_RESPONSES)
def record_cash_in(
    request: Request,
    till_id: UUID,
    payload: TillAmountRequest,
    context: RequestContext = Depends(require_request_context),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("CASH_TILL_MOVEMENT")),
    db=Depends(get_db),
):
    return _record_movement(request, db, context, current_user, till_id=till_id, kind="CASH_IN", payload=payload)


@router.post("/tillpoint/tills/{till_id}/cash-out", response_model=TillSummaryResponse, responses=_ERROR_RESPONSES)
def record_cash_out(
    request: Request,
    till_id: UUID,
    payload: TillAmountRequest,
    context: RequestContext = Depends(require_request_context),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("CASH_TILL_MOVEMENT")),
    db=Depends(get_db),
):
    return _record_movement(request, db, context, current_user, till_id=till_id, kind="CASH_OUT", payload=payload)


@router.post("/tillpoint/tills/{till_id}/payout", response_model=TillSummaryResponse, responses=_ERROR_RESPONSES)
def record_payout(
    request: Request,
    till_id: UUID,
    payload: TillAmountRequest,
    context: RequestContext = Depends(require_request_context),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("CASH_TILL_MOVEMENT")),
    db=Depends(get_db),
):
    return _record_movement(request, db, context, current_user, till_id=till_id, kind="PAYOUT", payload=payload)


@router.get("/tillpoint/tills/{till_id}/movements", response_model=TillMovementListResponse)
def list_movements(
    till_id: UUID,
    kind: MovementKindField | None = None,
    limit: int = Query(100, ge=1, le=settings.TILL_MOVEMENTS_MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    context: RequestContext = Depends(require_request_context),
    _user=Depends(require_active_user),
    _permission=Depends(require_permission("CASH_TILL_VIEW")),
    db=Depends(get_db),
):
    rows, total = TillService(db).list_movements(context, till_id, kind=kind, limit=limit, offset=offset)
    return TillMovementListResponse(rows=[_movement_response(row) for row in rows], total=total)


@router.get("/tillpoint/tills/{till_id}/summary", response_model=TillSummaryResponse)
def get_till_summary(
    till_id: UUID,
    context: RequestContext = Depends(require_request_context),
    _user=Depends(require_active_user),
    _permission=Depends(require_permission("CASH_TILL_VIEW")),
    db=Depends(get_db),
):
    return _summary_response(TillService(db).get_till_summary(context, till_id))


@router.get("/tillpoint/tills/{till_id}/reconciliation", response_model=TillReconciliationResponse)
def get_till_reconciliation(
    till_id: UUID,
    context: RequestContext = Depends(require_request_context),
    _user=Depends(require_active_user),
    _permission=Depends(require_permission("CASH_TILL_VIEW")),
    db=Depends(get_db),
):
    session, check = TillService(db).replay_reconciliation(context, till_id)
    totals = check.totals
    return TillReconciliationResponse(
        till_id=str(session.id),
        status=session.status,
        consistent=check.consistent,
        opening_float=totals.opening_float,
        sales=totals.sales,
        refunds=totals.refunds,
        cash_in=totals.cash_in,
        cash_out=totals.cash_out,
        payouts=totals.payouts,
        movement_count=totals.movement_count,
        recomputed_expected_cash=totals.expected_cash,
        stored_expected_cash=check.stored_expected_cash,
        closing_cash_actual=session.closing_cash_actual,
        recomputed_over_short=check.recomputed_over_short,
        stored_over_short=check.stored_over_short,
    )


@router.post("/tillpoint/tills/{till_id}/close", response_model=TillSessionResponse, responses=_ERROR_RESPONSES)
def close_till(
    request: Request,
    till_id: UUID,
    payload: TillCloseRequest,
    context: RequestContext = Depends(require_request_context),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("CASH_TILL_CLOSE")),
    db=Depends(get_db),
):
    require_scope(context)
    replay = begin_idempotent_request(request, db, tenant_id=context.tenant_id, payload=payload.model_dump(mode="json"))
    if replay:
        return replay.as_response()

    session = TillService(db).close_till(
        context,
        till_id,
        closing_cash_actual=payload.closing_cash_actual,
        notes=payload.notes,
    )
    response = _session_response(session)
    finish_idempotent_request(request, status_code=200, response_body=response.model_dump(mode="json"))
    metadata = None
    if payload.expected_cash is not None:
        metadata = {"client_expected_cash": format(payload.expected_cash, "f")}
    _audit(
        db,
        context,
        current_user,
        action="till_session.close",
        session=session,
        after={
            "status": session.status,
            "expected_cash": format(session.expected_cash, "f"),
            "closing_cash_actual": format(session.closing_cash_actual, "f"),
            "over_short": format(session.over_short, "f"),
        },
        metadata=metadata,
    )
    return response
