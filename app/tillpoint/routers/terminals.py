from datetime import datetime

from fastapi import APIRouter, Depends, Request

from app.tillpoint.core.context import RequestContext
from app.tillpoint.core.deps import require_active_user, require_permission, require_request_context
from app.tillpoint.core.error_catalog import AppError, ErrorCatalog
from app.tillpoint.core.scope import enforce_store_scope, normalize_identifier, require_scope
from app.tillpoint.db.models import Terminal
from app.tillpoint.db.session import get_db
from app.tillpoint.repos.stores import StoreRepository
from app.tillpoint.repos.terminals import TerminalRepository
from app.tillpoint.schemas.terminals import TerminalCreateRequest, TerminalListResponse, TerminalResponse
from app.tillpoint.services.audit import AuditEventPayload, AuditService
from app.tillpoint.services.idempotency import begin_idempotent_request, finish_idempotent_request


router = APIRouter()


def _terminal_response(terminal: Terminal) -> TerminalResponse:
    return TerminalResponse(
        id=str(terminal.id),
        tenant_id=str(terminal.tenant_id),
        store_id=str(terminal.store_id),
        code=terminal.code,
        name=terminal.name,
        is_active=terminal.is_active,
        created_at=terminal.created_at,
    )


@router.get("/tillpoint/terminals", response_model=TerminalListResponse)
def list_terminals(
    store_id: str | None = None,
    is_active: bool | None = None,
    context: RequestContext = Depends(require_request_context),
    _user=Depends(require_active_user),
    _permission=Depends(require_permission("TERMINAL_VIEW")),
    db=Depends(get_db),
):
    require_scope(context)
    if not store_id:
        store_id = context.store_id
    if store_id:
        store_id = normalize_identifier(store_id, "store_id")
        enforce_store_scope(context, store_id)
    rows, total = TerminalRepository(db).list_by_tenant(context.tenant_id, store_id=store_id, is_active=is_active)
    return TerminalListResponse(rows=[_terminal_response(row) for row in rows], total=total)


@router.post("/tillpoint/terminals", response_model=TerminalResponse, status_code=201)
def create_terminal(
    request: Request,
    payload: TerminalCreateRequest,
    context: RequestContext = Depends(require_request_context),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("TERMINAL_MANAGE")),
    db=Depends(get_db),
):
    require_scope(context)
    store_id = normalize_identifier(payload.store_id, "store_id")
    if StoreRepository(db).get_in_tenant(store_id, context.tenant_id) is None:
        raise AppError(ErrorCatalog.STORE_SCOPE_MISMATCH, details={"store_id": store_id})
    enforce_store_scope(context, store_id)

    replay = begin_idempotent_request(request, db, tenant_id=context.tenant_id, payload=payload.model_dump(mode="json"))
    if replay:
        return replay.as_response()

    repo = TerminalRepository(db)
    code = payload.code.strip().upper()
    if repo.get_by_code(context.tenant_id, code) is not None:
        raise AppError(ErrorCatalog.TERMINAL_CODE_TAKEN, details={"code": code})
    terminal = repo.create(
        Terminal(
            tenant_id=context.tenant_id,
            store_id=store_id,
            code=code,
            name=payload.name.strip(),
            is_active=payload.is_active,
            created_at=datetime.utcnow(),
        )
    )
    response = _terminal_response(terminal)
    finish_idempotent_request(request, status_code=201, response_body=response.model_dump(mode="json"))
    AuditService(db).record_event(
        AuditEventPayload(
            tenant_id=str(terminal.tenant_id),
            user_id=context.user_id,
            store_id=str(terminal.store_id),
            trace_id=context.trace_id or None,
            actor=current_user.username,
            actor_role=context.role,
            terminal_id=str(terminal.id),
            action="terminal.create",
            entity_type="terminal",
            entity_id=str(terminal.id),
            before=None,
            after={"code": terminal.code, "name": terminal.name, "is_active": terminal.is_active},
            metadata=None,
            result="success",
        )
    )
    return response
