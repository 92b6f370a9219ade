from fastapi import APIRouter, Depends, Request

from app.tillpoint.core.deps import get_current_token_data, require_active_user, require_request_context
from app.tillpoint.db.session import get_db
from app.tillpoint.schemas.auth import UserResponse
from app.tillpoint.services.access_control import AccessControlService

router = APIRouter()


@router.get("/me", response_model=UserResponse)
def me(
    request: Request,
    token_data=Depends(get_current_token_data),
    context=Depends(require_request_context),
    _user=Depends(require_active_user),
    db=Depends(get_db),
):
    decisions = AccessControlService(db).effective_permissions(context)
    return UserResponse(
        id=context.user_id or token_data.sub,
        username=token_data.username,
        email=token_data.email,
        tenant_id=context.tenant_id or token_data.tenant_id,
        store_id=context.store_id,
        terminal_id=context.terminal_id,
        role=context.role or token_data.role,
        status=token_data.status,
        is_active=token_data.is_active,
        permissions=[decision.key for decision in decisions if decision.allowed],
        trace_id=getattr(request.state, "trace_id", ""),
    )
