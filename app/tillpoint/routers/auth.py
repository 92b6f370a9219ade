from fastapi import APIRouter, Depends, Request

from app.tillpoint.core.error_catalog import AppError
from app.tillpoint.db.session import get_db
from app.tillpoint.repos.users import UserRepository
from app.tillpoint.schemas.auth import LoginRequest, TokenResponse
from app.tillpoint.services.audit import AuditEventPayload, AuditService
from app.tillpoint.services.auth import AuthService

router = APIRouter()


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login (JSON)",
    description="Login with email or username_or_email; returns a bearer token scoped to the user's tenant.",
)
def login(request: Request, payload: LoginRequest, db=Depends(get_db)):
    identifier = payload.email or payload.username_or_email
    trace_id = getattr(request.state, "trace_id", "")

    try:
        user, token = AuthService(db).login(identifier, payload.password)
    except AppError as exc:
        candidates = UserRepository(db).list_by_username_or_email(identifier)
        if candidates:
            candidate = candidates[0]
            AuditService(db).record_event(
                AuditEventPayload(
                    tenant_id=str(candidate.tenant_id),
                    user_id=str(candidate.id),
                    store_id=str(candidate.store_id) if candidate.store_id else None,
                    trace_id=trace_id or None,
                    actor=identifier,
                    actor_role=candidate.role,
                    action="auth.login.failed",
                    entity_type="user",
                    entity_id=str(candidate.id),
                    before=None,
                    after=None,
                    metadata={"error_code": exc.error.code},
                    result="failure",
                )
            )
        raise

    AuditService(db).record_event(
        AuditEventPayload(
            tenant_id=str(user.tenant_id),
            user_id=str(user.id),
            store_id=str(user.store_id) if user.store_id else None,
            trace_id=trace_id or None,
            actor=user.username,
            actor_role=user.role,
            action="auth.login",
            entity_type="user",
            entity_id=str(user.id),
            before=None,
            after=None,
            metadata=None,
            result="success",
        )
    )
    return TokenResponse(
        access_token=token,
        must_change_password=user.must_change_password,
        trace_id=trace_id,
    )
