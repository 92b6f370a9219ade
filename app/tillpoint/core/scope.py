import uuid

from app.tillpoint.core.context import RequestContext
from app.tillpoint.core.error_catalog import AppError, ErrorCatalog, ValidationError


DEFAULT_BROAD_STORE_ROLES = {"SUPERADMIN", "ADMIN"}


def _normalize_role(role: str | None) -> str:
    return (role or "").upper()


def normalize_identifier(value, field: str) -> str:
    try:
        return str(value if isinstance(value, uuid.UUID) else uuid.UUID(str(value)))
    except (TypeError, ValueError) as exc:
        raise ValidationError(details={"message": f"{field} must be a UUID", "field": field}) from exc


def require_scope(context: RequestContext) -> None:
    """Every till operation must be attributable to one user and one tenant."""
    missing = [field for field in ("user_id", "tenant_id") if not getattr(context, field)]
    if missing:
        raise ValidationError(ErrorCatalog.SCOPE_REQUIRED, details={"missing": missing})
    if context.terminal_id is not None:
        normalize_identifier(context.terminal_id, "terminal_id")


def enforce_tenant_scope(context: RequestContext, tenant_id) -> None:
    if normalize_identifier(tenant_id, "tenant_id") != normalize_identifier(context.tenant_id, "tenant_id"):
        raise AppError(ErrorCatalog.CROSS_TENANT_ACCESS_DENIED)


def enforce_store_scope(context: RequestContext, store_id) -> None:
    """Store-bound callers only reach their own store unless their role spans the tenant."""
    if not context.store_id:
        return
    if _normalize_role(context.role) in DEFAULT_BROAD_STORE_ROLES:
        return
    if normalize_identifier(store_id, "store_id") != normalize_identifier(context.store_id, "store_id"):
        raise AppError(ErrorCatalog.STORE_SCOPE_MISMATCH)


def enforce_terminal_scope(context: RequestContext, terminal) -> None:
    enforce_tenant_scope(context, terminal.tenant_id)
    enforce_store_scope(context, terminal.store_id)
    if context.terminal_id is None:
        return
    if normalize_identifier(context.terminal_id, "terminal_id") != str(terminal.id):
        raise AppError(
            ErrorCatalog.TERMINAL_SCOPE_MISMATCH,
            details={"terminal_id": str(terminal.id), "bound_terminal_id": context.terminal_id},
        )
