from __future__ import annotations

from dataclasses import dataclass

from app.tillpoint.core.context import RequestContext
from app.tillpoint.repos.rbac import RoleTemplateRepository


@dataclass(frozen=True)
class PermissionDecision:
    key: str
    allowed: bool
    source: str


class AccessControlService:
    """Role-template permission evaluation.

    A tenant-scoped role template, when present, replaces the system template of the
    same name; otherwise the system template applies. Unknown permission keys and
    missing roles are denied.
    """

    def __init__(self, db, cache: dict | None = None):
        self.repo = RoleTemplateRepository(db)
        self.cache = cache if cache is not None else {}

    def evaluate_permission(self, permission_key: str, context: RequestContext) -> PermissionDecision:
        normalized_key = permission_key.strip()
        if normalized_key not in self._get_catalog_permissions():
            return PermissionDecision(key=normalized_key, allowed=False, source="unknown_permission")

        role_name = (context.role or "").upper() or None
        if not role_name:
            return PermissionDecision(key=normalized_key, allowed=False, source="default_deny")

        if normalized_key in self._get_allowed_permissions(role_name, context.tenant_id):
            return PermissionDecision(key=normalized_key, allowed=True, source="role_template")
        return PermissionDecision(key=normalized_key, allowed=False, source="default_deny")

    def effective_permissions(self, context: RequestContext) -> list[PermissionDecision]:
        return [self.evaluate_permission(key, context) for key in sorted(self._get_catalog_permissions())]

    def _get_catalog_permissions(self) -> set[str]:
        cache_key = "catalog_permissions"
        if cache_key in self.cache:
            return self.cache[cache_key]
        permissions = {perm.code for perm in self.repo.list_permission_catalog()}
        self.cache[cache_key] = permissions
        return permissions

    def _get_allowed_permissions(self, role_name: str, tenant_id: str | None) -> set[str]:
        cache_key = f"role_permissions:{tenant_id}:{role_name}"
        if cache_key in self.cache:
            return self.cache[cache_key]

        permissions: set[str] = set()
        if tenant_id is not None and self.repo.get_role_template(role_name, tenant_id) is not None:
            permissions = set(self.repo.list_permissions_for_role(role_name, tenant_id))
        else:
            permissions = set(self.repo.list_permissions_for_role(role_name, None))

        self.cache[cache_key] = permissions
        return permissions
