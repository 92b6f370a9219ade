from sqlalchemy import select

from app.tillpoint.core.config import settings
from app.tillpoint.core.security import get_password_hash
from app.tillpoint.db.models import (
    PermissionCatalog,
    RoleTemplate,
    RoleTemplatePermission,
    Store,
    Tenant,
    Terminal,
    User,
)


DEFAULT_PERMISSIONS = [
    ("CASH_TILL_VIEW", "View till sessions, summaries and movements"),
    ("CASH_TILL_OPEN", "Open a till session on a terminal"),
    ("CASH_TILL_MOVEMENT", "Record sales, refunds, cash in/out and payouts"),
    ("CASH_TILL_CLOSE", "Close a till session with a cash count"),
    ("TERMINAL_VIEW", "View terminals"),
    ("TERMINAL_MANAGE", "Register terminals"),
]

_ALL_PERMISSIONS = [code for code, _ in DEFAULT_PERMISSIONS]

DEFAULT_ROLE_TEMPLATES = {
    "SUPERADMIN": _ALL_PERMISSIONS,
    "ADMIN": _ALL_PERMISSIONS,
    "MANAGER": _ALL_PERMISSIONS,
    "CASHIER": ["CASH_TILL_VIEW", "CASH_TILL_OPEN", "CASH_TILL_MOVEMENT", "CASH_TILL_CLOSE", "TERMINAL_VIEW"],
    "USER": ["CASH_TILL_VIEW", "TERMINAL_VIEW"],
}


def _get_or_create_tenant(db):
    tenant = db.execute(select(Tenant).where(Tenant.name == settings.DEFAULT_TENANT_NAME)).scalars().first()
    if tenant:
        return tenant
    tenant = Tenant(name=settings.DEFAULT_TENANT_NAME)
    db.add(tenant)
    db.flush()
    return tenant


def _get_or_create_store(db, tenant):
    store = (
        db.execute(select(Store).where(Store.tenant_id == tenant.id, Store.name == settings.DEFAULT_STORE_NAME))
        .scalars()
        .first()
    )
    if store:
        return store
    store = Store(tenant_id=tenant.id, name=settings.DEFAULT_STORE_NAME)
    db.add(store)
    db.flush()
    return store


def _get_or_create_terminal(db, tenant, store):
    terminal = (
        db.execute(
            select(Terminal).where(Terminal.tenant_id == tenant.id, Terminal.code == settings.DEFAULT_TERMINAL_CODE)
        )
        .scalars()
        .first()
    )
    if terminal:
        return terminal
    terminal = Terminal(
        tenant_id=tenant.id,
        store_id=store.id,
        code=settings.DEFAULT_TERMINAL_CODE,
        name=settings.DEFAULT_TERMINAL_CODE.replace("_", " ").title(),
        is_active=True,
    )
    db.add(terminal)
    db.flush()
    return terminal


def _get_or_create_permissions(db):
    existing = {perm.code for perm in db.execute(select(PermissionCatalog)).scalars().all()}
    for code, description in DEFAULT_PERMISSIONS:
        if code not in existing:
            db.add(PermissionCatalog(code=code, description=description))


def _get_or_create_role_templates(db):
    existing = {
        role.name
        for role in db.execute(select(RoleTemplate).where(RoleTemplate.tenant_id.is_(None))).scalars().all()
    }
    for name in DEFAULT_ROLE_TEMPLATES:
        if name not in existing:
            db.add(RoleTemplate(name=name, description=f"System role: {name}", is_system=True))


def _assign_role_permissions(db):
    permissions = {perm.code: perm for perm in db.execute(select(PermissionCatalog)).scalars().all()}
    roles = {
        role.name: role
        for role in db.execute(select(RoleTemplate).where(RoleTemplate.tenant_id.is_(None))).scalars().all()
    }
    existing_pairs = {
        (rtp.role_template_id, rtp.permission_id)
        for rtp in db.execute(select(RoleTemplatePermission)).scalars().all()
    }
    for role_name, permission_codes in DEFAULT_ROLE_TEMPLATES.items():
        role = roles.get(role_name)
        if not role:
            continue
        for code in permission_codes:
            permission = permissions.get(code)
            if not permission or (role.id, permission.id) in existing_pairs:
                continue
            db.add(RoleTemplatePermission(role_template_id=role.id, permission_id=permission.id))


def _get_or_create_superadmin(db, tenant, store):
    user = (
        db.execute(select(User).where(User.username == settings.SUPERADMIN_USERNAME, User.tenant_id == tenant.id))
        .scalars()
        .first()
    )
    if user:
        return user
    user = User(
        tenant_id=tenant.id,
        store_id=store.id,
        username=settings.SUPERADMIN_USERNAME,
        email=settings.SUPERADMIN_EMAIL,
        hashed_password=get_password_hash(settings.SUPERADMIN_PASSWORD),
        role="SUPERADMIN",
        status="active",
        must_change_password=False,
        is_active=True,
    )
    db.add(user)
    return user


def seed_access_control(db):
    """Permission catalog and system role templates only; safe to run repeatedly."""
    _get_or_create_permissions(db)
    _get_or_create_role_templates(db)
    db.flush()
    _assign_role_permissions(db)
    db.commit()


def run_seed(db):
    tenant = _get_or_create_tenant(db)
    store = _get_or_create_store(db, tenant)
    _get_or_create_terminal(db, tenant, store)
    _get_or_create_permissions(db)
    _get_or_create_role_templates(db)
    db.flush()
    _assign_role_permissions(db)
    _get_or_create_superadmin(db, tenant, store)
    db.commit()


if __name__ == "__main__":
    from app.tillpoint.db.session import SessionLocal

    with SessionLocal() as session:
        run_seed(session)
