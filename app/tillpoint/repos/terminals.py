from sqlalchemy import func, select

from app.tillpoint.db.models import Terminal


class TerminalRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, terminal_id: str) -> Terminal | None:
        return self.db.get(Terminal, terminal_id)

    def get_by_code(self, tenant_id: str, code: str) -> Terminal | None:
        stmt = select(Terminal).where(Terminal.tenant_id == tenant_id, Terminal.code == code)
        return self.db.execute(stmt).scalars().first()

    def list_by_tenant(self, tenant_id: str, *, store_id: str | None = None, is_active: bool | None = None):
        stmt = select(Terminal).where(Terminal.tenant_id == tenant_id)
        count_stmt = select(func.count()).select_from(Terminal).where(Terminal.tenant_id == tenant_id)
        if store_id:
            stmt = stmt.where(Terminal.store_id == store_id)
            count_stmt = count_stmt.where(Terminal.store_id == store_id)
        if is_active is not None:
            stmt = stmt.where(Terminal.is_active.is_(is_active))
            count_stmt = count_stmt.where(Terminal.is_active.is_(is_active))
        rows = self.db.execute(stmt.order_by(Terminal.code.asc())).scalars().all()
        total = self.db.execute(count_stmt).scalar_one()
        return rows, total

    def create(self, terminal: Terminal) -> Terminal:
        self.db.add(terminal)
        self.db.commit()
        self.db.refresh(terminal)
        return terminal
