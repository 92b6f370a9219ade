from sqlalchemy import select

from app.tillpoint.db.models import Store


class StoreRepository:
    def __init__(self, db):
        self.db = db

    def get_in_tenant(self, store_id: str, tenant_id: str) -> Store | None:
        stmt = select(Store).where(Store.id == store_id, Store.tenant_id == tenant_id)
        return self.db.execute(stmt).scalars().first()
