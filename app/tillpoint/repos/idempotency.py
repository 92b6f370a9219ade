from dataclasses import dataclass

from sqlalchemy import select

from app.tillpoint.db.models import IdempotencyRecord


@dataclass(frozen=True)
class IdempotencyLookup:
    tenant_id: str
    endpoint: str
    method: str
    idempotency_key: str


class IdempotencyRepository:
    def __init__(self, db):
        self.db = db

    def find(self, lookup: IdempotencyLookup) -> IdempotencyRecord | None:
        stmt = select(IdempotencyRecord).where(
            IdempotencyRecord.tenant_id == lookup.tenant_id,
            IdempotencyRecord.endpoint == lookup.endpoint,
            IdempotencyRecord.method == lookup.method,
            IdempotencyRecord.idempotency_key == lookup.idempotency_key,
        )
        return self.db.execute(stmt).scalars().first()

    def save(self, record: IdempotencyRecord) -> IdempotencyRecord:
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record
