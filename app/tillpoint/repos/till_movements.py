from decimal import Decimal

from sqlalchemy import func, select

from app.tillpoint.db.models import TillMovement


class TillMovementRepository:
    """Append-only access to the movement ledger: no update or delete paths exist."""

    def __init__(self, db):
        self.db = db

    def append(self, movement: TillMovement) -> TillMovement:
        self.db.add(movement)
        self.db.flush()
        return movement

    def ledger_entries(self, till_session_id) -> list[tuple[str, Decimal]]:
        stmt = (
            select(TillMovement.kind, TillMovement.amount)
            .where(TillMovement.till_session_id == till_session_id)
            .order_by(TillMovement.recorded_at.asc(), TillMovement.id.asc())
        )
        return [(row.kind, row.amount) for row in self.db.execute(stmt).all()]

    def list_for_session(
        self,
        till_session_id,
        *,
        kind: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[TillMovement], int]:
        stmt = select(TillMovement).where(TillMovement.till_session_id == till_session_id)
        count_stmt = (
            select(func.count()).select_from(TillMovement).where(TillMovement.till_session_id == till_session_id)
        )
        if kind:
            stmt = stmt.where(TillMovement.kind == kind)
            count_stmt = count_stmt.where(TillMovement.kind == kind)
        stmt = stmt.order_by(TillMovement.recorded_at.asc(), TillMovement.id.asc()).limit(limit).offset(offset)
        rows = list(self.db.execute(stmt).scalars().all())
        total = self.db.execute(count_stmt).scalar_one()
        return rows, total
