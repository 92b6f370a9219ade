from datetime import datetime
from decimal import Decimal
from typing import Literal

from sqlalchemy import select, update

from app.tillpoint.db.models import TillSession

RowLock = Literal["share", "update"]


class TillSessionRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, till_id, *, lock: RowLock | None = None) -> TillSession | None:
        stmt = select(TillSession).where(TillSession.id == till_id)
        if lock == "share":
            stmt = stmt.with_for_update(read=True)
        elif lock == "update":
            stmt = stmt.with_for_update()
        if lock is not None:
            stmt = stmt.execution_options(populate_existing=True)
        return self.db.execute(stmt).scalars().first()

    def current_status(self, till_id) -> str | None:
        return self.db.execute(select(TillSession.status).where(TillSession.id == till_id)).scalar_one_or_none()

    def get_open_for_terminal(self, terminal_id) -> TillSession | None:
        stmt = select(TillSession).where(
            TillSession.terminal_id == terminal_id,
            TillSession.status == "OPEN",
        )
        return self.db.execute(stmt).scalars().first()

    def list_for_terminal(self, terminal_id, *, limit: int = 20) -> list[TillSession]:
        stmt = (
            select(TillSession)
            .where(TillSession.terminal_id == terminal_id)
            .order_by(TillSession.opened_at.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def insert_open(self, session: TillSession) -> TillSession:
        """Stage a new OPEN session; the partial unique index rejects a second one at flush."""
        self.db.add(session)
        self.db.flush()
        return session

    def claim_close(self, till_id, *, closed_at: datetime, closed_by_user_id) -> bool:
        """Guarded OPEN -> CLOSED flip. False when the row was no longer OPEN.

        The UPDATE takes the row's write lock, so ledger reads that follow in the same
        transaction see every movement that can still commit against this session.
        """
        stmt = (
            update(TillSession)
            .where(TillSession.id == till_id, TillSession.status == "OPEN")
            .values(status="CLOSED", closed_at=closed_at, closed_by_user_id=closed_by_user_id)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount == 1

    def stamp_close_figures(
        self,
        till_id,
        *,
        closing_cash_actual: Decimal,
        expected_cash: Decimal,
        over_short: Decimal,
        closing_notes: str | None,
    ) -> None:
        stmt = (
            update(TillSession)
            .where(TillSession.id == till_id, TillSession.status == "CLOSED", TillSession.expected_cash.is_(None))
            .values(
                closing_cash_actual=closing_cash_actual,
                expected_cash=expected_cash,
                over_short=over_short,
                closing_notes=closing_notes,
            )
            .execution_options(synchronize_session=False)
        )
        self.db.execute(stmt)
