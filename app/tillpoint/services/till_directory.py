from app.tillpoint.db.models import TillSession
from app.tillpoint.repos.till_sessions import TillSessionRepository


class SessionDirectory:
    """Read-only view of which till session, if any, is open on each terminal.

    Backed by the session table itself, so it always reflects the last committed
    open or close. A terminal without history simply has no active session.
    """

    def __init__(self, db):
        self.repo = TillSessionRepository(db)

    def get_active(self, terminal_id) -> TillSession | None:
        return self.repo.get_open_for_terminal(terminal_id)

    def has_active(self, terminal_id) -> bool:
        return self.get_active(terminal_id) is not None

    def history(self, terminal_id, *, limit: int = 20) -> list[TillSession]:
        return self.repo.list_for_terminal(terminal_id, limit=limit)
