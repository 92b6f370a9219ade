from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

# A mutable cell rather than a float: sync endpoints run in a worker thread with a
# copy of the context, so only in-place updates are visible to the middleware.
_db_time_ms: ContextVar[list[float] | None] = ContextVar("tillpoint_db_time_ms", default=None)


@contextmanager
def db_timer() -> Iterator[None]:
    """Accumulate SQL execution time for the current request while the block runs."""
    token = _db_time_ms.set([0.0])
    try:
        yield
    finally:
        _db_time_ms.reset(token)


def add_db_time(delta_ms: float) -> None:
    cell = _db_time_ms.get()
    if cell is None:
        return
    cell[0] += delta_ms


def get_db_time_ms() -> float | None:
    cell = _db_time_ms.get()
    if cell is None:
        return None
    return cell[0]
