from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

_db_time_ms: ContextVar[float | None] = ContextVar("db_time_ms", default=None)


@contextmanager
def db_time_tracking() -> Iterator[None]:
    """Accumulate SQL execution time for the current request."""
    token = _db_time_ms.set(0.0)
    try:
        yield
    finally:
        _db_time_ms.reset(token)


def add_db_time(delta_ms: float) -> None:
    current = _db_time_ms.get()
    if current is None:
        return
    _db_time_ms.set(current + delta_ms)


def get_db_time_ms() -> float | None:
    return _db_time_ms.get()
