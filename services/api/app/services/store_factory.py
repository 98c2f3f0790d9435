from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager

from services.api.app.services.repository import LiveStore


def store_mode() -> str:
    mode = os.getenv("LIVEBASKET_STORE", "sql").strip().lower()
    if mode not in {"sql", "memory"}:
        raise ValueError(f"Unknown LIVEBASKET_STORE={mode!r}. Expected sql or memory.")
    return mode


@contextmanager
def open_live_store() -> Iterator[LiveStore]:
    """Yield the configured store for one unit of work.

    Defaults to the SQL store. ``memory`` shares one process-wide set of tables so local
    demos and tests can run without a database.
    """

    if store_mode() == "memory":
        from services.api.app.services.memory_store import build_memory_store, tables

        yield build_memory_store(tables)
        return

    from services.api.app.db.database import db_session
    from services.api.app.services.sql_store import build_sql_store

    db = db_session()
    try:
        yield build_sql_store(db)
    finally:
        db.close()
