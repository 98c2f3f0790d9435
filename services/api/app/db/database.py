from __future__ import annotations

import os
from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

_ENGINE: Engine | None = None
_ENGINE_URL: str | None = None
_SESSIONMAKER: sessionmaker | None = None


def database_url() -> str:
    # Local-only default. Production must provide DATABASE_URL explicitly.
    return os.getenv("DATABASE_URL", "sqlite+pysqlite:///.local/livebasket.db")


def _ensure_sqlite_dir(url: str) -> None:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite" or not parsed.database or parsed.database == ":memory:":
        return
    Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)


def get_engine() -> Engine:
    """Return a cached SQLAlchemy engine.

    The cache is keyed on DATABASE_URL so tests can point each case at a fresh SQLite file;
    switching URLs disposes the previous engine.
    """

    global _ENGINE, _ENGINE_URL, _SESSIONMAKER

    url = database_url()

    if _ENGINE is not None and _ENGINE_URL == url:
        return _ENGINE

    if _ENGINE is not None:
        _ENGINE.dispose()

    connect_args: dict = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        _ensure_sqlite_dir(url)

    _ENGINE = create_engine(url, future=True, connect_args=connect_args)
    _ENGINE_URL = url
    # expire_on_commit=False: repositories map rows to domain records after commit.
    _SESSIONMAKER = sessionmaker(
        bind=_ENGINE, class_=Session, autoflush=False, expire_on_commit=False
    )
    return _ENGINE


def db_session() -> Session:
    get_engine()
    assert _SESSIONMAKER is not None
    return _SESSIONMAKER()
