from __future__ import annotations

from collections.abc import Generator

from fastapi import HTTPException
from services.api.app.services.repository import LiveStore
from services.api.app.services.store_factory import open_live_store, store_mode


def get_store() -> Generator[LiveStore, None, None]:
    try:
        store_mode()
    except ValueError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    with open_live_store() as store:
        yield store
