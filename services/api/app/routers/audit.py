from __future__ import annotations

from fastapi import APIRouter, Depends
from packages.shared.schemas.events import EventV1
from services.api.app.db.deps import get_store
from services.api.app.routers._common import raise_core_http_error
from services.api.app.services.errors import CoreError
from services.api.app.services.lives import require_live
from services.api.app.services.repository import LiveStore

router = APIRouter()


@router.get("/v1/lives/{live_id}/events", response_model=list[EventV1])
def list_live_events(live_id: str, store: LiveStore = Depends(get_store)) -> list[EventV1]:
    try:
        require_live(store, live_id)
        rows = store.events.list_for_live(live_id)
    except CoreError as e:
        raise_core_http_error(e)

    return [
        EventV1(
            id=r.event_id,
            live_id=r.live_id,
            entity_type=r.entity_type,
            entity_id=r.entity_id,
            event_type=r.event_type,
            payload=r.payload,
            created_at=r.created_at.isoformat() if r.created_at else None,
        )
        for r in rows
    ]
