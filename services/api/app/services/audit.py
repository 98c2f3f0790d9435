from __future__ import annotations

import logging

from packages.shared.schemas.events import EntityTypeV1, EventTypeV1
from services.api.app.services.errors import BackendFailure
from services.api.app.services.repository import LiveStore

logger = logging.getLogger(__name__)


def record_event(
    store: LiveStore,
    *,
    live_id: str | None,
    entity_type: EntityTypeV1,
    entity_id: str,
    event_type: EventTypeV1,
    payload: dict | None = None,
) -> None:
    """Append to the live's event log.

    The audited operation has already been committed when this runs, so a failed append
    is logged and not raised.
    """

    try:
        store.events.append(
            live_id=live_id,
            entity_type=entity_type.value,
            entity_id=entity_id,
            event_type=event_type.value,
            payload=payload or {},
        )
    except BackendFailure:
        logger.exception("event log append failed: %s %s", event_type.value, entity_id)
