"""Shared event schema (v1).

The backend keeps an append-only event log per live session. Clients can read it to
render an audit trail of basket activity and finalization.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EntityTypeV1(str, Enum):
    LIVE = "Live"
    BASKET = "Basket"
    BASKET_ITEM = "BasketItem"
    PRODUCT = "Product"
    ORDER = "Order"


class EventTypeV1(str, Enum):
    LIVE_CREATED = "LIVE_CREATED"
    LIVE_STARTED = "LIVE_STARTED"
    LIVE_UPDATED = "LIVE_UPDATED"
    BASKET_OPENED = "BASKET_OPENED"
    BASKET_ITEM_ADDED = "BASKET_ITEM_ADDED"
    BASKET_ITEM_UPDATED = "BASKET_ITEM_UPDATED"
    BASKET_ITEM_REMOVED = "BASKET_ITEM_REMOVED"
    PRODUCT_CREATED = "PRODUCT_CREATED"
    ORDER_CREATED = "ORDER_CREATED"
    FINALIZATION_FAILED = "FINALIZATION_FAILED"
    LIVE_FINALIZED = "LIVE_FINALIZED"


class EventV1(BaseModel):
    id: str
    live_id: str | None = None

    entity_type: EntityTypeV1
    entity_id: str

    event_type: EventTypeV1
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: str | None = None
