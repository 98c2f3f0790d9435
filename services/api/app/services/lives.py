from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from packages.shared.schemas.events import EntityTypeV1, EventTypeV1
from services.api.app.services.audit import record_event
from services.api.app.services.domain import Customer, LiveSession, LiveState, Order, OrderItem, Product
from services.api.app.services.errors import InvalidStateError, NotFoundError
from services.api.app.services.repository import LiveStore

logger = logging.getLogger(__name__)

LIVE_PRODUCT_CATEGORY = "Live"


@dataclass(slots=True)
class LiveOrder:
    order: Order
    items: list[OrderItem] = field(default_factory=list)
    customer: Customer | None = None


def require_live(store: LiveStore, live_id: str) -> LiveSession:
    live = store.lives.get(live_id)
    if live is None:
        raise NotFoundError("Live", live_id)
    return live


def require_active_live(store: LiveStore, live_id: str) -> LiveSession:
    live = require_live(store, live_id)
    if live.state != LiveState.ACTIVE:
        raise InvalidStateError("Live", live_id, live.state.value, LiveState.ACTIVE.value)
    return live


def create_live(
    store: LiveStore, *, title: str | None, scheduled_at: datetime, notes: str | None = None
) -> LiveSession:
    live = store.lives.create(title=title, scheduled_at=scheduled_at, notes=notes)
    logger.info("live created live_id=%s", live.live_id)
    record_event(
        store,
        live_id=live.live_id,
        entity_type=EntityTypeV1.LIVE,
        entity_id=live.live_id,
        event_type=EventTypeV1.LIVE_CREATED,
        payload={"title": title, "scheduled_at": scheduled_at.isoformat()},
    )
    return live


def start_live(store: LiveStore, live_id: str) -> LiveSession:
    live = require_live(store, live_id)
    if live.state != LiveState.SCHEDULED:
        raise InvalidStateError("Live", live_id, live.state.value, LiveState.SCHEDULED.value)

    store.lives.set_state(live_id, LiveState.ACTIVE)
    live.state = LiveState.ACTIVE
    logger.info("live started live_id=%s", live_id)
    record_event(
        store,
        live_id=live_id,
        entity_type=EntityTypeV1.LIVE,
        entity_id=live_id,
        event_type=EventTypeV1.LIVE_STARTED,
    )
    return live


def create_live_product(
    store: LiveStore,
    live_id: str,
    *,
    name: str,
    unit_price: Decimal,
    stock: int,
    category: str = LIVE_PRODUCT_CATEGORY,
    unit_cost: Decimal = Decimal("0"),
) -> Product:
    """Add a catalog product on the fly while the live is running."""

    require_active_live(store, live_id)
    product = store.products.create(
        name=name.strip(),
        category=category,
        unit_price=unit_price,
        unit_cost=unit_cost,
        stock=stock,
    )
    logger.info("product created during live live_id=%s product_id=%s", live_id, product.product_id)
    record_event(
        store,
        live_id=live_id,
        entity_type=EntityTypeV1.PRODUCT,
        entity_id=product.product_id,
        event_type=EventTypeV1.PRODUCT_CREATED,
        payload={"name": product.name, "unit_price": str(unit_price), "stock": stock},
    )
    return product


def list_lives(store: LiveStore) -> list[LiveSession]:
    return store.lives.list_all()


def update_live(
    store: LiveStore,
    live_id: str,
    *,
    title: str | None = None,
    scheduled_at: datetime | None = None,
    notes: str | None = None,
) -> LiveSession:
    """Edit a scheduled live. Fields left as ``None`` keep their value; empty notes clear them."""

    live = require_live(store, live_id)
    if live.state != LiveState.SCHEDULED:
        raise InvalidStateError("Live", live_id, live.state.value, LiveState.SCHEDULED.value)

    if title is not None:
        live.title = title.strip()
    if scheduled_at is not None:
        live.scheduled_at = scheduled_at
    if notes is not None:
        live.notes = notes.strip() or None

    store.lives.update(live_id, title=live.title, scheduled_at=live.scheduled_at, notes=live.notes)
    logger.info("live updated live_id=%s", live_id)
    record_event(
        store,
        live_id=live_id,
        entity_type=EntityTypeV1.LIVE,
        entity_id=live_id,
        event_type=EventTypeV1.LIVE_UPDATED,
        payload={"title": live.title, "scheduled_at": live.scheduled_at.isoformat(), "notes": live.notes},
    )
    return live


def list_live_orders(store: LiveStore, live_id: str) -> list[LiveOrder]:
    """Orders a live produced, each with its items and customer."""

    require_live(store, live_id)
    customers: dict[str, Customer | None] = {}
    out: list[LiveOrder] = []
    for order in store.orders.list_for_live(live_id):
        if order.customer_id not in customers:
            customers[order.customer_id] = store.customers.get(order.customer_id)
        out.append(
            LiveOrder(
                order=order,
                items=store.orders.list_items(order.order_id),
                customer=customers[order.customer_id],
            )
        )
    return out
