"""Storage interfaces consumed by the live-session core.

Each method is one round trip to the backing store. Implementations raise
``BackendFailure`` for storage errors and return ``None`` (or an empty list) for
missing records; they never decide business rules.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from services.api.app.services.domain import (
    Basket,
    BasketItem,
    Customer,
    EventRecord,
    LiveSession,
    LiveState,
    Order,
    OrderItem,
    Product,
)


class ProductRepository(Protocol):
    def list_active(self) -> list[Product]: ...

    def get(self, product_id: str) -> Product | None: ...

    def create(
        self,
        *,
        name: str,
        category: str,
        unit_price: Decimal,
        unit_cost: Decimal,
        stock: int,
    ) -> Product: ...

    def adjust_stock(self, product_id: str, delta: int) -> None:
        """Atomically add ``delta`` (may be negative) to the product's stock."""
        ...


class CustomerRepository(Protocol):
    def list_all(self) -> list[Customer]: ...

    def get(self, customer_id: str) -> Customer | None: ...


class LiveRepository(Protocol):
    def get(self, live_id: str) -> LiveSession | None: ...

    def create(self, *, title: str | None, scheduled_at: datetime, notes: str | None) -> LiveSession: ...

    def set_state(self, live_id: str, state: LiveState) -> None: ...

    def list_all(self) -> list[LiveSession]:
        """All lives, most recently scheduled first."""
        ...

    def update(
        self, live_id: str, *, title: str | None, scheduled_at: datetime, notes: str | None
    ) -> None: ...


class BasketRepository(Protocol):
    def list_open(self, live_id: str) -> list[Basket]:
        """Open baskets for a live, each with its items, oldest first."""
        ...

    def find_open(self, live_id: str, customer_id: str) -> Basket | None: ...

    def get(self, basket_id: str) -> Basket | None: ...

    def create(self, *, live_id: str, customer_id: str) -> Basket:
        """Raises ``OpenBasketConflictError`` if the customer already has an open basket."""
        ...

    def get_item(self, basket_item_id: str) -> BasketItem | None: ...

    def add_item(
        self,
        *,
        basket_id: str,
        product_id: str,
        quantity: int,
        unit_price_snapshot: Decimal,
        unit_cost_snapshot: Decimal,
        line_total: Decimal,
    ) -> BasketItem: ...

    def update_item(self, basket_item_id: str, *, quantity: int, line_total: Decimal) -> None: ...

    def delete_item(self, basket_item_id: str) -> None: ...

    def set_totals(self, basket_id: str, *, subtotal: Decimal, total: Decimal) -> None: ...

    def mark_finalized(self, basket_id: str) -> None: ...


class OrderRepository(Protocol):
    def create_order(
        self,
        *,
        customer_id: str,
        live_id: str,
        subtotal: Decimal,
        tax: Decimal,
        total: Decimal,
        employee: str,
        notes: str | None,
    ) -> Order: ...

    def get(self, order_id: str) -> Order | None: ...

    def add_item(
        self,
        *,
        order_id: str,
        product_id: str,
        quantity: int,
        unit_price_snapshot: Decimal,
        unit_cost_snapshot: Decimal,
        line_total: Decimal,
    ) -> OrderItem: ...

    def delete_order(self, order_id: str) -> None:
        """Delete an order together with its items."""
        ...

    def list_for_live(self, live_id: str) -> list[Order]: ...

    def list_items(self, order_id: str) -> list[OrderItem]: ...


class EventRepository(Protocol):
    def append(
        self,
        *,
        live_id: str | None,
        entity_type: str,
        entity_id: str,
        event_type: str,
        payload: dict,
    ) -> None: ...

    def list_for_live(self, live_id: str) -> list[EventRecord]: ...


@dataclass(frozen=True, slots=True)
class LiveStore:
    products: ProductRepository
    customers: CustomerRepository
    lives: LiveRepository
    baskets: BasketRepository
    orders: OrderRepository
    events: EventRepository
