"""Domain records for live-selling sessions.

These are the shapes the core components work with. Storage backends map their own rows
onto them; nothing here knows about SQL or HTTP.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum


class LiveState(str, Enum):
    SCHEDULED = "programado"
    ACTIVE = "activo"
    FINALIZED = "finalizado"


class BasketState(str, Enum):
    OPEN = "abierta"
    FINALIZED = "finalizada"


class OrderState(str, Enum):
    PENDING = "Pendiente"
    CONFIRMED = "Confirmado"
    PAID = "Pagado"
    DELIVERED = "Entregado"
    CANCELLED = "Cancelado"


ZERO = Decimal("0")


@dataclass(slots=True)
class Product:
    product_id: str
    name: str
    category: str
    unit_price: Decimal
    unit_cost: Decimal
    stock: int
    active: bool = True
    created_at: datetime | None = None


@dataclass(slots=True)
class Customer:
    customer_id: str
    name: str
    phone: str


@dataclass(slots=True)
class LiveSession:
    live_id: str
    title: str | None
    scheduled_at: datetime
    state: LiveState
    notes: str | None = None

    @property
    def display_name(self) -> str:
        return self.title or f"Live #{self.live_id}"


@dataclass(slots=True)
class BasketItem:
    basket_item_id: str
    basket_id: str
    product_id: str
    quantity: int
    unit_price_snapshot: Decimal
    unit_cost_snapshot: Decimal
    line_total: Decimal
    created_at: datetime | None = None
    product: Product | None = None


@dataclass(slots=True)
class Basket:
    basket_id: str
    live_id: str
    customer_id: str
    state: BasketState = BasketState.OPEN
    subtotal: Decimal = ZERO
    total: Decimal = ZERO
    created_at: datetime | None = None
    items: list[BasketItem] = field(default_factory=list)
    customer: Customer | None = None

    @property
    def is_open(self) -> bool:
        return self.state == BasketState.OPEN

    def item_for_product(self, product_id: str) -> BasketItem | None:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None

    def unit_count(self) -> int:
        return sum(item.quantity for item in self.items)


@dataclass(slots=True)
class Order:
    order_id: str
    customer_id: str
    live_id: str | None
    state: OrderState
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    employee: str
    notes: str | None = None
    created_at: datetime | None = None


@dataclass(slots=True)
class OrderItem:
    order_item_id: str
    order_id: str
    product_id: str
    quantity: int
    unit_price_snapshot: Decimal
    unit_cost_snapshot: Decimal
    line_total: Decimal


@dataclass(slots=True)
class EventRecord:
    event_id: str
    live_id: str | None
    entity_type: str
    entity_id: str
    event_type: str
    payload: dict
    created_at: datetime | None = None
