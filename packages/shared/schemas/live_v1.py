"""Shared live-session schemas (v1).

Wire shapes for the live basket view: what a client renders on each poll and what the
finalization confirmation shows. Money fields are decimals serialized as strings.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class LiveStateV1(str, Enum):
    SCHEDULED = "programado"
    ACTIVE = "activo"
    FINALIZED = "finalizado"


class BasketStateV1(str, Enum):
    OPEN = "abierta"
    FINALIZED = "finalizada"


class ProductV1(BaseModel):
    product_id: str
    name: str
    category: str
    unit_price: Decimal
    stock: int
    active: bool = True
    available: int | None = None


class CustomerV1(BaseModel):
    customer_id: str
    name: str
    phone: str


class LiveV1(BaseModel):
    live_id: str
    title: str | None = None
    scheduled_at: str
    state: LiveStateV1
    notes: str | None = None


class BasketItemV1(BaseModel):
    basket_item_id: str
    product_id: str
    product_name: str | None = None
    quantity: int
    unit_price_snapshot: Decimal
    unit_cost_snapshot: Decimal
    line_total: Decimal


class BasketV1(BaseModel):
    basket_id: str
    live_id: str
    customer: CustomerV1 | None = None
    customer_id: str
    state: BasketStateV1
    subtotal: Decimal
    total: Decimal
    items: list[BasketItemV1] = Field(default_factory=list)


class OpenBasketResponseV1(BaseModel):
    basket: BasketV1
    existing: bool
    message: str


class LiveStatsV1(BaseModel):
    total_revenue: Decimal
    open_baskets: int
    units_sold: int


class LiveSnapshotV1(BaseModel):
    live: LiveV1
    active: bool
    baskets: list[BasketV1]
    products: list[ProductV1]
    customers: list[CustomerV1]
    stats: LiveStatsV1
    fetched_at: str


class FinalizationPreviewBasketV1(BaseModel):
    basket_id: str
    customer_name: str | None = None
    units: int
    total: Decimal


class FinalizationPreviewV1(BaseModel):
    live_id: str
    title: str | None = None
    basket_count: int
    total_revenue: Decimal
    baskets: list[FinalizationPreviewBasketV1]
    warning: str


class OrderV1(BaseModel):
    order_id: str
    customer_id: str
    live_id: str | None = None
    state: str
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    notes: str | None = None


class OrderItemV1(BaseModel):
    order_item_id: str
    product_id: str
    product_name: str | None = None
    quantity: int
    unit_price_snapshot: Decimal
    line_total: Decimal


class LiveOrderV1(OrderV1):
    customer_name: str | None = None
    created_at: str | None = None
    items: list[OrderItemV1] = Field(default_factory=list)


class FinalizationResultV1(BaseModel):
    live_id: str
    state: LiveStateV1
    orders: list[OrderV1]
    finalized_basket_ids: list[str]
    resumed_basket_ids: list[str]
    total_revenue: Decimal
