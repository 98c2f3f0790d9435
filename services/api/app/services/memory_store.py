from __future__ import annotations

import copy
from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from services.api.app.services.domain import (
    ZERO,
    Basket,
    BasketItem,
    BasketState,
    Customer,
    EventRecord,
    LiveSession,
    LiveState,
    Order,
    OrderItem,
    OrderState,
    Product,
)
from services.api.app.services.errors import NotFoundError, OpenBasketConflictError
from services.api.app.services.repository import LiveStore


class InMemoryTables:
    """Process-local tables behind the in-memory repositories.

    Records handed out are copies, so callers only observe changes through repository calls.
    """

    def __init__(self) -> None:
        self.products: dict[str, Product] = {}
        self.customers: dict[str, Customer] = {}
        self.lives: dict[str, LiveSession] = {}
        self.baskets: dict[str, Basket] = {}
        self.basket_items: dict[str, BasketItem] = {}
        self.orders: dict[str, Order] = {}
        self.order_items: dict[str, OrderItem] = {}
        self.events: list[EventRecord] = []

    def seed(self, records: Iterable[Product | Customer | LiveSession]) -> None:
        for record in records:
            if isinstance(record, Product):
                self.products[record.product_id] = copy.deepcopy(record)
            elif isinstance(record, Customer):
                self.customers[record.customer_id] = copy.deepcopy(record)
            elif isinstance(record, LiveSession):
                self.lives[record.live_id] = copy.deepcopy(record)
            else:
                raise TypeError(f"Cannot seed {type(record).__name__}")

    def clear(self) -> None:
        self.__init__()


class InMemoryProducts:
    def __init__(self, tables: InMemoryTables) -> None:
        self._t = tables

    def list_active(self) -> list[Product]:
        rows = [p for p in self._t.products.values() if p.active]
        return copy.deepcopy(sorted(rows, key=lambda p: p.name))

    def get(self, product_id: str) -> Product | None:
        return copy.deepcopy(self._t.products.get(product_id))

    def create(
        self,
        *,
        name: str,
        category: str,
        unit_price: Decimal,
        unit_cost: Decimal,
        stock: int,
    ) -> Product:
        product = Product(
            product_id=uuid4().hex,
            name=name,
            category=category,
            unit_price=unit_price,
            unit_cost=unit_cost,
            stock=stock,
            active=True,
            created_at=datetime.utcnow(),
        )
        self._t.products[product.product_id] = product
        return copy.deepcopy(product)

    def adjust_stock(self, product_id: str, delta: int) -> None:
        product = self._t.products.get(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        product.stock += delta


class InMemoryCustomers:
    def __init__(self, tables: InMemoryTables) -> None:
        self._t = tables

    def list_all(self) -> list[Customer]:
        return copy.deepcopy(sorted(self._t.customers.values(), key=lambda c: c.name))

    def get(self, customer_id: str) -> Customer | None:
        return copy.deepcopy(self._t.customers.get(customer_id))


class InMemoryLives:
    def __init__(self, tables: InMemoryTables) -> None:
        self._t = tables

    def get(self, live_id: str) -> LiveSession | None:
        return copy.deepcopy(self._t.lives.get(live_id))

    def create(self, *, title: str | None, scheduled_at: datetime, notes: str | None) -> LiveSession:
        live = LiveSession(
            live_id=uuid4().hex,
            title=title,
            scheduled_at=scheduled_at,
            state=LiveState.SCHEDULED,
            notes=notes,
        )
        self._t.lives[live.live_id] = live
        return copy.deepcopy(live)

    def set_state(self, live_id: str, state: LiveState) -> None:
        live = self._t.lives.get(live_id)
        if live is None:
            raise NotFoundError("Live", live_id)
        live.state = state

    def list_all(self) -> list[LiveSession]:
        lives = sorted(self._t.lives.values(), key=lambda lv: lv.scheduled_at, reverse=True)
        return copy.deepcopy(lives)

    def update(
        self, live_id: str, *, title: str | None, scheduled_at: datetime, notes: str | None
    ) -> None:
        live = self._t.lives.get(live_id)
        if live is None:
            raise NotFoundError("Live", live_id)
        live.title = title
        live.scheduled_at = scheduled_at
        live.notes = notes


class InMemoryBaskets:
    def __init__(self, tables: InMemoryTables) -> None:
        self._t = tables

    def _with_items(self, basket: Basket) -> Basket:
        out = copy.deepcopy(basket)
        out.items = [
            copy.deepcopy(item)
            for item in self._t.basket_items.values()
            if item.basket_id == basket.basket_id
        ]
        return out

    def list_open(self, live_id: str) -> list[Basket]:
        return [
            self._with_items(b)
            for b in self._t.baskets.values()
            if b.live_id == live_id and b.state == BasketState.OPEN
        ]

    def find_open(self, live_id: str, customer_id: str) -> Basket | None:
        for b in self._t.baskets.values():
            if b.live_id == live_id and b.customer_id == customer_id and b.state == BasketState.OPEN:
                return self._with_items(b)
        return None

    def get(self, basket_id: str) -> Basket | None:
        basket = self._t.baskets.get(basket_id)
        return self._with_items(basket) if basket is not None else None

    def create(self, *, live_id: str, customer_id: str) -> Basket:
        # Mirrors the partial unique index on the SQL table.
        for existing in self._t.baskets.values():
            if existing.live_id == live_id and existing.customer_id == customer_id and existing.is_open:
                raise OpenBasketConflictError(live_id, customer_id)
        basket = Basket(
            basket_id=uuid4().hex,
            live_id=live_id,
            customer_id=customer_id,
            state=BasketState.OPEN,
            subtotal=ZERO,
            total=ZERO,
            created_at=datetime.utcnow(),
        )
        self._t.baskets[basket.basket_id] = basket
        return self._with_items(basket)

    def get_item(self, basket_item_id: str) -> BasketItem | None:
        return copy.deepcopy(self._t.basket_items.get(basket_item_id))

    def add_item(
        self,
        *,
        basket_id: str,
        product_id: str,
        quantity: int,
        unit_price_snapshot: Decimal,
        unit_cost_snapshot: Decimal,
        line_total: Decimal,
    ) -> BasketItem:
        if basket_id not in self._t.baskets:
            raise NotFoundError("Basket", basket_id)
        item = BasketItem(
            basket_item_id=uuid4().hex,
            basket_id=basket_id,
            product_id=product_id,
            quantity=quantity,
            unit_price_snapshot=unit_price_snapshot,
            unit_cost_snapshot=unit_cost_snapshot,
            line_total=line_total,
            created_at=datetime.utcnow(),
        )
        self._t.basket_items[item.basket_item_id] = item
        return copy.deepcopy(item)

    def update_item(self, basket_item_id: str, *, quantity: int, line_total: Decimal) -> None:
        item = self._t.basket_items.get(basket_item_id)
        if item is None:
            raise NotFoundError("BasketItem", basket_item_id)
        item.quantity = quantity
        item.line_total = line_total

    def delete_item(self, basket_item_id: str) -> None:
        if self._t.basket_items.pop(basket_item_id, None) is None:
            raise NotFoundError("BasketItem", basket_item_id)

    def set_totals(self, basket_id: str, *, subtotal: Decimal, total: Decimal) -> None:
        basket = self._t.baskets.get(basket_id)
        if basket is None:
            raise NotFoundError("Basket", basket_id)
        basket.subtotal = subtotal
        basket.total = total

    def mark_finalized(self, basket_id: str) -> None:
        basket = self._t.baskets.get(basket_id)
        if basket is None:
            raise NotFoundError("Basket", basket_id)
        basket.state = BasketState.FINALIZED


class InMemoryOrders:
    def __init__(self, tables: InMemoryTables) -> None:
        self._t = tables

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
    ) -> Order:
        order = Order(
            order_id=uuid4().hex,
            customer_id=customer_id,
            live_id=live_id,
            state=OrderState.PENDING,
            subtotal=subtotal,
            tax=tax,
            total=total,
            employee=employee,
            notes=notes,
            created_at=datetime.utcnow(),
        )
        self._t.orders[order.order_id] = order
        return copy.deepcopy(order)

    def get(self, order_id: str) -> Order | None:
        return copy.deepcopy(self._t.orders.get(order_id))

    def add_item(
        self,
        *,
        order_id: str,
        product_id: str,
        quantity: int,
        unit_price_snapshot: Decimal,
        unit_cost_snapshot: Decimal,
        line_total: Decimal,
    ) -> OrderItem:
        if order_id not in self._t.orders:
            raise NotFoundError("Order", order_id)
        item = OrderItem(
            order_item_id=uuid4().hex,
            order_id=order_id,
            product_id=product_id,
            quantity=quantity,
            unit_price_snapshot=unit_price_snapshot,
            unit_cost_snapshot=unit_cost_snapshot,
            line_total=line_total,
        )
        self._t.order_items[item.order_item_id] = item
        return copy.deepcopy(item)

    def delete_order(self, order_id: str) -> None:
        if self._t.orders.pop(order_id, None) is None:
            raise NotFoundError("Order", order_id)
        for item_id in [i.order_item_id for i in self._t.order_items.values() if i.order_id == order_id]:
            del self._t.order_items[item_id]

    def list_for_live(self, live_id: str) -> list[Order]:
        return copy.deepcopy([o for o in self._t.orders.values() if o.live_id == live_id])

    def list_items(self, order_id: str) -> list[OrderItem]:
        return copy.deepcopy([i for i in self._t.order_items.values() if i.order_id == order_id])


class InMemoryEvents:
    def __init__(self, tables: InMemoryTables) -> None:
        self._t = tables

    def append(
        self,
        *,
        live_id: str | None,
        entity_type: str,
        entity_id: str,
        event_type: str,
        payload: dict,
    ) -> None:
        self._t.events.append(
            EventRecord(
                event_id=uuid4().hex,
                live_id=live_id,
                entity_type=entity_type,
                entity_id=entity_id,
                event_type=event_type,
                payload=copy.deepcopy(payload),
                created_at=datetime.utcnow(),
            )
        )

    def list_for_live(self, live_id: str) -> list[EventRecord]:
        rows = [e for e in self._t.events if e.live_id == live_id]
        return copy.deepcopy(list(reversed(rows)))


def build_memory_store(tables: InMemoryTables | None = None) -> LiveStore:
    tables = tables if tables is not None else InMemoryTables()
    return LiveStore(
        products=InMemoryProducts(tables),
        customers=InMemoryCustomers(tables),
        lives=InMemoryLives(tables),
        baskets=InMemoryBaskets(tables),
        orders=InMemoryOrders(tables),
        events=InMemoryEvents(tables),
    )


tables = InMemoryTables()
