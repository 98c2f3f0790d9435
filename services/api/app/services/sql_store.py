"""SQLAlchemy-backed repositories.

Every public method is one committed round trip, mirroring a hosted backend where each
call stands alone. Multi-step sequences are not transactional across calls.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from services.api.app.db.models import (
    BasketItemRow,
    BasketRow,
    ClienteRow,
    EventLog,
    LiveRow,
    PedidoItemRow,
    PedidoRow,
    ProductRow,
)
from services.api.app.services.domain import (
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
from services.api.app.services.errors import BackendFailure, NotFoundError, OpenBasketConflictError
from services.api.app.services.repository import LiveStore
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@contextmanager
def _backend_call(db: Session, operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("backend call failed: %s", operation)
        raise BackendFailure(operation, str(e)) from e


def _product(row: ProductRow) -> Product:
    return Product(
        product_id=row.product_id,
        name=row.nombre,
        category=row.categoria,
        unit_price=row.precio_unitario,
        unit_cost=row.costo_unitario,
        stock=row.cantidad_en_stock,
        active=row.activo,
        created_at=row.created_at,
    )


def _customer(row: ClienteRow) -> Customer:
    return Customer(customer_id=row.cliente_id, name=row.nombre, phone=row.telefono_whatsapp)


def _live(row: LiveRow) -> LiveSession:
    return LiveSession(
        live_id=row.live_id,
        title=row.titulo,
        scheduled_at=row.fecha_hora,
        state=LiveState(row.estado),
        notes=row.notas,
    )


def _basket_item(row: BasketItemRow) -> BasketItem:
    return BasketItem(
        basket_item_id=row.basket_item_id,
        basket_id=row.basket_id,
        product_id=row.product_id,
        quantity=row.cantidad,
        unit_price_snapshot=row.precio_unitario_snapshot,
        unit_cost_snapshot=row.costo_unitario_snapshot,
        line_total=row.total_item,
        created_at=row.created_at,
    )


def _basket(row: BasketRow, items: list[BasketItemRow]) -> Basket:
    return Basket(
        basket_id=row.basket_id,
        live_id=row.live_id,
        customer_id=row.cliente_id,
        state=BasketState(row.estado),
        subtotal=row.subtotal,
        total=row.total,
        created_at=row.created_at,
        items=[_basket_item(i) for i in items],
    )


def _order(row: PedidoRow) -> Order:
    return Order(
        order_id=row.pedido_id,
        customer_id=row.cliente_id,
        live_id=row.live_id,
        state=OrderState(row.estado),
        subtotal=row.subtotal,
        tax=row.impuestos,
        total=row.total,
        employee=row.empleado,
        notes=row.notas,
        created_at=row.created_at,
    )


def _order_item(row: PedidoItemRow) -> OrderItem:
    return OrderItem(
        order_item_id=row.pedido_item_id,
        order_id=row.pedido_id,
        product_id=row.product_id,
        quantity=row.cantidad,
        unit_price_snapshot=row.precio_unitario_snapshot,
        unit_cost_snapshot=row.costo_unitario_snapshot,
        line_total=row.total_item,
    )


class SqlProducts:
    def __init__(self, db: Session) -> None:
        self._db = db

    def list_active(self) -> list[Product]:
        with _backend_call(self._db, "products.list_active"):
            rows = self._db.scalars(
                select(ProductRow)
                .where(ProductRow.activo.is_(True))
                .order_by(ProductRow.nombre)
                .execution_options(populate_existing=True)
            ).all()
        return [_product(r) for r in rows]

    def get(self, product_id: str) -> Product | None:
        with _backend_call(self._db, "products.get"):
            row = self._db.get(ProductRow, product_id, populate_existing=True)
        return _product(row) if row is not None else None

    def create(
        self,
        *,
        name: str,
        category: str,
        unit_price: Decimal,
        unit_cost: Decimal,
        stock: int,
    ) -> Product:
        row = ProductRow(
            product_id=uuid4().hex,
            nombre=name,
            categoria=category,
            precio_unitario=unit_price,
            costo_unitario=unit_cost,
            cantidad_en_stock=stock,
            activo=True,
        )
        with _backend_call(self._db, "products.create"):
            self._db.add(row)
            self._db.commit()
        return _product(row)

    def adjust_stock(self, product_id: str, delta: int) -> None:
        # Server-side increment; never read-modify-write the stock column.
        with _backend_call(self._db, "products.adjust_stock"):
            result = self._db.execute(
                update(ProductRow)
                .where(ProductRow.product_id == product_id)
                .values(
                    cantidad_en_stock=ProductRow.cantidad_en_stock + delta,
                    updated_at=datetime.utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            self._db.commit()
        if result.rowcount == 0:
            raise NotFoundError("Product", product_id)


class SqlCustomers:
    def __init__(self, db: Session) -> None:
        self._db = db

    def list_all(self) -> list[Customer]:
        with _backend_call(self._db, "customers.list_all"):
            rows = self._db.scalars(select(ClienteRow).order_by(ClienteRow.nombre)).all()
        return [_customer(r) for r in rows]

    def get(self, customer_id: str) -> Customer | None:
        with _backend_call(self._db, "customers.get"):
            row = self._db.get(ClienteRow, customer_id)
        return _customer(row) if row is not None else None


class SqlLives:
    def __init__(self, db: Session) -> None:
        self._db = db

    def get(self, live_id: str) -> LiveSession | None:
        with _backend_call(self._db, "lives.get"):
            row = self._db.get(LiveRow, live_id, populate_existing=True)
        return _live(row) if row is not None else None

    def create(self, *, title: str | None, scheduled_at: datetime, notes: str | None) -> LiveSession:
        row = LiveRow(
            live_id=uuid4().hex,
            titulo=title,
            fecha_hora=scheduled_at,
            estado=LiveState.SCHEDULED.value,
            notas=notes,
        )
        with _backend_call(self._db, "lives.create"):
            self._db.add(row)
            self._db.commit()
        return _live(row)

    def set_state(self, live_id: str, state: LiveState) -> None:
        with _backend_call(self._db, "lives.set_state"):
            result = self._db.execute(
                update(LiveRow)
                .where(LiveRow.live_id == live_id)
                .values(estado=state.value)
                .execution_options(synchronize_session=False)
            )
            self._db.commit()
        if result.rowcount == 0:
            raise NotFoundError("Live", live_id)

    def list_all(self) -> list[LiveSession]:
        with _backend_call(self._db, "lives.list_all"):
            rows = self._db.scalars(
                select(LiveRow)
                .order_by(LiveRow.fecha_hora.desc(), LiveRow.live_id)
                .execution_options(populate_existing=True)
            ).all()
        return [_live(r) for r in rows]

    def update(
        self, live_id: str, *, title: str | None, scheduled_at: datetime, notes: str | None
    ) -> None:
        with _backend_call(self._db, "lives.update"):
            result = self._db.execute(
                update(LiveRow)
                .where(LiveRow.live_id == live_id)
                .values(titulo=title, fecha_hora=scheduled_at, notas=notes)
                .execution_options(synchronize_session=False)
            )
            self._db.commit()
        if result.rowcount == 0:
            raise NotFoundError("Live", live_id)

class SqlBaskets:
    def __init__(self, db: Session) -> None:
        self._db = db

    def _items_by_basket(self, basket_ids: list[str]) -> dict[str, list[BasketItemRow]]:
        out: dict[str, list[BasketItemRow]] = {bid: [] for bid in basket_ids}
        if not basket_ids:
            return out
        rows = self._db.scalars(
            select(BasketItemRow)
            .where(BasketItemRow.basket_id.in_(basket_ids))
            .order_by(BasketItemRow.created_at, BasketItemRow.basket_item_id)
            .execution_options(populate_existing=True)
        ).all()
        for row in rows:
            out[row.basket_id].append(row)
        return out

    def _load(self, stmt) -> list[Basket]:
        rows = self._db.scalars(stmt.execution_options(populate_existing=True)).all()
        items = self._items_by_basket([r.basket_id for r in rows])
        return [_basket(r, items[r.basket_id]) for r in rows]

    def list_open(self, live_id: str) -> list[Basket]:
        with _backend_call(self._db, "baskets.list_open"):
            return self._load(
                select(BasketRow)
                .where(BasketRow.live_id == live_id, BasketRow.estado == BasketState.OPEN.value)
                .order_by(BasketRow.created_at, BasketRow.basket_id)
            )

    def find_open(self, live_id: str, customer_id: str) -> Basket | None:
        with _backend_call(self._db, "baskets.find_open"):
            found = self._load(
                select(BasketRow).where(
                    BasketRow.live_id == live_id,
                    BasketRow.cliente_id == customer_id,
                    BasketRow.estado == BasketState.OPEN.value,
                )
            )
        return found[0] if found else None

    def get(self, basket_id: str) -> Basket | None:
        with _backend_call(self._db, "baskets.get"):
            found = self._load(select(BasketRow).where(BasketRow.basket_id == basket_id))
        return found[0] if found else None

    def create(self, *, live_id: str, customer_id: str) -> Basket:
        row = BasketRow(
            basket_id=uuid4().hex,
            live_id=live_id,
            cliente_id=customer_id,
            estado=BasketState.OPEN.value,
            subtotal=Decimal("0"),
            total=Decimal("0"),
        )
        with _backend_call(self._db, "baskets.create"):
            try:
                self._db.add(row)
                self._db.commit()
            except IntegrityError as e:
                # uq_baskets_open_per_customer: another writer opened one first.
                self._db.rollback()
                raise OpenBasketConflictError(live_id, customer_id) from e
        return _basket(row, [])

    def get_item(self, basket_item_id: str) -> BasketItem | None:
        with _backend_call(self._db, "basket_items.get"):
            row = self._db.get(BasketItemRow, basket_item_id, populate_existing=True)
        return _basket_item(row) if row is not None else None

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
        row = BasketItemRow(
            basket_item_id=uuid4().hex,
            basket_id=basket_id,
            product_id=product_id,
            cantidad=quantity,
            precio_unitario_snapshot=unit_price_snapshot,
            costo_unitario_snapshot=unit_cost_snapshot,
            total_item=line_total,
        )
        with _backend_call(self._db, "basket_items.insert"):
            self._db.add(row)
            self._db.commit()
        return _basket_item(row)

    def update_item(self, basket_item_id: str, *, quantity: int, line_total: Decimal) -> None:
        with _backend_call(self._db, "basket_items.update"):
            result = self._db.execute(
                update(BasketItemRow)
                .where(BasketItemRow.basket_item_id == basket_item_id)
                .values(cantidad=quantity, total_item=line_total)
                .execution_options(synchronize_session=False)
            )
            self._db.commit()
        if result.rowcount == 0:
            raise NotFoundError("BasketItem", basket_item_id)

    def delete_item(self, basket_item_id: str) -> None:
        with _backend_call(self._db, "basket_items.delete"):
            result = self._db.execute(
                delete(BasketItemRow)
                .where(BasketItemRow.basket_item_id == basket_item_id)
                .execution_options(synchronize_session=False)
            )
            self._db.commit()
        if result.rowcount == 0:
            raise NotFoundError("BasketItem", basket_item_id)

    def set_totals(self, basket_id: str, *, subtotal: Decimal, total: Decimal) -> None:
        with _backend_call(self._db, "baskets.set_totals"):
            result = self._db.execute(
                update(BasketRow)
                .where(BasketRow.basket_id == basket_id)
                .values(subtotal=subtotal, total=total, updated_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            self._db.commit()
        if result.rowcount == 0:
            raise NotFoundError("Basket", basket_id)

    def mark_finalized(self, basket_id: str) -> None:
        with _backend_call(self._db, "baskets.mark_finalized"):
            result = self._db.execute(
                update(BasketRow)
                .where(BasketRow.basket_id == basket_id)
                .values(estado=BasketState.FINALIZED.value, updated_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            self._db.commit()
        if result.rowcount == 0:
            raise NotFoundError("Basket", basket_id)


class SqlOrders:
    def __init__(self, db: Session) -> None:
        self._db = db

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
        row = PedidoRow(
            pedido_id=uuid4().hex,
            cliente_id=customer_id,
            live_id=live_id,
            estado=OrderState.PENDING.value,
            subtotal=subtotal,
            impuestos=tax,
            total=total,
            empleado=employee,
            notas=notes,
        )
        with _backend_call(self._db, "pedidos.insert"):
            self._db.add(row)
            self._db.commit()
        return _order(row)

    def get(self, order_id: str) -> Order | None:
        with _backend_call(self._db, "pedidos.get"):
            row = self._db.get(PedidoRow, order_id)
        return _order(row) if row is not None else None

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
        row = PedidoItemRow(
            pedido_item_id=uuid4().hex,
            pedido_id=order_id,
            product_id=product_id,
            cantidad=quantity,
            precio_unitario_snapshot=unit_price_snapshot,
            costo_unitario_snapshot=unit_cost_snapshot,
            total_item=line_total,
        )
        with _backend_call(self._db, "pedido_items.insert"):
            self._db.add(row)
            self._db.commit()
        return _order_item(row)

    def delete_order(self, order_id: str) -> None:
        with _backend_call(self._db, "pedidos.delete"):
            self._db.execute(
                delete(PedidoItemRow)
                .where(PedidoItemRow.pedido_id == order_id)
                .execution_options(synchronize_session=False)
            )
            result = self._db.execute(
                delete(PedidoRow)
                .where(PedidoRow.pedido_id == order_id)
                .execution_options(synchronize_session=False)
            )
            self._db.commit()
        if result.rowcount == 0:
            raise NotFoundError("Order", order_id)

    def list_for_live(self, live_id: str) -> list[Order]:
        with _backend_call(self._db, "pedidos.list_for_live"):
            rows = self._db.scalars(
                select(PedidoRow)
                .where(PedidoRow.live_id == live_id)
                .order_by(PedidoRow.created_at, PedidoRow.pedido_id)
            ).all()
        return [_order(r) for r in rows]

    def list_items(self, order_id: str) -> list[OrderItem]:
        with _backend_call(self._db, "pedido_items.list"):
            rows = self._db.scalars(
                select(PedidoItemRow).where(PedidoItemRow.pedido_id == order_id)
            ).all()
        return [_order_item(r) for r in rows]


class SqlEvents:
    def __init__(self, db: Session) -> None:
        self._db = db

    def append(
        self,
        *,
        live_id: str | None,
        entity_type: str,
        entity_id: str,
        event_type: str,
        payload: dict,
    ) -> None:
        with _backend_call(self._db, "event_log.insert"):
            self._db.add(
                EventLog(
                    id=uuid4().hex,
                    live_id=live_id,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    event_type=event_type,
                    event_payload_json=payload,
                )
            )
            self._db.commit()

    def list_for_live(self, live_id: str) -> list[EventRecord]:
        with _backend_call(self._db, "event_log.list"):
            rows = self._db.scalars(
                select(EventLog)
                .where(EventLog.live_id == live_id)
                .order_by(EventLog.created_at.desc())
                .limit(500)
            ).all()
        return [
            EventRecord(
                event_id=r.id,
                live_id=r.live_id,
                entity_type=r.entity_type,
                entity_id=r.entity_id,
                event_type=r.event_type,
                payload=dict(r.event_payload_json or {}),
                created_at=r.created_at,
            )
            for r in rows
        ]


def build_sql_store(db: Session) -> LiveStore:
    return LiveStore(
        products=SqlProducts(db),
        customers=SqlCustomers(db),
        lives=SqlLives(db),
        baskets=SqlBaskets(db),
        orders=SqlOrders(db),
        events=SqlEvents(db),
    )
