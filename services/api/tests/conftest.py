from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest
from services.api.app.services.domain import Customer, LiveSession, LiveState, Product
from services.api.app.services.finalization import FinalizationJournal
from services.api.app.services.memory_store import InMemoryTables, build_memory_store
from services.api.app.services.repository import LiveStore


class Seeder:
    def __init__(self, tables: InMemoryTables) -> None:
        self.tables = tables

    def product(
        self,
        product_id: str,
        *,
        stock: int,
        price: str = "100.00",
        cost: str = "40.00",
        created_at: datetime | None = None,
        active: bool = True,
    ) -> Product:
        product = Product(
            product_id=product_id,
            name=f"Producto {product_id}",
            category="Aretes",
            unit_price=Decimal(price),
            unit_cost=Decimal(cost),
            stock=stock,
            active=active,
            created_at=created_at or datetime(2026, 1, 1),
        )
        self.tables.seed([product])
        return product

    def customer(self, customer_id: str, name: str | None = None) -> Customer:
        customer = Customer(customer_id=customer_id, name=name or f"Cliente {customer_id}", phone="+52155")
        self.tables.seed([customer])
        return customer

    def live(self, live_id: str = "live-1", state: LiveState = LiveState.ACTIVE) -> LiveSession:
        live = LiveSession(
            live_id=live_id,
            title="Live de prueba",
            scheduled_at=datetime(2026, 10, 1, 20, 0),
            state=state,
        )
        self.tables.seed([live])
        return live


@pytest.fixture()
def tables() -> InMemoryTables:
    return InMemoryTables()


@pytest.fixture()
def store(tables: InMemoryTables) -> LiveStore:
    return build_memory_store(tables)


@pytest.fixture()
def seed(tables: InMemoryTables) -> Seeder:
    return Seeder(tables)


@pytest.fixture()
def journal() -> FinalizationJournal:
    return FinalizationJournal()
