from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest
from services.api.app.services.basket_store import BasketStore
from services.api.app.services.domain import BasketState, LiveState
from services.api.app.services.errors import (
    BackendFailure,
    InsufficientStockError,
    NotFoundError,
    OpenBasketConflictError,
)
from services.api.app.services.finalization import FinalizationJournal, FinalizationOrchestrator
from services.api.app.services.sql_store import SqlBaskets, build_sql_store


@pytest.fixture()
def sql_db(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{tmp_path / 'store.db'}")
    monkeypatch.setenv("LIVEBASKET_DB_AUTO_CREATE", "true")
    monkeypatch.setenv("LIVEBASKET_STORE", "sql")

    from services.api.app.db.database import db_session
    from services.api.app.db.init_db import init_db
    from services.api.app.db.models import ClienteRow, LiveRow, ProductRow

    init_db()
    db = db_session()
    db.add_all(
        [
            LiveRow(live_id="live-1", titulo="Live jueves", fecha_hora=datetime(2026, 10, 1, 20), estado="activo"),
            ClienteRow(cliente_id="c-1", nombre="Ana", telefono_whatsapp="+52155"),
            ClienteRow(cliente_id="c-2", nombre="Beto", telefono_whatsapp="+52155"),
            ProductRow(
                product_id="p-1",
                nombre="Aretes perla",
                categoria="Aretes",
                precio_unitario=Decimal("250.00"),
                costo_unitario=Decimal("90.00"),
                cantidad_en_stock=3,
            ),
        ]
    )
    db.commit()
    try:
        yield db
    finally:
        db.close()


def test_adjust_stock_is_relative(sql_db) -> None:
    store = build_sql_store(sql_db)

    store.products.adjust_stock("p-1", -2)
    store.products.adjust_stock("p-1", 1)

    assert store.products.get("p-1").stock == 2


def test_writes_to_missing_rows_raise_not_found(sql_db) -> None:
    store = build_sql_store(sql_db)

    with pytest.raises(NotFoundError):
        store.products.adjust_stock("nope", -1)
    with pytest.raises(NotFoundError):
        store.baskets.mark_finalized("nope")
    with pytest.raises(NotFoundError):
        store.lives.set_state("nope", LiveState.FINALIZED)


def test_second_open_basket_for_customer_is_rejected_by_index(sql_db) -> None:
    store = build_sql_store(sql_db)
    store.baskets.create(live_id="live-1", customer_id="c-1")

    with pytest.raises(OpenBasketConflictError):
        store.baskets.create(live_id="live-1", customer_id="c-1")

    # Session is usable again after the rollback.
    assert len(store.baskets.list_open("live-1")) == 1


def test_open_basket_race_returns_existing_basket(sql_db, monkeypatch) -> None:
    store = build_sql_store(sql_db)
    winner = store.baskets.create(live_id="live-1", customer_id="c-1")

    real_find_open = SqlBaskets.find_open
    lookups = []

    def stale_first_lookup(self, live_id, customer_id):
        lookups.append(customer_id)
        if len(lookups) == 1:
            return None
        return real_find_open(self, live_id, customer_id)

    monkeypatch.setattr(SqlBaskets, "find_open", stale_first_lookup)

    result = BasketStore(store, "live-1", journal=FinalizationJournal()).open_basket("c-1")

    assert result.existing is True
    assert result.basket.basket_id == winner.basket_id
    assert len(store.baskets.list_open("live-1")) == 1


def test_finalized_basket_frees_the_customer_slot(sql_db) -> None:
    store = build_sql_store(sql_db)
    first = store.baskets.create(live_id="live-1", customer_id="c-1")
    store.baskets.mark_finalized(first.basket_id)

    second = store.baskets.create(live_id="live-1", customer_id="c-1")

    assert store.baskets.get(first.basket_id).state == BasketState.FINALIZED
    assert store.baskets.find_open("live-1", "c-1").basket_id == second.basket_id


def test_missing_tables_surface_as_backend_failure(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{tmp_path / 'empty.db'}")

    from services.api.app.db.database import db_session

    db = db_session()
    try:
        with pytest.raises(BackendFailure) as exc_info:
            build_sql_store(db).products.list_active()
    finally:
        db.close()

    assert exc_info.value.code == "backend_failure"


def test_basket_flow_and_finalization_against_sql(sql_db) -> None:
    store = build_sql_store(sql_db)
    journal = FinalizationJournal()
    baskets = BasketStore(store, "live-1", journal=journal)

    ana = baskets.open_basket("c-1").basket.basket_id
    beto = baskets.open_basket("c-2").basket.basket_id
    baskets.add_item(ana, "p-1")
    baskets.add_item(ana, "p-1")
    baskets.add_item(beto, "p-1")

    with pytest.raises(InsufficientStockError):
        baskets.add_item(beto, "p-1")

    assert baskets.get_basket(ana).total == Decimal("500.00")

    result = FinalizationOrchestrator(store, journal=journal, employee="tester").finalize("live-1")

    assert len(result.orders) == 2
    assert result.total_revenue == Decimal("750.00")
    assert store.products.get("p-1").stock == 0
    assert store.lives.get("live-1").state == LiveState.FINALIZED
    assert store.baskets.list_open("live-1") == []
    assert {e.event_type for e in store.events.list_for_live("live-1")} >= {
        "BASKET_OPENED",
        "ORDER_CREATED",
        "LIVE_FINALIZED",
    }
