from __future__ import annotations

import dataclasses
import random
from decimal import Decimal

import pytest
from services.api.app.services.availability import reserved_quantities
from services.api.app.services.basket_store import BasketStore
from services.api.app.services.domain import LiveState
from services.api.app.services.errors import (
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    OpenBasketConflictError,
)
from services.api.app.services.finalization import FinalizationJournal
from services.api.app.services.memory_store import InMemoryTables, build_memory_store


@pytest.fixture()
def baskets(store, seed, journal: FinalizationJournal) -> BasketStore:
    seed.live("live-1")
    seed.customer("x")
    seed.customer("y")
    return BasketStore(store, "live-1", journal=journal)


def test_open_basket_is_idempotent_per_customer(baskets: BasketStore, tables: InMemoryTables) -> None:
    first = baskets.open_basket("x")
    second = baskets.open_basket("x")

    assert first.existing is False
    assert second.existing is True
    assert first.basket.basket_id == second.basket.basket_id
    assert len(tables.baskets) == 1
    assert first.basket.total == Decimal("0")


def test_open_basket_unknown_customer(baskets: BasketStore) -> None:
    with pytest.raises(NotFoundError):
        baskets.open_basket("nobody")


class StaleFindOpen:
    """Baskets repository whose first lookup misses a basket another operator just opened."""

    def __init__(self, inner) -> None:
        self._inner = inner
        self.lookups = 0

    def __getattr__(self, name: str):
        return getattr(self._inner, name)

    def find_open(self, live_id: str, customer_id: str):
        self.lookups += 1
        if self.lookups == 1:
            return None
        return self._inner.find_open(live_id, customer_id)


def test_concurrent_open_returns_the_winning_basket(store, seed, journal, tables: InMemoryTables) -> None:
    seed.live("live-1")
    seed.customer("x")
    winner = BasketStore(store, "live-1", journal=journal).open_basket("x").basket

    racing = dataclasses.replace(store, baskets=StaleFindOpen(store.baskets))
    result = BasketStore(racing, "live-1", journal=journal).open_basket("x")

    assert result.existing is True
    assert result.basket.basket_id == winner.basket_id
    assert len(tables.baskets) == 1


def test_memory_store_rejects_second_open_basket(store, seed) -> None:
    seed.live("live-1")
    seed.customer("x")
    store.baskets.create(live_id="live-1", customer_id="x")

    with pytest.raises(OpenBasketConflictError):
        store.baskets.create(live_id="live-1", customer_id="x")


def test_open_basket_requires_active_live(store, seed) -> None:
    seed.live("live-2", state=LiveState.SCHEDULED)
    seed.customer("x")

    with pytest.raises(InvalidStateError):
        BasketStore(store, "live-2").open_basket("x")


def test_add_item_snapshots_price_and_cost(baskets: BasketStore, seed, tables: InMemoryTables) -> None:
    seed.product("p", stock=5, price="180.00", cost="65.00")
    basket = baskets.open_basket("x").basket

    updated = baskets.add_item(basket.basket_id, "p")

    (item,) = updated.items
    assert item.quantity == 1
    assert item.unit_price_snapshot == Decimal("180.00")
    assert item.unit_cost_snapshot == Decimal("65.00")
    assert item.line_total == Decimal("180.00")
    assert updated.total == updated.subtotal == Decimal("180.00")

    # Catalog repricing does not touch the snapshot.
    tables.products["p"].unit_price = Decimal("999.00")
    again = baskets.add_item(basket.basket_id, "p")
    assert again.items[0].quantity == 2
    assert again.items[0].line_total == Decimal("360.00")
    assert again.total == Decimal("360.00")


def test_add_existing_product_increments_quantity(baskets: BasketStore, seed) -> None:
    seed.product("p", stock=5)
    basket = baskets.open_basket("x").basket

    baskets.add_item(basket.basket_id, "p")
    updated = baskets.add_item(basket.basket_id, "p")

    assert len(updated.items) == 1
    assert updated.items[0].quantity == 2


def test_other_baskets_reservations_bound_each_basket(baskets: BasketStore, seed, store) -> None:
    seed.product("p", stock=3)
    a = baskets.open_basket("x").basket
    b = baskets.open_basket("y").basket
    baskets.add_item(a.basket_id, "p")
    baskets.add_item(b.basket_id, "p")

    # B holds 1, so A may grow to 3 - 1 = 2.
    a_after = baskets.add_item(a.basket_id, "p")
    assert a_after.items[0].quantity == 2

    # All 3 units are now reserved: nothing left for B.
    with pytest.raises(InsufficientStockError) as exc_info:
        baskets.add_item(b.basket_id, "p")

    assert exc_info.value.product_id == "p"
    assert exc_info.value.requested == 2
    assert exc_info.value.available == 1
    assert store.baskets.get(b.basket_id).items[0].quantity == 1


def test_add_item_without_stock_writes_nothing(baskets: BasketStore, seed, store) -> None:
    seed.product("p", stock=0)
    basket = baskets.open_basket("x").basket

    with pytest.raises(InsufficientStockError) as exc_info:
        baskets.add_item(basket.basket_id, "p")

    assert exc_info.value.available == 0
    assert store.baskets.get(basket.basket_id).items == []


def test_update_quantity_over_ceiling_is_rejected(baskets: BasketStore, seed, store) -> None:
    seed.product("p", stock=4)
    basket = baskets.open_basket("x").basket
    item_id = baskets.add_item(basket.basket_id, "p").items[0].basket_item_id

    with pytest.raises(InsufficientStockError):
        baskets.update_quantity(item_id, 5)

    unchanged = store.baskets.get(basket.basket_id)
    assert unchanged.items[0].quantity == 1
    assert unchanged.total == Decimal("100.00")

    updated = baskets.update_quantity(item_id, 4)
    assert updated.items[0].quantity == 4
    assert updated.total == Decimal("400.00")


def test_shrinking_is_allowed_when_stock_dropped(baskets: BasketStore, seed, tables: InMemoryTables) -> None:
    seed.product("p", stock=3)
    basket = baskets.open_basket("x").basket
    item_id = baskets.add_item(basket.basket_id, "p").items[0].basket_item_id
    baskets.update_quantity(item_id, 3)
    tables.products["p"].stock = 1

    updated = baskets.update_quantity(item_id, 2)

    assert updated.items[0].quantity == 2


def test_update_to_zero_matches_remove(seed) -> None:
    def run(remove: bool):
        tables = InMemoryTables()
        store = build_memory_store(tables)
        tables.seed([seed.tables.lives["live-1"], seed.tables.customers["x"]])
        tables.seed([seed.product("p1", stock=5), seed.product("p2", stock=5, price="50.00")])
        baskets = BasketStore(store, "live-1", journal=FinalizationJournal())
        basket_id = baskets.open_basket("x").basket.basket_id
        baskets.add_item(basket_id, "p1")
        basket = baskets.add_item(basket_id, "p2")
        target = basket.item_for_product("p1").basket_item_id
        if remove:
            result = baskets.remove_item(target)
        else:
            result = baskets.update_quantity(target, 0)
        return [(i.product_id, i.quantity, i.line_total) for i in result.items], result.subtotal, result.total

    seed.live("live-1")
    seed.customer("x")

    assert run(remove=True) == run(remove=False) == ([("p2", 1, Decimal("50.00"))], Decimal("50.00"), Decimal("50.00"))


def test_missing_references(baskets: BasketStore, seed) -> None:
    seed.product("p", stock=1)
    basket = baskets.open_basket("x").basket

    with pytest.raises(NotFoundError):
        baskets.add_item("missing-basket", "p")
    with pytest.raises(NotFoundError):
        baskets.add_item(basket.basket_id, "missing-product")
    with pytest.raises(NotFoundError):
        baskets.update_quantity("missing-item", 2)
    with pytest.raises(NotFoundError):
        baskets.remove_item("missing-item")


def test_inactive_product_cannot_be_added(baskets: BasketStore, seed) -> None:
    seed.product("p", stock=5, active=False)
    basket = baskets.open_basket("x").basket

    with pytest.raises(NotFoundError):
        baskets.add_item(basket.basket_id, "p")


def test_basket_with_pending_finalization_is_frozen(baskets: BasketStore, seed, journal) -> None:
    seed.product("p", stock=5)
    basket = baskets.open_basket("x").basket
    item_id = baskets.add_item(basket.basket_id, "p").items[0].basket_item_id

    journal.progress("live-1", basket.basket_id).order_id = "order-1"

    with pytest.raises(InvalidStateError):
        baskets.update_quantity(item_id, 2)
    with pytest.raises(InvalidStateError):
        baskets.add_item(basket.basket_id, "p")


def test_random_mutations_never_over_reserve(store, seed) -> None:
    seed.live("live-1")
    stock = {"p1": 3, "p2": 5, "p3": 1}
    for pid, qty in stock.items():
        seed.product(pid, stock=qty)
    for cid in ("c0", "c1", "c2", "c3"):
        seed.customer(cid)

    baskets = BasketStore(store, "live-1", journal=FinalizationJournal())
    basket_ids = [baskets.open_basket(cid).basket.basket_id for cid in ("c0", "c1", "c2", "c3")]
    rng = random.Random(7)

    for _ in range(300):
        basket_id = rng.choice(basket_ids)
        op = rng.choice(["add", "add", "update", "remove"])
        current = store.baskets.get(basket_id)
        try:
            if op == "add":
                baskets.add_item(basket_id, rng.choice(sorted(stock)))
            elif current.items:
                item = rng.choice(current.items)
                if op == "update":
                    baskets.update_quantity(item.basket_item_id, rng.randint(0, 6))
                else:
                    baskets.remove_item(item.basket_item_id)
        except InsufficientStockError:
            pass

        open_baskets = store.baskets.list_open("live-1")
        reserved = reserved_quantities(open_baskets)
        for pid, qty in stock.items():
            assert reserved[pid] <= qty
        for b in open_baskets:
            expected = sum((i.line_total for i in b.items), Decimal("0"))
            assert b.subtotal == b.total == expected
            assert all(i.quantity >= 1 for i in b.items)
