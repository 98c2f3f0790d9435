from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from services.api.app.services.domain import Basket, BasketItem, BasketState, Product
from services.api.app.services.suggestions import SUGGESTION_LIMIT, rank_suggestions

T0 = datetime(2026, 10, 1, 20, 0)


def _product(product_id: str, *, stock: int = 10, created_minutes: int = 0, active: bool = True) -> Product:
    return Product(
        product_id=product_id,
        name=product_id,
        category="Live",
        unit_price=Decimal("10"),
        unit_cost=Decimal("0"),
        stock=stock,
        active=active,
        created_at=T0 + timedelta(minutes=created_minutes),
    )


def _item(basket_id: str, product_id: str, quantity: int, added_minutes: int) -> BasketItem:
    return BasketItem(
        basket_item_id=f"{basket_id}-{product_id}",
        basket_id=basket_id,
        product_id=product_id,
        quantity=quantity,
        unit_price_snapshot=Decimal("10"),
        unit_cost_snapshot=Decimal("0"),
        line_total=Decimal("10") * quantity,
        created_at=T0 + timedelta(minutes=added_minutes),
    )


def _basket(basket_id: str, *items: BasketItem, state: BasketState = BasketState.OPEN) -> Basket:
    return Basket(basket_id=basket_id, live_id="live-1", customer_id=f"c-{basket_id}", state=state, items=list(items))


def _ids(products: list[Product]) -> list[str]:
    return [p.product_id for p in products]


def test_best_sellers_rank_by_units_then_recency() -> None:
    products = [_product("a"), _product("b"), _product("c"), _product("d")]
    baskets = [
        _basket("1", _item("1", "a", 1, 1), _item("1", "b", 2, 2)),
        _basket("2", _item("2", "c", 2, 5), _item("2", "a", 1, 6)),
    ]

    # a: 2 units (last at 6), c: 2 units (last at 5), b: 2 units (last at 2)
    assert _ids(rank_suggestions(baskets, products))[:3] == ["a", "c", "b"]


def test_new_products_fill_after_sellers() -> None:
    products = [
        _product("old", created_minutes=0),
        _product("seller", created_minutes=1),
        _product("newest", created_minutes=30),
        _product("newer", created_minutes=20),
    ]
    baskets = [_basket("1", _item("1", "seller", 1, 3))]

    assert _ids(rank_suggestions(baskets, products)) == ["seller", "newest", "newer", "old"]


def test_unavailable_and_inactive_products_are_excluded() -> None:
    products = [
        _product("sold-out", stock=2),
        _product("empty", stock=0, created_minutes=40),
        _product("hidden", active=False, created_minutes=50),
        _product("ok"),
    ]
    baskets = [_basket("1", _item("1", "sold-out", 2, 1))]

    assert _ids(rank_suggestions(baskets, products)) == ["ok"]


def test_finalized_baskets_do_not_count_as_sales() -> None:
    products = [_product("a", created_minutes=10), _product("b", created_minutes=0)]
    baskets = [_basket("1", _item("1", "b", 3, 1), state=BasketState.FINALIZED)]

    assert _ids(rank_suggestions(baskets, products)) == ["a", "b"]


def test_limit_is_capped() -> None:
    products = [_product(f"p{n}", created_minutes=n) for n in range(8)]

    assert len(rank_suggestions([], products)) == SUGGESTION_LIMIT
    assert len(rank_suggestions([], products, limit=50)) == SUGGESTION_LIMIT
    assert _ids(rank_suggestions([], products, limit=2)) == ["p7", "p6"]
    assert rank_suggestions([], products, limit=0) == []


def test_no_duplicates_when_seller_is_also_newest() -> None:
    products = [_product("a", created_minutes=60), _product("b")]
    baskets = [_basket("1", _item("1", "a", 1, 1))]

    assert _ids(rank_suggestions(baskets, products)) == ["a", "b"]


def test_timezone_aware_timestamps_rank_like_naive_ones() -> None:
    aware = T0.replace(tzinfo=timezone.utc)
    products = [_product("a"), _product("b"), _product("c")]
    for product, minutes in zip(products, (0, 30, 10)):
        product.created_at = aware + timedelta(minutes=minutes)

    first = _item("1", "a", 1, 0)
    first.created_at = aware
    second = _item("2", "c", 1, 0)
    second.created_at = aware + timedelta(minutes=5)
    baskets = [_basket("1", first), _basket("2", second)]

    assert _ids(rank_suggestions(baskets, products)) == ["c", "a", "b"]


def test_missing_and_mixed_timestamps_do_not_break_ranking() -> None:
    undated = _product("undated")
    undated.created_at = None
    aware = _product("aware")
    aware.created_at = T0.replace(tzinfo=timezone.utc) + timedelta(minutes=20)
    naive = _product("naive", created_minutes=10)

    item = _item("1", "naive", 1, 0)
    item.created_at = None

    assert _ids(rank_suggestions([_basket("1", item)], [undated, aware, naive])) == [
        "naive",
        "aware",
        "undated",
    ]
