"""Per-product availability across the open baskets of one live.

``reserved`` is the sum of a product's quantity over open baskets. ``available`` is
catalog stock minus reservations, floored at zero. Passing ``exclude_basket_id`` gives the
ceiling for that basket's own line: stock minus what the *other* baskets hold.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable

from services.api.app.services.domain import Basket, Product


def reserved_quantities(
    open_baskets: Iterable[Basket], *, exclude_basket_id: str | None = None
) -> Counter[str]:
    reserved: Counter[str] = Counter()
    for basket in open_baskets:
        if not basket.is_open or basket.basket_id == exclude_basket_id:
            continue
        for item in basket.items:
            reserved[item.product_id] += item.quantity
    return reserved


def compute_availability(
    products: Iterable[Product],
    open_baskets: Iterable[Basket],
    *,
    exclude_basket_id: str | None = None,
) -> dict[str, int]:
    reserved = reserved_quantities(open_baskets, exclude_basket_id=exclude_basket_id)
    return {p.product_id: max(p.stock - reserved[p.product_id], 0) for p in products}


def line_ceiling(product: Product, open_baskets: Iterable[Basket], basket_id: str) -> int:
    """Largest quantity ``basket_id`` may hold of ``product``."""
    return compute_availability([product], open_baskets, exclude_basket_id=basket_id)[product.product_id]
