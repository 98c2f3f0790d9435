"""Quick-add ranking for the live basket view.

Products already selling in this live come first (by units across open baskets, then by
the most recent add). Newly created products fill the rest of the list. Anything with no
remaining availability is left out.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from services.api.app.services.availability import compute_availability
from services.api.app.services.domain import Basket, Product

SUGGESTION_LIMIT = 5


def _recency(moment: datetime | None) -> tuple[bool, datetime]:
    """Sort key putting missing timestamps last; naive values are read as UTC."""

    if moment is None:
        return (False, datetime.min.replace(tzinfo=timezone.utc))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (True, moment)


@dataclass(slots=True)
class _Sales:
    quantity: int = 0
    last_added: datetime | None = None


def rank_suggestions(
    open_baskets: Sequence[Basket],
    products: Sequence[Product],
    *,
    limit: int = SUGGESTION_LIMIT,
) -> list[Product]:
    limit = min(limit, SUGGESTION_LIMIT)
    if limit <= 0:
        return []
    availability = compute_availability(products, open_baskets)
    by_id = {p.product_id: p for p in products if p.active}

    sales: dict[str, _Sales] = {}
    for basket in open_baskets:
        if not basket.is_open:
            continue
        for item in basket.items:
            if item.product_id not in by_id or availability.get(item.product_id, 0) < 1:
                continue
            entry = sales.setdefault(item.product_id, _Sales())
            entry.quantity += item.quantity
            if _recency(item.created_at) > _recency(entry.last_added):
                entry.last_added = item.created_at

    best_sellers = sorted(
        sales.items(),
        key=lambda kv: (kv[1].quantity, _recency(kv[1].last_added)),
        reverse=True,
    )
    recent = sorted(
        (p for p in by_id.values() if availability.get(p.product_id, 0) >= 1),
        key=lambda p: _recency(p.created_at),
        reverse=True,
    )

    ranked: list[Product] = []
    seen: set[str] = set()
    for product in [by_id[pid] for pid, _ in best_sellers] + recent:
        if product.product_id in seen:
            continue
        seen.add(product.product_id)
        ranked.append(product)
        if len(ranked) >= limit:
            break
    return ranked
