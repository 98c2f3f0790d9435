from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from services.api.app.services.domain import ZERO, Basket


@dataclass(frozen=True, slots=True)
class LiveStats:
    total_revenue: Decimal
    open_baskets: int
    units_sold: int


def compute_live_stats(open_baskets: Iterable[Basket]) -> LiveStats:
    baskets = [b for b in open_baskets if b.is_open]
    return LiveStats(
        total_revenue=sum((b.total for b in baskets), ZERO),
        open_baskets=len(baskets),
        units_sold=sum(b.unit_count() for b in baskets),
    )
