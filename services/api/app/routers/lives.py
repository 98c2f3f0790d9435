from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from packages.shared.schemas.live_v1 import (
    FinalizationPreviewBasketV1,
    FinalizationPreviewV1,
    FinalizationResultV1,
    LiveOrderV1,
    LiveSnapshotV1,
    LiveStatsV1,
    LiveV1,
    ProductV1,
)
from services.api.app.db.deps import get_store
from services.api.app.models.live import (
    CreateLiveRequest,
    FinalizeRequest,
    LiveProductRequest,
    UpdateLiveRequest,
)
from services.api.app.routers._common import (
    basket_out,
    customer_out,
    live_order_out,
    live_out,
    order_out,
    product_out,
    raise_core_http_error,
)
from services.api.app.services.availability import compute_availability
from services.api.app.services.domain import LiveState
from services.api.app.services.errors import CoreError
from services.api.app.services.finalization import FinalizationOrchestrator
from services.api.app.services.lives import (
    create_live,
    create_live_product,
    list_live_orders,
    list_lives,
    require_live,
    start_live,
    update_live,
)
from services.api.app.services.poller import load_snapshot
from services.api.app.services.repository import LiveStore
from services.api.app.services.stats import LiveStats, compute_live_stats
from services.api.app.services.suggestions import rank_suggestions

router = APIRouter()

FINALIZE_WARNING = (
    "This action is irreversible. Every open basket becomes a confirmed order, stock is "
    "deducted, and the live is marked finalized."
)


@router.post("/v1/lives", response_model=LiveV1, status_code=201)
def create_live_session(payload: CreateLiveRequest, store: LiveStore = Depends(get_store)) -> LiveV1:
    try:
        live = create_live(
            store,
            title=payload.title.strip(),
            scheduled_at=payload.scheduled_at,
            notes=payload.notes,
        )
    except CoreError as e:
        raise_core_http_error(e)
    return live_out(live)


@router.get("/v1/lives", response_model=list[LiveV1])
def list_live_sessions(store: LiveStore = Depends(get_store)) -> list[LiveV1]:
    try:
        lives = list_lives(store)
    except CoreError as e:
        raise_core_http_error(e)
    return [live_out(live) for live in lives]


@router.patch("/v1/lives/{live_id}", response_model=LiveV1)
def edit_live_session(
    live_id: str, payload: UpdateLiveRequest, store: LiveStore = Depends(get_store)
) -> LiveV1:
    try:
        live = update_live(
            store,
            live_id,
            title=payload.title,
            scheduled_at=payload.scheduled_at,
            notes=payload.notes,
        )
    except CoreError as e:
        raise_core_http_error(e)
    return live_out(live)


@router.post("/v1/lives/{live_id}/start", response_model=LiveV1)
def start_live_session(live_id: str, store: LiveStore = Depends(get_store)) -> LiveV1:
    try:
        live = start_live(store, live_id)
    except CoreError as e:
        raise_core_http_error(e)
    return live_out(live)


@router.get("/v1/lives/{live_id}/snapshot", response_model=LiveSnapshotV1)
def get_live_snapshot(live_id: str, store: LiveStore = Depends(get_store)) -> LiveSnapshotV1:
    try:
        snapshot = load_snapshot(store, live_id)
    except CoreError as e:
        raise_core_http_error(e)

    if snapshot.live is None:
        raise HTTPException(status_code=404, detail="Live not found")

    return LiveSnapshotV1(
        live=live_out(snapshot.live),
        active=snapshot.is_active,
        baskets=[basket_out(b) for b in snapshot.baskets],
        products=[product_out(pa.product, pa.available) for pa in snapshot.products],
        customers=[customer_out(c) for c in snapshot.customers],
        stats=_stats_out(snapshot.stats),
        fetched_at=snapshot.fetched_at.isoformat(),
    )


@router.get("/v1/lives/{live_id}/stats", response_model=LiveStatsV1)
def get_live_stats(live_id: str, store: LiveStore = Depends(get_store)) -> LiveStatsV1:
    try:
        require_live(store, live_id)
        stats = compute_live_stats(store.baskets.list_open(live_id))
    except CoreError as e:
        raise_core_http_error(e)
    return _stats_out(stats)


@router.get("/v1/lives/{live_id}/suggestions", response_model=list[ProductV1])
def get_suggestions(live_id: str, store: LiveStore = Depends(get_store)) -> list[ProductV1]:
    try:
        require_live(store, live_id)
        baskets = store.baskets.list_open(live_id)
        products = store.products.list_active()
    except CoreError as e:
        raise_core_http_error(e)

    availability = compute_availability(products, baskets)
    return [product_out(p, availability[p.product_id]) for p in rank_suggestions(baskets, products)]


@router.post("/v1/lives/{live_id}/products", response_model=ProductV1, status_code=201)
def create_product_during_live(
    live_id: str, payload: LiveProductRequest, store: LiveStore = Depends(get_store)
) -> ProductV1:
    try:
        product = create_live_product(
            store,
            live_id,
            name=payload.name,
            unit_price=payload.unit_price,
            stock=payload.stock,
            category=payload.category,
            unit_cost=payload.unit_cost,
        )
    except CoreError as e:
        raise_core_http_error(e)
    return product_out(product, product.stock)


@router.get("/v1/lives/{live_id}/finalize/preview", response_model=FinalizationPreviewV1)
def preview_finalization(live_id: str, store: LiveStore = Depends(get_store)) -> FinalizationPreviewV1:
    try:
        preview = FinalizationOrchestrator(store).preview(live_id)
    except CoreError as e:
        raise_core_http_error(e)

    return FinalizationPreviewV1(
        live_id=preview.live.live_id,
        title=preview.live.title,
        basket_count=preview.basket_count,
        total_revenue=preview.total_revenue,
        baskets=[
            FinalizationPreviewBasketV1(
                basket_id=b.basket_id,
                customer_name=b.customer.name if b.customer is not None else None,
                units=b.unit_count(),
                total=b.total,
            )
            for b in preview.baskets
        ],
        warning=FINALIZE_WARNING,
    )


@router.post("/v1/lives/{live_id}/finalize", response_model=FinalizationResultV1)
def finalize_live(
    live_id: str, payload: FinalizeRequest, store: LiveStore = Depends(get_store)
) -> FinalizationResultV1:
    if not payload.confirm:
        raise HTTPException(status_code=412, detail="Finalization must be confirmed")

    try:
        result = FinalizationOrchestrator(store).finalize(live_id)
    except CoreError as e:
        raise_core_http_error(e)

    return FinalizationResultV1(
        live_id=result.live_id,
        state=LiveState.FINALIZED.value,
        orders=[order_out(o) for o in result.orders],
        finalized_basket_ids=result.finalized_basket_ids,
        resumed_basket_ids=result.resumed_basket_ids,
        total_revenue=result.total_revenue,
    )


@router.get("/v1/lives/{live_id}/orders", response_model=list[LiveOrderV1])
def get_live_orders(live_id: str, store: LiveStore = Depends(get_store)) -> list[LiveOrderV1]:
    try:
        live_orders = list_live_orders(store, live_id)
        products = {}
        for product_id in {i.product_id for lo in live_orders for i in lo.items}:
            product = store.products.get(product_id)
            if product is not None:
                products[product_id] = product
    except CoreError as e:
        raise_core_http_error(e)
    return [live_order_out(lo, products) for lo in live_orders]


def _stats_out(stats: LiveStats) -> LiveStatsV1:
    return LiveStatsV1(
        total_revenue=stats.total_revenue,
        open_baskets=stats.open_baskets,
        units_sold=stats.units_sold,
    )
