from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import HTTPException
from packages.shared.schemas.live_v1 import (
    BasketItemV1,
    BasketV1,
    CustomerV1,
    LiveOrderV1,
    LiveV1,
    OrderItemV1,
    OrderV1,
    ProductV1,
)
from services.api.app.services.domain import Basket, Customer, LiveSession, Order, Product
from services.api.app.services.errors import (
    BackendFailure,
    FinalizationInProgressError,
    FinalizationPartialFailure,
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    OpenBasketConflictError,
)
from services.api.app.services.lives import LiveOrder

logger = logging.getLogger(__name__)


def raise_core_http_error(e: Exception) -> NoReturn:
    if isinstance(e, InsufficientStockError):
        raise HTTPException(
            status_code=409,
            detail={
                "code": e.code,
                "message": str(e),
                "product_id": e.product_id,
                "requested": e.requested,
                "available": e.available,
            },
        ) from e

    if isinstance(e, NotFoundError):
        raise HTTPException(status_code=404, detail=f"{e.entity} not found") from e

    if isinstance(e, (InvalidStateError, FinalizationInProgressError, OpenBasketConflictError)):
        raise HTTPException(status_code=409, detail={"code": e.code, "message": str(e)}) from e

    if isinstance(e, FinalizationPartialFailure):
        raise HTTPException(
            status_code=502,
            detail={
                "code": e.code,
                "message": str(e),
                "step": e.step,
                "failed_basket_id": e.failed_basket_id,
                "finalized_basket_ids": e.finalized_basket_ids,
                "remaining_basket_ids": e.remaining_basket_ids,
            },
        ) from e

    if isinstance(e, BackendFailure):
        raise HTTPException(status_code=502, detail={"code": e.code, "message": str(e)}) from e

    logger.exception("unhandled error", exc_info=e)
    raise HTTPException(status_code=500, detail="Internal Server Error") from e


def product_out(product: Product, available: int | None = None) -> ProductV1:
    return ProductV1(
        product_id=product.product_id,
        name=product.name,
        category=product.category,
        unit_price=product.unit_price,
        stock=product.stock,
        active=product.active,
        available=available,
    )


def customer_out(customer: Customer) -> CustomerV1:
    return CustomerV1(customer_id=customer.customer_id, name=customer.name, phone=customer.phone)


def live_out(live: LiveSession) -> LiveV1:
    return LiveV1(
        live_id=live.live_id,
        title=live.title,
        scheduled_at=live.scheduled_at.isoformat(),
        state=live.state.value,
        notes=live.notes,
    )


def basket_out(basket: Basket) -> BasketV1:
    return BasketV1(
        basket_id=basket.basket_id,
        live_id=basket.live_id,
        customer_id=basket.customer_id,
        customer=customer_out(basket.customer) if basket.customer is not None else None,
        state=basket.state.value,
        subtotal=basket.subtotal,
        total=basket.total,
        items=[
            BasketItemV1(
                basket_item_id=i.basket_item_id,
                product_id=i.product_id,
                product_name=i.product.name if i.product is not None else None,
                quantity=i.quantity,
                unit_price_snapshot=i.unit_price_snapshot,
                unit_cost_snapshot=i.unit_cost_snapshot,
                line_total=i.line_total,
            )
            for i in basket.items
        ],
    )


def order_out(order: Order) -> OrderV1:
    return OrderV1(
        order_id=order.order_id,
        customer_id=order.customer_id,
        live_id=order.live_id,
        state=order.state.value,
        subtotal=order.subtotal,
        tax=order.tax,
        total=order.total,
        notes=order.notes,
    )


def live_order_out(live_order: LiveOrder, products: dict[str, Product]) -> LiveOrderV1:
    order = live_order.order
    return LiveOrderV1(
        **order_out(order).model_dump(),
        customer_name=live_order.customer.name if live_order.customer is not None else None,
        created_at=order.created_at.isoformat() if order.created_at else None,
        items=[
            OrderItemV1(
                order_item_id=i.order_item_id,
                product_id=i.product_id,
                product_name=products[i.product_id].name if i.product_id in products else None,
                quantity=i.quantity,
                unit_price_snapshot=i.unit_price_snapshot,
                line_total=i.line_total,
            )
            for i in live_order.items
        ],
    )
