from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from packages.shared.schemas.live_v1 import BasketV1, OpenBasketResponseV1
from services.api.app.db.deps import get_store
from services.api.app.models.basket import (
    AddBasketItemRequest,
    OpenBasketRequest,
    UpdateBasketItemRequest,
)
from services.api.app.routers._common import basket_out, raise_core_http_error
from services.api.app.services.basket_store import BasketStore
from services.api.app.services.domain import Basket
from services.api.app.services.errors import CoreError, NotFoundError
from services.api.app.services.repository import LiveStore

router = APIRouter()


@router.post("/v1/lives/{live_id}/baskets", response_model=OpenBasketResponseV1, status_code=201)
def open_basket(
    live_id: str,
    payload: OpenBasketRequest,
    response: Response,
    store: LiveStore = Depends(get_store),
) -> OpenBasketResponseV1:
    try:
        result = BasketStore(store, live_id).open_basket(payload.customer_id)
    except CoreError as e:
        raise_core_http_error(e)

    if result.existing:
        response.status_code = 200
        message = "Existing basket found for this customer"
    else:
        message = "Basket opened"

    return OpenBasketResponseV1(
        basket=basket_out(_hydrate(store, result.basket)),
        existing=result.existing,
        message=message,
    )


@router.get("/v1/baskets/{basket_id}", response_model=BasketV1)
def get_basket(basket_id: str, store: LiveStore = Depends(get_store)) -> BasketV1:
    try:
        basket = store.baskets.get(basket_id)
        if basket is None:
            raise NotFoundError("Basket", basket_id)
        return basket_out(_hydrate(store, basket))
    except CoreError as e:
        raise_core_http_error(e)


@router.post("/v1/baskets/{basket_id}/items", response_model=BasketV1)
def add_basket_item(
    basket_id: str, payload: AddBasketItemRequest, store: LiveStore = Depends(get_store)
) -> BasketV1:
    try:
        basket_store = _store_for_basket(store, basket_id)
        basket = basket_store.add_item(basket_id, payload.product_id)
        return basket_out(_hydrate(store, basket))
    except CoreError as e:
        raise_core_http_error(e)


@router.patch("/v1/basket-items/{basket_item_id}", response_model=BasketV1)
def update_basket_item(
    basket_item_id: str,
    payload: UpdateBasketItemRequest,
    store: LiveStore = Depends(get_store),
) -> BasketV1:
    try:
        basket_store = _store_for_item(store, basket_item_id)
        basket = basket_store.update_quantity(basket_item_id, payload.quantity)
        return basket_out(_hydrate(store, basket))
    except CoreError as e:
        raise_core_http_error(e)


@router.delete("/v1/basket-items/{basket_item_id}", response_model=BasketV1)
def remove_basket_item(basket_item_id: str, store: LiveStore = Depends(get_store)) -> BasketV1:
    try:
        basket_store = _store_for_item(store, basket_item_id)
        basket = basket_store.remove_item(basket_item_id)
        return basket_out(_hydrate(store, basket))
    except CoreError as e:
        raise_core_http_error(e)


def _store_for_basket(store: LiveStore, basket_id: str) -> BasketStore:
    basket = store.baskets.get(basket_id)
    if basket is None:
        raise NotFoundError("Basket", basket_id)
    return BasketStore(store, basket.live_id)


def _store_for_item(store: LiveStore, basket_item_id: str) -> BasketStore:
    item = store.baskets.get_item(basket_item_id)
    if item is None:
        raise NotFoundError("BasketItem", basket_item_id)
    return _store_for_basket(store, item.basket_id)


def _hydrate(store: LiveStore, basket: Basket) -> Basket:
    basket.customer = store.customers.get(basket.customer_id)
    for item in basket.items:
        item.product = store.products.get(item.product_id)
    return basket
