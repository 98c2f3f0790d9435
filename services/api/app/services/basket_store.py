"""Open-basket mutations for one live session.

Every mutation re-reads the open baskets, checks availability, and only then writes.
Totals are re-derived from the current item set after each write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import NoReturn

from packages.shared.schemas.events import EntityTypeV1, EventTypeV1
from services.api.app.services.audit import record_event
from services.api.app.services.availability import line_ceiling
from services.api.app.services.domain import ZERO, Basket, BasketItem, BasketState, Product
from services.api.app.services.errors import (
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    OpenBasketConflictError,
)
from services.api.app.services.finalization import FinalizationJournal, finalization_journal
from services.api.app.services.lives import require_active_live
from services.api.app.services.repository import LiveStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OpenBasketResult:
    basket: Basket
    existing: bool


class BasketStore:
    def __init__(
        self, store: LiveStore, live_id: str, *, journal: FinalizationJournal | None = None
    ) -> None:
        self._store = store
        self.live_id = live_id
        self._journal = journal if journal is not None else finalization_journal

    def open_basket(self, customer_id: str) -> OpenBasketResult:
        require_active_live(self._store, self.live_id)

        existing = self._store.baskets.find_open(self.live_id, customer_id)
        if existing is not None:
            logger.info("existing basket found basket_id=%s customer_id=%s", existing.basket_id, customer_id)
            return OpenBasketResult(basket=existing, existing=True)

        if self._store.customers.get(customer_id) is None:
            raise NotFoundError("Customer", customer_id)

        try:
            basket = self._store.baskets.create(live_id=self.live_id, customer_id=customer_id)
        except OpenBasketConflictError:
            # Lost a race with another operator opening the same basket.
            existing = self._store.baskets.find_open(self.live_id, customer_id)
            if existing is None:
                raise
            logger.info(
                "existing basket found after conflict basket_id=%s customer_id=%s",
                existing.basket_id,
                customer_id,
            )
            return OpenBasketResult(basket=existing, existing=True)

        logger.info("basket opened basket_id=%s customer_id=%s", basket.basket_id, customer_id)
        self._record(EntityTypeV1.BASKET, basket.basket_id, EventTypeV1.BASKET_OPENED, {"customer_id": customer_id})
        return OpenBasketResult(basket=basket, existing=False)

    def get_basket(self, basket_id: str) -> Basket:
        basket = self._store.baskets.get(basket_id)
        if basket is None or basket.live_id != self.live_id:
            raise NotFoundError("Basket", basket_id)
        return basket

    def add_item(self, basket_id: str, product_id: str) -> Basket:
        require_active_live(self._store, self.live_id)
        basket = self._require_open_basket(basket_id)
        product = self._require_product(product_id)

        line = basket.item_for_product(product_id)
        if line is not None:
            return self.update_quantity(line.basket_item_id, line.quantity + 1)

        ceiling = line_ceiling(product, self._store.baskets.list_open(self.live_id), basket_id)
        if ceiling < 1:
            self._reject(product_id, requested=1, available=ceiling)

        item = self._store.baskets.add_item(
            basket_id=basket_id,
            product_id=product_id,
            quantity=1,
            unit_price_snapshot=product.unit_price,
            unit_cost_snapshot=product.unit_cost,
            line_total=product.unit_price,
        )
        logger.info("item added basket_id=%s product_id=%s", basket_id, product_id)
        self._record(
            EntityTypeV1.BASKET_ITEM,
            item.basket_item_id,
            EventTypeV1.BASKET_ITEM_ADDED,
            {"basket_id": basket_id, "product_id": product_id, "quantity": 1},
        )
        return self._recompute_totals(basket_id)

    def update_quantity(self, basket_item_id: str, new_quantity: int) -> Basket:
        if new_quantity < 1:
            return self.remove_item(basket_item_id)

        require_active_live(self._store, self.live_id)
        item = self._require_item(basket_item_id)
        self._require_open_basket(item.basket_id)

        # Shrinking a line never needs stock; only growth is checked.
        if new_quantity > item.quantity:
            product = self._require_product(item.product_id)
            ceiling = line_ceiling(product, self._store.baskets.list_open(self.live_id), item.basket_id)
            if new_quantity > ceiling:
                self._reject(item.product_id, requested=new_quantity, available=ceiling)

        self._store.baskets.update_item(
            basket_item_id,
            quantity=new_quantity,
            line_total=item.unit_price_snapshot * new_quantity,
        )
        logger.info(
            "item quantity updated basket_item_id=%s %s->%s", basket_item_id, item.quantity, new_quantity
        )
        self._record(
            EntityTypeV1.BASKET_ITEM,
            basket_item_id,
            EventTypeV1.BASKET_ITEM_UPDATED,
            {"basket_id": item.basket_id, "from": item.quantity, "to": new_quantity},
        )
        return self._recompute_totals(item.basket_id)

    def remove_item(self, basket_item_id: str) -> Basket:
        require_active_live(self._store, self.live_id)
        item = self._require_item(basket_item_id)
        self._require_open_basket(item.basket_id)

        self._store.baskets.delete_item(basket_item_id)
        logger.info("item removed basket_item_id=%s basket_id=%s", basket_item_id, item.basket_id)
        self._record(
            EntityTypeV1.BASKET_ITEM,
            basket_item_id,
            EventTypeV1.BASKET_ITEM_REMOVED,
            {"basket_id": item.basket_id, "product_id": item.product_id},
        )
        return self._recompute_totals(item.basket_id)

    def _recompute_totals(self, basket_id: str) -> Basket:
        basket = self.get_basket(basket_id)
        subtotal = sum((item.line_total for item in basket.items), ZERO)
        # No tax on live baskets: total == subtotal.
        self._store.baskets.set_totals(basket_id, subtotal=subtotal, total=subtotal)
        basket.subtotal = subtotal
        basket.total = subtotal
        return basket

    def _require_open_basket(self, basket_id: str) -> Basket:
        basket = self.get_basket(basket_id)
        if basket.state != BasketState.OPEN:
            raise InvalidStateError("Basket", basket_id, basket.state.value, BasketState.OPEN.value)
        if self._journal.has_progress(self.live_id, basket_id):
            # A failed finalization left this basket half converted; its items are frozen.
            raise InvalidStateError("Basket", basket_id, "finalizing", BasketState.OPEN.value)
        return basket

    def _require_item(self, basket_item_id: str) -> BasketItem:
        item = self._store.baskets.get_item(basket_item_id)
        if item is None:
            raise NotFoundError("BasketItem", basket_item_id)
        return item

    def _require_product(self, product_id: str) -> Product:
        product = self._store.products.get(product_id)
        if product is None or not product.active:
            raise NotFoundError("Product", product_id)
        return product

    def _reject(self, product_id: str, *, requested: int, available: int) -> NoReturn:
        logger.warning(
            "insufficient stock live_id=%s product_id=%s requested=%s available=%s",
            self.live_id,
            product_id,
            requested,
            available,
        )
        raise InsufficientStockError(product_id, requested=requested, available=available)

    def _record(self, entity_type: EntityTypeV1, entity_id: str, event_type: EventTypeV1, payload: dict) -> None:
        record_event(
            self._store,
            live_id=self.live_id,
            entity_type=entity_type,
            entity_id=entity_id,
            event_type=event_type,
            payload=payload,
        )
