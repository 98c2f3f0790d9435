"""End-of-live conversion of open baskets into orders.

Baskets are converted one at a time, oldest first. For each basket the order is created,
then every item is written as an order item followed by its stock decrement, and finally
the basket is marked finalized. The live is marked finalized only after every basket made
it through.

The run is not transactional across baskets. A failure stops the run and leaves a prefix
of baskets converted; running finalization again only touches baskets that are still open.
Within a basket, a failure after the order exists is compensated (stock re-incremented,
order deleted). If the compensation itself fails, the journal keeps what was done so the
next run resumes that basket instead of creating a second order.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import Decimal
from typing import NoReturn

from packages.shared.schemas.events import EntityTypeV1, EventTypeV1
from services.api.app.services.audit import record_event
from services.api.app.services.domain import ZERO, Basket, LiveSession, LiveState, Order
from services.api.app.services.errors import (
    CoreError,
    FinalizationInProgressError,
    FinalizationPartialFailure,
)
from services.api.app.services.lives import require_active_live
from services.api.app.services.repository import LiveStore

logger = logging.getLogger(__name__)

DEFAULT_EMPLOYEE = "live"


def finalization_employee() -> str:
    return os.getenv("LIVEBASKET_EMPLOYEE", DEFAULT_EMPLOYEE).strip() or DEFAULT_EMPLOYEE


@dataclass(slots=True)
class BasketProgress:
    basket_id: str
    order_id: str | None = None
    items_written: set[str] = field(default_factory=set)
    stock_decremented: set[str] = field(default_factory=set)
    converted: bool = False


class FinalizationJournal:
    """In-flight runs and per-basket progress that outlived a failed run."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._running: set[str] = set()
        self._progress: dict[str, dict[str, BasketProgress]] = {}

    @contextmanager
    def running(self, live_id: str) -> Iterator[None]:
        with self._lock:
            if live_id in self._running:
                raise FinalizationInProgressError(live_id)
            self._running.add(live_id)
        try:
            yield
        finally:
            with self._lock:
                self._running.discard(live_id)

    def is_running(self, live_id: str) -> bool:
        with self._lock:
            return live_id in self._running

    def progress(self, live_id: str, basket_id: str) -> BasketProgress:
        with self._lock:
            per_live = self._progress.setdefault(live_id, {})
            return per_live.setdefault(basket_id, BasketProgress(basket_id=basket_id))

    def has_progress(self, live_id: str, basket_id: str) -> bool:
        with self._lock:
            entry = self._progress.get(live_id, {}).get(basket_id)
        return entry is not None and (entry.order_id is not None or entry.converted)

    def forget(self, live_id: str, basket_id: str | None = None) -> None:
        with self._lock:
            if basket_id is None:
                self._progress.pop(live_id, None)
                return
            per_live = self._progress.get(live_id)
            if per_live is not None:
                per_live.pop(basket_id, None)


finalization_journal = FinalizationJournal()


@dataclass(frozen=True, slots=True)
class FinalizationPreview:
    live: LiveSession
    baskets: list[Basket]
    total_revenue: Decimal

    @property
    def basket_count(self) -> int:
        return len(self.baskets)


@dataclass(frozen=True, slots=True)
class FinalizationResult:
    live_id: str
    orders: list[Order]
    finalized_basket_ids: list[str]
    resumed_basket_ids: list[str]
    total_revenue: Decimal


class _StepError(Exception):
    def __init__(self, step: str, basket_id: str | None, cause: CoreError) -> None:
        super().__init__(f"{step} failed for basket {basket_id}: {cause}")
        self.step = step
        self.basket_id = basket_id
        self.cause = cause


class FinalizationOrchestrator:
    def __init__(
        self,
        store: LiveStore,
        *,
        journal: FinalizationJournal | None = None,
        employee: str | None = None,
    ) -> None:
        self._store = store
        self._journal = journal if journal is not None else finalization_journal
        self._employee = employee or finalization_employee()

    def preview(self, live_id: str) -> FinalizationPreview:
        """Summary shown before the operator confirms the irreversible run."""

        live = require_active_live(self._store, live_id)
        baskets = self._store.baskets.list_open(live_id)
        for basket in baskets:
            basket.customer = self._store.customers.get(basket.customer_id)
        return FinalizationPreview(
            live=live,
            baskets=baskets,
            total_revenue=sum((b.total for b in baskets), ZERO),
        )

    def finalize(self, live_id: str) -> FinalizationResult:
        with self._journal.running(live_id):
            live = require_active_live(self._store, live_id)
            baskets = self._store.baskets.list_open(live_id)
            logger.info("finalization started live_id=%s open_baskets=%s", live_id, len(baskets))

            orders: list[Order] = []
            finalized: list[str] = []
            resumed: list[str] = []
            for index, basket in enumerate(baskets):
                progress = self._journal.progress(live_id, basket.basket_id)
                if progress.order_id is not None or progress.converted:
                    resumed.append(basket.basket_id)
                try:
                    order = self._convert_basket(live, basket, progress)
                except _StepError as e:
                    remaining = [b.basket_id for b in baskets[index:]]
                    self._fail(live, e, finalized, remaining)
                orders.append(order)
                finalized.append(basket.basket_id)

            try:
                self._store.lives.set_state(live_id, LiveState.FINALIZED)
            except CoreError as e:
                self._fail(live, _StepError("mark_live_finalized", None, e), finalized, [])

            self._journal.forget(live_id)
            total_revenue = sum((o.total for o in orders), ZERO)
            logger.info(
                "finalization done live_id=%s orders=%s revenue=%s", live_id, len(orders), total_revenue
            )
            record_event(
                self._store,
                live_id=live_id,
                entity_type=EntityTypeV1.LIVE,
                entity_id=live_id,
                event_type=EventTypeV1.LIVE_FINALIZED,
                payload={
                    "orders": [o.order_id for o in orders],
                    "baskets": finalized,
                    "total_revenue": str(total_revenue),
                },
            )
            return FinalizationResult(
                live_id=live_id,
                orders=orders,
                finalized_basket_ids=finalized,
                resumed_basket_ids=resumed,
                total_revenue=total_revenue,
            )

    def _convert_basket(self, live: LiveSession, basket: Basket, progress: BasketProgress) -> Order:
        basket_id = basket.basket_id
        logger.info("converting basket live_id=%s basket_id=%s", live.live_id, basket_id)

        order = None
        if progress.order_id is not None:
            order = self._resume_order(progress, progress.order_id)

        if not progress.converted:
            if order is None:
                order = self._create_order(live, basket, progress)

            for item in basket.items:
                step = "create_order_item"
                try:
                    if item.basket_item_id not in progress.items_written:
                        self._store.orders.add_item(
                            order_id=order.order_id,
                            product_id=item.product_id,
                            quantity=item.quantity,
                            unit_price_snapshot=item.unit_price_snapshot,
                            unit_cost_snapshot=item.unit_cost_snapshot,
                            line_total=item.line_total,
                        )
                        progress.items_written.add(item.basket_item_id)

                    step = "decrement_stock"
                    if item.basket_item_id not in progress.stock_decremented:
                        self._store.products.adjust_stock(item.product_id, -item.quantity)
                        progress.stock_decremented.add(item.basket_item_id)
                except CoreError as e:
                    self._compensate(live.live_id, basket, progress)
                    raise _StepError(step, basket_id, e) from e

            progress.converted = True

        if order is None:
            # Converted in an earlier run but the order record is gone.
            raise _StepError(
                "load_order", basket_id, CoreError(f"order {progress.order_id} missing for basket {basket_id}")
            )

        try:
            self._store.baskets.mark_finalized(basket_id)
        except CoreError as e:
            raise _StepError("mark_basket_finalized", basket_id, e) from e

        self._journal.forget(live.live_id, basket_id)
        logger.info("basket finalized basket_id=%s order_id=%s", basket_id, order.order_id)
        return order

    def _create_order(self, live: LiveSession, basket: Basket, progress: BasketProgress) -> Order:
        subtotal = sum((item.line_total for item in basket.items), ZERO)
        try:
            order = self._store.orders.create_order(
                customer_id=basket.customer_id,
                live_id=live.live_id,
                subtotal=subtotal,
                tax=ZERO,
                total=subtotal,
                employee=self._employee,
                notes=f"Pedido generado desde Live: {live.display_name}",
            )
        except CoreError as e:
            raise _StepError("create_order", basket.basket_id, e) from e

        progress.order_id = order.order_id
        record_event(
            self._store,
            live_id=live.live_id,
            entity_type=EntityTypeV1.ORDER,
            entity_id=order.order_id,
            event_type=EventTypeV1.ORDER_CREATED,
            payload={
                "basket_id": basket.basket_id,
                "customer_id": basket.customer_id,
                "total": str(order.total),
            },
        )
        return order

    def _resume_order(self, progress: BasketProgress, order_id: str) -> Order | None:
        try:
            order = self._store.orders.get(order_id)
        except CoreError as e:
            raise _StepError("load_order", progress.basket_id, e) from e

        if order is None and not progress.converted:
            # Order vanished before conversion finished: its items went with it, but the
            # recorded stock decrements still stand.
            logger.warning(
                "resumed order missing, recreating basket_id=%s order_id=%s",
                progress.basket_id,
                order_id,
            )
            progress.order_id = None
            progress.items_written.clear()
        return order

    def _compensate(self, live_id: str, basket: Basket, progress: BasketProgress) -> None:
        quantities = {item.basket_item_id: item for item in basket.items}
        try:
            for basket_item_id in sorted(progress.stock_decremented):
                item = quantities[basket_item_id]
                self._store.products.adjust_stock(item.product_id, item.quantity)
                progress.stock_decremented.discard(basket_item_id)
            if progress.order_id is not None:
                self._store.orders.delete_order(progress.order_id)
        except CoreError:
            logger.exception(
                "compensation failed; progress kept for resume live_id=%s basket_id=%s",
                live_id,
                basket.basket_id,
            )
            return

        self._journal.forget(live_id, basket.basket_id)
        logger.warning("basket conversion rolled back live_id=%s basket_id=%s", live_id, basket.basket_id)

    def _fail(
        self,
        live: LiveSession,
        error: _StepError,
        finalized: list[str],
        remaining: list[str],
    ) -> NoReturn:
        logger.error(
            "finalization stopped live_id=%s step=%s basket_id=%s finalized=%s remaining=%s: %s",
            live.live_id,
            error.step,
            error.basket_id,
            len(finalized),
            len(remaining),
            error.cause,
        )
        record_event(
            self._store,
            live_id=live.live_id,
            entity_type=EntityTypeV1.LIVE,
            entity_id=live.live_id,
            event_type=EventTypeV1.FINALIZATION_FAILED,
            payload={
                "step": error.step,
                "basket_id": error.basket_id,
                "error": str(error.cause),
                "finalized_baskets": list(finalized),
                "remaining_baskets": list(remaining),
            },
        )
        raise FinalizationPartialFailure(
            live.live_id,
            step=error.step,
            failed_basket_id=error.basket_id,
            finalized_basket_ids=list(finalized),
            remaining_basket_ids=list(remaining),
            cause=error.cause,
        ) from error.cause
