"""Periodic refresh of a live session view.

``load_snapshot`` is one tick: the live record, its open baskets (with customer and
items-with-product), active products annotated with availability, and customers.
``LiveSessionPoller`` runs ticks on a worker thread, never overlapping, until stopped or
until the live leaves the active state.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime

from services.api.app.services.availability import compute_availability
from services.api.app.services.domain import Basket, Customer, LiveSession, LiveState, Product
from services.api.app.services.errors import CoreError
from services.api.app.services.repository import LiveStore
from services.api.app.services.stats import LiveStats, compute_live_stats

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 5.0


def poll_interval_seconds() -> float:
    raw = os.getenv("LIVEBASKET_POLL_INTERVAL_SECONDS", str(DEFAULT_POLL_INTERVAL_SECONDS)).strip()
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"LIVEBASKET_POLL_INTERVAL_SECONDS must be a number, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"LIVEBASKET_POLL_INTERVAL_SECONDS must be positive, got {raw!r}")
    return value


@dataclass(frozen=True, slots=True)
class ProductAvailability:
    product: Product
    available: int


@dataclass(frozen=True, slots=True)
class LiveSnapshot:
    live_id: str
    live: LiveSession | None
    baskets: list[Basket]
    products: list[ProductAvailability]
    customers: list[Customer]
    stats: LiveStats
    fetched_at: datetime

    @property
    def is_active(self) -> bool:
        return self.live is not None and self.live.state == LiveState.ACTIVE

    @property
    def has_ended(self) -> bool:
        # A missing live record is treated as absent for this tick, not as ended.
        return self.live is not None and self.live.state != LiveState.ACTIVE


def load_snapshot(store: LiveStore, live_id: str) -> LiveSnapshot:
    live = store.lives.get(live_id)
    baskets = store.baskets.list_open(live_id) if live is not None else []
    products = store.products.list_active()
    customers = store.customers.list_all()

    products_by_id = {p.product_id: p for p in products}
    customers_by_id = {c.customer_id: c for c in customers}
    for basket in baskets:
        basket.customer = customers_by_id.get(basket.customer_id)
        for item in basket.items:
            product = products_by_id.get(item.product_id)
            if product is None:
                # Deactivated since it was added; still show what was sold.
                product = store.products.get(item.product_id)
            item.product = product

    availability = compute_availability(products, baskets)
    return LiveSnapshot(
        live_id=live_id,
        live=live,
        baskets=baskets,
        products=[ProductAvailability(product=p, available=availability[p.product_id]) for p in products],
        customers=customers,
        stats=compute_live_stats(baskets),
        fetched_at=datetime.utcnow(),
    )


class LiveSessionPoller:
    """Start/stop scheduler owned by whatever is showing a live session.

    ``on_close`` fires once when a tick sees the live in any state other than active
    (for example another operator finalized it); the poller then stops itself. A tick that
    fails with a backend error is logged and retried on the next interval.
    """

    def __init__(
        self,
        live_id: str,
        store_provider: Callable[[], AbstractContextManager[LiveStore]],
        *,
        interval_seconds: float | None = None,
        on_snapshot: Callable[[LiveSnapshot], None] | None = None,
        on_close: Callable[[LiveSession], None] | None = None,
    ) -> None:
        self.live_id = live_id
        self.interval_seconds = interval_seconds if interval_seconds is not None else poll_interval_seconds()
        self._store_provider = store_provider
        self._on_snapshot = on_snapshot
        self._on_close = on_close
        self._snapshot: LiveSnapshot | None = None
        self._stop = threading.Event()
        self._closed = threading.Event()
        self._tick_lock = threading.Lock()
        self._thread: threading.Thread | None = None

    @property
    def snapshot(self) -> LiveSnapshot | None:
        return self._snapshot

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def refresh(self) -> LiveSnapshot | None:
        with self._tick_lock:
            try:
                with self._store_provider() as store:
                    snapshot = load_snapshot(store, self.live_id)
            except CoreError as e:
                logger.warning("live poll failed live_id=%s: %s", self.live_id, e)
                return None

            self._snapshot = snapshot
            logger.debug(
                "live polled live_id=%s baskets=%s products=%s",
                self.live_id,
                len(snapshot.baskets),
                len(snapshot.products),
            )
            if self._on_snapshot is not None:
                self._on_snapshot(snapshot)

            if snapshot.has_ended and not self._closed.is_set():
                assert snapshot.live is not None
                self._closed.set()
                self._stop.set()
                logger.info("live no longer active live_id=%s state=%s", self.live_id, snapshot.live.state.value)
                if self._on_close is not None:
                    self._on_close(snapshot.live)
            return snapshot

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name=f"live-poller-{self.live_id}", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def wait_closed(self, timeout: float | None = None) -> bool:
        return self._closed.wait(timeout)

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.refresh()
            except Exception:
                # Keep ticking; a crashed worker would never report the live closing.
                logger.exception("live poll tick crashed live_id=%s", self.live_id)
            if self._stop.wait(self.interval_seconds):
                break
