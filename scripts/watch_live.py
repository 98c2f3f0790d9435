from __future__ import annotations

import argparse
import logging
import os
import signal
import threading

from services.api.app.services.domain import LiveSession
from services.api.app.services.poller import LiveSessionPoller, LiveSnapshot, poll_interval_seconds
from services.api.app.services.store_factory import open_live_store
from services.api.app.services.suggestions import rank_suggestions


def _print_snapshot(snapshot: LiveSnapshot) -> None:
    if snapshot.live is None:
        print(f"[{snapshot.fetched_at:%H:%M:%S}] live {snapshot.live_id} not found (retrying)")
        return

    stats = snapshot.stats
    print(
        f"[{snapshot.fetched_at:%H:%M:%S}] {snapshot.live.display_name} ({snapshot.live.state.value}) "
        f"revenue=${stats.total_revenue} baskets={stats.open_baskets} units={stats.units_sold}"
    )
    for basket in snapshot.baskets:
        who = basket.customer.name if basket.customer is not None else basket.customer_id
        print(f"  - {who}: {basket.unit_count()} units, ${basket.total}")

    products = [pa.product for pa in snapshot.products]
    quick_add = rank_suggestions(snapshot.baskets, products)
    if quick_add:
        print("  quick add: " + ", ".join(p.name for p in quick_add))


def main() -> int:
    parser = argparse.ArgumentParser(description="Follow a live session until it is finalized")
    parser.add_argument("live_id")
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between refreshes (default: LIVEBASKET_POLL_INTERVAL_SECONDS or 5)",
    )
    args = parser.parse_args()

    logging.basicConfig(level=os.getenv("LIVEBASKET_LOG_LEVEL", "INFO").upper())

    done = threading.Event()

    def _on_close(live: LiveSession) -> None:
        print(f"{live.display_name} is now {live.state.value}; closing view")
        done.set()

    poller = LiveSessionPoller(
        args.live_id,
        open_live_store,
        interval_seconds=args.interval or poll_interval_seconds(),
        on_snapshot=_print_snapshot,
        on_close=_on_close,
    )

    signal.signal(signal.SIGINT, lambda *_: done.set())
    poller.start()
    try:
        done.wait()
    finally:
        poller.stop(timeout=5)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
