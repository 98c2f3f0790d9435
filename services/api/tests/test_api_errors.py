from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from services.api.app.services import memory_store
from services.api.app.services.errors import (
    BackendFailure,
    FinalizationInProgressError,
    FinalizationPartialFailure,
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
)


@pytest.fixture()
def client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.setenv("LIVEBASKET_STORE", "memory")
    memory_store.tables.clear()

    from services.api.app.main import app

    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
    memory_store.tables.clear()


def _partial_failure() -> FinalizationPartialFailure:
    return FinalizationPartialFailure(
        "live-1",
        step="decrement_stock",
        failed_basket_id="b-2",
        finalized_basket_ids=["b-1"],
        remaining_basket_ids=["b-2", "b-3"],
        cause=BackendFailure("products.adjust_stock", "connection reset"),
    )


@pytest.mark.parametrize(
    ("error", "status"),
    [
        (InsufficientStockError("p-1", requested=2, available=1), 409),
        (NotFoundError("Live", "live-1"), 404),
        (InvalidStateError("Live", "live-1", "finalizado", "activo"), 409),
        (FinalizationInProgressError("live-1"), 409),
        (_partial_failure(), 502),
        (BackendFailure("lives.get", "timeout"), 502),
        (RuntimeError("boom"), 500),
    ],
)
def test_finalize_maps_core_errors_to_status(
    client: TestClient, monkeypatch: pytest.MonkeyPatch, error: Exception, status: int
) -> None:
    class FailingOrchestrator:
        def __init__(self, store, **kwargs) -> None:
            pass

        def finalize(self, live_id: str):
            raise error

    from services.api.app.routers import lives

    monkeypatch.setattr(lives, "FinalizationOrchestrator", FailingOrchestrator)

    resp = client.post("/v1/lives/live-1/finalize", json={"confirm": True})

    assert resp.status_code == status


def test_partial_failure_reports_progress(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    class FailingOrchestrator:
        def __init__(self, store, **kwargs) -> None:
            pass

        def finalize(self, live_id: str):
            raise _partial_failure()

    from services.api.app.routers import lives

    monkeypatch.setattr(lives, "FinalizationOrchestrator", FailingOrchestrator)

    detail = client.post("/v1/lives/live-1/finalize", json={"confirm": True}).json()["detail"]

    assert detail["code"] == "finalization_partial_failure"
    assert detail["step"] == "decrement_stock"
    assert detail["failed_basket_id"] == "b-2"
    assert detail["finalized_basket_ids"] == ["b-1"]
    assert detail["remaining_basket_ids"] == ["b-2", "b-3"]


def test_basket_backend_failure_is_502(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_get(self, basket_id):
        raise BackendFailure("baskets.get", "database unavailable")

    monkeypatch.setattr(memory_store.InMemoryBaskets, "get", broken_get)

    resp = client.post("/v1/baskets/b-1/items", json={"product_id": "p-1"})

    assert resp.status_code == 502
    assert resp.json()["detail"]["code"] == "backend_failure"


def test_unknown_store_mode_is_500(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LIVEBASKET_STORE", "nope")

    resp = client.get("/v1/lives/live-1/stats")

    assert resp.status_code == 500
    assert "LIVEBASKET_STORE" in resp.json()["detail"]


def test_memory_mode_runs_without_database(client: TestClient) -> None:
    created = client.post("/v1/lives", json={"title": "Live demo", "scheduled_at": "2026-10-02T20:00:00"})
    assert created.status_code == 201

    live_id = created.json()["live_id"]
    assert client.get(f"/v1/lives/{live_id}/stats").json() == {
        "total_revenue": "0",
        "open_baskets": 0,
        "units_sold": 0,
    }
