from __future__ import annotations


class CoreError(Exception):
    """Base class for errors raised by the live-session core.

    Every subclass carries a stable ``code`` so callers can branch on the tag without
    parsing messages.
    """

    code = "core_error"


class InsufficientStockError(CoreError):
    code = "insufficient_stock"

    def __init__(self, product_id: str, requested: int, available: int) -> None:
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"requested={requested} available={available}"
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class NotFoundError(CoreError):
    code = "not_found"

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class InvalidStateError(CoreError):
    code = "invalid_state"

    def __init__(self, entity: str, entity_id: str, state: str, expected: str) -> None:
        super().__init__(f"{entity} {entity_id} is {state!r}; expected {expected!r}")
        self.entity = entity
        self.entity_id = entity_id
        self.state = state
        self.expected = expected


class BackendFailure(CoreError):
    code = "backend_failure"

    def __init__(self, operation: str, detail: str) -> None:
        super().__init__(f"Backend call failed during {operation}: {detail}")
        self.operation = operation
        self.detail = detail


class FinalizationPartialFailure(BackendFailure):
    """A backend failure in the middle of a finalization run.

    Baskets listed in ``finalized_basket_ids`` are already converted to orders. The
    recovery path is to run finalization again, which only touches ``remaining_basket_ids``.
    """

    code = "finalization_partial_failure"

    def __init__(
        self,
        live_id: str,
        *,
        step: str,
        failed_basket_id: str | None,
        finalized_basket_ids: list[str],
        remaining_basket_ids: list[str],
        cause: CoreError,
    ) -> None:
        super().__init__(f"finalize:{step}", str(cause))
        self.live_id = live_id
        self.step = step
        self.failed_basket_id = failed_basket_id
        self.finalized_basket_ids = finalized_basket_ids
        self.remaining_basket_ids = remaining_basket_ids
        self.cause = cause


class FinalizationInProgressError(CoreError):
    code = "finalization_in_progress"

    def __init__(self, live_id: str) -> None:
        super().__init__(f"Finalization already running for live {live_id}")
        self.live_id = live_id


class OpenBasketConflictError(CoreError):
    code = "open_basket_conflict"

    def __init__(self, live_id: str, customer_id: str) -> None:
        super().__init__(f"Customer {customer_id} already has an open basket in live {live_id}")
        self.live_id = live_id
        self.customer_id = customer_id
