"""Errors raised by the sales engine.

Callers tell retryable failures from terminal ones through ``retryable``;
``code`` is a stable identifier suitable for an API error body.
"""


class SalesError(Exception):
    code = "sales_error"
    retryable = False

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidInputError(SalesError):
    code = "invalid_input"

    def __init__(self, detail: str, errors: list[dict] | None = None):
        super().__init__(detail)
        self.errors = errors or []


class NotFoundError(SalesError):
    """The product or sale does not exist for the caller's shop.

    A record owned by another shop is reported exactly like a missing one.
    """

    code = "not_found"


class InsufficientStockError(SalesError):
    code = "insufficient_stock"

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            f"Insufficient stock quantity for product {product_id}: "
            f"requested {requested}, available {available}"
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class TransientStoreFailure(SalesError):
    """Lock timeout, deadlock or lost connection. Nothing was committed."""

    code = "transient_store_failure"
    retryable = True
