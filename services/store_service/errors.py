"""Domain errors raised by store operations.

Each error carries the HTTP status the API answers with; ``create_app`` registers
a handler that renders them as ``{"detail": ...}``.
"""

from typing import Optional


class StoreError(Exception):
    """Base class for store domain errors."""

    status_code = 400

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class NotFoundError(StoreError):
    status_code = 404


class CartError(StoreError):
    """Invalid cart operation (inactive product, foreign variant, bad quantity)."""


class EmptyCartError(CartError):
    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class OutOfStockError(CartError):
    def __init__(self, name: str, available: int):
        self.available = available
        super().__init__(f"Only {available} left in stock for {name}")


class CheckoutError(StoreError):
    """Gateway session could not be opened; the pending order was discarded."""

    status_code = 502


class DonationsDisabledError(StoreError):
    status_code = 403


class PaymentGatewayError(StoreError):
    """Raised by gateway adapters on transport or API failures."""

    status_code = 502

    def __init__(
        self,
        message: str,
        gateway_status: Optional[int] = None,
        response_data: Optional[dict] = None,
    ):
        self.response_data = response_data or {}
        self.gateway_status = gateway_status
        super().__init__(message)


class WebhookVerificationError(StoreError):
    """Bad signature or undecodable payload. Nothing was written."""


class WebhookProcessingError(StoreError):
    """Effects could not be applied; the ledger row is left unapplied for a retry."""

    status_code = 500
