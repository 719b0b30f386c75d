"""Payment gateway adapters and their registry."""

from functools import lru_cache
from typing import Optional

from libs.common.config import get_settings
from services.store_service.errors import PaymentGatewayError
from services.store_service.gateways.base import (
    CheckoutSession,
    PaymentGateway,
    PaymentOutcome,
)
from services.store_service.gateways.paypal_client import PayPalClient
from services.store_service.gateways.stripe_gateway import StripeGateway

GATEWAYS: dict[str, type[PaymentGateway]] = {
    "stripe": StripeGateway,
    "paypal": PayPalClient,
}


@lru_cache
def get_gateway(name: Optional[str] = None) -> PaymentGateway:
    """
    Shared adapter instance for ``name`` (default: ``PAYMENT_GATEWAY``).

    Instances are cached so the PayPal token cache survives between requests.
    """
    name = (name or get_settings().PAYMENT_GATEWAY).lower()
    gateway_cls = GATEWAYS.get(name)
    if gateway_cls is None:
        raise PaymentGatewayError(f"Unknown payment gateway: {name}")
    try:
        return gateway_cls()
    except ValueError as e:
        raise PaymentGatewayError(f"{name} is not configured: {e}") from e


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency for the default checkout gateway."""
    return get_gateway()


def get_stripe_gateway() -> PaymentGateway:
    return get_gateway("stripe")


def get_paypal_gateway() -> PaymentGateway:
    return get_gateway("paypal")


__all__ = [
    "CheckoutSession",
    "GATEWAYS",
    "PayPalClient",
    "PaymentGateway",
    "PaymentOutcome",
    "StripeGateway",
    "get_gateway",
    "get_payment_gateway",
    "get_paypal_gateway",
    "get_stripe_gateway",
]
