"""Common contract for hosted-checkout payment gateways."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from services.store_service.models import Donation, Order, PaymentMethod, PaymentStatus


@dataclass
class CheckoutSession:
    """A hosted payment page opened for an order or donation."""

    session_id: str
    redirect_url: str
    payment_intent_id: Optional[str] = None


@dataclass
class PaymentOutcome:
    """Gateway verdict for a session/token, in our status vocabulary."""

    status: PaymentStatus
    gateway_payment_id: str
    payment_intent_id: Optional[str] = None
    currency: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def is_completed(self) -> bool:
        return self.status == PaymentStatus.COMPLETED


class PaymentGateway(ABC):
    """
    Adapters only translate orders into the gateway's request shape and map the
    gateway's status vocabulary back. They never touch the database.
    """

    method: PaymentMethod

    @property
    def name(self) -> str:
        return self.method.value

    @abstractmethod
    async def create_session(self, order: Order) -> CheckoutSession:
        """Open a hosted checkout for ``order`` (items must be loaded)."""

    @abstractmethod
    async def create_donation_session(self, donation: Donation) -> CheckoutSession:
        """Open a hosted checkout for a standalone donation."""

    @abstractmethod
    async def verify(self, token: str) -> PaymentOutcome:
        """Resolve a session id / approval token into a payment outcome."""

    @staticmethod
    @abstractmethod
    def map_status(raw: Any) -> PaymentStatus:
        """Translate a gateway status payload into :class:`PaymentStatus`."""
