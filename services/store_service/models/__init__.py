"""Store Service models package."""

from services.store_service.models.catalog import (
    Category,
    Color,
    Product,
    ProductVariant,
    Size,
)
from services.store_service.models.commerce import (
    Cart,
    CartItem,
    Customer,
    DonationBeneficiary,
    Order,
    OrderItem,
)
from services.store_service.models.enums import (
    DonationStatus,
    NotificationType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    SettingType,
    WebhookEventStatus,
)
from services.store_service.models.notifications import AdminNotification
from services.store_service.models.payments import Donation, Payment, StripeWebhookEvent
from services.store_service.models.settings import Setting

__all__ = [
    "AdminNotification",
    "Cart",
    "CartItem",
    "Category",
    "Color",
    "Customer",
    "Donation",
    "DonationBeneficiary",
    "DonationStatus",
    "NotificationType",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "Product",
    "ProductVariant",
    "Setting",
    "SettingType",
    "Size",
    "StripeWebhookEvent",
    "WebhookEventStatus",
]
