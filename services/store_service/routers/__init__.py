"""Store service routers package."""

from services.store_service.routers.admin_catalog import router as admin_catalog_router
from services.store_service.routers.admin_donations import (
    router as admin_donations_router,
)
from services.store_service.routers.admin_notifications import (
    router as admin_notifications_router,
)
from services.store_service.routers.admin_orders import router as admin_orders_router
from services.store_service.routers.admin_settings import (
    router as admin_settings_router,
)
from services.store_service.routers.cart import router as cart_router
from services.store_service.routers.catalog import router as catalog_router
from services.store_service.routers.donations import router as donations_router
from services.store_service.routers.orders import router as orders_router
from services.store_service.routers.payments import router as payments_router

__all__ = [
    "admin_catalog_router",
    "admin_donations_router",
    "admin_notifications_router",
    "admin_orders_router",
    "admin_settings_router",
    "cart_router",
    "catalog_router",
    "donations_router",
    "orders_router",
    "payments_router",
]
