"""FastAPI application for the Store Service."""

from fastapi import FastAPI
from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from libs.common.rate_limit import limiter, rate_limit_exceeded_handler
from services.store_service.errors import StoreError
from services.store_service.routers import (
    admin_catalog_router,
    admin_donations_router,
    admin_notifications_router,
    admin_orders_router,
    admin_settings_router,
    cart_router,
    catalog_router,
    donations_router,
    orders_router,
    payments_router,
)
from slowapi.errors import RateLimitExceeded


def create_app() -> FastAPI:
    """Create and configure the Store Service FastAPI app."""
    app = FastAPI(
        title="Store Service",
        version="0.1.0",
        description="Storefront - catalog, cart, checkout, payments, donations.",
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    add_observability_middleware(app)
    add_exception_handlers(app, StoreError)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "store"}

    # Public store routes (catalog, cart, checkout, payments, donations)
    app.include_router(catalog_router, prefix="/store")
    app.include_router(cart_router, prefix="/store")
    app.include_router(orders_router, prefix="/store")
    app.include_router(payments_router, prefix="/store")
    app.include_router(donations_router, prefix="/store")

    # Back office
    app.include_router(admin_catalog_router, prefix="/admin/store")
    app.include_router(admin_orders_router, prefix="/admin/store")
    app.include_router(admin_donations_router, prefix="/admin/store")
    app.include_router(admin_notifications_router, prefix="/admin/store")
    app.include_router(admin_settings_router, prefix="/admin/store")

    return app


app = create_app()
