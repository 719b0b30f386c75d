"""Admin order management and the back-office dashboard."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.models import OrderStatus
from services.store_service.schemas import (
    AdminOrderListResponse,
    AdminOrderResponse,
    AdminOrderUpdate,
)
from services.store_service.services import order_service
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["admin-store"])


@router.get("/dashboard")
async def dashboard(
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Headline numbers for the back-office landing page."""
    return await order_service.dashboard_stats(db)


@router.get("/orders", response_model=AdminOrderListResponse)
async def list_orders(
    search: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    is_donation: Optional[bool] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """List orders with search, status and order-type filters."""
    orders, total = await order_service.list_orders(
        db,
        search=search,
        status=status,
        is_donation=is_donation,
        page=page,
        per_page=per_page,
    )
    return AdminOrderListResponse(
        items=[AdminOrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        per_page=per_page,
        stats=await order_service.order_stats(db),
    )


@router.get("/orders/{order_id}", response_model=AdminOrderResponse)
async def get_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await order_service.load_order(db, order_id)


@router.patch("/orders/{order_id}", response_model=AdminOrderResponse)
async def update_order(
    order_id: uuid.UUID,
    order_in: AdminOrderUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Change an order's status or admin notes."""
    return await order_service.update_order(
        db, order_id, status=order_in.status, admin_notes=order_in.admin_notes
    )
