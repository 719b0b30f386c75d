"""Admin notification feed."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.db.session import get_async_db
from services.store_service.models import NotificationType
from services.store_service.schemas import (
    BulkIdsRequest,
    NotificationListResponse,
    NotificationResponse,
    NotificationStats,
)
from services.store_service.services import notification_service
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["admin-store"])


@router.get("/notifications", response_model=NotificationListResponse)
async def list_notifications(
    notification_type: Optional[NotificationType] = Query(None, alias="type"),
    read: Optional[bool] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Notifications newest first, filtered by type and read state."""
    items, total = await notification_service.list_notifications(
        db, notification_type=notification_type, read=read, page=page, per_page=per_page
    )
    return NotificationListResponse(
        items=[NotificationResponse.model_validate(n) for n in items],
        total=total,
        page=page,
        per_page=per_page,
        unread_count=await notification_service.get_unread_count(db),
    )


@router.get("/notifications/recent", response_model=list[NotificationResponse])
async def recent_notifications(
    limit: int = Query(5, ge=1, le=50),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await notification_service.get_recent(db, limit)


@router.get("/notifications/unread-count")
async def unread_count(
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return {"unread_count": await notification_service.get_unread_count(db)}


@router.get("/notifications/stats", response_model=NotificationStats)
async def notification_stats(
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await notification_service.get_stats(db)


@router.post("/notifications/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    notification = await notification_service.mark_as_read(db, notification_id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


@router.post("/notifications/read-all")
async def mark_all_read(
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return {"updated": await notification_service.mark_all_as_read(db)}


@router.post("/notifications/bulk-read")
async def bulk_mark_read(
    payload: BulkIdsRequest,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return {"updated": await notification_service.bulk_mark_as_read(db, payload.ids)}


@router.delete("/notifications/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    if not await notification_service.delete_notification(db, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return None


@router.post("/notifications/bulk-delete")
async def bulk_delete_notifications(
    payload: BulkIdsRequest,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return {"deleted": await notification_service.bulk_delete(db, payload.ids)}


@router.post("/notifications/cleanup")
async def cleanup_notifications(
    days: Optional[int] = Query(None, ge=1),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete read notifications older than ``days`` (default from settings)."""
    days = days or get_settings().NOTIFICATION_RETENTION_DAYS
    return {"deleted": await notification_service.cleanup_old(db, days)}
