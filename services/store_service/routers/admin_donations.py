"""Admin donation management."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.models import DonationStatus
from services.store_service.schemas import (
    AdminDonationListResponse,
    BulkIdsRequest,
    DonationResponse,
)
from services.store_service.services import donation_service
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["admin-store"])


@router.get("/donations", response_model=AdminDonationListResponse)
async def list_donations(
    status_filter: Optional[DonationStatus] = Query(None, alias="status"),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    donations, total = await donation_service.list_donations(
        db, status=status_filter, search=search, page=page, per_page=per_page
    )
    return AdminDonationListResponse(
        items=[DonationResponse.model_validate(d) for d in donations],
        total=total,
        page=page,
        per_page=per_page,
        stats=await donation_service.donation_stats(db),
    )


@router.get("/donations/{donation_id}", response_model=DonationResponse)
async def get_donation(
    donation_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await donation_service.get_donation(db, donation_id)


@router.delete("/donations/{donation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_donation(
    donation_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    await donation_service.delete_donation(db, donation_id)
    return None


@router.post("/donations/bulk-delete")
async def bulk_delete_donations(
    payload: BulkIdsRequest,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    deleted = await donation_service.bulk_delete(db, payload.ids)
    return {"deleted": deleted}
