"""Admin shop settings."""

from fastapi import APIRouter, Depends
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.models import Setting
from services.store_service.schemas import SettingResponse, SettingsBulkUpdate
from services.store_service.services import settings_store
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["admin-store"])


@router.get("/settings", response_model=list[SettingResponse])
async def list_settings(
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    result = await db.execute(select(Setting).order_by(Setting.key))
    return result.scalars().all()


@router.put("/settings", response_model=list[SettingResponse])
async def update_settings(
    payload: SettingsBulkUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Upsert several settings in one transaction."""
    saved = []
    for item in payload.settings:
        saved.append(
            await settings_store.set_setting(
                db, item.key, item.value, item.type, item.is_public, commit=False
            )
        )
    await db.commit()
    return saved
