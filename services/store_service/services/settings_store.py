"""Typed access to the key/value ``store_settings`` table."""

import json
from typing import Any, Iterable, Optional

from libs.common.logging import get_logger
from services.store_service.models import Setting, SettingType
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

TRUTHY = {"1", "true", "yes", "on"}

# Defaults used until an admin saves the donation page settings
DONATION_DEFAULTS: dict[str, Any] = {
    "donation_enable": True,
    "donation_min_amount": 5,
    "donation_page_title": "Support Our Cause",
    "donation_page_subtitle": "Your contribution makes a real difference",
    "donation_page_message": "Thank you for considering a donation.",
}


def cast_value(raw: Optional[str], setting_type: SettingType) -> Any:
    """Decode a stored text value according to its declared type."""
    if raw is None:
        return None
    if setting_type == SettingType.BOOLEAN:
        return raw.strip().lower() in TRUTHY
    if setting_type == SettingType.INTEGER:
        try:
            return int(raw)
        except ValueError:
            return int(float(raw))
    if setting_type == SettingType.JSON:
        return json.loads(raw)
    return raw


def serialize_value(value: Any, setting_type: SettingType) -> Optional[str]:
    if value is None:
        return None
    if setting_type == SettingType.BOOLEAN:
        if isinstance(value, str):
            return "1" if value.strip().lower() in TRUTHY else "0"
        return "1" if value else "0"
    if setting_type == SettingType.INTEGER:
        return str(int(value))
    if setting_type == SettingType.JSON:
        return json.dumps(value)
    return str(value)


async def get_setting(db: AsyncSession, key: str, default: Any = None) -> Any:
    result = await db.execute(select(Setting).where(Setting.key == key))
    setting = result.scalar_one_or_none()
    if setting is None or setting.value is None:
        return default
    return cast_value(setting.value, setting.type)


async def set_setting(
    db: AsyncSession,
    key: str,
    value: Any,
    setting_type: SettingType = SettingType.STRING,
    is_public: bool = False,
    *,
    commit: bool = True,
) -> Setting:
    """Insert or update a setting."""
    result = await db.execute(select(Setting).where(Setting.key == key))
    setting = result.scalar_one_or_none()
    if setting is None:
        setting = Setting(key=key)
        db.add(setting)

    setting.type = setting_type
    setting.value = serialize_value(value, setting_type)
    setting.is_public = is_public

    if commit:
        await db.commit()
        await db.refresh(setting)
    return setting


async def get_settings_map(db: AsyncSession, keys: Iterable[str]) -> dict[str, Any]:
    """Decoded values for ``keys``; missing keys are omitted."""
    keys = list(keys)
    result = await db.execute(select(Setting).where(Setting.key.in_(keys)))
    return {s.key: cast_value(s.value, s.type) for s in result.scalars().all()}


async def get_public_settings(db: AsyncSession) -> dict[str, Any]:
    result = await db.execute(select(Setting).where(Setting.is_public.is_(True)))
    return {s.key: cast_value(s.value, s.type) for s in result.scalars().all()}


async def get_donation_settings(db: AsyncSession) -> dict[str, Any]:
    """Donation page settings merged over their defaults."""
    stored = await get_settings_map(db, DONATION_DEFAULTS.keys())
    merged = {**DONATION_DEFAULTS, **stored}
    # Older rows store these as plain text
    if not isinstance(merged["donation_enable"], bool):
        merged["donation_enable"] = cast_value(
            str(merged["donation_enable"]), SettingType.BOOLEAN
        )
    merged["donation_min_amount"] = float(merged["donation_min_amount"] or 0)
    return merged
