"""Runtime shop settings editable from the back office."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.store_service.models.enums import SettingType, enum_values
from sqlalchemy import Boolean, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class Setting(Base):
    """Key/value setting; ``value`` is stored as text and cast by ``type``."""

    __tablename__ = "store_settings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    key: Mapped[str] = mapped_column(
        String(100), unique=True, index=True, nullable=False
    )
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[SettingType] = mapped_column(
        SAEnum(
            SettingType,
            values_callable=enum_values,
            name="store_setting_type_enum",
        ),
        default=SettingType.STRING,
        server_default="string",
    )
    is_public: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    def __repr__(self):
        return f"<Setting {self.key}={self.value!r}>"
