"""Timezone-aware UTC helpers.

Usage:
    from libs.common.datetime_utils import utc_now

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
"""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def start_of_day(moment: datetime | None = None) -> datetime:
    """Midnight UTC of the given (or current) day."""
    moment = moment or utc_now()
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(moment: datetime | None = None) -> datetime:
    """Midnight UTC of the Monday starting the given (or current) week."""
    day = start_of_day(moment)
    return day - timedelta(days=day.weekday())


def days_ago(days: int) -> datetime:
    return utc_now() - timedelta(days=days)
