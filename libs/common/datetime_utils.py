"""Datetime utilities for timezone-aware UTC timestamps.

Usage:
    from libs.common.datetime_utils import utc_now

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime.

    This replaces the deprecated datetime.utcnow() which returns naive datetimes.
    Always use this for timestamps in the database.
    """
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    Backends without timezone support (SQLite) hand back naive values that were
    written as UTC wall-clock time.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def calendar_month_bounds(moment: datetime, tz_name: str) -> tuple[datetime, datetime]:
    """Return the ``[start, end)`` UTC bounds of the calendar month containing ``moment``.

    The month is determined in ``tz_name``, so a timestamp just after midnight
    on the 1st in that zone belongs to the new month even if it is still the
    previous month in UTC.
    """
    tz = ZoneInfo(tz_name)
    local = ensure_utc(moment).astimezone(tz)
    start = local.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def month_key(moment: datetime, tz_name: str) -> str:
    """Return ``YYYY-MM`` for the calendar month of ``moment`` in ``tz_name``."""
    local = ensure_utc(moment).astimezone(ZoneInfo(tz_name))
    return f"{local.year:04d}-{local.month:02d}"
