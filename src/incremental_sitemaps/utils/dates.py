"""Date and timestamp helpers shared by the generation services."""

from __future__ import annotations

import calendar
from datetime import UTC, date, datetime


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    SQLite drops offsets on round trip, so naive values read back from the
    database are treated as UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def utc_now() -> datetime:
    return datetime.now(UTC)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def month_bounds(year: int, month: int) -> tuple[date, date]:
    return date(year, month, 1), date(year, month, days_in_month(year, month))


def year_bounds(year: int) -> tuple[date, date]:
    return date(year, 1, 1), date(year, 12, 31)


def parse_timestamp(value: object) -> datetime | None:
    """Parse a persisted ISO timestamp, returning ``None`` for empty values."""

    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(str(value)))


def format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    return ensure_utc(value).isoformat()


def format_w3c_datetime(value: datetime) -> str:
    """Format ``value`` as a W3C datetime with a numeric UTC offset."""

    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%S+00:00")


__all__ = [
    "days_in_month",
    "ensure_utc",
    "format_timestamp",
    "format_w3c_datetime",
    "month_bounds",
    "parse_timestamp",
    "utc_now",
    "year_bounds",
]
