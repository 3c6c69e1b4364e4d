"""Timezone helpers.

Providers may hand datetimes back without tzinfo (SQL backends strip it);
everything the charging flow compares goes through ``as_utc`` first.
"""

from datetime import UTC, datetime


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
