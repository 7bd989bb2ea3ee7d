"""
Timezone-aware UTC timestamps
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator


def utcnow() -> datetime:
    """Current UTC time (timezone-aware)"""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Read a naive value as UTC and convert an aware one to UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timestamp column that always hands back aware UTC datetimes.

    PostgreSQL keeps the offset in ``timestamptz``; SQLite drops it, so
    values read back from SQLite are tagged as UTC again.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return as_utc(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return as_utc(value)
