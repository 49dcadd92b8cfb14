"""Database utility functions."""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return current UTC time as naive datetime for SQLite compatibility.

    SQLite stores datetimes as TEXT without timezone info. Using naive
    datetimes that represent UTC ensures consistent comparisons.
    """
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Convert an aware datetime to the naive-UTC form stored in the database."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def from_naive_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to a naive datetime read back from the database."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)
