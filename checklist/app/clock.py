"""UTC helpers shared by models and services."""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    Returns `value` as an aware UTC datetime.

    SQLite hands back naive datetimes even for DateTime(timezone=True)
    columns; PostgreSQL returns aware ones. Values stored by this app are
    always UTC, so a naive value is tagged rather than converted.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
