"""Datetime helpers."""

from __future__ import annotations

from datetime import UTC, datetime


def ensure_utc(value: datetime | None) -> datetime | None:
    """Return ``value`` as an aware UTC datetime.

    SQLite hands timestamps back without tzinfo even for
    ``DateTime(timezone=True)`` columns; those are stored as UTC wall-clock.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
