"""
Timestamp helpers.

All persisted timestamps are timezone-aware UTC and serialized as ISO 8601
strings so that SQLite string comparison orders them chronologically.

STDLIB ONLY - NO PYDANTIC.
"""

from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_iso8601(dt: datetime | None) -> str | None:
    """Format a datetime for storage."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()


def from_iso8601(s: str | None) -> datetime | None:
    """Parse a stored timestamp."""
    if not s:
        return None
    return ensure_utc(datetime.fromisoformat(s))


def days_between(earlier: datetime | None, later: datetime) -> int | None:
    """Whole days elapsed from ``earlier`` to ``later`` (None if unknown)."""
    if earlier is None:
        return None
    return (ensure_utc(later) - ensure_utc(earlier)).days


__all__ = ["days_between", "ensure_utc", "from_iso8601", "to_iso8601", "utc_now"]
