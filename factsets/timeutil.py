"""UTC timestamp helpers shared by the store and the freshness engine."""

from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    return datetime.now(UTC)


def to_iso(dt: datetime) -> str:
    """Serialize a timestamp as fixed-width UTC ISO-8601.

    Every stored timestamp goes through here so that string comparison in
    SQL matches chronological order.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat(timespec="microseconds")


def parse_iso(value: str | None) -> datetime | None:
    if value is None:
        return None
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def hours_between(earlier: datetime, later: datetime) -> float:
    """Elapsed hours from *earlier* to *later*, clamped at zero."""
    return max(0.0, (later - earlier).total_seconds() / 3600)
