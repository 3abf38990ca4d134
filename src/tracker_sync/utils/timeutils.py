"""Time helpers. All datetimes inside tracker-sync are naive UTC."""

from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def parse_iso(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) into naive UTC.

    Returns None for empty or malformed input.
    """
    if not value:
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return to_naive_utc(datetime.fromisoformat(raw))
    except ValueError:
        return None


def to_iso(value: datetime) -> str:
    """Format a datetime as an ISO string in naive UTC."""
    return to_naive_utc(value).isoformat()


def to_remote_iso(value: datetime) -> str:
    """Format a datetime for the remote API (explicit UTC offset)."""
    return to_naive_utc(value).replace(tzinfo=UTC).isoformat().replace("+00:00", "Z")
