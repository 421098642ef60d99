"""UTC helpers. All persisted times are UTC ISO 8601 strings."""

from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return the current UTC datetime, timezone-aware."""
    return datetime.now(UTC)


def format_timestamp(dt: datetime) -> str:
    """Format a datetime as ISO 8601 with microsecond precision and Z suffix.

    Output format: YYYY-MM-DDTHH:MM:SS.ffffffZ
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    utc_dt = dt.astimezone(UTC)
    return utc_dt.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
