"""Timestamp helpers shared by the stored models."""

from datetime import UTC, datetime


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as a fixed-width UTC ISO 8601 string.

    Stored timestamps are compared as strings in DynamoDB key and condition
    expressions, so every writer must use this format.
    """
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def utc_now() -> datetime:
    """Return the current time in UTC."""
    return datetime.now(UTC)
