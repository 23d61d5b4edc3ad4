"""Shared utilities for schema validation."""

from datetime import datetime, timezone
from typing import Any


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(v: datetime) -> datetime:
    """Attach UTC to naive datetimes (as returned by drivers without tz_aware)."""
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


def parse_mongo_datetime(v: Any) -> Any:
    """Parse MongoDB Extended JSON datetime format or normalize an existing datetime to UTC.

    MongoDB Extended JSON format: {'$date': '2024-11-01T08:00:00Z'}
    This can occur when data is inserted via mongoimport or other tools.
    """
    if isinstance(v, datetime):
        return ensure_utc(v)
    if isinstance(v, dict) and "$date" in v:
        return ensure_utc(datetime.fromisoformat(v["$date"].replace("Z", "+00:00")))
    # Return as-is and let Pydantic handle validation
    return v
