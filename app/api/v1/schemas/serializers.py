"""Datetime rendering for API snapshots: ISO 8601, always with a UTC offset."""

from datetime import datetime

from app.schemas.schema_utils import ensure_utc


def to_utc_iso(dt: datetime | None) -> str | None:
    """Naive values are taken as UTC. Output looks like 2025-12-03T10:30:00+00:00."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()
