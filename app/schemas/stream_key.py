"""Stream key ODM schema.

Ingest credentials are stored apart from the Stream documents so that no
viewer-facing query ever loads them.
"""

from datetime import datetime
from typing import Any

from beanie import Document, Indexed
from pydantic import Field, field_validator

from .schema_utils import parse_mongo_datetime, utc_now


class StreamKey(Document):
    """Current ingest credential of a creator."""

    creator_id: Indexed(str, unique=True)  # type: ignore[valid-type]
    stream_key: str
    stream_id: str | None = None

    created_at: datetime = Field(default_factory=utc_now)
    rotated_at: datetime | None = None

    @field_validator("created_at", "rotated_at", mode="before")
    @classmethod
    def _parse_datetime(cls, v: Any) -> Any:
        return parse_mongo_datetime(v)

    class Settings:
        name = "stream_keys"


__all__ = ["StreamKey"]
