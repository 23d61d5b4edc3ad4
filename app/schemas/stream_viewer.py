"""Stream viewer (join record) ODM schema."""

from datetime import datetime
from typing import Any

from beanie import Document, Indexed
from pydantic import Field, field_validator
from pymongo import ASCENDING, IndexModel

from .schema_utils import parse_mongo_datetime, utc_now


class StreamViewer(Document):
    """One viewer joining one stream."""

    join_id: Indexed(str, unique=True)  # type: ignore[valid-type]
    stream_id: str
    viewer_id: str
    is_anonymous: bool = False
    device_type: str | None = None

    joined_at: datetime = Field(default_factory=utc_now)
    left_at: datetime | None = None

    @field_validator("joined_at", "left_at", mode="before")
    @classmethod
    def _parse_datetime(cls, v: Any) -> Any:
        return parse_mongo_datetime(v)

    class Settings:
        name = "stream_viewers"
        indexes = [
            IndexModel([("stream_id", ASCENDING), ("viewer_id", ASCENDING)]),
        ]


__all__ = ["StreamViewer"]
