"""Playback session (one viewer watching one recording) ODM schema."""

from datetime import datetime
from typing import Any

from beanie import Document, Indexed
from pydantic import Field, field_validator
from pymongo import ASCENDING, IndexModel

from .schema_utils import parse_mongo_datetime, utc_now


class PlaybackSession(Document):
    """Opened by each tracked view; progress reports update it in place."""

    session_id: Indexed(str, unique=True)  # type: ignore[valid-type]
    recording_id: str
    viewer_id: str | None = None

    started_at: datetime = Field(default_factory=utc_now)
    last_activity_at: datetime = Field(default_factory=utc_now)
    watch_duration_seconds: float = 0
    completed: bool = False

    @field_validator("started_at", "last_activity_at", mode="before")
    @classmethod
    def _parse_datetime(cls, v: Any) -> Any:
        return parse_mongo_datetime(v)

    class Settings:
        name = "playback_sessions"
        indexes = [
            IndexModel([("recording_id", ASCENDING)]),
        ]


__all__ = ["PlaybackSession"]
