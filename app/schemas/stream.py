"""Stream ODM schema."""

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from beanie import Document, Indexed, UpdateResponse
from beanie.odm.fields import ExpressionField
from beanie.odm.operators.update.general import Inc, Set
from beanie.operators import In
from pydantic import Field, field_validator
from pymongo import ASCENDING, DESCENDING, IndexModel

from .schema_utils import parse_mongo_datetime, utc_now
from .stream_state import StreamMode, StreamStatus, Visibility

VIEWER_STATES = [StreamStatus.CONFIGURING, StreamStatus.LIVE]


class Stream(Document):
    """A creator's live broadcast session."""

    stream_id: Indexed(str, unique=True)  # type: ignore[valid-type]
    creator_id: str
    provider_session_id: str | None = None

    # Descriptor fields
    title: str
    description: str | None = None
    visibility: Visibility = Visibility.PUBLIC
    mode: StreamMode = StreamMode.VIDEO
    avatar_url: str | None = None
    thumbnail_url: str | None = None

    # Provider-facing endpoints. The ingest credential lives in StreamKey.
    ingest_url: str | None = None
    playback_url: str | None = None
    is_degraded: bool = False
    degraded_reason: str | None = None

    status: StreamStatus = StreamStatus.IDLE

    # Viewer counters
    viewer_count: int = 0
    peak_viewer_count: int = 0
    total_viewer_count: int = 0

    # Moderation
    is_suspended: bool = False
    suspended_reason: str | None = None

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    started_at: datetime | None = None
    ended_at: datetime | None = None

    version: int = Field(default=1)

    @field_validator("created_at", "updated_at", "started_at", "ended_at", mode="before")
    @classmethod
    def _parse_datetime(cls, v: Any) -> Any:
        return parse_mongo_datetime(v)

    @property
    def duration_seconds(self) -> float:
        """Seconds between going live and ending; 0 if the stream never went live."""
        if not self.started_at or not self.ended_at:
            return 0.0
        return max(0.0, (self.ended_at - self.started_at).total_seconds())

    @classmethod
    async def transition(
        cls,
        stream_id: str,
        from_states: Iterable[StreamStatus],
        updates: Mapping[ExpressionField, Any],
    ) -> "Stream | None":
        """Apply `updates` only if the stream is currently in one of `from_states`.

        The status check and the write happen in a single findAndModify, so either
        every field in `updates` is written or none is.

        Returns:
            The updated document, or None if the stream is missing or in another state.
        """
        update_fields: dict[ExpressionField, Any] = dict(updates)
        update_fields[Stream.updated_at] = utc_now()  # type: ignore[index]

        return await Stream.find_one(
            Stream.stream_id == stream_id,
            In(Stream.status, list(from_states)),
        ).update(
            Set(update_fields),  # type: ignore[arg-type]
            Inc({Stream.version: 1}),
            response_type=UpdateResponse.NEW_DOCUMENT,
        )

    @classmethod
    async def add_viewer(cls, stream_id: str) -> "Stream | None":
        """Count a joining viewer and raise the peak in one atomic write.

        The update pipeline evaluates every field against the pre-update document,
        so the stored peak is never below the stored current count.
        """
        next_count = {"$add": ["$viewer_count", 1]}
        return await Stream.find_one(
            Stream.stream_id == stream_id,
            In(Stream.status, VIEWER_STATES),
        ).update(
            [
                {
                    "$set": {
                        "viewer_count": next_count,
                        "total_viewer_count": {"$add": ["$total_viewer_count", 1]},
                        "peak_viewer_count": {"$max": ["$peak_viewer_count", next_count]},
                    }
                }
            ],
            response_type=UpdateResponse.NEW_DOCUMENT,
        )

    @classmethod
    async def remove_viewer(cls, stream_id: str) -> "Stream | None":
        """Atomically count a leaving viewer; never drops the counter below zero."""
        # Lowering the current count cannot break peak >= current, so no peak write
        return await Stream.find_one(
            Stream.stream_id == stream_id,
            Stream.viewer_count > 0,
            In(Stream.status, VIEWER_STATES),
        ).update(
            Inc({Stream.viewer_count: -1}),
            response_type=UpdateResponse.NEW_DOCUMENT,
        )

    class Settings:
        name = "streams"
        indexes = [
            IndexModel([("provider_session_id", ASCENDING)]),
            IndexModel([("creator_id", ASCENDING), ("created_at", DESCENDING)]),
            IndexModel([("status", ASCENDING), ("created_at", DESCENDING)]),
        ]


__all__ = ["Stream"]
