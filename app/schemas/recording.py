"""Recording ODM schema."""

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from beanie import Document, Indexed, UpdateResponse
from beanie.odm.fields import ExpressionField
from beanie.odm.operators.update.general import Set
from beanie.operators import In
from pydantic import Field, field_validator
from pymongo import ASCENDING, DESCENDING, IndexModel

from .recording_state import RecordingStatus
from .schema_utils import parse_mongo_datetime, utc_now
from .stream_state import Visibility

UNKNOWN_CREATOR_ID = "unknown"


class Recording(Document):
    """Replayable artifact derived from a stream."""

    recording_id: Indexed(str, unique=True)  # type: ignore[valid-type]

    # Correlation keys
    stream_id: str | None = None
    provider_session_id: str | None = None
    provider_asset_id: str | None = None

    creator_id: str = UNKNOWN_CREATOR_ID
    needs_attribution: bool = False

    # Descriptor fields
    title: str
    description: str | None = None
    visibility: Visibility = Visibility.PUBLIC
    thumbnail_url: str | None = None

    status: RecordingStatus = RecordingStatus.PENDING
    failure_reason: str | None = None

    # Media, populated once the provider asset is ready
    playback_id: str | None = None
    playback_url: str | None = None
    download_url: str | None = None
    duration_seconds: float | None = None
    size_bytes: int | None = None
    resolution: str | None = None

    # Snapshot of the live broadcast
    peak_live_viewers: int = 0
    view_count: int = 0

    # Moderation
    is_hidden: bool = False
    hidden_reason: str | None = None
    is_deleted: bool = False
    deleted_by: str | None = None
    deleted_reason: str | None = None

    # Timestamps
    started_at: datetime | None = None
    ended_at: datetime | None = None
    processing_at: datetime | None = None
    ready_at: datetime | None = None
    failed_at: datetime | None = None
    deleted_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator(
        "started_at",
        "ended_at",
        "processing_at",
        "ready_at",
        "failed_at",
        "deleted_at",
        "created_at",
        "updated_at",
        mode="before",
    )
    @classmethod
    def _parse_datetime(cls, v: Any) -> Any:
        return parse_mongo_datetime(v)

    @classmethod
    async def transition(
        cls,
        recording_id: str,
        from_states: Iterable[RecordingStatus],
        updates: Mapping[ExpressionField, Any],
    ) -> "Recording | None":
        """Apply `updates` only if the recording is currently in one of `from_states`.

        Returns:
            The updated document, or None if the recording is missing or in another state.
        """
        update_fields: dict[ExpressionField, Any] = dict(updates)
        update_fields[Recording.updated_at] = utc_now()  # type: ignore[index]

        return await Recording.find_one(
            Recording.recording_id == recording_id,
            In(Recording.status, list(from_states)),
        ).update(
            Set(update_fields),  # type: ignore[arg-type]
            response_type=UpdateResponse.NEW_DOCUMENT,
        )

    class Settings:
        name = "recordings"
        indexes = [
            IndexModel([("stream_id", ASCENDING)]),
            IndexModel([("provider_session_id", ASCENDING)]),
            IndexModel([("provider_asset_id", ASCENDING)]),
            IndexModel([("status", ASCENDING), ("created_at", DESCENDING)]),
            IndexModel([("creator_id", ASCENDING), ("created_at", DESCENDING)]),
        ]


__all__ = ["Recording", "UNKNOWN_CREATOR_ID"]
