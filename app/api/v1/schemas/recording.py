from datetime import datetime

from pydantic import BaseModel, Field, field_serializer

from app.domain.live.recording.recording_models import PlaybackSessionResponse, RecordingResponse
from app.schemas import RecordingStatus, Visibility

from .serializers import to_utc_iso


class RecordingIdIn(BaseModel):
    recording_id: str = Field(description="Unique identifier for the recording")


class UpdateRecordingIn(RecordingIdIn):
    title: str | None = None
    description: str | None = None
    visibility: Visibility | None = None
    thumbnail_url: str | None = None


class DeleteRecordingIn(RecordingIdIn):
    reason: str | None = Field(default=None, description="Why the recording is removed")


class HideRecordingIn(RecordingIdIn):
    reason: str = Field(description="Moderation reason")


class AttributeRecordingIn(RecordingIdIn):
    creator_id: str = Field(description="Creator who owns the recording")
    stream_id: str | None = Field(default=None, description="Stream the recording came from")


class RecordingOut(BaseModel):
    """Viewer-facing recording snapshot."""

    recording_id: str
    stream_id: str | None = None
    creator_id: str
    title: str
    description: str | None = None
    visibility: Visibility
    thumbnail_url: str | None = None
    status: RecordingStatus
    playback_url: str | None = None
    download_url: str | None = None
    duration_seconds: float | None = None
    resolution: str | None = None
    peak_live_viewers: int = 0
    view_count: int = 0
    created_at: datetime
    ready_at: datetime | None = None

    @field_serializer("created_at", "ready_at")
    def serialize_datetime(self, v: datetime | None) -> str | None:
        return to_utc_iso(v)

    @classmethod
    def from_response(cls, recording: RecordingResponse) -> "RecordingOut":
        return cls(**recording.model_dump(include=set(cls.model_fields)))


class ManagedRecordingOut(RecordingOut):
    """Recording as shown to its creator or an admin."""

    provider_session_id: str | None = None
    provider_asset_id: str | None = None
    needs_attribution: bool = False
    failure_reason: str | None = None
    size_bytes: int | None = None
    is_hidden: bool = False
    hidden_reason: str | None = None
    is_deleted: bool = False
    deleted_reason: str | None = None


class ListRecordingsOut(BaseModel):
    recordings: list[RecordingOut]


class ListManagedRecordingsOut(BaseModel):
    recordings: list[ManagedRecordingOut]


class PlaybackProgressIn(RecordingIdIn):
    session_id: str = Field(description="Playback session returned by track_view")
    watch_duration_seconds: float = Field(ge=0, description="Seconds watched so far")
    completed: bool = False


class PlaybackStartOut(BaseModel):
    recording_id: str
    session_id: str
    view_count: int


class PlaybackSessionOut(BaseModel):
    session_id: str
    recording_id: str
    watch_duration_seconds: float
    completed: bool
    last_activity_at: datetime

    @field_serializer("last_activity_at")
    def serialize_datetime(self, v: datetime) -> str | None:
        return to_utc_iso(v)

    @classmethod
    def from_response(cls, session: PlaybackSessionResponse) -> "PlaybackSessionOut":
        return cls(**session.model_dump(include=set(cls.model_fields)))
