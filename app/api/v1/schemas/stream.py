from datetime import datetime

from pydantic import BaseModel, Field, field_serializer

from app.domain.live.stream.stream_models import StreamResponse
from app.schemas import StreamMode, StreamStatus, Visibility

from .serializers import to_utc_iso


class CreateStreamIn(BaseModel):
    title: str = Field(description="Title of the stream, at most 140 characters")
    description: str | None = Field(default=None, description="Description of the stream")
    visibility: Visibility = Field(default=Visibility.PUBLIC, description="Who can watch")
    mode: StreamMode = Field(default=StreamMode.VIDEO, description="Broadcast mode")
    avatar_url: str | None = Field(default=None, description="Required in avatar mode")
    thumbnail_url: str | None = Field(default=None, description="URL of the thumbnail image")


class StreamIdIn(BaseModel):
    stream_id: str = Field(description="Unique identifier for the stream")


class UpdateStreamIn(StreamIdIn):
    title: str | None = None
    description: str | None = None
    visibility: Visibility | None = None
    thumbnail_url: str | None = None


class SuspendStreamIn(StreamIdIn):
    reason: str = Field(description="Moderation reason shown to the creator")


class JoinStreamIn(StreamIdIn):
    device_type: str | None = Field(default=None, description="Client device type")


class LeaveStreamIn(StreamIdIn):
    viewer_id: str | None = Field(
        default=None, description="Anonymous viewer id returned by join; ignored when signed in"
    )


class StreamOut(BaseModel):
    """Viewer-facing stream snapshot. Never carries credentials or provider ids."""

    stream_id: str
    creator_id: str
    title: str
    description: str | None = None
    visibility: Visibility
    mode: StreamMode
    avatar_url: str | None = None
    thumbnail_url: str | None = None
    playback_url: str | None = None
    status: StreamStatus
    viewer_count: int = 0
    peak_viewer_count: int = 0
    created_at: datetime
    started_at: datetime | None = None
    ended_at: datetime | None = None

    @field_serializer("created_at", "started_at", "ended_at")
    def serialize_datetime(self, v: datetime | None) -> str | None:
        return to_utc_iso(v)

    @classmethod
    def from_response(cls, stream: StreamResponse) -> "StreamOut":
        return cls(**stream.model_dump(include=set(cls.model_fields)))


class CreatorStreamOut(StreamOut):
    """Stream as shown to its creator."""

    ingest_url: str | None = None
    is_degraded: bool = False
    degraded_reason: str | None = None
    total_viewer_count: int = 0
    is_suspended: bool = False
    suspended_reason: str | None = None


class CreateStreamOut(BaseModel):
    stream: CreatorStreamOut
    stream_key: str
    is_degraded: bool = False
    degraded_reason: str | None = None


class EndStreamOut(BaseModel):
    stream: CreatorStreamOut
    duration_seconds: float
    recording_id: str | None = None
    recording_skipped_reason: str | None = None


class ListStreamsOut(BaseModel):
    streams: list[StreamOut]


class ListCreatorStreamsOut(BaseModel):
    streams: list[CreatorStreamOut]


class JoinStreamOut(BaseModel):
    join_id: str
    viewer_id: str
    viewer_count: int
    peak_viewer_count: int


class LeaveStreamOut(BaseModel):
    left: bool
    viewer_count: int | None = None


class StreamKeyOut(BaseModel):
    stream_key: str
    stream_id: str | None = None
