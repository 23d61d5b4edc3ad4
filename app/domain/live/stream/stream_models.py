"""Stream domain models."""

from collections.abc import Awaitable, Callable
from datetime import datetime

from pydantic import BaseModel, Field

from app.domain.utils.op_result import OpResult
from app.schemas import Stream, StreamMode, StreamStatus, Visibility
from app.services.integrations.provider_gateway import ProviderSessionStatus

MAX_TITLE_LENGTH = 140


class StreamCreateParams(BaseModel):
    """Creator-supplied configuration for a new stream."""

    title: str
    description: str | None = None
    visibility: Visibility = Visibility.PUBLIC
    mode: StreamMode = StreamMode.VIDEO
    avatar_url: str | None = None
    thumbnail_url: str | None = None


class StreamUpdateParams(BaseModel):
    title: str | None = None
    description: str | None = None
    visibility: Visibility | None = None
    thumbnail_url: str | None = None


class StreamResponse(BaseModel):
    """Stream as seen by its creator. Never carries the ingest credential."""

    stream_id: str
    creator_id: str
    provider_session_id: str | None = None

    title: str
    description: str | None = None
    visibility: Visibility
    mode: StreamMode
    avatar_url: str | None = None
    thumbnail_url: str | None = None

    ingest_url: str | None = None
    playback_url: str | None = None
    is_degraded: bool = False
    degraded_reason: str | None = None

    status: StreamStatus
    viewer_count: int = 0
    peak_viewer_count: int = 0
    total_viewer_count: int = 0

    is_suspended: bool = False
    suspended_reason: str | None = None

    created_at: datetime
    updated_at: datetime
    started_at: datetime | None = None
    ended_at: datetime | None = None

    @classmethod
    def from_document(cls, stream: Stream) -> "StreamResponse":
        return cls(**stream.model_dump(exclude={"id", "version"}))


class StreamSnapshot(BaseModel):
    """Metadata handed to the recording pipeline when a stream ends."""

    stream_id: str
    creator_id: str
    provider_session_id: str | None = None
    title: str
    description: str | None = None
    visibility: Visibility
    thumbnail_url: str | None = None
    peak_viewer_count: int = 0
    started_at: datetime | None = None
    ended_at: datetime | None = None
    duration_seconds: float = 0.0

    @classmethod
    def from_stream(cls, stream: Stream) -> "StreamSnapshot":
        return cls(
            stream_id=stream.stream_id,
            creator_id=stream.creator_id,
            provider_session_id=stream.provider_session_id,
            title=stream.title,
            description=stream.description,
            visibility=stream.visibility,
            thumbnail_url=stream.thumbnail_url,
            peak_viewer_count=stream.peak_viewer_count,
            started_at=stream.started_at,
            ended_at=stream.ended_at,
            duration_seconds=stream.duration_seconds,
        )


# Receives the snapshot of an ended stream; wired to the recording pipeline.
StreamEndedHandler = Callable[[StreamSnapshot], Awaitable[OpResult]]


class StreamCreateResult(BaseModel):
    stream: StreamResponse
    stream_key: str
    is_degraded: bool = False
    degraded_reason: str | None = None


class StreamEndResult(BaseModel):
    stream: StreamResponse
    duration_seconds: float = 0.0
    recording_id: str | None = None
    recording_outcome: str | None = None
    recording_skipped_reason: str | None = None


class ViewerJoinResult(BaseModel):
    join_id: str
    stream_id: str
    viewer_id: str
    is_anonymous: bool
    viewer_count: int
    peak_viewer_count: int


class ViewerLeaveResult(BaseModel):
    stream_id: str
    viewer_id: str
    viewer_count: int
    peak_viewer_count: int


class CredentialRotation(BaseModel):
    """Outcome of regenerating a creator's ingest credential.

    The provider keeps accepting the previous key for `active_stream_id` until that
    stream ends; `provider_rotated` is False whenever that is the case.
    """

    stream_key: str
    provider_rotated: bool = False
    active_stream_id: str | None = None
    warning: str | None = None


class StreamSetupInfo(BaseModel):
    """Encoder settings for a creator's broadcasting software."""

    server_url: str
    stream_key: str
    stream_id: str | None = None
    playback_url: str | None = None
    recommended_settings: dict[str, str] = Field(
        default_factory=lambda: {
            "video_bitrate_kbps": "4500",
            "audio_bitrate_kbps": "160",
            "keyframe_interval_seconds": "2",
            "resolution": "1920x1080",
            "fps": "30",
        }
    )


class StreamHealth(BaseModel):
    stream_id: str
    status: StreamStatus
    is_degraded: bool = False
    provider: ProviderSessionStatus
