"""Recording domain models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from app.schemas import PlaybackSession, Recording, RecordingStatus, Visibility


class AssetEvent(BaseModel):
    """Provider asset notification, normalized at the webhook boundary."""

    event_type: str
    asset_id: str
    asset_name: str | None = None
    playback_id: str | None = None
    playback_url: str | None = None
    download_url: str | None = None
    provider_session_id: str | None = None
    duration_seconds: float | None = None
    size_bytes: int | None = None
    resolution: str | None = None
    error_message: str | None = None
    occurred_at: datetime | None = None


class MatchStrategy(str, Enum):
    """How a provider event was tied to a recording."""

    SESSION = "session"
    ASSET = "asset"
    TITLE = "title"
    NONE = "none"

    def __str__(self) -> str:
        return self.value


class RecordingResponse(BaseModel):
    recording_id: str
    stream_id: str | None = None
    provider_session_id: str | None = None
    provider_asset_id: str | None = None

    creator_id: str
    needs_attribution: bool = False

    title: str
    description: str | None = None
    visibility: Visibility
    thumbnail_url: str | None = None

    status: RecordingStatus
    failure_reason: str | None = None

    playback_id: str | None = None
    playback_url: str | None = None
    download_url: str | None = None
    duration_seconds: float | None = None
    size_bytes: int | None = None
    resolution: str | None = None

    peak_live_viewers: int = 0
    view_count: int = 0

    is_hidden: bool = False
    hidden_reason: str | None = None
    is_deleted: bool = False
    deleted_by: str | None = None
    deleted_reason: str | None = None

    started_at: datetime | None = None
    ended_at: datetime | None = None
    processing_at: datetime | None = None
    ready_at: datetime | None = None
    failed_at: datetime | None = None
    deleted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, recording: Recording) -> "RecordingResponse":
        return cls(**recording.model_dump(exclude={"id"}))


class AssetReconcileResult(BaseModel):
    """What handle_asset_ready / handle_asset_failed did with an event."""

    recording: RecordingResponse | None = None
    match: MatchStrategy = MatchStrategy.NONE
    synthesized: bool = False


class RecordingUpdateParams(BaseModel):
    title: str | None = None
    description: str | None = None
    visibility: Visibility | None = None
    thumbnail_url: str | None = None


class PlaybackSessionResponse(BaseModel):
    session_id: str
    recording_id: str
    viewer_id: str | None = None
    started_at: datetime
    last_activity_at: datetime
    watch_duration_seconds: float = 0
    completed: bool = False

    @classmethod
    def from_document(cls, session: PlaybackSession) -> "PlaybackSessionResponse":
        return cls(**session.model_dump(exclude={"id"}))


class PlaybackStart(BaseModel):
    """A counted view and the playback session opened for it."""

    recording_id: str
    session_id: str
    view_count: int
