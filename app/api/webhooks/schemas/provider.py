"""Provider webhook event schemas.

Payloads use camelCase keys; models accept either alias or field name.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.domain.live.recording.recording_models import AssetEvent


class ProviderEventType(str, Enum):
    """Provider webhook event types."""

    ASSET_READY = "asset.ready"
    ASSET_FAILED = "asset.failed"
    STREAM_STARTED = "stream.started"
    STREAM_IDLE = "stream.idle"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AssetStatus(_CamelModel):
    phase: str | None = None
    progress: float | None = None
    error_message: str | None = Field(None, alias="errorMessage")


class VideoTrack(_CamelModel):
    type: str
    width: int | None = None
    height: int | None = None


class VideoSpec(_CamelModel):
    duration: float | None = None
    bitrate: float | None = None
    tracks: list[VideoTrack] = Field(default_factory=list)

    @property
    def resolution(self) -> str | None:
        track = next((t for t in self.tracks if t.type == "video"), None)
        if track and track.width and track.height:
            return f"{track.width}x{track.height}"
        return None


class AssetSource(_CamelModel):
    type: str | None = None
    session_id: str | None = Field(None, alias="sessionId")


class ProviderAsset(_CamelModel):
    id: str
    name: str | None = None
    playback_id: str | None = Field(None, alias="playbackId")
    playback_url: str | None = Field(None, alias="playbackUrl")
    download_url: str | None = Field(None, alias="downloadUrl")
    status: AssetStatus | None = None
    video_spec: VideoSpec | None = Field(None, alias="videoSpec")
    size: int | None = None
    source: AssetSource | None = None

    @field_validator("status", mode="before")
    @classmethod
    def status_from_string(cls, v: Any) -> Any:
        """Some deliveries send the phase as a bare string."""
        if isinstance(v, str):
            return {"phase": v}
        return v


class ProviderStreamRef(_CamelModel):
    id: str
    name: str | None = None


class ProviderWebhookEvent(_CamelModel):
    """Envelope shared by every provider webhook."""

    event: str
    asset: ProviderAsset | None = None
    stream: ProviderStreamRef | None = None
    timestamp: int | float | None = None

    @property
    def occurred_at(self) -> datetime | None:
        if self.timestamp is None:
            return None
        seconds = self.timestamp / 1000 if self.timestamp > 1e12 else self.timestamp
        return datetime.fromtimestamp(seconds, tz=timezone.utc)

    @property
    def provider_session_id(self) -> str | None:
        if self.asset and self.asset.source and self.asset.source.session_id:
            return self.asset.source.session_id
        if self.stream:
            return self.stream.id
        return None

    @property
    def subject_id(self) -> str | None:
        if self.asset:
            return self.asset.id
        return self.provider_session_id

    def to_asset_event(self) -> AssetEvent:
        """Normalize an asset.* payload. Raises ValueError when no asset is present."""
        if self.asset is None:
            raise ValueError(f"{self.event} event has no asset")
        asset = self.asset
        return AssetEvent(
            event_type=self.event,
            asset_id=asset.id,
            asset_name=asset.name,
            playback_id=asset.playback_id,
            playback_url=asset.playback_url,
            download_url=asset.download_url,
            provider_session_id=self.provider_session_id,
            duration_seconds=asset.video_spec.duration if asset.video_spec else None,
            size_bytes=asset.size,
            resolution=asset.video_spec.resolution if asset.video_spec else None,
            error_message=asset.status.error_message if asset.status else None,
            occurred_at=self.occurred_at,
        )
