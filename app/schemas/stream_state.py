"""Enums shared by stream schemas."""

from enum import Enum


class StreamStatus(str, Enum):
    """Stream lifecycle states.

    State Transition Flow:

    IDLE → CONFIGURING → LIVE → ENDED
      ↓        ↓  ↑
    ENDED     IDLE/ENDED

    State Descriptions:
    - IDLE: Stream exists but no ingest credential has been accepted by the provider.
    - CONFIGURING: Provider accepted the credential, waiting for media. Set by create().
    - LIVE: Media is flowing. Set by mark_live() or the provider stream.started webhook.
    - ENDED: Broadcast is over. Set by end() or the provider stream.idle webhook.

    Terminal states (no further transitions): ENDED
    """

    IDLE = "idle"
    CONFIGURING = "configuring"
    LIVE = "live"
    ENDED = "ended"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def active_states(cls) -> list["StreamStatus"]:
        """States in which a stream can still receive viewers or transitions."""
        return [StreamStatus.IDLE, StreamStatus.CONFIGURING, StreamStatus.LIVE]


class Visibility(str, Enum):
    PUBLIC = "public"
    MEMBERS = "members"
    PRIVATE = "private"

    def __str__(self) -> str:
        return self.value


class StreamMode(str, Enum):
    VIDEO = "video"
    AUDIO_ONLY = "audio_only"
    AVATAR = "avatar"

    def __str__(self) -> str:
        return self.value


__all__ = ["StreamMode", "StreamStatus", "Visibility"]
