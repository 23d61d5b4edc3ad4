"""Beanie ODM schemas for MongoDB collections."""

from .init import DOCUMENT_MODELS, init_beanie_odm
from .playback_session import PlaybackSession
from .recording import UNKNOWN_CREATOR_ID, Recording
from .recording_state import RecordingStatus
from .stream import Stream
from .stream_key import StreamKey
from .stream_state import StreamMode, StreamStatus, Visibility
from .stream_viewer import StreamViewer
from .webhook_audit import WebhookAudit

__all__ = [
    "DOCUMENT_MODELS",
    "PlaybackSession",
    "Recording",
    "RecordingStatus",
    "Stream",
    "StreamKey",
    "StreamMode",
    "StreamStatus",
    "StreamViewer",
    "UNKNOWN_CREATOR_ID",
    "Visibility",
    "WebhookAudit",
    "init_beanie_odm",
]
