"""Wires the stream and recording services together.

StreamService never imports the recording pipeline; it receives
RecordingService.create_pending as its on-ended handler here.
"""

from functools import lru_cache

from pydantic import BaseModel, ConfigDict

from app.services.integrations.provider_gateway import ProviderGateway, get_provider_gateway

from .recording.recording_domain import RecordingService
from .stream.stream_domain import StreamService


class LiveServices(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    streams: StreamService
    recordings: RecordingService


def build_live_services(
    gateway: ProviderGateway | None = None,
    min_recording_duration_seconds: int | None = None,
) -> LiveServices:
    gateway = gateway or get_provider_gateway()
    recordings = RecordingService(gateway=gateway, min_duration_seconds=min_recording_duration_seconds)
    streams = StreamService(
        gateway=gateway,
        on_ended=recordings.create_pending,
        min_recording_duration_seconds=min_recording_duration_seconds,
    )
    return LiveServices(streams=streams, recordings=recordings)


@lru_cache(maxsize=1)
def get_live_services() -> LiveServices:
    return build_live_services()
