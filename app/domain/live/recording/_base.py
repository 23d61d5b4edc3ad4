"""Base service for recording operations."""

from loguru import logger

from app.app_config import get_app_environ_config
from app.schemas import Recording
from app.services.integrations.provider_gateway import ProviderGateway, get_provider_gateway

from ._correlation import RecordingCorrelator


class BaseRecordingService:
    """Base service with shared recording lookups and collaborators."""

    def __init__(
        self,
        gateway: ProviderGateway | None = None,
        correlator: RecordingCorrelator | None = None,
        min_duration_seconds: int | None = None,
        max_duration_hours: int | None = None,
    ):
        app_config = get_app_environ_config()
        self.gateway = gateway or get_provider_gateway()
        self.correlator = correlator or RecordingCorrelator(app_config.HEURISTIC_MATCH_WINDOW)
        if min_duration_seconds is None:
            min_duration_seconds = app_config.MIN_RECORDING_DURATION_SECONDS
        if max_duration_hours is None:
            max_duration_hours = app_config.MAX_RECORDING_DURATION_HOURS
        self.min_duration_seconds = min_duration_seconds
        self.max_duration_seconds = max_duration_hours * 3600

    async def _get_recording(self, recording_id: str) -> Recording | None:
        return await Recording.find_one(Recording.recording_id == recording_id)

    def _clamp_duration(self, recording_id: str, duration_seconds: float | None) -> float | None:
        if duration_seconds is None or duration_seconds <= self.max_duration_seconds:
            return duration_seconds
        logger.warning(
            f"Recording {recording_id} reported {duration_seconds:.0f}s, "
            f"clamping to the {self.max_duration_seconds}s maximum"
        )
        return float(self.max_duration_seconds)
