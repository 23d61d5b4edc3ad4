"""Resolve provider asset events to recordings."""

from beanie.operators import In, Or
from loguru import logger
from pymongo import ASCENDING, DESCENDING

from app.schemas import Recording, RecordingStatus, Stream

from .recording_models import AssetEvent, MatchStrategy

# Live recordings first, newest first
_PREFERRED_ORDER = [("is_deleted", ASCENDING), ("created_at", DESCENDING)]


class RecordingCorrelator:
    """Three-step lookup: provider session, then asset id, then asset name.

    The title heuristic only looks at the `heuristic_window` most recently created
    in-flight recordings and takes the first exact title match. Two streams sharing
    a title inside that window can be confused; the session and asset lookups run
    first to keep that rare.
    """

    def __init__(self, heuristic_window: int = 10):
        self.heuristic_window = heuristic_window

    async def resolve(self, event: AssetEvent) -> tuple[Recording | None, MatchStrategy]:
        if event.provider_session_id:
            recording = await self.by_session(event.provider_session_id)
            if recording is not None:
                return recording, MatchStrategy.SESSION

        recording = await self.by_asset(event.asset_id)
        if recording is not None:
            return recording, MatchStrategy.ASSET

        if event.asset_name:
            recording = await self.by_title(event.asset_name)
            if recording is not None:
                logger.warning(
                    f"Asset {event.asset_id} matched recording {recording.recording_id} by title only"
                )
                return recording, MatchStrategy.TITLE

        return None, MatchStrategy.NONE

    async def by_session(self, provider_session_id: str) -> Recording | None:
        """Recording keyed by the session id, or via the stream that owns the session.

        Deleted recordings are returned too, so re-deliveries against them stay no-ops.
        """
        recording = (
            await Recording.find(
                Or(
                    Recording.stream_id == provider_session_id,
                    Recording.provider_session_id == provider_session_id,
                )
            )
            .sort(_PREFERRED_ORDER)
            .first_or_none()
        )
        if recording is not None:
            return recording

        stream = await Stream.find_one(Stream.provider_session_id == provider_session_id)
        if stream is None:
            return None
        return await self.by_stream(stream.stream_id)

    async def by_stream(self, stream_id: str) -> Recording | None:
        return (
            await Recording.find(Recording.stream_id == stream_id)
            .sort(_PREFERRED_ORDER)
            .first_or_none()
        )

    async def by_asset(self, asset_id: str) -> Recording | None:
        return await Recording.find_one(Recording.provider_asset_id == asset_id)

    async def by_title(self, asset_name: str) -> Recording | None:
        candidates = (
            await Recording.find(In(Recording.status, RecordingStatus.in_flight_states()))
            .sort(-Recording.created_at)  # type: ignore[operator]
            .limit(self.heuristic_window)
            .to_list()
        )
        return next((c for c in candidates if c.title == asset_name), None)

    async def for_snapshot(self, stream_id: str, provider_session_id: str | None) -> Recording | None:
        """Existing recording for an ended stream, including orphans synthesized early."""
        recording = await self.by_stream(stream_id)
        if recording is None and provider_session_id:
            recording = (
                await Recording.find(Recording.provider_session_id == provider_session_id)
                .sort(_PREFERRED_ORDER)
                .first_or_none()
            )
        return recording
