"""Recording domain service facade.

Delegates to specialized operation modules for better organization.
"""

from datetime import datetime

from app.domain.live.stream.stream_models import StreamSnapshot
from app.domain.utils.op_result import OpResult
from app.schemas import RecordingStatus
from app.services.integrations.provider_gateway import ProviderGateway

from ._correlation import RecordingCorrelator
from ._playback import PlaybackOperations
from ._reconcile import ReconcileOperations
from ._recordings import RecordingOperations
from .recording_models import (
    AssetEvent,
    AssetReconcileResult,
    PlaybackSessionResponse,
    PlaybackStart,
    RecordingResponse,
    RecordingUpdateParams,
)


class RecordingService:
    """Recording pipeline: creation on stream end, webhook reconciliation, moderation."""

    def __init__(
        self,
        gateway: ProviderGateway | None = None,
        correlator: RecordingCorrelator | None = None,
        min_duration_seconds: int | None = None,
        max_duration_hours: int | None = None,
    ):
        kwargs = {
            "gateway": gateway,
            "correlator": correlator,
            "min_duration_seconds": min_duration_seconds,
            "max_duration_hours": max_duration_hours,
        }
        self._recordings = RecordingOperations(**kwargs)
        self._reconcile = ReconcileOperations(**kwargs)
        self._playback = PlaybackOperations(**kwargs)

    # Lifecycle

    async def create_pending(self, snapshot: StreamSnapshot) -> OpResult[RecordingResponse]:
        return await self._recordings.create_pending(snapshot)

    async def mark_processing(
        self,
        recording_id: str,
        ended_at: datetime | None = None,
        duration_seconds: float | None = None,
    ) -> OpResult[RecordingResponse]:
        return await self._recordings.mark_processing(recording_id, ended_at, duration_seconds)

    async def mark_processing_for_stream(
        self,
        stream_id: str,
        ended_at: datetime | None = None,
        duration_seconds: float | None = None,
    ) -> OpResult[RecordingResponse]:
        return await self._recordings.mark_processing_for_stream(stream_id, ended_at, duration_seconds)

    # Webhook reconciliation

    async def handle_asset_ready(self, event: AssetEvent) -> OpResult[AssetReconcileResult]:
        return await self._reconcile.handle_asset_ready(event)

    async def handle_asset_failed(self, event: AssetEvent) -> OpResult[AssetReconcileResult]:
        return await self._reconcile.handle_asset_failed(event)

    # Management

    async def delete(
        self,
        recording_id: str,
        actor_id: str,
        reason: str | None = None,
        is_admin: bool = False,
    ) -> OpResult[RecordingResponse]:
        return await self._recordings.delete(recording_id, actor_id, reason, is_admin)

    async def update(
        self,
        recording_id: str,
        actor_id: str,
        params: RecordingUpdateParams,
    ) -> OpResult[RecordingResponse]:
        return await self._recordings.update(recording_id, actor_id, params)

    async def hide(self, recording_id: str, reason: str | None = None) -> OpResult[RecordingResponse]:
        return await self._recordings.set_hidden(recording_id, True, reason)

    async def unhide(self, recording_id: str) -> OpResult[RecordingResponse]:
        return await self._recordings.set_hidden(recording_id, False)

    async def purge(self, recording_id: str) -> OpResult[RecordingResponse]:
        return await self._recordings.purge(recording_id)

    async def attribute(
        self,
        recording_id: str,
        creator_id: str,
        stream_id: str | None = None,
    ) -> OpResult[RecordingResponse]:
        return await self._recordings.attribute(recording_id, creator_id, stream_id)

    # Playback

    async def track_view(self, recording_id: str, viewer_id: str | None = None) -> OpResult[PlaybackStart]:
        return await self._playback.track_view(recording_id, viewer_id)

    async def update_playback_progress(
        self,
        recording_id: str,
        session_id: str,
        watch_duration_seconds: float,
        completed: bool = False,
        viewer_id: str | None = None,
    ) -> OpResult[PlaybackSessionResponse]:
        return await self._playback.update_playback_progress(
            recording_id, session_id, watch_duration_seconds, completed, viewer_id
        )

    async def list_playback_sessions(self, recording_id: str, limit: int = 50) -> list[PlaybackSessionResponse]:
        return await self._playback.list_sessions(recording_id, limit)

    # Queries

    async def get_recording(self, recording_id: str) -> RecordingResponse:
        return await self._recordings.get_recording(recording_id)

    async def list_public(self, limit: int = 20) -> list[RecordingResponse]:
        return await self._recordings.list_public(limit)

    async def list_creator_recordings(
        self,
        creator_id: str,
        include_deleted: bool = False,
        limit: int = 20,
    ) -> list[RecordingResponse]:
        return await self._recordings.list_creator_recordings(creator_id, include_deleted, limit)

    async def list_unattributed(self, limit: int = 50) -> list[RecordingResponse]:
        return await self._recordings.list_unattributed(limit)

    async def list_all(
        self,
        statuses: list[RecordingStatus] | None = None,
        include_deleted: bool = True,
        include_hidden: bool = True,
        limit: int = 50,
    ) -> list[RecordingResponse]:
        return await self._recordings.list_all(statuses, include_deleted, include_hidden, limit)
