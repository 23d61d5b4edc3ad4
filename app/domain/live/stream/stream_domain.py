"""Stream domain service."""

from app.domain.utils.op_result import OpResult
from app.schemas import StreamKey
from app.services.integrations.provider_gateway import ProviderGateway

from ._credentials import CredentialOperations
from ._streams import StreamOperations
from ._viewers import ViewerOperations
from .stream_models import (
    CredentialRotation,
    StreamCreateParams,
    StreamCreateResult,
    StreamEndedHandler,
    StreamEndResult,
    StreamHealth,
    StreamResponse,
    StreamSetupInfo,
    StreamUpdateParams,
    ViewerJoinResult,
    ViewerLeaveResult,
)


class StreamService:
    """Stream session manager."""

    def __init__(
        self,
        gateway: ProviderGateway | None = None,
        on_ended: StreamEndedHandler | None = None,
        min_recording_duration_seconds: int | None = None,
    ):
        kwargs = {
            "gateway": gateway,
            "on_ended": on_ended,
            "min_recording_duration_seconds": min_recording_duration_seconds,
        }
        self._streams = StreamOperations(**kwargs)
        self._viewers = ViewerOperations(**kwargs)
        self._credentials = CredentialOperations(**kwargs)

    # ==================== LIFECYCLE ====================

    async def create(self, creator_id: str, params: StreamCreateParams) -> OpResult[StreamCreateResult]:
        """Create a stream in CONFIGURING.

        Raises AppError on validation errors. Provider failures yield a degraded stream.
        """
        return await self._streams.create(creator_id=creator_id, params=params)

    async def mark_live(self, stream_id: str) -> OpResult[StreamResponse]:
        return await self._streams.mark_live(stream_id=stream_id)

    async def end(self, stream_id: str) -> OpResult[StreamEndResult]:
        """End the stream and hand it to the recording pipeline when long enough."""
        return await self._streams.end(stream_id=stream_id)

    async def update(
        self,
        stream_id: str,
        actor_id: str,
        params: StreamUpdateParams,
    ) -> OpResult[StreamResponse]:
        return await self._streams.update(stream_id=stream_id, actor_id=actor_id, params=params)

    async def delete(self, stream_id: str, actor_id: str, is_admin: bool = False) -> OpResult[StreamResponse]:
        return await self._streams.delete(stream_id=stream_id, actor_id=actor_id, is_admin=is_admin)

    async def suspend(self, stream_id: str, reason: str) -> OpResult[StreamResponse]:
        return await self._streams.set_suspended(stream_id=stream_id, suspended=True, reason=reason)

    async def unsuspend(self, stream_id: str) -> OpResult[StreamResponse]:
        return await self._streams.set_suspended(stream_id=stream_id, suspended=False)

    # ==================== QUERIES ====================

    async def get_stream(self, stream_id: str) -> StreamResponse:
        """Raises AppError if the stream does not exist."""
        return await self._streams.get_stream(stream_id=stream_id)

    async def get_stream_by_provider_session(self, provider_session_id: str) -> StreamResponse | None:
        return await self._streams.get_stream_by_provider_session(provider_session_id)

    async def list_live(self, limit: int = 20) -> list[StreamResponse]:
        return await self._streams.list_live(limit=limit)

    async def list_creator_streams(self, creator_id: str, limit: int = 20) -> list[StreamResponse]:
        return await self._streams.list_creator_streams(creator_id=creator_id, limit=limit)

    async def get_current_stream(self, creator_id: str) -> StreamResponse | None:
        return await self._streams.get_current_stream(creator_id=creator_id)

    async def get_health(self, stream_id: str) -> StreamHealth:
        return await self._streams.get_health(stream_id=stream_id)

    # ==================== VIEWERS ====================

    async def join_viewer(
        self,
        stream_id: str,
        viewer_id: str | None = None,
        device_type: str | None = None,
    ) -> OpResult[ViewerJoinResult]:
        return await self._viewers.join_viewer(
            stream_id=stream_id,
            viewer_id=viewer_id,
            device_type=device_type,
        )

    async def leave_viewer(self, stream_id: str, viewer_id: str) -> OpResult[ViewerLeaveResult]:
        return await self._viewers.leave_viewer(stream_id=stream_id, viewer_id=viewer_id)

    # ==================== CREDENTIALS ====================

    async def get_stream_key(self, creator_id: str) -> StreamKey:
        return await self._credentials.get_stream_key(creator_id=creator_id)

    async def regenerate_credential(self, creator_id: str) -> OpResult[CredentialRotation]:
        return await self._credentials.regenerate_credential(creator_id=creator_id)

    async def get_setup_info(self, creator_id: str) -> StreamSetupInfo:
        return await self._credentials.get_setup_info(creator_id=creator_id)
