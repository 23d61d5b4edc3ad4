"""Base service for stream operations."""

from beanie.odm.operators.update.general import Set
from beanie.operators import In

from app.app_config import get_app_environ_config
from app.schemas import Stream, StreamKey, StreamStatus
from app.schemas.schema_utils import utc_now
from app.services.integrations.provider_gateway import ProviderGateway, get_provider_gateway
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .stream_models import StreamEndedHandler


class BaseStreamService:
    """Base service with shared stream lookups and collaborators."""

    def __init__(
        self,
        gateway: ProviderGateway | None = None,
        on_ended: StreamEndedHandler | None = None,
        min_recording_duration_seconds: int | None = None,
    ):
        self.gateway = gateway or get_provider_gateway()
        self.on_ended = on_ended
        if min_recording_duration_seconds is None:
            min_recording_duration_seconds = get_app_environ_config().MIN_RECORDING_DURATION_SECONDS
        self.min_recording_duration_seconds = min_recording_duration_seconds

    async def _get_stream(self, stream_id: str) -> Stream | None:
        return await Stream.find_one(Stream.stream_id == stream_id)

    async def _get_stream_by_provider_session(self, provider_session_id: str) -> Stream | None:
        return await Stream.find_one(Stream.provider_session_id == provider_session_id)

    async def _get_current_stream(self, creator_id: str) -> Stream | None:
        """Most recent stream of the creator that has not ended."""
        return (
            await Stream.find(
                Stream.creator_id == creator_id,
                In(Stream.status, StreamStatus.active_states()),
            )
            .sort(-Stream.created_at)  # type: ignore[operator]
            .first_or_none()
        )

    @staticmethod
    def _ensure_owner(stream: Stream, actor_id: str, is_admin: bool = False) -> None:
        if is_admin or stream.creator_id == actor_id:
            return
        raise AppError(
            errcode=AppErrorCode.E_FORBIDDEN,
            errmesg=f"User {actor_id} does not own stream {stream.stream_id}",
            status_code=HttpStatusCode.FORBIDDEN,
        )

    async def _store_stream_key(
        self,
        creator_id: str,
        stream_key: str,
        stream_id: str | None,
        rotated: bool = False,
    ) -> StreamKey:
        """Create or replace the creator's ingest credential record."""
        now = utc_now()
        updates = {
            StreamKey.stream_key: stream_key,
            StreamKey.stream_id: stream_id,
        }
        if rotated:
            updates[StreamKey.rotated_at] = now

        await StreamKey.find_one(StreamKey.creator_id == creator_id).upsert(
            Set(updates),  # type: ignore[arg-type]
            on_insert=StreamKey(
                creator_id=creator_id,
                stream_key=stream_key,
                stream_id=stream_id,
                created_at=now,
                rotated_at=now if rotated else None,
            ),
        )
        key = await StreamKey.find_one(StreamKey.creator_id == creator_id)
        if key is None:
            raise AppError(
                errcode=AppErrorCode.E_INTERNAL_ERROR,
                errmesg=f"Stream key for creator {creator_id} was not persisted",
                status_code=HttpStatusCode.INTERNAL_SERVER_ERROR,
            )
        return key
