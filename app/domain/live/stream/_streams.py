"""Stream lifecycle operations."""

from beanie import UpdateResponse
from beanie.odm.operators.update.general import Set
from beanie.operators import In
from loguru import logger
from pymongo.errors import PyMongoError

from app.domain.utils.idgen import new_stream_id, new_stream_key
from app.domain.utils.op_result import OpResult, guard_backend
from app.schemas import Stream, StreamMode, StreamStatus, StreamViewer
from app.schemas.schema_utils import utc_now
from app.services.integrations.provider_gateway import ProviderGatewayError, ProviderSessionStatus
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from ._base import BaseStreamService
from .stream_models import (
    MAX_TITLE_LENGTH,
    StreamCreateParams,
    StreamCreateResult,
    StreamEndResult,
    StreamHealth,
    StreamResponse,
    StreamSnapshot,
    StreamUpdateParams,
)
from .stream_state_machine import StreamStateMachine

BELOW_MINIMUM_DURATION = "below_minimum_duration"


def _validate_title(title: str | None) -> str:
    title = (title or "").strip()
    if not title:
        raise AppError(
            errcode=AppErrorCode.E_INVALID_REQUEST,
            errmesg="Stream title is required",
            status_code=HttpStatusCode.BAD_REQUEST,
        )
    if len(title) > MAX_TITLE_LENGTH:
        raise AppError(
            errcode=AppErrorCode.E_INVALID_REQUEST,
            errmesg=f"Stream title must be at most {MAX_TITLE_LENGTH} characters",
            status_code=HttpStatusCode.BAD_REQUEST,
        )
    return title


class StreamOperations(BaseStreamService):
    """Stream creation, transitions and moderation."""

    @guard_backend
    async def create(self, creator_id: str, params: StreamCreateParams) -> OpResult[StreamCreateResult]:
        """Open a new stream in CONFIGURING.

        Falls back to a locally generated credential when the provider cannot be
        reached; the stream is then flagged as degraded.

        Raises:
            AppError: If mode-specific fields are missing or the title is invalid.
        """
        title = _validate_title(params.title)
        if params.mode == StreamMode.AVATAR and not params.avatar_url:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg="Avatar mode requires avatar_url",
                status_code=HttpStatusCode.BAD_REQUEST,
            )

        stream_id = new_stream_id()
        degraded_reason: str | None = None
        provider_session_id: str | None = None

        try:
            provider_session = await self.gateway.create_session(title, creator_id)
            provider_session_id = provider_session.provider_session_id
            stream_key = provider_session.ingest_credential
            ingest_url = provider_session.ingest_url
            playback_url = provider_session.playback_url
        except ProviderGatewayError as exc:
            provider_config = self.gateway.config
            stream_key = new_stream_key()
            ingest_url = provider_config.ingest_base_url
            playback_url = f"{provider_config.playback_base_url}/{stream_key}/index.m3u8"
            degraded_reason = exc.errmesg
            logger.warning(
                f"⚠️ Stream {stream_id} for creator {creator_id} created in degraded mode: {exc.errmesg}"
            )

        now = utc_now()
        stream = Stream(
            stream_id=stream_id,
            creator_id=creator_id,
            provider_session_id=provider_session_id,
            title=title,
            description=params.description,
            visibility=params.visibility,
            mode=params.mode,
            avatar_url=params.avatar_url,
            thumbnail_url=params.thumbnail_url,
            ingest_url=ingest_url,
            playback_url=playback_url,
            is_degraded=degraded_reason is not None,
            degraded_reason=degraded_reason,
            status=StreamStatus.CONFIGURING,
            created_at=now,
            updated_at=now,
        )
        try:
            # Key first: a persisted stream always has a stored credential
            await self._store_stream_key(creator_id, stream_key, stream_id)
            await stream.insert()
        except PyMongoError:
            if provider_session_id:
                await self._release_provider_session(provider_session_id, stream_id)
            raise

        logger.info(f"Stream {stream_id} created for creator {creator_id} (mode={params.mode})")

        return OpResult.apply(
            StreamCreateResult(
                stream=StreamResponse.from_document(stream),
                stream_key=stream_key,
                is_degraded=stream.is_degraded,
                degraded_reason=degraded_reason,
            )
        )

    async def _release_provider_session(self, provider_session_id: str, stream_id: str) -> None:
        try:
            await self.gateway.delete_session(provider_session_id)
        except ProviderGatewayError as exc:
            logger.warning(
                f"Failed to delete provider session {provider_session_id} "
                f"of stream {stream_id}: {exc.errmesg}"
            )

    @guard_backend
    async def mark_live(self, stream_id: str) -> OpResult[StreamResponse]:
        """CONFIGURING -> LIVE. Duplicate go-live signals are no-ops."""
        stream = await self._get_stream(stream_id)
        if stream is None:
            return OpResult.not_found(f"Stream {stream_id} not found")

        if stream.status == StreamStatus.LIVE:
            logger.info(f"Stream {stream_id} already live, skipping")
            return OpResult.noop(StreamResponse.from_document(stream), reason="already_live")

        if not StreamStateMachine.can_transition(stream.status, StreamStatus.LIVE):
            logger.warning(f"Rejected go-live for stream {stream_id} in state {stream.status}")
            return OpResult.conflict(
                f"Invalid state transition: {stream.status} -> {StreamStatus.LIVE}",
                value=StreamResponse.from_document(stream),
            )

        updated = await Stream.transition(
            stream_id,
            StreamStateMachine.get_valid_sources(StreamStatus.LIVE),
            {Stream.status: StreamStatus.LIVE, Stream.started_at: utc_now()},
        )
        if updated is None:
            # Lost a race with another transition; report what won
            return await self._resolve_lost_race(stream_id, StreamStatus.LIVE)

        logger.info(f"Stream {stream_id} state updated to {StreamStatus.LIVE}")
        return OpResult.apply(StreamResponse.from_document(updated))

    @guard_backend
    async def end(self, stream_id: str) -> OpResult[StreamEndResult]:
        """Move the stream to ENDED and hand it to the recording pipeline.

        Streams shorter than `min_recording_duration_seconds` (including streams that
        never went live) produce no recording. Ending an already ended stream repeats
        the hand-off, which the recording pipeline treats idempotently.
        """
        stream = await self._get_stream(stream_id)
        if stream is None:
            return OpResult.not_found(f"Stream {stream_id} not found")

        if stream.status == StreamStatus.ENDED:
            logger.info(f"Stream {stream_id} already ended, repeating recording hand-off")
            result = await self._hand_off(stream)
            return OpResult.noop(result, reason="already_ended")

        updated = await Stream.transition(
            stream_id,
            StreamStateMachine.get_valid_sources(StreamStatus.ENDED),
            {
                Stream.status: StreamStatus.ENDED,
                Stream.ended_at: utc_now(),
                Stream.viewer_count: 0,
            },
        )
        if updated is None:
            fresh = await self._get_stream(stream_id)
            if fresh is not None and fresh.status == StreamStatus.ENDED:
                return OpResult.noop(await self._hand_off(fresh), reason="already_ended")
            return OpResult.conflict(f"Stream {stream_id} could not be ended")

        logger.info(
            f"Stream {stream_id} state updated to {StreamStatus.ENDED} "
            f"(duration={updated.duration_seconds:.1f}s, peak_viewers={updated.peak_viewer_count})"
        )
        return OpResult.apply(await self._hand_off(updated))

    async def _hand_off(self, stream: Stream) -> StreamEndResult:
        result = StreamEndResult(
            stream=StreamResponse.from_document(stream),
            duration_seconds=stream.duration_seconds,
        )

        if stream.duration_seconds < self.min_recording_duration_seconds:
            logger.info(
                f"No recording for stream {stream.stream_id}: duration {stream.duration_seconds:.1f}s "
                f"is below the {self.min_recording_duration_seconds}s minimum"
            )
            result.recording_skipped_reason = BELOW_MINIMUM_DURATION
            return result

        if self.on_ended is None:
            logger.warning(f"No recording handler configured, stream {stream.stream_id} not recorded")
            result.recording_skipped_reason = "no_recording_handler"
            return result

        recording_result = await self.on_ended(StreamSnapshot.from_stream(stream))
        result.recording_outcome = recording_result.outcome.value
        recording = recording_result.value
        result.recording_id = getattr(recording, "recording_id", None)
        return result

    async def _resolve_lost_race(self, stream_id: str, target: StreamStatus) -> OpResult:
        fresh = await self._get_stream(stream_id)
        if fresh is None:
            return OpResult.not_found(f"Stream {stream_id} not found")
        if fresh.status == target:
            return OpResult.noop(StreamResponse.from_document(fresh), reason=f"already_{target}")
        return OpResult.conflict(
            f"Invalid state transition: {fresh.status} -> {target}",
            value=StreamResponse.from_document(fresh),
        )

    @guard_backend
    async def update(
        self,
        stream_id: str,
        actor_id: str,
        params: StreamUpdateParams,
    ) -> OpResult[StreamResponse]:
        """Update descriptor fields of a stream that has not ended."""
        stream = await self._get_stream(stream_id)
        if stream is None:
            return OpResult.not_found(f"Stream {stream_id} not found")
        self._ensure_owner(stream, actor_id)

        updates = {}
        if params.title is not None:
            updates[Stream.title] = _validate_title(params.title)
        if params.description is not None:
            updates[Stream.description] = params.description
        if params.visibility is not None:
            updates[Stream.visibility] = params.visibility
        if params.thumbnail_url is not None:
            updates[Stream.thumbnail_url] = params.thumbnail_url
        if not updates:
            return OpResult.noop(StreamResponse.from_document(stream), reason="nothing_to_update")

        updated = await Stream.transition(stream_id, StreamStatus.active_states(), updates)
        if updated is None:
            return OpResult.conflict(f"Stream {stream_id} has ended and can no longer be edited")
        return OpResult.apply(StreamResponse.from_document(updated))

    @guard_backend
    async def delete(self, stream_id: str, actor_id: str, is_admin: bool = False) -> OpResult[StreamResponse]:
        """Force-delete a stream that has not ended, releasing its provider session."""
        stream = await self._get_stream(stream_id)
        if stream is None:
            return OpResult.not_found(f"Stream {stream_id} not found")
        self._ensure_owner(stream, actor_id, is_admin=is_admin)

        if StreamStateMachine.is_terminal(stream.status):
            return OpResult.conflict(f"Stream {stream_id} has ended and cannot be deleted")

        if stream.provider_session_id:
            await self._release_provider_session(stream.provider_session_id, stream_id)

        result = await Stream.find_one(
            Stream.stream_id == stream_id,
            In(Stream.status, StreamStatus.active_states()),
        ).delete()
        if not result or result.deleted_count == 0:
            if await self._get_stream(stream_id) is None:
                return OpResult.noop(StreamResponse.from_document(stream), reason="already_deleted")
            return OpResult.conflict(f"Stream {stream_id} ended before it could be deleted")

        await StreamViewer.find(StreamViewer.stream_id == stream_id).delete()
        logger.info(f"Stream {stream_id} deleted by {actor_id}")
        return OpResult.apply(StreamResponse.from_document(stream))

    @guard_backend
    async def set_suspended(
        self,
        stream_id: str,
        suspended: bool,
        reason: str | None = None,
    ) -> OpResult[StreamResponse]:
        """Moderation flag; allowed in every state, including ENDED."""
        updated = await Stream.find_one(Stream.stream_id == stream_id).update(
            Set(
                {
                    Stream.is_suspended: suspended,
                    Stream.suspended_reason: reason if suspended else None,
                    Stream.updated_at: utc_now(),
                }
            ),
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
        if updated is None:
            return OpResult.not_found(f"Stream {stream_id} not found")

        logger.info(f"Stream {stream_id} suspended={suspended} reason={reason}")
        return OpResult.apply(StreamResponse.from_document(updated))

    async def get_stream(self, stream_id: str) -> StreamResponse:
        """Raises AppError if the stream does not exist."""
        stream = await self._get_stream(stream_id)
        if stream is None:
            raise AppError(
                errcode=AppErrorCode.E_STREAM_NOT_FOUND,
                errmesg=f"Stream {stream_id} not found",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        return StreamResponse.from_document(stream)

    async def get_stream_by_provider_session(self, provider_session_id: str) -> StreamResponse | None:
        stream = await self._get_stream_by_provider_session(provider_session_id)
        return StreamResponse.from_document(stream) if stream else None

    async def list_live(self, limit: int = 20) -> list[StreamResponse]:
        streams = (
            await Stream.find(
                Stream.status == StreamStatus.LIVE,
                Stream.is_suspended == False,  # noqa: E712
            )
            .sort(-Stream.started_at)  # type: ignore[operator]
            .limit(limit)
            .to_list()
        )
        return [StreamResponse.from_document(s) for s in streams]

    async def list_creator_streams(self, creator_id: str, limit: int = 20) -> list[StreamResponse]:
        streams = (
            await Stream.find(Stream.creator_id == creator_id)
            .sort(-Stream.created_at)  # type: ignore[operator]
            .limit(limit)
            .to_list()
        )
        return [StreamResponse.from_document(s) for s in streams]

    async def get_current_stream(self, creator_id: str) -> StreamResponse | None:
        stream = await self._get_current_stream(creator_id)
        return StreamResponse.from_document(stream) if stream else None

    async def get_health(self, stream_id: str) -> StreamHealth:
        """Provider-side health from the gateway cache; never blocks on retries."""
        stream = await self._get_stream(stream_id)
        if stream is None:
            raise AppError(
                errcode=AppErrorCode.E_STREAM_NOT_FOUND,
                errmesg=f"Stream {stream_id} not found",
                status_code=HttpStatusCode.NOT_FOUND,
            )

        if stream.provider_session_id:
            provider_status = await self.gateway.get_session_status(stream.provider_session_id)
        else:
            provider_status = ProviderSessionStatus(is_stale=True)

        return StreamHealth(
            stream_id=stream.stream_id,
            status=stream.status,
            is_degraded=stream.is_degraded,
            provider=provider_status,
        )
