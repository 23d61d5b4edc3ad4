"""Recording lifecycle and management operations."""

from datetime import datetime

from beanie import UpdateResponse
from beanie.odm.operators.update.general import Set
from beanie.operators import In
from loguru import logger
from pymongo.errors import DuplicateKeyError

from app.domain.access.access_policy import can_manage_recording
from app.domain.live.stream.stream_models import StreamSnapshot
from app.domain.utils.idgen import recording_id_for_stream
from app.domain.utils.op_result import OpResult, guard_backend
from app.schemas import PlaybackSession, Recording, RecordingStatus, Visibility
from app.schemas.schema_utils import utc_now
from app.services.integrations.provider_gateway import ProviderGatewayError
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from ._base import BaseRecordingService
from .recording_models import RecordingResponse, RecordingUpdateParams
from .recording_state_machine import RecordingStateMachine


class RecordingOperations(BaseRecordingService):
    """Recording creation, processing hand-off and moderation."""

    @guard_backend
    async def create_pending(self, snapshot: StreamSnapshot) -> OpResult[RecordingResponse]:
        """Open the recording of an ended stream.

        Any existing recording for the stream wins, so repeated hand-offs are no-ops.
        An orphan synthesized from an early asset webhook is adopted instead.
        """
        existing = await self.correlator.for_snapshot(snapshot.stream_id, snapshot.provider_session_id)
        if existing is not None:
            if existing.needs_attribution and not existing.is_deleted:
                return await self._adopt_orphan(existing, snapshot)
            return OpResult.noop(RecordingResponse.from_document(existing), reason="recording_exists")

        now = utc_now()
        recording = Recording(
            recording_id=recording_id_for_stream(snapshot.stream_id),
            stream_id=snapshot.stream_id,
            provider_session_id=snapshot.provider_session_id,
            creator_id=snapshot.creator_id,
            title=snapshot.title,
            description=snapshot.description,
            visibility=snapshot.visibility,
            thumbnail_url=snapshot.thumbnail_url,
            peak_live_viewers=snapshot.peak_viewer_count,
            started_at=snapshot.started_at,
            ended_at=snapshot.ended_at,
            status=RecordingStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        try:
            await recording.insert()
        except DuplicateKeyError:
            winner = await self._get_recording(recording.recording_id)
            logger.info(f"Recording for stream {snapshot.stream_id} created concurrently")
            return OpResult.noop(
                RecordingResponse.from_document(winner) if winner else None,
                reason="recording_exists",
            )

        logger.info(
            f"Recording {recording.recording_id} pending for stream {snapshot.stream_id} "
            f"(peak_viewers={snapshot.peak_viewer_count})"
        )
        return OpResult.apply(RecordingResponse.from_document(recording))

    async def _adopt_orphan(self, orphan: Recording, snapshot: StreamSnapshot) -> OpResult[RecordingResponse]:
        adopted = await Recording.find_one(
            Recording.recording_id == orphan.recording_id,
            Recording.needs_attribution == True,  # noqa: E712
        ).update(
            Set(
                {
                    Recording.stream_id: snapshot.stream_id,
                    Recording.creator_id: snapshot.creator_id,
                    Recording.title: snapshot.title,
                    Recording.description: snapshot.description,
                    Recording.visibility: snapshot.visibility,
                    Recording.thumbnail_url: snapshot.thumbnail_url,
                    Recording.peak_live_viewers: snapshot.peak_viewer_count,
                    Recording.started_at: snapshot.started_at,
                    Recording.ended_at: snapshot.ended_at,
                    Recording.needs_attribution: False,
                    Recording.updated_at: utc_now(),
                }
            ),
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
        if adopted is None:
            fresh = await self._get_recording(orphan.recording_id)
            return OpResult.noop(
                RecordingResponse.from_document(fresh) if fresh else None,
                reason="recording_exists",
            )

        logger.info(f"Recording {orphan.recording_id} adopted by stream {snapshot.stream_id}")
        return OpResult.apply(RecordingResponse.from_document(adopted), reason="adopted_orphan")

    @guard_backend
    async def mark_processing(
        self,
        recording_id: str,
        ended_at: datetime | None = None,
        duration_seconds: float | None = None,
    ) -> OpResult[RecordingResponse]:
        """PENDING -> PROCESSING once the provider has stopped receiving media."""
        recording = await self._get_recording(recording_id)
        if recording is None:
            return OpResult.not_found(f"Recording {recording_id} not found")
        return await self._mark_processing(recording, ended_at, duration_seconds)

    @guard_backend
    async def mark_processing_for_stream(
        self,
        stream_id: str,
        ended_at: datetime | None = None,
        duration_seconds: float | None = None,
    ) -> OpResult[RecordingResponse]:
        recording = await self.correlator.by_stream(stream_id)
        if recording is None:
            return OpResult.not_found(f"No recording for stream {stream_id}")
        return await self._mark_processing(recording, ended_at, duration_seconds)

    async def _mark_processing(
        self,
        recording: Recording,
        ended_at: datetime | None,
        duration_seconds: float | None,
    ) -> OpResult[RecordingResponse]:
        recording_id = recording.recording_id
        if recording.status in {RecordingStatus.PROCESSING, RecordingStatus.READY}:
            return OpResult.noop(RecordingResponse.from_document(recording), reason=f"already_{recording.status}")
        if not RecordingStateMachine.can_transition(recording.status, RecordingStatus.PROCESSING):
            return OpResult.conflict(
                f"Invalid state transition: {recording.status} -> {RecordingStatus.PROCESSING}",
                value=RecordingResponse.from_document(recording),
            )

        now = utc_now()
        updates = {
            Recording.status: RecordingStatus.PROCESSING,
            Recording.processing_at: now,
            Recording.ended_at: ended_at or recording.ended_at or now,
        }
        if duration_seconds is not None:
            updates[Recording.duration_seconds] = self._clamp_duration(recording_id, duration_seconds)

        updated = await Recording.transition(
            recording_id, RecordingStateMachine.get_valid_sources(RecordingStatus.PROCESSING), updates
        )
        if updated is None:
            fresh = await self._get_recording(recording_id)
            if fresh is None:
                return OpResult.not_found(f"Recording {recording_id} not found")
            if fresh.status in {RecordingStatus.PROCESSING, RecordingStatus.READY}:
                return OpResult.noop(RecordingResponse.from_document(fresh), reason=f"already_{fresh.status}")
            return OpResult.conflict(
                f"Invalid state transition: {fresh.status} -> {RecordingStatus.PROCESSING}",
                value=RecordingResponse.from_document(fresh),
            )

        logger.info(f"Recording {recording_id} state updated to {RecordingStatus.PROCESSING}")
        return OpResult.apply(RecordingResponse.from_document(updated))

    @guard_backend
    async def delete(
        self,
        recording_id: str,
        actor_id: str,
        reason: str | None = None,
        is_admin: bool = False,
    ) -> OpResult[RecordingResponse]:
        """Soft-delete, then release the provider asset on a best-effort basis."""
        recording = await self._get_recording(recording_id)
        if recording is None:
            return OpResult.not_found(f"Recording {recording_id} not found")
        self._ensure_manager(recording, actor_id, is_admin)

        if recording.is_deleted:
            return OpResult.noop(RecordingResponse.from_document(recording), reason="already_deleted")

        now = utc_now()
        updated = await Recording.find_one(
            Recording.recording_id == recording_id,
            Recording.is_deleted == False,  # noqa: E712
        ).update(
            Set(
                {
                    Recording.status: RecordingStatus.DELETED,
                    Recording.is_deleted: True,
                    Recording.deleted_at: now,
                    Recording.deleted_by: actor_id,
                    Recording.deleted_reason: reason,
                    Recording.updated_at: now,
                }
            ),
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
        if updated is None:
            fresh = await self._get_recording(recording_id)
            return OpResult.noop(
                RecordingResponse.from_document(fresh) if fresh else None,
                reason="already_deleted",
            )

        logger.info(f"Recording {recording_id} deleted by {actor_id} (reason={reason})")
        await self._release_asset(updated)
        return OpResult.apply(RecordingResponse.from_document(updated))

    async def _release_asset(self, recording: Recording) -> None:
        if not recording.provider_asset_id:
            return
        try:
            await self.gateway.delete_asset(recording.provider_asset_id)
        except ProviderGatewayError as exc:
            logger.warning(
                f"Failed to delete provider asset {recording.provider_asset_id} "
                f"of recording {recording.recording_id}: {exc.errmesg}"
            )

    @staticmethod
    def _ensure_manager(recording: Recording, actor_id: str, is_admin: bool) -> None:
        if can_manage_recording(recording, actor_id, "admin" if is_admin else None):
            return
        raise AppError(
            errcode=AppErrorCode.E_FORBIDDEN,
            errmesg=f"User {actor_id} cannot manage recording {recording.recording_id}",
            status_code=HttpStatusCode.FORBIDDEN,
        )

    @guard_backend
    async def update(
        self,
        recording_id: str,
        actor_id: str,
        params: RecordingUpdateParams,
    ) -> OpResult[RecordingResponse]:
        recording = await self._get_recording(recording_id)
        if recording is None:
            return OpResult.not_found(f"Recording {recording_id} not found")
        self._ensure_manager(recording, actor_id, is_admin=False)

        updates = {}
        if params.title is not None:
            title = params.title.strip()
            if not title:
                raise AppError(
                    errcode=AppErrorCode.E_INVALID_REQUEST,
                    errmesg="Recording title cannot be empty",
                    status_code=HttpStatusCode.BAD_REQUEST,
                )
            updates[Recording.title] = title
        if params.description is not None:
            updates[Recording.description] = params.description
        if params.visibility is not None:
            updates[Recording.visibility] = params.visibility
        if params.thumbnail_url is not None:
            updates[Recording.thumbnail_url] = params.thumbnail_url
        if not updates:
            return OpResult.noop(RecordingResponse.from_document(recording), reason="nothing_to_update")

        editable = [s for s in RecordingStatus if not RecordingStateMachine.is_terminal(s)]
        updated = await Recording.transition(recording_id, editable, updates)
        if updated is None:
            return OpResult.conflict(f"Recording {recording_id} is deleted and can no longer be edited")
        return OpResult.apply(RecordingResponse.from_document(updated))

    @guard_backend
    async def set_hidden(
        self,
        recording_id: str,
        hidden: bool,
        reason: str | None = None,
    ) -> OpResult[RecordingResponse]:
        updated = await Recording.find_one(Recording.recording_id == recording_id).update(
            Set(
                {
                    Recording.is_hidden: hidden,
                    Recording.hidden_reason: reason if hidden else None,
                    Recording.updated_at: utc_now(),
                }
            ),
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
        if updated is None:
            return OpResult.not_found(f"Recording {recording_id} not found")

        logger.info(f"Recording {recording_id} hidden={hidden} reason={reason}")
        return OpResult.apply(RecordingResponse.from_document(updated))

    @guard_backend
    async def purge(self, recording_id: str) -> OpResult[RecordingResponse]:
        """Hard delete. The only path that removes a recording document."""
        recording = await self._get_recording(recording_id)
        if recording is None:
            return OpResult.not_found(f"Recording {recording_id} not found")

        if not recording.is_deleted:
            await self._release_asset(recording)
        await recording.delete()
        await PlaybackSession.find(PlaybackSession.recording_id == recording_id).delete()

        logger.info(f"Recording {recording_id} purged")
        return OpResult.apply(RecordingResponse.from_document(recording))

    @guard_backend
    async def attribute(
        self,
        recording_id: str,
        creator_id: str,
        stream_id: str | None = None,
    ) -> OpResult[RecordingResponse]:
        """Assign an orphaned recording to its creator."""
        updates = {
            Recording.creator_id: creator_id,
            Recording.needs_attribution: False,
            Recording.updated_at: utc_now(),
        }
        if stream_id is not None:
            updates[Recording.stream_id] = stream_id

        updated = await Recording.find_one(
            Recording.recording_id == recording_id,
            Recording.needs_attribution == True,  # noqa: E712
        ).update(
            Set(updates),  # type: ignore[arg-type]
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
        if updated is None:
            recording = await self._get_recording(recording_id)
            if recording is None:
                return OpResult.not_found(f"Recording {recording_id} not found")
            return OpResult.noop(RecordingResponse.from_document(recording), reason="already_attributed")

        logger.info(f"Recording {recording_id} attributed to creator {creator_id}")
        return OpResult.apply(RecordingResponse.from_document(updated))

    async def get_recording(self, recording_id: str) -> RecordingResponse:
        """Raises AppError if the recording does not exist."""
        recording = await self._get_recording(recording_id)
        if recording is None:
            raise AppError(
                errcode=AppErrorCode.E_RECORDING_NOT_FOUND,
                errmesg=f"Recording {recording_id} not found",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        return RecordingResponse.from_document(recording)

    async def list_public(self, limit: int = 20) -> list[RecordingResponse]:
        recordings = (
            await Recording.find(
                Recording.status == RecordingStatus.READY,
                Recording.visibility == Visibility.PUBLIC,
                Recording.is_hidden == False,  # noqa: E712
                Recording.is_deleted == False,  # noqa: E712
            )
            .sort(-Recording.created_at)  # type: ignore[operator]
            .limit(limit)
            .to_list()
        )
        return [RecordingResponse.from_document(r) for r in recordings]

    async def list_creator_recordings(
        self,
        creator_id: str,
        include_deleted: bool = False,
        limit: int = 20,
    ) -> list[RecordingResponse]:
        query = Recording.find(
            Recording.creator_id == creator_id,
            Recording.needs_attribution == False,  # noqa: E712
        )
        if not include_deleted:
            query = query.find(Recording.is_deleted == False)  # noqa: E712
        recordings = await query.sort(-Recording.created_at).limit(limit).to_list()  # type: ignore[operator]
        return [RecordingResponse.from_document(r) for r in recordings]

    async def list_unattributed(self, limit: int = 50) -> list[RecordingResponse]:
        recordings = (
            await Recording.find(
                Recording.needs_attribution == True,  # noqa: E712
                Recording.is_deleted == False,  # noqa: E712
            )
            .sort(-Recording.created_at)  # type: ignore[operator]
            .limit(limit)
            .to_list()
        )
        return [RecordingResponse.from_document(r) for r in recordings]

    async def list_all(
        self,
        statuses: list[RecordingStatus] | None = None,
        include_deleted: bool = True,
        include_hidden: bool = True,
        limit: int = 50,
    ) -> list[RecordingResponse]:
        """Admin listing across every creator, newest first."""
        query = Recording.find()
        if statuses:
            query = query.find(In(Recording.status, statuses))
        if not include_deleted:
            query = query.find(Recording.is_deleted == False)  # noqa: E712
        if not include_hidden:
            query = query.find(Recording.is_hidden == False)  # noqa: E712
        recordings = await query.sort(-Recording.created_at).limit(limit).to_list()  # type: ignore[operator]
        return [RecordingResponse.from_document(r) for r in recordings]
