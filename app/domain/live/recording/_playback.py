"""Recorded playback: view counting and per-viewer watch progress."""

from beanie import UpdateResponse
from beanie.odm.operators.update.general import Inc, Max, Set
from loguru import logger

from app.domain.utils.idgen import new_playback_session_id
from app.domain.utils.op_result import OpResult, guard_backend
from app.schemas import PlaybackSession, Recording, RecordingStatus
from app.schemas.schema_utils import utc_now
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from ._base import BaseRecordingService
from .recording_models import PlaybackSessionResponse, PlaybackStart


class PlaybackOperations(BaseRecordingService):
    """View counting on ready recordings and the playback sessions behind it."""

    @guard_backend
    async def track_view(self, recording_id: str, viewer_id: str | None = None) -> OpResult[PlaybackStart]:
        """Count one view and open a playback session for it.

        Only ready recordings count views. The session id is returned so the
        player can report progress against it.
        """
        updated = await Recording.find_one(
            Recording.recording_id == recording_id,
            Recording.status == RecordingStatus.READY,
        ).update(
            Inc({Recording.view_count: 1}),  # type: ignore[arg-type]
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
        if updated is None:
            recording = await self._get_recording(recording_id)
            if recording is None:
                return OpResult.not_found(f"Recording {recording_id} not found")
            return OpResult.conflict(f"Recording {recording_id} is {recording.status}, views are not tracked")

        now = utc_now()
        session = PlaybackSession(
            session_id=new_playback_session_id(),
            recording_id=recording_id,
            viewer_id=viewer_id,
            started_at=now,
            last_activity_at=now,
        )
        await session.insert()

        logger.debug(f"Playback {session.session_id} opened on {recording_id} by {viewer_id or 'anonymous'}")
        return OpResult.apply(
            PlaybackStart(
                recording_id=recording_id,
                session_id=session.session_id,
                view_count=updated.view_count,
            )
        )

    @guard_backend
    async def update_playback_progress(
        self,
        recording_id: str,
        session_id: str,
        watch_duration_seconds: float,
        completed: bool = False,
        viewer_id: str | None = None,
    ) -> OpResult[PlaybackSessionResponse]:
        """Record watch progress on an open playback session.

        Watch duration only moves forward and completion is sticky, so late or
        repeated reports never undo progress already recorded.
        """
        if watch_duration_seconds < 0:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg="watch_duration_seconds must not be negative",
                status_code=HttpStatusCode.BAD_REQUEST,
            )

        session = await PlaybackSession.find_one(
            PlaybackSession.session_id == session_id,
            PlaybackSession.recording_id == recording_id,
        )
        if session is None:
            return OpResult.not_found(f"Playback session {session_id} not found on {recording_id}")
        # Anonymous sessions are addressed by their id alone
        if session.viewer_id is not None and session.viewer_id != viewer_id:
            raise AppError(
                errcode=AppErrorCode.E_FORBIDDEN,
                errmesg=f"Playback session {session_id} belongs to another viewer",
                status_code=HttpStatusCode.FORBIDDEN,
            )

        updates = {PlaybackSession.last_activity_at: utc_now()}
        if completed:
            updates[PlaybackSession.completed] = True
        updated = await PlaybackSession.find_one(PlaybackSession.session_id == session_id).update(
            Max({PlaybackSession.watch_duration_seconds: watch_duration_seconds}),  # type: ignore[arg-type]
            Set(updates),  # type: ignore[arg-type]
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
        if updated is None:
            return OpResult.not_found(f"Playback session {session_id} not found on {recording_id}")
        return OpResult.apply(PlaybackSessionResponse.from_document(updated))

    async def list_sessions(self, recording_id: str, limit: int = 50) -> list[PlaybackSessionResponse]:
        sessions = (
            await PlaybackSession.find(PlaybackSession.recording_id == recording_id)
            .sort(-PlaybackSession.started_at)  # type: ignore[operator]
            .limit(limit)
            .to_list()
        )
        return [PlaybackSessionResponse.from_document(s) for s in sessions]
