from fastapi import APIRouter, Depends, Query

from app.api.errors import unwrap
from app.api.v1.dependency import AdminUser, CurrentUser, OptionalUser, User
from app.api.v1.schemas.base import ApiOut
from app.api.v1.schemas.recording import (
    AttributeRecordingIn,
    DeleteRecordingIn,
    HideRecordingIn,
    ListManagedRecordingsOut,
    ListRecordingsOut,
    ManagedRecordingOut,
    PlaybackProgressIn,
    PlaybackSessionOut,
    PlaybackStartOut,
    RecordingIdIn,
    RecordingOut,
    UpdateRecordingIn,
)
from app.domain.access.access_policy import AccessReason, can_view_recording
from app.domain.live.live_domain import get_live_services
from app.domain.live.recording.recording_domain import RecordingService
from app.domain.live.recording.recording_models import RecordingResponse, RecordingUpdateParams
from app.schemas import RecordingStatus
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

router = APIRouter(prefix="/recording")

# Denials caused by the recording's own state rather than by who is asking
_UNAVAILABLE_REASONS = {
    AccessReason.PROCESSING,
    AccessReason.FAILED,
    AccessReason.UNAVAILABLE,
    AccessReason.DELETED,
    AccessReason.HIDDEN,
}


def get_recording_service() -> RecordingService:
    """Get the singleton RecordingService instance."""
    return get_live_services().recordings


def _ensure_viewable(recording: RecordingResponse, user: User | None) -> None:
    decision = can_view_recording(
        recording,
        viewer_id=user.user_id if user else None,
        viewer_tier=user.tier if user else None,
        viewer_role=user.role if user else None,
    )
    if decision.allowed:
        return

    errcode = (
        AppErrorCode.E_RECORDING_UNAVAILABLE
        if decision.reason in _UNAVAILABLE_REASONS
        else AppErrorCode.E_FORBIDDEN
    )
    raise AppError(
        errcode=errcode,
        errmesg=str(decision.reason),
        status_code=HttpStatusCode.FORBIDDEN,
    )


@router.get("/get")
async def get_recording(
    user: OptionalUser,
    recording_id: str = Query(..., description="Recording identifier"),
    service: RecordingService = Depends(get_recording_service),
) -> ApiOut[RecordingOut]:
    """Get a recording; denials carry a reason code in errmesg."""
    recording = await service.get_recording(recording_id)
    _ensure_viewable(recording, user)
    return ApiOut[RecordingOut](results=RecordingOut.from_response(recording))


@router.get("/list_public")
async def list_public(
    limit: int = Query(20, ge=1, le=100, description="Number of items to return"),
    service: RecordingService = Depends(get_recording_service),
) -> ApiOut[ListRecordingsOut]:
    recordings = await service.list_public(limit=limit)
    return ApiOut[ListRecordingsOut](
        results=ListRecordingsOut(recordings=[RecordingOut.from_response(r) for r in recordings])
    )


@router.get("/list_mine")
async def list_mine(
    user: CurrentUser,
    include_deleted: bool = Query(False, description="Include soft-deleted recordings"),
    limit: int = Query(20, ge=1, le=100, description="Number of items to return"),
    service: RecordingService = Depends(get_recording_service),
) -> ApiOut[ListManagedRecordingsOut]:
    recordings = await service.list_creator_recordings(
        user.user_id, include_deleted=include_deleted, limit=limit
    )
    return ApiOut[ListManagedRecordingsOut](
        results=ListManagedRecordingsOut(
            recordings=[ManagedRecordingOut.from_response(r) for r in recordings]
        )
    )


@router.post("/update")
async def update_recording(
    body: UpdateRecordingIn,
    user: CurrentUser,
    service: RecordingService = Depends(get_recording_service),
) -> ApiOut[ManagedRecordingOut]:
    update_data = body.model_dump(
        exclude_unset=True,
        include={"title", "description", "visibility", "thumbnail_url"},
    )
    recording = unwrap(
        await service.update(
            body.recording_id,
            actor_id=user.user_id,
            params=RecordingUpdateParams(**update_data),
        )
    )
    return ApiOut[ManagedRecordingOut](results=ManagedRecordingOut.from_response(recording))


@router.post("/delete")
async def delete_recording(
    body: DeleteRecordingIn,
    user: CurrentUser,
    service: RecordingService = Depends(get_recording_service),
) -> ApiOut[ManagedRecordingOut]:
    recording = unwrap(
        await service.delete(
            body.recording_id,
            actor_id=user.user_id,
            reason=body.reason,
            is_admin=user.is_admin,
        )
    )
    return ApiOut[ManagedRecordingOut](results=ManagedRecordingOut.from_response(recording))


@router.post("/track_view")
async def track_view(
    body: RecordingIdIn,
    user: OptionalUser,
    service: RecordingService = Depends(get_recording_service),
) -> ApiOut[PlaybackStartOut]:
    """Count a view and open a playback session for progress reports."""
    recording = await service.get_recording(body.recording_id)
    _ensure_viewable(recording, user)

    started = unwrap(
        await service.track_view(body.recording_id, viewer_id=user.user_id if user else None)
    )
    return ApiOut[PlaybackStartOut](results=PlaybackStartOut(**started.model_dump()))


@router.post("/playback_progress")
async def playback_progress(
    body: PlaybackProgressIn,
    user: OptionalUser,
    service: RecordingService = Depends(get_recording_service),
) -> ApiOut[PlaybackSessionOut]:
    session = unwrap(
        await service.update_playback_progress(
            body.recording_id,
            body.session_id,
            body.watch_duration_seconds,
            completed=body.completed,
            viewer_id=user.user_id if user else None,
        )
    )
    return ApiOut[PlaybackSessionOut](results=PlaybackSessionOut.from_response(session))


@router.post("/hide", tags=["Admin"])
async def hide_recording(
    body: HideRecordingIn,
    admin: AdminUser,
    service: RecordingService = Depends(get_recording_service),
) -> ApiOut[ManagedRecordingOut]:
    recording = unwrap(await service.hide(body.recording_id, reason=body.reason))
    return ApiOut[ManagedRecordingOut](results=ManagedRecordingOut.from_response(recording))


@router.post("/unhide", tags=["Admin"])
async def unhide_recording(
    body: RecordingIdIn,
    admin: AdminUser,
    service: RecordingService = Depends(get_recording_service),
) -> ApiOut[ManagedRecordingOut]:
    recording = unwrap(await service.unhide(body.recording_id))
    return ApiOut[ManagedRecordingOut](results=ManagedRecordingOut.from_response(recording))


@router.post("/purge", tags=["Admin"])
async def purge_recording(
    body: RecordingIdIn,
    admin: AdminUser,
    service: RecordingService = Depends(get_recording_service),
) -> ApiOut[ManagedRecordingOut]:
    recording = unwrap(await service.purge(body.recording_id))
    return ApiOut[ManagedRecordingOut](results=ManagedRecordingOut.from_response(recording))


@router.post("/attribute", tags=["Admin"])
async def attribute_recording(
    body: AttributeRecordingIn,
    admin: AdminUser,
    service: RecordingService = Depends(get_recording_service),
) -> ApiOut[ManagedRecordingOut]:
    recording = unwrap(
        await service.attribute(body.recording_id, creator_id=body.creator_id, stream_id=body.stream_id)
    )
    return ApiOut[ManagedRecordingOut](results=ManagedRecordingOut.from_response(recording))


@router.get("/list_unattributed", tags=["Admin"])
async def list_unattributed(
    admin: AdminUser,
    limit: int = Query(50, ge=1, le=200, description="Number of items to return"),
    service: RecordingService = Depends(get_recording_service),
) -> ApiOut[ListManagedRecordingsOut]:
    recordings = await service.list_unattributed(limit=limit)
    return ApiOut[ListManagedRecordingsOut](
        results=ListManagedRecordingsOut(
            recordings=[ManagedRecordingOut.from_response(r) for r in recordings]
        )
    )


@router.get("/list_all", tags=["Admin"])
async def list_all(
    admin: AdminUser,
    status: list[RecordingStatus] | None = Query(None, description="Only recordings in these states"),
    include_deleted: bool = Query(True, description="Include soft-deleted recordings"),
    include_hidden: bool = Query(True, description="Include hidden recordings"),
    limit: int = Query(50, ge=1, le=200, description="Number of items to return"),
    service: RecordingService = Depends(get_recording_service),
) -> ApiOut[ListManagedRecordingsOut]:
    recordings = await service.list_all(
        statuses=status,
        include_deleted=include_deleted,
        include_hidden=include_hidden,
        limit=limit,
    )
    return ApiOut[ListManagedRecordingsOut](
        results=ListManagedRecordingsOut(
            recordings=[ManagedRecordingOut.from_response(r) for r in recordings]
        )
    )
