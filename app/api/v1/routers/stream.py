from fastapi import APIRouter, Depends, Query

from app.api.errors import unwrap
from app.api.v1.dependency import AdminUser, CurrentUser, OptionalUser, User
from app.api.v1.schemas.base import ApiOut
from app.api.v1.schemas.stream import (
    CreateStreamIn,
    CreateStreamOut,
    CreatorStreamOut,
    EndStreamOut,
    JoinStreamIn,
    JoinStreamOut,
    LeaveStreamIn,
    LeaveStreamOut,
    ListCreatorStreamsOut,
    ListStreamsOut,
    StreamIdIn,
    StreamKeyOut,
    StreamOut,
    SuspendStreamIn,
    UpdateStreamIn,
)
from app.domain.access.access_policy import stream_access
from app.domain.live.live_domain import get_live_services
from app.domain.live.stream.stream_domain import StreamService
from app.domain.live.stream.stream_models import (
    CredentialRotation,
    StreamCreateParams,
    StreamHealth,
    StreamResponse,
    StreamSetupInfo,
    StreamUpdateParams,
)
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

router = APIRouter(prefix="/stream")


def get_stream_service() -> StreamService:
    """Get the singleton StreamService instance."""
    return get_live_services().streams


async def _get_owned_stream(service: StreamService, stream_id: str, user: User) -> StreamResponse:
    stream = await service.get_stream(stream_id)
    if stream.creator_id != user.user_id and not user.is_admin:
        raise AppError(
            errcode=AppErrorCode.E_FORBIDDEN,
            errmesg=f"User {user.user_id} does not own stream {stream_id}",
            status_code=HttpStatusCode.FORBIDDEN,
        )
    return stream


def _ensure_viewable(stream: StreamResponse, user: User | None) -> None:
    if user and (user.user_id == stream.creator_id or user.is_admin):
        return
    decision = stream_access(stream, user.user_id if user else None, user.tier if user else None)
    if not decision.allowed:
        raise AppError(
            errcode=AppErrorCode.E_STREAM_UNAVAILABLE,
            errmesg=str(decision.reason),
            status_code=HttpStatusCode.FORBIDDEN,
        )


@router.post("/create")
async def create_stream(
    body: CreateStreamIn,
    user: CurrentUser,
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[CreateStreamOut]:
    """Create a stream for the authenticated creator.

    The stream key is returned only here and from /key.
    """
    params = StreamCreateParams(**body.model_dump())
    result = unwrap(await service.create(creator_id=user.user_id, params=params))

    return ApiOut[CreateStreamOut](
        results=CreateStreamOut(
            stream=CreatorStreamOut.from_response(result.stream),
            stream_key=result.stream_key,
            is_degraded=result.is_degraded,
            degraded_reason=result.degraded_reason,
        )
    )


@router.post("/go_live")
async def go_live(
    body: StreamIdIn,
    user: CurrentUser,
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[CreatorStreamOut]:
    await _get_owned_stream(service, body.stream_id, user)
    stream = unwrap(await service.mark_live(body.stream_id))
    return ApiOut[CreatorStreamOut](results=CreatorStreamOut.from_response(stream))


@router.post("/end")
async def end_stream(
    body: StreamIdIn,
    user: CurrentUser,
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[EndStreamOut]:
    await _get_owned_stream(service, body.stream_id, user)
    result = unwrap(await service.end(body.stream_id))

    return ApiOut[EndStreamOut](
        results=EndStreamOut(
            stream=CreatorStreamOut.from_response(result.stream),
            duration_seconds=result.duration_seconds,
            recording_id=result.recording_id,
            recording_skipped_reason=result.recording_skipped_reason,
        )
    )


@router.post("/update")
async def update_stream(
    body: UpdateStreamIn,
    user: CurrentUser,
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[CreatorStreamOut]:
    # Only include fields that were explicitly provided in the request
    update_data = body.model_dump(
        exclude_unset=True,
        include={"title", "description", "visibility", "thumbnail_url"},
    )
    stream = unwrap(
        await service.update(
            stream_id=body.stream_id,
            actor_id=user.user_id,
            params=StreamUpdateParams(**update_data),
        )
    )
    return ApiOut[CreatorStreamOut](results=CreatorStreamOut.from_response(stream))


@router.post("/delete")
async def delete_stream(
    body: StreamIdIn,
    user: CurrentUser,
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[CreatorStreamOut]:
    stream = unwrap(await service.delete(body.stream_id, actor_id=user.user_id, is_admin=user.is_admin))
    return ApiOut[CreatorStreamOut](results=CreatorStreamOut.from_response(stream))


@router.get("/get")
async def get_stream(
    user: OptionalUser,
    stream_id: str = Query(..., description="Stream identifier"),
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[StreamOut]:
    stream = await service.get_stream(stream_id)
    _ensure_viewable(stream, user)
    return ApiOut[StreamOut](results=StreamOut.from_response(stream))


@router.get("/list_live")
async def list_live(
    user: OptionalUser,
    limit: int = Query(20, ge=1, le=100, description="Number of items to return"),
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[ListStreamsOut]:
    """Live streams the caller is allowed to watch."""
    streams = await service.list_live(limit=limit)
    viewer_id = user.user_id if user else None
    viewer_tier = user.tier if user else None

    visible = [
        StreamOut.from_response(s)
        for s in streams
        if s.creator_id == viewer_id or stream_access(s, viewer_id, viewer_tier).allowed
    ]
    return ApiOut[ListStreamsOut](results=ListStreamsOut(streams=visible))


@router.get("/list_mine")
async def list_mine(
    user: CurrentUser,
    limit: int = Query(20, ge=1, le=100, description="Number of items to return"),
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[ListCreatorStreamsOut]:
    streams = await service.list_creator_streams(user.user_id, limit=limit)
    return ApiOut[ListCreatorStreamsOut](
        results=ListCreatorStreamsOut(streams=[CreatorStreamOut.from_response(s) for s in streams])
    )


@router.get("/current")
async def current_stream(
    user: CurrentUser,
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[CreatorStreamOut | None]:
    stream = await service.get_current_stream(user.user_id)
    return ApiOut[CreatorStreamOut | None](
        results=CreatorStreamOut.from_response(stream) if stream else None
    )


@router.get("/key")
async def get_stream_key(
    user: CurrentUser,
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[StreamKeyOut]:
    key = await service.get_stream_key(user.user_id)
    return ApiOut[StreamKeyOut](results=StreamKeyOut(stream_key=key.stream_key, stream_id=key.stream_id))


@router.post("/regenerate_key")
async def regenerate_key(
    user: CurrentUser,
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[CredentialRotation]:
    rotation = unwrap(await service.regenerate_credential(user.user_id))
    return ApiOut[CredentialRotation](results=rotation)


@router.get("/setup_info")
async def setup_info(
    user: CurrentUser,
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[StreamSetupInfo]:
    return ApiOut[StreamSetupInfo](results=await service.get_setup_info(user.user_id))


@router.get("/status")
async def stream_status(
    user: CurrentUser,
    stream_id: str = Query(..., description="Stream identifier"),
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[StreamHealth]:
    """Provider-side health. Served from a short cache and may be stale."""
    await _get_owned_stream(service, stream_id, user)
    return ApiOut[StreamHealth](results=await service.get_health(stream_id))


@router.post("/join")
async def join_stream(
    body: JoinStreamIn,
    user: OptionalUser,
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[JoinStreamOut]:
    stream = await service.get_stream(body.stream_id)
    _ensure_viewable(stream, user)

    joined = unwrap(
        await service.join_viewer(
            body.stream_id,
            viewer_id=user.user_id if user else None,
            device_type=body.device_type,
        )
    )
    return ApiOut[JoinStreamOut](
        results=JoinStreamOut(
            join_id=joined.join_id,
            viewer_id=joined.viewer_id,
            viewer_count=joined.viewer_count,
            peak_viewer_count=joined.peak_viewer_count,
        )
    )


@router.post("/leave")
async def leave_stream(
    body: LeaveStreamIn,
    user: OptionalUser,
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[LeaveStreamOut]:
    viewer_id = user.user_id if user else body.viewer_id
    if not viewer_id:
        raise AppError(
            errcode=AppErrorCode.E_INVALID_REQUEST,
            errmesg="viewer_id is required for anonymous viewers",
            status_code=HttpStatusCode.BAD_REQUEST,
        )

    result = await service.leave_viewer(body.stream_id, viewer_id)
    left = unwrap(result)
    return ApiOut[LeaveStreamOut](
        results=LeaveStreamOut(left=result.applied, viewer_count=left.viewer_count if left else None)
    )


@router.post("/suspend", tags=["Admin"])
async def suspend_stream(
    body: SuspendStreamIn,
    admin: AdminUser,
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[CreatorStreamOut]:
    stream = unwrap(await service.suspend(body.stream_id, reason=body.reason))
    return ApiOut[CreatorStreamOut](results=CreatorStreamOut.from_response(stream))


@router.post("/unsuspend", tags=["Admin"])
async def unsuspend_stream(
    body: StreamIdIn,
    admin: AdminUser,
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[CreatorStreamOut]:
    stream = unwrap(await service.unsuspend(body.stream_id))
    return ApiOut[CreatorStreamOut](results=CreatorStreamOut.from_response(stream))
