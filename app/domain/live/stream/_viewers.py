"""Viewer join/leave bookkeeping."""

from beanie import UpdateResponse
from beanie.odm.operators.update.general import Set
from loguru import logger
from pymongo.errors import PyMongoError

from app.domain.utils.idgen import new_anonymous_viewer_id, new_join_id
from app.domain.utils.op_result import OpResult, guard_backend
from app.schemas import StreamViewer
from app.schemas.schema_utils import utc_now
from app.schemas.stream import Stream

from ._base import BaseStreamService
from .stream_models import ViewerJoinResult, ViewerLeaveResult


class ViewerOperations(BaseStreamService):
    """Viewer counters are only ever changed with atomic store operations."""

    @guard_backend
    async def join_viewer(
        self,
        stream_id: str,
        viewer_id: str | None = None,
        device_type: str | None = None,
    ) -> OpResult[ViewerJoinResult]:
        """Count a viewer in. Anonymous viewers get a generated pseudo-id.

        The join record is written before the counter so a counted viewer can
        always be counted out again; it is removed if the counter is not moved.
        """
        is_anonymous = not viewer_id
        viewer_id = viewer_id or new_anonymous_viewer_id()

        join = StreamViewer(
            join_id=new_join_id(),
            stream_id=stream_id,
            viewer_id=viewer_id,
            is_anonymous=is_anonymous,
            device_type=device_type,
        )
        await join.insert()

        try:
            stream = await Stream.add_viewer(stream_id)
        except PyMongoError:
            await self._discard_join(join)
            raise

        if stream is None:
            await self._discard_join(join)
            existing = await self._get_stream(stream_id)
            if existing is None:
                return OpResult.not_found(f"Stream {stream_id} not found")
            return OpResult.conflict(f"Stream {stream_id} is {existing.status}, viewers cannot join")

        logger.debug(
            f"Viewer {viewer_id} joined stream {stream_id} "
            f"(current={stream.viewer_count}, peak={stream.peak_viewer_count})"
        )
        return OpResult.apply(
            ViewerJoinResult(
                join_id=join.join_id,
                stream_id=stream_id,
                viewer_id=viewer_id,
                is_anonymous=is_anonymous,
                viewer_count=stream.viewer_count,
                peak_viewer_count=stream.peak_viewer_count,
            )
        )

    @staticmethod
    async def _discard_join(join: StreamViewer) -> None:
        try:
            await join.delete()
        except PyMongoError as exc:
            logger.warning(f"Failed to discard join record {join.join_id}: {exc}")

    @guard_backend
    async def leave_viewer(self, stream_id: str, viewer_id: str) -> OpResult[ViewerLeaveResult]:
        """Count a viewer out; the current counter is clamped at zero."""
        join = await StreamViewer.find_one(
            StreamViewer.stream_id == stream_id,
            StreamViewer.viewer_id == viewer_id,
            StreamViewer.left_at == None,  # noqa: E711
        ).update(
            Set({StreamViewer.left_at: utc_now()}),
            response_type=UpdateResponse.NEW_DOCUMENT,
        )

        if join is None:
            stream = await self._get_stream(stream_id)
            if stream is None:
                return OpResult.not_found(f"Stream {stream_id} not found")
            return OpResult.noop(self._leave_result(stream, viewer_id), reason="not_joined")

        try:
            stream = await Stream.remove_viewer(stream_id)
        except PyMongoError:
            await self._reopen_join(join)
            raise

        if stream is None:
            # Stream ended (counters frozen) or the counter is already zero
            fresh = await self._get_stream(stream_id)
            if fresh is None:
                return OpResult.not_found(f"Stream {stream_id} not found")
            return OpResult.noop(self._leave_result(fresh, viewer_id), reason="counter_unchanged")

        logger.debug(
            f"Viewer {viewer_id} left stream {stream_id} "
            f"(current={stream.viewer_count}, peak={stream.peak_viewer_count})"
        )
        return OpResult.apply(self._leave_result(stream, viewer_id))

    @staticmethod
    def _leave_result(stream: Stream, viewer_id: str) -> ViewerLeaveResult:
        return ViewerLeaveResult(
            stream_id=stream.stream_id,
            viewer_id=viewer_id,
            viewer_count=stream.viewer_count,
            peak_viewer_count=stream.peak_viewer_count,
        )

    @staticmethod
    async def _reopen_join(join: StreamViewer) -> None:
        try:
            await StreamViewer.find_one(StreamViewer.join_id == join.join_id).update(
                Set({StreamViewer.left_at: None})
            )
        except PyMongoError as exc:
            logger.warning(f"Failed to reopen join record {join.join_id}: {exc}")
