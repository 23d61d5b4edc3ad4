"""Tests for PlaybackOperations: view counting and watch progress."""

import pytest

from app.domain.live.recording.recording_domain import RecordingService
from app.domain.utils.op_result import OpOutcome
from app.schemas import PlaybackSession, RecordingStatus
from app.utils.app_errors import AppError, AppErrorCode
from tests.fixtures.recording_factories import insert_recording, load_recording


async def load_session(session_id: str) -> PlaybackSession:
    session = await PlaybackSession.find_one(PlaybackSession.session_id == session_id)
    assert session is not None
    return session


@pytest.mark.usefixtures("clear_collections")
class TestTrackView:
    async def test_each_view_opens_a_session(self, service: RecordingService, beanie_db):
        await insert_recording("rec_p1", RecordingStatus.READY)

        first = await service.track_view("rec_p1", viewer_id="u.viewer")
        second = await service.track_view("rec_p1")

        assert first.outcome == OpOutcome.APPLIED
        assert second.value.view_count == 2
        assert first.value.session_id != second.value.session_id
        assert first.value.session_id.startswith("pv_")

        session = await load_session(first.value.session_id)
        assert session.recording_id == "rec_p1"
        assert session.viewer_id == "u.viewer"
        assert session.watch_duration_seconds == 0
        assert session.completed is False
        assert (await load_session(second.value.session_id)).viewer_id is None

    async def test_processing_recording_counts_nothing(self, service: RecordingService, beanie_db):
        await insert_recording("rec_p2", RecordingStatus.PROCESSING)

        result = await service.track_view("rec_p2", viewer_id="u.viewer")

        assert result.outcome == OpOutcome.CONFLICT
        assert (await load_recording("rec_p2")).view_count == 0
        assert await PlaybackSession.find(PlaybackSession.recording_id == "rec_p2").count() == 0

    async def test_missing_recording(self, service: RecordingService, beanie_db):
        result = await service.track_view("rec_none")

        assert result.outcome == OpOutcome.NOT_FOUND


@pytest.mark.usefixtures("clear_collections")
class TestPlaybackProgress:
    async def test_progress_is_recorded(self, service: RecordingService, beanie_db):
        await insert_recording("rec_p3", RecordingStatus.READY)
        started = await service.track_view("rec_p3", viewer_id="u.viewer")
        session_id = started.value.session_id

        result = await service.update_playback_progress("rec_p3", session_id, 120.5, viewer_id="u.viewer")

        assert result.outcome == OpOutcome.APPLIED
        assert result.value.watch_duration_seconds == 120.5
        assert result.value.completed is False
        assert result.value.last_activity_at >= result.value.started_at

    async def test_late_report_does_not_rewind(self, service: RecordingService, beanie_db):
        await insert_recording("rec_p4", RecordingStatus.READY)
        session_id = (await service.track_view("rec_p4")).value.session_id

        await service.update_playback_progress("rec_p4", session_id, 300, completed=True)
        result = await service.update_playback_progress("rec_p4", session_id, 90)

        assert result.value.watch_duration_seconds == 300
        assert result.value.completed is True

    async def test_other_viewer_is_forbidden(self, service: RecordingService, beanie_db):
        await insert_recording("rec_p5", RecordingStatus.READY)
        session_id = (await service.track_view("rec_p5", viewer_id="u.viewer")).value.session_id

        with pytest.raises(AppError) as exc_info:
            await service.update_playback_progress("rec_p5", session_id, 60, viewer_id="u.other")
        with pytest.raises(AppError):
            await service.update_playback_progress("rec_p5", session_id, 60)

        assert exc_info.value.errcode == AppErrorCode.E_FORBIDDEN
        assert (await load_session(session_id)).watch_duration_seconds == 0

    async def test_negative_duration_rejected(self, service: RecordingService, beanie_db):
        await insert_recording("rec_p6", RecordingStatus.READY)
        session_id = (await service.track_view("rec_p6")).value.session_id

        with pytest.raises(AppError) as exc_info:
            await service.update_playback_progress("rec_p6", session_id, -1)

        assert exc_info.value.errcode == AppErrorCode.E_INVALID_REQUEST

    async def test_session_must_belong_to_recording(self, service: RecordingService, beanie_db):
        await insert_recording("rec_p7", RecordingStatus.READY)
        await insert_recording("rec_p8", RecordingStatus.READY)
        session_id = (await service.track_view("rec_p7")).value.session_id

        result = await service.update_playback_progress("rec_p8", session_id, 30)

        assert result.outcome == OpOutcome.NOT_FOUND

    async def test_unknown_session(self, service: RecordingService, beanie_db):
        await insert_recording("rec_p9", RecordingStatus.READY)

        result = await service.update_playback_progress("rec_p9", "pv_missing", 30)

        assert result.outcome == OpOutcome.NOT_FOUND


@pytest.mark.usefixtures("clear_collections")
class TestPlaybackSessionLifetime:
    async def test_sessions_listed_per_recording(self, service: RecordingService, beanie_db):
        await insert_recording("rec_p10", RecordingStatus.READY)
        await insert_recording("rec_p11", RecordingStatus.READY)
        await service.track_view("rec_p10", viewer_id="u.a")
        await service.track_view("rec_p10", viewer_id="u.b")
        await service.track_view("rec_p11", viewer_id="u.c")

        sessions = await service.list_playback_sessions("rec_p10")

        assert {s.viewer_id for s in sessions} == {"u.a", "u.b"}

    async def test_purge_removes_sessions(self, service: RecordingService, beanie_db):
        await insert_recording("rec_p12", RecordingStatus.READY)
        await insert_recording("rec_p13", RecordingStatus.READY)
        await service.track_view("rec_p12")
        await service.track_view("rec_p13")

        await service.purge("rec_p12")

        assert await PlaybackSession.find(PlaybackSession.recording_id == "rec_p12").count() == 0
        assert await PlaybackSession.find(PlaybackSession.recording_id == "rec_p13").count() == 1
