"""Unit tests for recording router endpoints."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.errors import app_error_handler
from app.api.v1.routers.recording import get_recording_service, router
from app.domain.live.recording.recording_domain import RecordingService
from app.domain.live.recording.recording_models import PlaybackSessionResponse, PlaybackStart, RecordingResponse
from app.domain.utils.op_result import OpResult
from app.schemas import RecordingStatus, Visibility
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

OWNER = {"X-User-Id": "u.creator"}
VIEWER = {"X-User-Id": "u.viewer", "X-User-Tier": "basic"}
ADMIN = {"X-User-Id": "u.admin", "X-User-Role": "admin"}


def make_recording(recording_id: str = "rec_1", **overrides) -> RecordingResponse:
    now = datetime.now(timezone.utc)
    values = {
        "recording_id": recording_id,
        "stream_id": "st_1",
        "provider_session_id": "ps_1",
        "provider_asset_id": "as_1",
        "creator_id": "u.creator",
        "title": "Recorded show",
        "visibility": Visibility.PUBLIC,
        "status": RecordingStatus.READY,
        "playback_url": "https://play.test/hls/pb_1/index.m3u8",
        "duration_seconds": 600.0,
        "created_at": now,
        "updated_at": now,
        "ready_at": now,
    }
    values.update(overrides)
    return RecordingResponse(**values)


@pytest.fixture
def mock_recording_service() -> AsyncMock:
    return AsyncMock(spec=RecordingService)


@pytest.fixture
def client(mock_recording_service: AsyncMock) -> TestClient:
    app = FastAPI()
    app.dependency_overrides[get_recording_service] = lambda: mock_recording_service
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.include_router(router)
    return TestClient(app)


class TestGetRecording:
    def test_ready_public_recording(self, client: TestClient, mock_recording_service: AsyncMock):
        mock_recording_service.get_recording.return_value = make_recording()

        response = client.get("/recording/get", params={"recording_id": "rec_1"})

        assert response.status_code == 200
        results = response.json()["results"]
        assert results["playback_url"] == "https://play.test/hls/pb_1/index.m3u8"
        assert "provider_asset_id" not in results
        assert "is_hidden" not in results

    def test_missing_recording(self, client: TestClient, mock_recording_service: AsyncMock):
        mock_recording_service.get_recording.side_effect = AppError(
            errcode=AppErrorCode.E_RECORDING_NOT_FOUND,
            errmesg="Recording rec_x not found",
            status_code=HttpStatusCode.NOT_FOUND,
        )

        response = client.get("/recording/get", params={"recording_id": "rec_x"})

        assert response.status_code == 404
        assert response.json()["errcode"] == "E_RECORDING_NOT_FOUND"

    @pytest.mark.parametrize(
        ("overrides", "reason"),
        [
            ({"status": RecordingStatus.PROCESSING, "playback_url": None}, "processing"),
            ({"status": RecordingStatus.FAILED, "playback_url": None}, "failed"),
            ({"is_hidden": True}, "hidden"),
        ],
    )
    def test_unavailable_recording(
        self, client: TestClient, mock_recording_service: AsyncMock, overrides, reason
    ):
        mock_recording_service.get_recording.return_value = make_recording(**overrides)

        response = client.get("/recording/get", params={"recording_id": "rec_1"}, headers=VIEWER)

        assert response.status_code == 403
        assert response.json()["errcode"] == "E_RECORDING_UNAVAILABLE"
        assert response.json()["errmesg"] == reason

    def test_private_recording_forbidden(self, client: TestClient, mock_recording_service: AsyncMock):
        mock_recording_service.get_recording.return_value = make_recording(visibility=Visibility.PRIVATE)

        denied = client.get("/recording/get", params={"recording_id": "rec_1"}, headers=VIEWER)
        owner = client.get("/recording/get", params={"recording_id": "rec_1"}, headers=OWNER)

        assert denied.status_code == 403
        assert denied.json()["errcode"] == "E_FORBIDDEN"
        assert denied.json()["errmesg"] == "private"
        assert owner.status_code == 200

    def test_admin_sees_hidden_recording(self, client: TestClient, mock_recording_service: AsyncMock):
        mock_recording_service.get_recording.return_value = make_recording(is_hidden=True)

        response = client.get("/recording/get", params={"recording_id": "rec_1"}, headers=ADMIN)

        assert response.status_code == 200


class TestManageRecording:
    def test_list_mine_includes_management_fields(self, client: TestClient, mock_recording_service: AsyncMock):
        mock_recording_service.list_creator_recordings.return_value = [
            make_recording(is_deleted=True, status=RecordingStatus.DELETED, deleted_reason="old")
        ]

        response = client.get("/recording/list_mine", params={"include_deleted": True}, headers=OWNER)

        recordings = response.json()["results"]["recordings"]
        assert recordings[0]["is_deleted"] is True
        assert recordings[0]["deleted_reason"] == "old"
        mock_recording_service.list_creator_recordings.assert_awaited_once_with(
            "u.creator", include_deleted=True, limit=20
        )

    def test_update_passes_only_given_fields(self, client: TestClient, mock_recording_service: AsyncMock):
        mock_recording_service.update.return_value = OpResult.apply(make_recording(title="New title"))

        response = client.post(
            "/recording/update", json={"recording_id": "rec_1", "title": "New title"}, headers=OWNER
        )

        assert response.status_code == 200
        params = mock_recording_service.update.call_args.kwargs["params"]
        assert params.model_dump(exclude_none=True) == {"title": "New title"}

    def test_delete_forwards_admin_flag(self, client: TestClient, mock_recording_service: AsyncMock):
        mock_recording_service.delete.return_value = OpResult.apply(
            make_recording(status=RecordingStatus.DELETED, is_deleted=True)
        )

        response = client.post(
            "/recording/delete", json={"recording_id": "rec_1", "reason": "takedown"}, headers=ADMIN
        )

        assert response.status_code == 200
        mock_recording_service.delete.assert_awaited_once_with(
            "rec_1", actor_id="u.admin", reason="takedown", is_admin=True
        )

    def test_delete_missing(self, client: TestClient, mock_recording_service: AsyncMock):
        mock_recording_service.delete.return_value = OpResult.not_found("Recording rec_1 not found")

        response = client.post("/recording/delete", json={"recording_id": "rec_1"}, headers=OWNER)

        assert response.status_code == 404
        assert response.json()["errcode"] == "E_NOT_FOUND"

    def test_track_view(self, client: TestClient, mock_recording_service: AsyncMock):
        mock_recording_service.get_recording.return_value = make_recording()
        mock_recording_service.track_view.return_value = OpResult.apply(
            PlaybackStart(recording_id="rec_1", session_id="pv_1", view_count=8)
        )

        response = client.post("/recording/track_view", json={"recording_id": "rec_1"}, headers=VIEWER)

        assert response.json()["results"] == {"recording_id": "rec_1", "session_id": "pv_1", "view_count": 8}
        mock_recording_service.track_view.assert_awaited_once_with("rec_1", viewer_id="u.viewer")

    def test_anonymous_track_view(self, client: TestClient, mock_recording_service: AsyncMock):
        mock_recording_service.get_recording.return_value = make_recording()
        mock_recording_service.track_view.return_value = OpResult.apply(
            PlaybackStart(recording_id="rec_1", session_id="pv_2", view_count=1)
        )

        client.post("/recording/track_view", json={"recording_id": "rec_1"})

        mock_recording_service.track_view.assert_awaited_once_with("rec_1", viewer_id=None)

    def test_track_view_denied_before_counting(self, client: TestClient, mock_recording_service: AsyncMock):
        mock_recording_service.get_recording.return_value = make_recording(visibility=Visibility.MEMBERS)

        response = client.post("/recording/track_view", json={"recording_id": "rec_1"})

        assert response.status_code == 403
        mock_recording_service.track_view.assert_not_called()

    def test_playback_progress(self, client: TestClient, mock_recording_service: AsyncMock):
        now = datetime.now(timezone.utc)
        mock_recording_service.update_playback_progress.return_value = OpResult.apply(
            PlaybackSessionResponse(
                session_id="pv_1",
                recording_id="rec_1",
                viewer_id="u.viewer",
                started_at=now,
                last_activity_at=now,
                watch_duration_seconds=42.0,
                completed=True,
            )
        )

        response = client.post(
            "/recording/playback_progress",
            json={"recording_id": "rec_1", "session_id": "pv_1", "watch_duration_seconds": 42, "completed": True},
            headers=VIEWER,
        )

        results = response.json()["results"]
        assert results["watch_duration_seconds"] == 42.0
        assert results["completed"] is True
        mock_recording_service.update_playback_progress.assert_awaited_once_with(
            "rec_1", "pv_1", 42.0, completed=True, viewer_id="u.viewer"
        )

    def test_playback_progress_rejects_negative_duration(self, client: TestClient, mock_recording_service: AsyncMock):
        response = client.post(
            "/recording/playback_progress",
            json={"recording_id": "rec_1", "session_id": "pv_1", "watch_duration_seconds": -5},
        )

        assert response.status_code == 422
        mock_recording_service.update_playback_progress.assert_not_called()

    def test_playback_progress_unknown_session(self, client: TestClient, mock_recording_service: AsyncMock):
        mock_recording_service.update_playback_progress.return_value = OpResult.not_found("gone")

        response = client.post(
            "/recording/playback_progress",
            json={"recording_id": "rec_1", "session_id": "pv_9", "watch_duration_seconds": 1},
        )

        assert response.status_code == 404


class TestAdminEndpoints:
    @pytest.mark.parametrize(
        ("path", "body"),
        [
            ("/recording/hide", {"recording_id": "rec_1", "reason": "spam"}),
            ("/recording/unhide", {"recording_id": "rec_1"}),
            ("/recording/purge", {"recording_id": "rec_1"}),
            ("/recording/attribute", {"recording_id": "rec_1", "creator_id": "u.creator"}),
        ],
    )
    def test_admin_required(self, client: TestClient, path: str, body: dict):
        response = client.post(path, json=body, headers=OWNER)

        assert response.status_code == 403
        assert response.json()["errcode"] == "E_FORBIDDEN"

    def test_hide(self, client: TestClient, mock_recording_service: AsyncMock):
        mock_recording_service.hide.return_value = OpResult.apply(
            make_recording(is_hidden=True, hidden_reason="spam")
        )

        response = client.post("/recording/hide", json={"recording_id": "rec_1", "reason": "spam"}, headers=ADMIN)

        assert response.json()["results"]["hidden_reason"] == "spam"
        mock_recording_service.hide.assert_awaited_once_with("rec_1", reason="spam")

    def test_attribute_orphan(self, client: TestClient, mock_recording_service: AsyncMock):
        mock_recording_service.attribute.return_value = OpResult.apply(make_recording(creator_id="u.owner"))

        response = client.post(
            "/recording/attribute",
            json={"recording_id": "rec_asset_as_1", "creator_id": "u.owner", "stream_id": "st_9"},
            headers=ADMIN,
        )

        assert response.status_code == 200
        mock_recording_service.attribute.assert_awaited_once_with(
            "rec_asset_as_1", creator_id="u.owner", stream_id="st_9"
        )

    def test_list_unattributed(self, client: TestClient, mock_recording_service: AsyncMock):
        mock_recording_service.list_unattributed.return_value = [
            make_recording("rec_asset_as_1", creator_id="unknown", needs_attribution=True)
        ]

        response = client.get("/recording/list_unattributed", headers=ADMIN)

        recordings = response.json()["results"]["recordings"]
        assert recordings[0]["needs_attribution"] is True

    def test_list_all_requires_admin(self, client: TestClient, mock_recording_service: AsyncMock):
        response = client.get("/recording/list_all", headers=OWNER)

        assert response.status_code == 403
        mock_recording_service.list_all.assert_not_called()

    def test_list_all_filters(self, client: TestClient, mock_recording_service: AsyncMock):
        mock_recording_service.list_all.return_value = [
            make_recording("rec_2", status=RecordingStatus.FAILED, failure_reason="provider_error")
        ]

        response = client.get(
            "/recording/list_all",
            params={"status": ["failed", "processing"], "include_deleted": "false", "limit": 10},
            headers=ADMIN,
        )

        assert response.json()["results"]["recordings"][0]["failure_reason"] == "provider_error"
        mock_recording_service.list_all.assert_awaited_once_with(
            statuses=[RecordingStatus.FAILED, RecordingStatus.PROCESSING],
            include_deleted=False,
            include_hidden=True,
            limit=10,
        )
