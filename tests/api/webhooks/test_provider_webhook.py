"""Tests for the provider webhook endpoint."""

import hashlib
import hmac
import json
import time
from datetime import timedelta
from unittest.mock import patch

import pytest
from beanie.odm.operators.update.general import Set
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.webhooks.provider import (
    handle_asset_failed,
    handle_asset_ready,
    handle_stream_idle,
    handle_stream_started,
    router,
    verify_provider_signature,
)
from app.api.webhooks.schemas.provider import ProviderWebhookEvent
from app.app_config import ProviderConfig
from app.domain.live.live_domain import build_live_services
from app.domain.live.stream.stream_models import StreamCreateParams
from app.schemas import RecordingStatus, Stream, StreamStatus
from app.schemas.schema_utils import utc_now
from app.services.integrations.provider_gateway import ProviderGateway
from app.utils.app_errors import AppError
from tests.fixtures.recording_factories import insert_recording, load_recording

SECRET = "whsec_test"


def sign(payload: bytes, secret: str = SECRET, timestamp: int | None = None) -> str:
    ts = str(timestamp if timestamp is not None else int(time.time()))
    digest = hmac.new(secret.encode(), f"{ts}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def asset_payload(event: str = "asset.ready", asset_id: str = "as_w1", session_id: str = "ps_w1", **asset) -> dict:
    body = {
        "id": asset_id,
        "playbackId": f"pb_{asset_id}",
        "status": {"phase": "ready"},
        "videoSpec": {"duration": 420.5, "tracks": [{"type": "video", "width": 1280, "height": 720}]},
        "size": 2048,
        "source": {"type": "recording", "sessionId": session_id},
    }
    body.update(asset)
    return {"event": event, "asset": body, "timestamp": 1735689600000}


class TestVerifyProviderSignature:
    def test_valid_signature(self):
        payload = b'{"event":"asset.ready"}'

        assert verify_provider_signature(payload, sign(payload), SECRET) is True

    def test_wrong_secret(self):
        payload = b'{"event":"asset.ready"}'

        assert verify_provider_signature(payload, sign(payload, secret="other"), SECRET) is False

    def test_tampered_body(self):
        header = sign(b'{"event":"asset.ready"}')

        assert verify_provider_signature(b'{"event":"asset.failed"}', header, SECRET) is False

    def test_stale_timestamp(self):
        payload = b"{}"
        header = sign(payload, timestamp=int(time.time()) - 600)

        with pytest.raises(AppError, match="Timestamp outside tolerance"):
            verify_provider_signature(payload, header, SECRET)

    @pytest.mark.parametrize("header", ["garbage", "t=123", "v1=abc", "t=abc,v1=def"])
    def test_malformed_header(self, header):
        with pytest.raises(AppError):
            verify_provider_signature(b"{}", header, SECRET)


class TestProviderWebhookEvent:
    def test_asset_event_normalization(self):
        event = ProviderWebhookEvent.model_validate(asset_payload(name="Show"))

        asset_event = event.to_asset_event()

        assert asset_event.asset_id == "as_w1"
        assert asset_event.asset_name == "Show"
        assert asset_event.provider_session_id == "ps_w1"
        assert asset_event.duration_seconds == 420.5
        assert asset_event.resolution == "1280x720"
        assert asset_event.size_bytes == 2048
        assert asset_event.occurred_at.year == 2025

    def test_status_as_bare_string(self):
        payload = asset_payload(event="asset.failed", status="errored")

        event = ProviderWebhookEvent.model_validate(payload)

        assert event.asset.status.phase == "errored"
        assert event.to_asset_event().error_message is None

    def test_second_timestamps(self):
        event = ProviderWebhookEvent.model_validate({"event": "stream.idle", "stream": {"id": "ps_1"}, "timestamp": 1735689600})

        assert event.occurred_at.year == 2025
        assert event.provider_session_id == "ps_1"
        assert event.subject_id == "ps_1"

    def test_asset_event_requires_asset(self):
        event = ProviderWebhookEvent.model_validate({"event": "asset.ready"})

        with pytest.raises(ValueError):
            event.to_asset_event()


class TestProviderWebhookEndpoint:
    @pytest.fixture
    def client(self) -> TestClient:
        app = FastAPI()
        app.include_router(router)
        return TestClient(app)

    def test_invalid_json(self, client):
        response = client.post("/webhooks/provider", content=b"{not json")

        assert response.status_code == 200
        assert response.json()["errcode"] == "E_WEBHOOK_INVALID_JSON"

    def test_missing_event(self, client):
        response = client.post("/webhooks/provider", json={"asset": {"id": "as_1"}})

        assert response.status_code == 200
        assert response.json()["errcode"] == "E_WEBHOOK_MISSING_EVENT_TYPE"

    def test_unknown_event_acknowledged(self, client):
        response = client.post("/webhooks/provider", json={"event": "asset.created"})

        assert response.status_code == 200
        assert response.json()["results"] == {"handled": False, "reason": "unhandled_event_type"}

    def test_asset_event_without_asset(self, client):
        response = client.post("/webhooks/provider", json={"event": "asset.ready"})

        assert response.json()["errcode"] == "E_WEBHOOK_VALIDATION_ERROR"

    def test_handler_exception_is_acknowledged(self, client):
        with patch("app.api.webhooks.provider.handle_asset_ready", side_effect=RuntimeError("db down")):
            response = client.post("/webhooks/provider", json=asset_payload())

        assert response.status_code == 200
        body = response.json()
        assert body["errcode"] == "E_WEBHOOK_ERROR"
        assert "db down" in body["errmesg"]

    def test_missing_signature_rejected_when_secret_set(self, client):
        with patch("app.api.webhooks.provider.get_app_environ_config") as mock_config:
            mock_config.return_value.PROVIDER_WEBHOOK_SIGNING_SECRET = SECRET
            response = client.post("/webhooks/provider", json=asset_payload())

        assert response.status_code == 200
        assert response.json()["errcode"] == "E_WEBHOOK_INVALID_SIGNATURE"

    def test_bad_signature_rejected(self, client):
        body = json.dumps(asset_payload()).encode()
        with patch("app.api.webhooks.provider.get_app_environ_config") as mock_config:
            mock_config.return_value.PROVIDER_WEBHOOK_SIGNING_SECRET = SECRET
            response = client.post(
                "/webhooks/provider",
                content=body,
                headers={"provider-signature": sign(body, secret="wrong")},
            )

        assert response.json()["errcode"] == "E_WEBHOOK_INVALID_SIGNATURE"

    def test_valid_signature_dispatches(self, client):
        body = json.dumps(asset_payload()).encode()
        with patch("app.api.webhooks.provider.get_app_environ_config") as mock_config:
            mock_config.return_value.PROVIDER_WEBHOOK_SIGNING_SECRET = SECRET
            with patch("app.api.webhooks.provider.handle_asset_ready") as mock_handler:
                mock_handler.return_value = {"handled": True, "outcome": "applied"}
                response = client.post(
                    "/webhooks/provider",
                    content=body,
                    headers={"provider-signature": sign(body), "Content-Type": "application/json"},
                )

        assert response.status_code == 200
        assert response.json()["results"] == {"handled": True, "outcome": "applied"}
        mock_handler.assert_called_once()


@pytest.mark.usefixtures("clear_collections")
class TestProviderEventHandlers:
    @pytest.fixture
    def live(self):
        gateway = ProviderGateway(ProviderConfig(demo_mode=True, playback_base_url="https://play.test/hls"))
        services = build_live_services(gateway=gateway, min_recording_duration_seconds=60)
        with patch("app.api.webhooks.provider.get_live_services", return_value=services):
            yield services

    async def create_stream(self, live) -> Stream:
        created = await live.streams.create("u.host", StreamCreateParams(title="Webhook show"))
        return await Stream.find_one(Stream.stream_id == created.value.stream.stream_id)

    async def test_stream_started_marks_live(self, live, beanie_db):
        stream = await self.create_stream(live)
        event = ProviderWebhookEvent.model_validate(
            {"event": "stream.started", "stream": {"id": stream.provider_session_id}}
        )

        result = await handle_stream_started(event)

        assert result["handled"] is True
        assert result["outcome"] == "applied"
        refreshed = await Stream.find_one(Stream.stream_id == stream.stream_id)
        assert refreshed.status == StreamStatus.LIVE

    async def test_stream_event_for_unknown_session(self, live, beanie_db):
        event = ProviderWebhookEvent.model_validate({"event": "stream.started", "stream": {"id": "ps_nope"}})

        result = await handle_stream_started(event)

        assert result == {"handled": False, "event": "stream.started", "reason": "stream_not_found"}

    async def test_stream_idle_ends_and_marks_processing(self, live, beanie_db):
        stream = await self.create_stream(live)
        await live.streams.mark_live(stream.stream_id)
        await Stream.find_one(Stream.stream_id == stream.stream_id).update(
            Set({Stream.started_at: utc_now() - timedelta(minutes=3)})
        )
        event = ProviderWebhookEvent.model_validate(
            {"event": "stream.idle", "stream": {"id": stream.provider_session_id}}
        )

        result = await handle_stream_idle(event)

        assert result["outcome"] == "applied"
        assert result["recording_id"] == f"rec_{stream.stream_id}"
        assert result["recording_outcome"] == "applied"
        recording = await load_recording(f"rec_{stream.stream_id}")
        assert recording.status == RecordingStatus.PROCESSING

    async def test_stream_idle_for_short_stream(self, live, beanie_db):
        stream = await self.create_stream(live)
        await live.streams.mark_live(stream.stream_id)
        event = ProviderWebhookEvent.model_validate(
            {"event": "stream.idle", "stream": {"id": stream.provider_session_id}}
        )

        result = await handle_stream_idle(event)

        assert result["recording_outcome"] is None
        assert result["recording_skipped_reason"] == "below_minimum_duration"

    async def test_asset_ready_reconciles(self, live, beanie_db):
        await insert_recording("rec_h1", RecordingStatus.PROCESSING, provider_session_id="ps_h1")
        event = ProviderWebhookEvent.model_validate(asset_payload(asset_id="as_h1", session_id="ps_h1"))

        result = await handle_asset_ready(event)

        assert result["handled"] is True
        assert result["recording_id"] == "rec_h1"
        assert result["match"] == "session"
        recording = await load_recording("rec_h1")
        assert recording.status == RecordingStatus.READY
        assert recording.playback_url == "https://play.test/hls/pb_as_h1/index.m3u8"
        assert recording.resolution == "1280x720"

    async def test_asset_failed_unmatched(self, live, beanie_db):
        event = ProviderWebhookEvent.model_validate(
            asset_payload(event="asset.failed", asset_id="as_h2", session_id="ps_h2")
        )

        result = await handle_asset_failed(event)

        assert result["handled"] is False
        assert result["outcome"] == "dropped"
        assert result["recording_id"] is None
