"""Tests for CredentialOperations."""

import pytest

from app.app_config import ProviderConfig
from app.domain.live.stream.stream_domain import StreamService
from app.domain.live.stream.stream_models import StreamCreateParams
from app.domain.utils.op_result import OpOutcome
from app.schemas import StreamKey
from app.services.integrations.provider_gateway import ProviderGateway
from app.utils.app_errors import AppError, AppErrorCode


@pytest.fixture
def service() -> StreamService:
    config = ProviderConfig(demo_mode=True, ingest_base_url="rtmp://ingest.test/live")
    return StreamService(gateway=ProviderGateway(config))


@pytest.mark.usefixtures("clear_collections")
class TestCredentials:
    async def test_get_stream_key_without_key_raises(self, service: StreamService, beanie_db):
        with pytest.raises(AppError) as exc_info:
            await service.get_stream_key("u.nobody")

        assert exc_info.value.errcode == AppErrorCode.E_STREAM_KEY_NOT_FOUND.value

    async def test_regenerate_without_active_stream(self, service: StreamService, beanie_db):
        result = await service.regenerate_credential("u.creator")

        assert result.outcome == OpOutcome.APPLIED
        assert result.value.provider_rotated is False
        assert result.value.active_stream_id is None
        assert result.value.warning is None

        key = await service.get_stream_key("u.creator")
        assert key.stream_key == result.value.stream_key
        assert key.rotated_at is not None

    async def test_regenerate_during_active_stream_reports_asymmetry(
        self, service: StreamService, beanie_db
    ):
        created = await service.create("u.creator", StreamCreateParams(title="Running"))
        old_key = created.value.stream_key

        result = await service.regenerate_credential("u.creator")

        assert result.value.stream_key != old_key
        assert result.value.provider_rotated is False
        assert result.value.active_stream_id == created.value.stream.stream_id
        assert result.value.warning is not None
        assert await StreamKey.find(StreamKey.creator_id == "u.creator").count() == 1

    async def test_setup_info_uses_current_stream(self, service: StreamService, beanie_db):
        created = await service.create("u.creator", StreamCreateParams(title="Setup"))

        info = await service.get_setup_info("u.creator")

        assert info.server_url == "rtmp://ingest.test/live"
        assert info.stream_key == created.value.stream_key
        assert info.stream_id == created.value.stream.stream_id
        assert info.recommended_settings["keyframe_interval_seconds"] == "2"
